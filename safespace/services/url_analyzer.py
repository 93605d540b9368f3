from __future__ import annotations

import math

from safespace.errors import InvalidURL
from safespace.models.schemas import AnalysisResponse, SafetyLevel, SecurityCheck, utc_timestamp
from safespace.services import security_checks as checks_module
from safespace.tools.url_normalizer import normalize_url

SEVERITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3}
SAFE_THRESHOLD = 80
SUSPICIOUS_THRESHOLD = 50


def calculate_safety_score(checks: list[SecurityCheck]) -> tuple[SafetyLevel, int]:
    """Weighted pass ratio (0-100) and the verdict it maps to."""
    total = sum(SEVERITY_WEIGHTS[check.severity] for check in checks)
    earned = sum(SEVERITY_WEIGHTS[check.severity] for check in checks if check.passed)
    score = math.floor(earned / total * 100 + 0.5) if total else 0

    if score >= SAFE_THRESHOLD:
        level = SafetyLevel.SAFE
    elif score >= SUSPICIOUS_THRESHOLD:
        level = SafetyLevel.SUSPICIOUS
    else:
        level = SafetyLevel.DANGEROUS

    high_failed = any(check.severity == "high" and not check.passed for check in checks)
    if high_failed and level == SafetyLevel.SUSPICIOUS:
        level = SafetyLevel.DANGEROUS

    return level, score


def generate_explanation(level: SafetyLevel, checks: list[SecurityCheck]) -> str:
    failed = [check.name for check in checks if not check.passed]
    plural = "s" if len(failed) > 1 else ""

    if level == SafetyLevel.SAFE:
        return (
            "This URL appears to be safe. All security checks passed successfully. "
            "The website uses standard security practices and shows no obvious signs "
            "of malicious intent. However, always exercise caution when clicking links "
            "from untrusted sources."
        )
    if level == SafetyLevel.SUSPICIOUS:
        if not failed:
            return "This URL has some minor concerns but may be safe. Review the security checks before proceeding."
        return (
            f"This URL shows {len(failed)} warning sign{plural}: {', '.join(failed)}. "
            "Proceed with caution and verify the source before interacting with this website."
        )
    if not failed:
        return "This URL is potentially dangerous. Multiple security concerns detected."
    return (
        f"⚠️ This URL is potentially dangerous and should be avoided. {len(failed)} "
        f"critical issue{plural} detected: {', '.join(failed)}. "
        "Do not enter personal information or credentials on this site."
    )


def analyze_url(raw_url: str) -> AnalysisResponse:
    """Score a URL with the heuristic checks. Invalid input yields a DANGEROUS verdict."""
    timestamp = utc_timestamp()

    try:
        url = normalize_url(raw_url)
    except InvalidURL as exc:
        return AnalysisResponse(
            url=raw_url,
            safety_level=SafetyLevel.DANGEROUS,
            score=0,
            checks=[checks_module.validation_failed(exc.message)],
            explanation="The provided URL is invalid and cannot be analyzed.",
            timestamp=timestamp,
            can_preview=False,
        )

    checks = [
        checks_module.validation_passed(),
        checks_module.check_https(url),
        checks_module.check_suspicious_patterns(url),
        checks_module.check_domain(url),
        checks_module.analyze_domain_age(url),
        checks_module.check_url_length(url),
        checks_module.check_special_characters(url),
    ]
    level, score = calculate_safety_score(checks)

    return AnalysisResponse(
        url=url.href,
        safety_level=level,
        score=score,
        checks=checks,
        explanation=generate_explanation(level, checks),
        timestamp=timestamp,
        can_preview=level != SafetyLevel.DANGEROUS,
    )
