"""Heuristic URL checks. Each returns one SecurityCheck; none performs I/O."""

from __future__ import annotations

import re

from safespace.models.schemas import SecurityCheck
from safespace.tools.url_normalizer import TargetURL

SUSPICIOUS_PATTERNS = (
    re.compile(r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}"),  # IP address
    re.compile(r"paypal|amazon|google|microsoft|apple|bank|login|verify|secure|account|update", re.IGNORECASE),
    re.compile(r"@"),
    re.compile(r"-{2,}"),
)

SUSPICIOUS_TLDS = (
    ".tk", ".ml", ".ga", ".cf", ".gq",  # free TLDs
    ".xyz", ".top", ".work", ".click", ".link",
)

WELL_KNOWN_DOMAINS = (
    "google.com", "microsoft.com", "apple.com", "amazon.com",
    "facebook.com", "twitter.com", "github.com", "stackoverflow.com",
)

ESTABLISHED_TLDS = (".com", ".org", ".edu", ".gov", ".net")

SPECIAL_CHARS_RE = re.compile(r"[<>{}|\^`\[\]]")

MAX_SUBDOMAIN_LABELS = 4
MAX_DOMAIN_LENGTH = 30
MAX_URL_LENGTH = 200


def validation_passed() -> SecurityCheck:
    return SecurityCheck(
        name="URL Validation",
        passed=True,
        message="URL format is valid",
        severity="low",
    )


def validation_failed(message: str) -> SecurityCheck:
    return SecurityCheck(
        name="URL Validation",
        passed=False,
        message=message or "Invalid URL",
        severity="high",
    )


def check_https(url: TargetURL) -> SecurityCheck:
    is_https = url.scheme == "https"
    return SecurityCheck(
        name="HTTPS Protocol",
        passed=is_https,
        message=(
            "Website uses secure HTTPS connection"
            if is_https
            else "Website uses insecure HTTP connection - data may be intercepted"
        ),
        severity="low" if is_https else "high",
    )


def check_suspicious_patterns(url: TargetURL) -> SecurityCheck:
    hostname = url.hostname.lower()
    full_url = url.href.lower()

    has_pattern = any(
        pattern.search(hostname) or pattern.search(full_url)
        for pattern in SUSPICIOUS_PATTERNS
    )
    has_excessive_subdomains = len(hostname.split(".")) > MAX_SUBDOMAIN_LABELS
    suspicious = has_pattern or has_excessive_subdomains

    return SecurityCheck(
        name="Suspicious Patterns",
        passed=not suspicious,
        message=(
            "URL contains patterns commonly used in phishing attacks "
            "(IP addresses, suspicious keywords, or excessive subdomains)"
            if suspicious
            else "No suspicious patterns detected in URL structure"
        ),
        severity="high" if suspicious else "low",
    )


def check_domain(url: TargetURL) -> SecurityCheck:
    hostname = url.hostname.lower()

    issues: list[str] = []
    if hostname.endswith(SUSPICIOUS_TLDS):
        issues.append("suspicious TLD")
    if re.search(r"\d", hostname.split(".")[0]):
        issues.append("numbers in domain name")
    if len(hostname) > MAX_DOMAIN_LENGTH:
        issues.append("unusually long domain")

    passed = not issues
    return SecurityCheck(
        name="Domain Analysis",
        passed=passed,
        message=(
            "Domain appears legitimate with standard characteristics"
            if passed
            else f"Domain has concerning characteristics: {', '.join(issues)}"
        ),
        severity="low" if passed else "medium",
    )


def analyze_domain_age(url: TargetURL) -> SecurityCheck:
    # No WHOIS lookup: well-known domains and established TLDs stand in for age.
    hostname = url.hostname.lower()
    is_well_known = hostname.endswith(WELL_KNOWN_DOMAINS)
    has_established_tld = hostname.endswith(ESTABLISHED_TLDS)
    passed = is_well_known or has_established_tld

    if is_well_known:
        message = "Domain is well-established and widely recognized"
    elif has_established_tld:
        message = "Domain uses an established TLD, likely older than 1 year"
    else:
        message = "Domain may be recently registered (higher risk for phishing)"

    return SecurityCheck(
        name="Domain Age",
        passed=passed,
        message=message,
        severity="low" if passed else "medium",
    )


def check_url_length(url: TargetURL) -> SecurityCheck:
    length = len(url.href)
    too_long = length > MAX_URL_LENGTH
    return SecurityCheck(
        name="URL Length",
        passed=not too_long,
        message=(
            f"URL is suspiciously long ({length} characters) - may hide malicious content"
            if too_long
            else f"URL length is normal ({length} characters)"
        ),
        severity="medium" if too_long else "low",
    )


def check_special_characters(url: TargetURL) -> SecurityCheck:
    has_special = SPECIAL_CHARS_RE.search(url.href) is not None
    return SecurityCheck(
        name="Special Characters",
        passed=not has_special,
        message=(
            "URL contains unusual special characters that may indicate obfuscation"
            if has_special
            else "No unusual special characters detected"
        ),
        severity="high" if has_special else "low",
    )
