from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request

from safespace.api.deps import admission, get_resolver, method_not_allowed, read_url_request
from safespace.config import settings
from safespace.errors import SafeSpaceError
from safespace.models.schemas import AnalysisResponse
from safespace.services.logger import log_event
from safespace.services.rate_limit import RateLimitResult
from safespace.services.url_analyzer import analyze_url
from safespace.tools.fetch_resolver import FetchResolver, check_content_availability
from safespace.tools.url_normalizer import normalize_url

router = APIRouter(prefix="/api/analyze", tags=["analyze"])


async def _run_analysis(url: str, resolver: FetchResolver) -> AnalysisResponse:
    analysis = await asyncio.to_thread(analyze_url, url)
    if not (settings.analyze_probe_availability and analysis.can_preview):
        return analysis

    probe = await check_content_availability(normalize_url(url), resolver)
    return analysis.model_copy(
        update={
            "proxy_available": probe["available"],
            "proxy_error": probe["error"],
            "working_method": probe["workingMethod"],
            "tried_variants": probe["triedVariants"],
        }
    )


@router.post("", response_model=AnalysisResponse, response_model_exclude_none=True)
async def analyze(
    request: Request,
    rate_limit: RateLimitResult = Depends(admission("analyze")),
    resolver: FetchResolver = Depends(get_resolver),
):
    """Score a URL with the heuristic security checks."""
    payload = await read_url_request(request)
    try:
        analysis = await asyncio.wait_for(
            _run_analysis(payload.url, resolver),
            timeout=settings.analysis_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        log_event("analysis_timeout", "URL analysis exceeded its deadline", url=payload.url)
        raise SafeSpaceError("An error occurred while analyzing the URL") from exc

    log_event(
        "analysis_completed",
        "URL analyzed",
        url=analysis.url,
        safety_level=analysis.safety_level.value,
        score=analysis.score,
    )
    return analysis


@router.get("")
async def analyze_get():
    return method_not_allowed("POST")
