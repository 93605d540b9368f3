from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from safespace.api.deps import (
    admission,
    get_resolver,
    get_rewriter,
    method_not_allowed,
    read_url_request,
)
from safespace.config import settings
from safespace.errors import FetchExhausted, PayloadTooLarge
from safespace.models.schemas import PreviewResponse, utc_timestamp
from safespace.services.logger import log_event
from safespace.services.rate_limit import RateLimitResult
from safespace.tools.content_rewriter import ContentRewriter, RewrittenDocument
from safespace.tools.fetch_resolver import FetchResolver, FetchResult
from safespace.tools.url_normalizer import TargetURL, normalize_url

router = APIRouter(prefix="/api/preview", tags=["preview"])


async def _fetch_and_rewrite(
    target: TargetURL,
    resolver: FetchResolver,
    rewriter: ContentRewriter,
) -> tuple[FetchResult, RewrittenDocument]:
    fetched = await resolver.fetch(target)
    document = await rewriter.rewrite(fetched.content, fetched.final_url)
    return fetched, document


def _failure_response(url: str, details: str, rate_limit: RateLimitResult) -> JSONResponse:
    failure = PreviewResponse(
        success=False,
        url=url,
        error="Failed to fetch page preview",
        details=details,
        can_proxy=True,
        timestamp=utc_timestamp(),
    )
    return JSONResponse(
        status_code=500,
        content=failure.model_dump(by_alias=True, exclude_none=True),
        headers=rate_limit.headers(),
    )


@router.post("", response_model=PreviewResponse, response_model_exclude_none=True)
async def preview(
    request: Request,
    rate_limit: RateLimitResult = Depends(admission("preview")),
    resolver: FetchResolver = Depends(get_resolver),
    rewriter: ContentRewriter = Depends(get_rewriter),
):
    """Fetch a page and return it rewritten as a self-contained document."""
    payload = await read_url_request(request)
    target = normalize_url(payload.url)
    timeout = settings.fetch_timeout_seconds

    # One deadline covers the page fetch and every stylesheet fetch.
    try:
        fetched, document = await asyncio.wait_for(
            _fetch_and_rewrite(target, resolver, rewriter),
            timeout=timeout,
        )
    except FetchExhausted as exc:
        log_event("preview_failed", "All fetch attempts failed", url=target.href)
        return _failure_response(payload.url, exc.message, rate_limit)
    except asyncio.TimeoutError:
        log_event("preview_timeout", "Preview exceeded its deadline", url=target.href)
        return _failure_response(payload.url, f"Preview timed out after {timeout:g} seconds", rate_limit)

    if document.size > settings.preview_max_bytes:
        too_large = PayloadTooLarge(
            document.size,
            settings.preview_max_bytes,
            label="Page too large for preview",
        )
        return JSONResponse(
            status_code=413,
            content={"error": too_large.message, "canProxy": True},
            headers=rate_limit.headers(),
        )

    log_event(
        "preview_completed",
        "Preview rendered",
        url=fetched.final_url,
        transport=fetched.transport,
        size=document.size,
        rewritten=document.rewritten,
    )
    return PreviewResponse(
        success=True,
        url=payload.url,
        content=document.html,
        size=document.size,
        size_formatted=document.size_formatted,
        timestamp=utc_timestamp(),
    )


@router.get("")
async def preview_get():
    return method_not_allowed("POST")
