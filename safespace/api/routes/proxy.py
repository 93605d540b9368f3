from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, Response

from safespace.api.deps import admission
from safespace.errors import InvalidURL
from safespace.services.rate_limit import RateLimitResult
from safespace.services.relay import relay_fetch

router = APIRouter(prefix="/api/proxy", tags=["proxy"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
CACHE_CONTROL = "no-store, must-revalidate"


@router.get("", response_class=HTMLResponse)
async def proxy(
    url: str | None = Query(default=None),
    rate_limit: RateLimitResult = Depends(admission("proxy")),
):
    """Relay an outbound GET and return the upstream HTML verbatim."""
    if not url:
        raise InvalidURL("Missing URL parameter")

    page = await relay_fetch(url)
    return HTMLResponse(
        content=page.content,
        headers={
            **CORS_HEADERS,
            "Cache-Control": CACHE_CONTROL,
            "X-Final-Url": page.final_url,
            **rate_limit.headers(),
        },
    )


@router.options("")
async def proxy_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)
