from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from safespace.api.deps import admission, method_not_allowed, read_url_request
from safespace.errors import InvalidInput
from safespace.models.schemas import ScreenshotResponse
from safespace.services.rate_limit import RateLimitResult
from safespace.services.screenshot import can_capture_screenshot, capture_screenshot

router = APIRouter(prefix="/api/screenshot", tags=["screenshot"])


@router.post("", response_model=ScreenshotResponse)
async def screenshot(
    request: Request,
    rate_limit: RateLimitResult = Depends(admission("screenshot")),
):
    payload = await read_url_request(request)
    if not can_capture_screenshot(payload.url):
        raise InvalidInput("URL must use HTTP or HTTPS protocol", error="Invalid URL")

    result = capture_screenshot(payload.url)
    return JSONResponse(
        status_code=200 if result.success else 500,
        content=result.model_dump(exclude_none=True),
        headers=rate_limit.headers(),
    )


@router.get("")
async def screenshot_get():
    return method_not_allowed("POST")
