from __future__ import annotations

from safespace.models.schemas import ScreenshotResponse, utc_timestamp
from safespace.tools.url_normalizer import is_http_url

DISABLED_MESSAGE = "Screenshot service disabled - using iframe preview"


def capture_screenshot(url: str) -> ScreenshotResponse:
    """Always reports unavailable; callers fall back to the iframe preview."""
    return ScreenshotResponse(
        success=False,
        error=DISABLED_MESSAGE,
        format="base64",
        timestamp=utc_timestamp(),
    )


def can_capture_screenshot(url: str) -> bool:
    return is_http_url(url)
