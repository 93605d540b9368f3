from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from safespace.services.rate_limit import RateLimitResult
    from safespace.tools.fetch_resolver import FetchAttempt


class SafeSpaceError(Exception):
    """Base error; carries the HTTP status it maps to at the endpoint boundary."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str, *, status_code: int | None = None, error: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error is not None:
            self.error = error

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message}


class InvalidInput(SafeSpaceError):
    status_code = 400
    error = "Invalid request"


class InvalidURL(InvalidInput):
    error = "Invalid URL"

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class RateLimited(SafeSpaceError):
    status_code = 429
    error = "Rate limit exceeded"

    def __init__(self, result: RateLimitResult, message: str, *, now_ms: int | None = None):
        super().__init__(message)
        self.result = result
        self.retry_after = result.retry_after(now_ms)

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "retryAfter": self.result.reset,
        }


class FetchExhausted(SafeSpaceError):
    status_code = 500
    error = "Failed to fetch URL"

    def __init__(self, attempts: list[FetchAttempt]):
        self.attempts = list(attempts)
        summary = "; ".join(attempt.describe() for attempt in self.attempts)
        super().__init__(f"All fetch attempts failed. Tried: {summary}")


class PayloadTooLarge(SafeSpaceError):
    status_code = 413
    error = "Payload too large"

    def __init__(self, size: int, limit: int, *, label: str = "Response too large"):
        self.size = size
        self.limit = limit
        super().__init__(
            f"{label}: {size / 1024 / 1024:.2f}MB (max {limit // (1024 * 1024)}MB)"
        )

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class RelayTimeout(SafeSpaceError):
    status_code = 408
    error = "Request timeout"

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class RelayFailed(SafeSpaceError):
    status_code = 500
    error = "Failed to fetch URL"

    def __init__(self, message: str, *, url: str, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": f"Failed to fetch: {self.message}",
            "details": {"url": self.url, "status": self.status},
        }
