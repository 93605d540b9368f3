"""Same-origin relay: performs the outbound fetch on behalf of browser-side callers."""

from __future__ import annotations

import asyncio

import httpx

from safespace.config import settings
from safespace.errors import PayloadTooLarge, RelayFailed, RelayTimeout
from safespace.services.logger import log_fetch_attempt
from safespace.tools.http_fetch import FetchedPage, UpstreamStatusError, fetch_page
from safespace.tools.url_normalizer import parse_absolute_url, swap_scheme


def relay_candidates(url: str) -> list[str]:
    """The URL itself, plus its http equivalent when given https."""
    target = parse_absolute_url(url)
    candidates = [target.href]
    if target.scheme == "https":
        candidates.append(swap_scheme(target.href))
    return candidates


async def _fetch_first(candidates: list[str], max_bytes: int, timeout: float) -> FetchedPage:
    last_error: Exception | None = None
    last_status: int | None = None
    last_url = candidates[0]

    for candidate in candidates:
        last_url = candidate
        try:
            page = await fetch_page(candidate, timeout=timeout, max_bytes=max_bytes)
        except PayloadTooLarge:
            raise
        except UpstreamStatusError as exc:
            last_error = exc
            last_status = exc.status_code
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            last_error = exc
            last_status = None
        else:
            log_fetch_attempt(candidate, "relay", "success")
            return page
        log_fetch_attempt(candidate, "relay", "failed", error=str(last_error) or repr(last_error))

    message = (str(last_error) or type(last_error).__name__) if last_error else "Unknown error"
    raise RelayFailed(message, url=last_url, status=last_status)


async def relay_fetch(
    url: str,
    *,
    timeout: float | None = None,
    max_bytes: int | None = None,
) -> FetchedPage:
    """Fetch ``url`` under a single deadline, with https -> http fallback.

    Raises InvalidURL, RelayTimeout, PayloadTooLarge or RelayFailed.
    """
    timeout_seconds = timeout if timeout is not None else settings.fetch_timeout_seconds
    limit = max_bytes if max_bytes is not None else settings.relay_max_bytes
    candidates = relay_candidates(url)

    try:
        return await asyncio.wait_for(
            _fetch_first(candidates, limit, timeout_seconds),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise RelayTimeout(f"Request timeout ({timeout_seconds:g} seconds)") from exc
