from __future__ import annotations

from dataclasses import dataclass

import httpx

from safespace.config import settings
from safespace.errors import PayloadTooLarge


@dataclass(slots=True)
class FetchedPage:
    content: str
    final_url: str
    status_code: int


class UpstreamStatusError(Exception):
    def __init__(self, status_code: int, reason: str = ""):
        super().__init__(f"HTTP {status_code}: {reason}".rstrip(": "))
        self.status_code = status_code
        self.reason = reason


def browser_headers() -> dict[str, str]:
    """Header set resembling a real browser navigation, to avoid WAF false positives."""
    return {
        "User-Agent": settings.fetch_user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate, br",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    }


def _decode(body: bytes, encoding: str | None) -> str:
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


async def fetch_page(
    url: str,
    *,
    timeout: float | None = None,
    max_bytes: int | None = None,
) -> FetchedPage:
    """GET ``url`` following redirects; the body is streamed and capped at ``max_bytes``."""
    timeout_seconds = timeout if timeout is not None else settings.fetch_timeout_seconds
    limit = max_bytes if max_bytes is not None else settings.relay_max_bytes

    async with httpx.AsyncClient(
        timeout=timeout_seconds,
        follow_redirects=True,
        headers=browser_headers(),
    ) as client:
        async with client.stream("GET", url) as response:
            if response.status_code >= 400:
                raise UpstreamStatusError(response.status_code, response.reason_phrase)

            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                raise PayloadTooLarge(int(declared), limit)

            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > limit:
                    raise PayloadTooLarge(received, limit)
                chunks.append(chunk)

            return FetchedPage(
                content=_decode(b"".join(chunks), response.encoding),
                final_url=str(response.url),
                status_code=response.status_code,
            )
