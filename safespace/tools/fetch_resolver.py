from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from safespace.config import settings
from safespace.errors import FetchExhausted
from safespace.services.logger import log_fetch_attempt
from safespace.tools.http_fetch import FetchedPage, UpstreamStatusError, fetch_page
from safespace.tools.url_normalizer import TargetURL, swap_scheme

Transport = Callable[[str, float], Awaitable[FetchedPage]]

RELAY_PATH = "/api/proxy"


@dataclass(frozen=True, slots=True)
class FetchAttempt:
    url: str
    transport: str
    ok: bool = False
    error: str | None = None

    def describe(self) -> str:
        return f"{self.transport}({self.url}): {self.error if not self.ok else 'ok'}"


@dataclass(slots=True)
class FetchResult:
    content: str
    final_url: str
    transport: str
    attempts: list[FetchAttempt] = field(default_factory=list)


async def direct_transport(url: str, timeout: float) -> FetchedPage:
    """Outbound fetch issued by this process."""
    return await fetch_page(url, timeout=timeout)


def _relay_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return response.reason_phrase


async def relay_transport(url: str, timeout: float) -> FetchedPage:
    """Fetch through this service's own /api/proxy relay endpoint."""
    endpoint = settings.relay_base_url.rstrip("/") + RELAY_PATH
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.get(
            endpoint,
            params={"url": url},
            headers={"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"},
        )
    if response.status_code >= 400:
        raise UpstreamStatusError(response.status_code, _relay_error_message(response))
    return FetchedPage(
        content=response.text,
        final_url=response.headers.get("x-final-url") or url,
        status_code=response.status_code,
    )


class FetchResolver:
    """Resolve a TargetURL to page content over an ordered (variant x transport) plan.

    Variants are the URL as normalized and its opposite-scheme twin; for each
    variant the direct transport is tried before the relay. The first success
    wins. Every failure is recorded, and exhaustion raises FetchExhausted with
    the full attempt list instead of the underlying network error.
    """

    def __init__(
        self,
        transports: dict[str, Transport] | None = None,
        *,
        timeout: float | None = None,
    ):
        self.transports: dict[str, Transport] = transports or {
            "direct": direct_transport,
            "relay": relay_transport,
        }
        self.timeout = timeout if timeout is not None else settings.fetch_timeout_seconds

    def variants(self, target: TargetURL) -> list[str]:
        return [target.href, swap_scheme(target.href)]

    def plan_attempts(self, target: TargetURL) -> list[tuple[str, str]]:
        return [
            (variant, transport_name)
            for variant in self.variants(target)
            for transport_name in self.transports
        ]

    async def fetch(self, target: TargetURL) -> FetchResult:
        attempts: list[FetchAttempt] = []

        for variant, transport_name in self.plan_attempts(target):
            transport = self.transports[transport_name]
            try:
                page = await asyncio.wait_for(
                    transport(variant, self.timeout),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                reason = f"timed out after {self.timeout:g} seconds"
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
            else:
                attempts.append(FetchAttempt(url=variant, transport=transport_name, ok=True))
                log_fetch_attempt(variant, transport_name, "success")
                return FetchResult(
                    content=page.content,
                    final_url=page.final_url or variant,
                    transport=transport_name,
                    attempts=attempts,
                )

            error = f"{transport_name} fetch failed: {reason}"
            attempts.append(FetchAttempt(url=variant, transport=transport_name, error=error))
            log_fetch_attempt(variant, transport_name, "failed", error=error)

        raise FetchExhausted(attempts)


async def check_content_availability(
    target: TargetURL,
    resolver: FetchResolver | None = None,
) -> dict[str, Any]:
    """Probe whether the page can be fetched at all; never raises on fetch failure."""
    resolver = resolver or FetchResolver()
    tried = resolver.variants(target)
    try:
        result = await resolver.fetch(target)
    except FetchExhausted as exc:
        return {
            "available": False,
            "error": exc.message,
            "workingMethod": None,
            "triedVariants": tried,
        }
    return {
        "available": True,
        "error": None,
        "workingMethod": result.transport,
        "triedVariants": tried,
    }
