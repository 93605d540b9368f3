from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, MutableMapping

from cachetools import TTLCache

from safespace.config import settings

UNKNOWN_IDENTITY = "unknown"


@dataclass(slots=True)
class AdmissionWindow:
    count: int
    reset: int  # epoch milliseconds


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: int  # epoch milliseconds

    def retry_after(self, now_ms: int | None = None) -> int:
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return max(math.ceil((self.reset - now_ms) / 1000), 0)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


def create_window_store(
    max_identities: int | None = None,
    ttl_seconds: float | None = None,
) -> TTLCache:
    """Bounded identity store: LRU eviction past capacity, entries expire after the TTL."""
    return TTLCache(
        maxsize=max_identities or settings.rate_limit_max_identities,
        ttl=ttl_seconds or settings.rate_limit_window_seconds,
    )


class AdmissionGate:
    """Fixed-window request counter per client identity."""

    def __init__(
        self,
        max_requests: int,
        interval_seconds: float,
        *,
        store: MutableMapping[str, AdmissionWindow] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.max_requests = max_requests
        self.interval_ms = int(interval_seconds * 1000)
        self._store = store if store is not None else create_window_store(ttl_seconds=interval_seconds)
        self._clock = clock
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check(self, identity: str) -> RateLimitResult:
        now = self.now_ms()
        with self._lock:
            window = self._store.get(identity)
            if window is None or now > window.reset:
                window = AdmissionWindow(count=1, reset=now + self.interval_ms)
                self._store[identity] = window
                return RateLimitResult(
                    success=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset=window.reset,
                )

            window.count += 1
            # Re-set so the LRU order reflects the latest access.
            self._store[identity] = window
            count = window.count
            reset = window.reset

        if count > self.max_requests:
            return RateLimitResult(success=False, limit=self.max_requests, remaining=0, reset=reset)
        return RateLimitResult(
            success=True,
            limit=self.max_requests,
            remaining=self.max_requests - count,
            reset=reset,
        )


def client_identity(headers: Mapping[str, str]) -> str:
    """Client identity from proxy headers; unattributable clients share one bucket."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return UNKNOWN_IDENTITY


def build_admission_gates(
    clock: Callable[[], float] = time.time,
) -> dict[str, AdmissionGate]:
    """One gate per endpoint, each with its own bounded store."""
    interval = settings.rate_limit_window_seconds
    limits = {
        "analyze": settings.analyze_rate_limit,
        "preview": settings.preview_rate_limit,
        "proxy": settings.proxy_rate_limit,
        "screenshot": settings.screenshot_rate_limit,
    }
    return {
        endpoint: AdmissionGate(max_requests, interval, clock=clock)
        for endpoint, max_requests in limits.items()
    }
