from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from fastapi import Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from safespace.config import settings
from safespace.errors import InvalidInput, RateLimited
from safespace.models.schemas import URLRequest
from safespace.services.logger import log_rate_limit
from safespace.services.rate_limit import AdmissionGate, RateLimitResult, client_identity
from safespace.tools.content_rewriter import ContentRewriter
from safespace.tools.fetch_resolver import FetchResolver

DENIAL_MESSAGES = {
    "analyze": "Too many requests",
    "preview": "Too many preview requests",
    "proxy": "Too many requests",
    "screenshot": "Too many screenshot requests",
}


def admission(endpoint: str) -> Callable[[Request, Response], Awaitable[RateLimitResult]]:
    """Dependency factory gating a route through the endpoint's AdmissionGate."""

    async def _admit(request: Request, response: Response) -> RateLimitResult:
        gate: AdmissionGate = request.app.state.admission_gates[endpoint]
        identity = client_identity(request.headers)
        result = gate.check(identity)
        request.state.rate_limit = result
        log_rate_limit(endpoint, identity, result.success, result.remaining)

        if not result.success:
            now_ms = gate.now_ms()
            prefix = DENIAL_MESSAGES.get(endpoint, "Too many requests")
            raise RateLimited(
                result,
                f"{prefix}. Please try again in {result.retry_after(now_ms)} seconds.",
                now_ms=now_ms,
            )

        response.headers.update(result.headers())
        return result

    return _admit


VALIDATION_MESSAGES = {
    "missing": "URL is required",
    "string_too_short": "URL is required",
    "string_too_long": "URL too long",
    "string_type": "URL must be a string",
}


async def read_url_request(request: Request) -> URLRequest:
    """Parse and validate a ``{url}`` JSON body under the body-read deadline."""
    try:
        body = await asyncio.wait_for(request.json(), timeout=settings.body_timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise InvalidInput("Request body timeout") from exc
    except ValueError as exc:
        raise InvalidInput("Request body must be valid JSON") from exc

    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")

    try:
        return URLRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidInput(first_validation_message(exc.errors())) from exc


def first_validation_message(errors: list) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    return VALIDATION_MESSAGES.get(first.get("type", ""), first.get("msg", "Invalid request"))


def get_resolver() -> FetchResolver:
    return FetchResolver()


def get_rewriter(resolver: FetchResolver = Depends(get_resolver)) -> ContentRewriter:
    return ContentRewriter(resolver)


def method_not_allowed(allowed: str) -> JSONResponse:
    return JSONResponse(
        status_code=405,
        content={"error": "Method not allowed", "message": f"Use {allowed} method"},
        headers={"Allow": allowed},
    )
