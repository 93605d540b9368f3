from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from safespace.api.deps import first_validation_message
from safespace.api.routes import analyze, preview, proxy, screenshot
from safespace.config import settings
from safespace.errors import RateLimited, SafeSpaceError
from safespace.services.rate_limit import build_admission_gates

RATE_LIMIT_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"]


def _rate_limit_headers(request: Request) -> dict[str, str]:
    result = getattr(request.state, "rate_limit", None)
    return result.headers() if result is not None else {}


async def safespace_error_handler(request: Request, exc: SafeSpaceError) -> JSONResponse:
    headers = _rate_limit_headers(request)
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "message": first_validation_message(exc.errors())},
        headers=_rate_limit_headers(request),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": "An unexpected error occurred"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"SafeSpace starting, relay at {settings.relay_base_url}")
    yield
    # Shutdown


def create_app() -> FastAPI:
    app = FastAPI(
        title="SafeSpace",
        description="URL safety analysis with isolated page previews",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.admission_gates = build_admission_gates()

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=RATE_LIMIT_HEADERS,
    )

    app.add_exception_handler(SafeSpaceError, safespace_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routes
    app.include_router(analyze.router)
    app.include_router(preview.router)
    app.include_router(proxy.router)
    app.include_router(screenshot.router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "service": "safespace"}

    return app


app = create_app()
