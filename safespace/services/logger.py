"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from safespace.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "safespace_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",  # New file at midnight
    retention="7 days",
    compression="zip",
)

# Reduce noise from framework/network libraries
for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "hpack",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_fetch_attempt(
    url: str,
    transport: str,
    status: str,
    error: Optional[str] = None,
) -> None:
    """Log one outbound fetch attempt."""
    attempt_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "url": url,
        "transport": transport,
        "status": status,
        "error": error,
    }
    if error:
        logger.warning(f"FETCH_ATTEMPT_FAILED: {attempt_data}")
    else:
        logger.debug(f"FETCH_ATTEMPT: {attempt_data}")


def log_rate_limit(
    endpoint: str,
    identity: str,
    allowed: bool,
    remaining: int,
) -> None:
    """Log an admission gate decision. Only denials are logged above DEBUG."""
    gate_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoint": endpoint,
        "identity": identity,
        "allowed": allowed,
        "remaining": remaining,
    }
    if allowed:
        logger.debug(f"RATE_LIMIT: {gate_data}")
    else:
        logger.warning(f"RATE_LIMIT_EXCEEDED: {gate_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
