from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from safespace.config import settings

Severity = Literal["low", "medium", "high"]


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with a trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SafetyLevel(str, Enum):
    SAFE = "SAFE"
    SUSPICIOUS = "SUSPICIOUS"
    DANGEROUS = "DANGEROUS"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Requests ---


class URLRequest(BaseModel):
    url: str = Field(min_length=1, max_length=settings.max_url_length)


# --- Responses ---


class SecurityCheck(BaseModel):
    name: str
    passed: bool
    message: str
    severity: Severity


class AnalysisResponse(CamelModel):
    url: str
    safety_level: SafetyLevel
    score: int
    checks: list[SecurityCheck]
    explanation: str
    timestamp: str
    can_preview: bool
    proxy_available: bool | None = None
    proxy_error: str | None = None
    working_method: str | None = None
    tried_variants: list[str] | None = None


class PreviewResponse(CamelModel):
    success: bool
    url: str
    content: str | None = None
    size: int | None = None
    size_formatted: str | None = None
    error: str | None = None
    can_proxy: bool | None = None
    details: str | None = None
    timestamp: str


class ScreenshotResponse(BaseModel):
    success: bool
    screenshot: str | None = None
    error: str | None = None
    format: Literal["base64", "url"] = "base64"
    timestamp: str
