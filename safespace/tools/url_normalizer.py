from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from safespace.config import settings
from safespace.errors import InvalidURL

ALLOWED_SCHEMES = ("http", "https")
SCHEME_PREFIX_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*)://")
DEFAULT_PORTS = {"http": 80, "https": 443}
# Tabs and newlines are dropped anywhere in a URL, as browsers do.
STRIPPED_CHARS_RE = re.compile(r"[\t\n\r]")


@dataclass(frozen=True, slots=True)
class TargetURL:
    href: str
    scheme: str
    hostname: str
    host: str
    origin: str
    display: str
    explicit_scheme: bool


def _format_host(hostname: str, port: int | None, scheme: str) -> str:
    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return host


def _encode_spaces(component: str) -> str:
    return component.replace(" ", "%20")


def _parse(candidate: str, *, display: str, explicit_scheme: bool) -> TargetURL:
    candidate = STRIPPED_CHARS_RE.sub("", candidate)
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise InvalidURL("Invalid URL format") from exc

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidURL("Only HTTP/HTTPS URLs are allowed")

    if any(ch.isspace() for ch in parts.netloc):
        raise InvalidURL("Invalid URL format")

    hostname = parts.hostname or ""
    if not hostname:
        raise InvalidURL("Invalid URL format")

    host = _format_host(hostname, port, scheme)
    netloc = host
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{host}"

    href = urlunsplit((
        scheme,
        netloc,
        _encode_spaces(parts.path) or "/",
        _encode_spaces(parts.query),
        _encode_spaces(parts.fragment),
    ))
    return TargetURL(
        href=href,
        scheme=scheme,
        hostname=hostname,
        host=host,
        origin=f"{scheme}://{host}",
        display=display,
        explicit_scheme=explicit_scheme,
    )


def normalize_url(raw: str) -> TargetURL:
    """Canonicalize user input into an http(s) TargetURL.

    Input without an explicit ``http://`` or ``https://`` prefix gets
    ``https://`` prepended. Any other explicit scheme is rejected.
    """
    candidate = (raw or "").strip()
    if not candidate:
        raise InvalidURL("URL is required")
    if len(candidate) > settings.max_url_length:
        raise InvalidURL("URL too long")

    match = SCHEME_PREFIX_RE.match(candidate)
    if match and match.group(1).lower() not in ALLOWED_SCHEMES:
        raise InvalidURL("Only HTTP/HTTPS URLs are allowed")

    explicit_scheme = match is not None
    if not explicit_scheme:
        candidate = f"https://{candidate}"
    return _parse(candidate, display=raw, explicit_scheme=explicit_scheme)


def parse_absolute_url(raw: str) -> TargetURL:
    """Parse an already-absolute http(s) URL without adding a scheme."""
    candidate = (raw or "").strip()
    if not candidate:
        raise InvalidURL("Missing URL parameter")
    if not SCHEME_PREFIX_RE.match(candidate):
        raise InvalidURL("Invalid URL format")
    return _parse(candidate, display=raw, explicit_scheme=True)


def is_http_url(raw: str) -> bool:
    try:
        parse_absolute_url(raw)
    except InvalidURL:
        return False
    return True


def swap_scheme(href: str) -> str:
    """Return the http<->https counterpart of an absolute URL."""
    if href.startswith("https://"):
        return "http://" + href[len("https://"):]
    if href.startswith("http://"):
        return "https://" + href[len("http://"):]
    return href
