"""Rewrite fetched HTML (and its linked CSS) into a self-contained document.

Rewriting is pattern based, not a DOM parse. Every relative reference is
made absolute against the page origin with one rule: a value starting
with ``/`` becomes ``origin + value``, anything else ``origin + "/" +
value``. Paths such as ``../img.png`` are therefore not resolved per
RFC 3986; that simplification is intentional and shared by every pass.
Scheme-relative ``//host/x`` values count as root-relative everywhere
except the generic attribute pass and CSS references, which leave them alone.

A rewritten srcset drops empty entries (trailing commas). A srcset whose
entries are all already absolute is left byte-identical.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Protocol

from loguru import logger

from safespace.errors import SafeSpaceError
from safespace.tools.fetch_resolver import FetchResult
from safespace.tools.url_normalizer import TargetURL, normalize_url, parse_absolute_url

HEAD_CLOSE_RE = re.compile(r"</head>", re.IGNORECASE)

LINK_TAG_RE = re.compile(r"<link\b[^>]*>", re.IGNORECASE)
REL_ATTR_RE = re.compile(r"""\srel\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
HREF_ATTR_RE = re.compile(r"""\shref\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
STYLE_BLOCK_RE = re.compile(r"<style[^>]*>([\s\S]*?)</style>", re.IGNORECASE)
IMG_TAG_RE = re.compile(r"<img([^>]*)>", re.IGNORECASE)
SOURCE_TAG_RE = re.compile(r"<source([^>]*)>", re.IGNORECASE)
VIDEO_TAG_RE = re.compile(r"<video([^>]*)>", re.IGNORECASE)

CSS_URL_RE = re.compile(r"""url\(["']?([^"')]+)["']?\)""", re.IGNORECASE)
CSS_IMPORT_URL_RE = re.compile(r"""@import\s+url\(["']?([^"')]+)["']?\)""", re.IGNORECASE)
CSS_IMPORT_STRING_RE = re.compile(r"""@import\s+["']([^"']+)["']\s*;""", re.IGNORECASE)

IMG_URL_ATTRS = ("data-src", "data-srcset", "poster", "data-poster")
GENERIC_URL_ATTRS = ("href", "src", "action", "data-src", "data-href")


class Resolver(Protocol):
    async def fetch(self, target: TargetURL) -> FetchResult: ...


def _single_attr_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"""\s{re.escape(name)}=["']([^"']+)["']""", re.IGNORECASE)


def _is_embedded_or_absolute(value: str) -> bool:
    return value.startswith(("data:", "http"))


def _is_generic_passthrough(value: str) -> bool:
    return value.startswith(("data:", "//", "#", "http"))


def _insert_before_head_close(html: str, fragment: str) -> str:
    match = HEAD_CLOSE_RE.search(html)
    if match is None:
        return fragment + html
    index = match.start()
    return html[:index] + fragment + html[index:]


@dataclass(frozen=True, slots=True)
class RewriteContext:
    origin: str

    @classmethod
    def from_url(cls, final_url: str) -> RewriteContext:
        target = parse_absolute_url(final_url)
        return cls(origin=target.origin)

    def absolutize(self, value: str) -> str:
        if value.startswith("/"):
            return f"{self.origin}{value}"
        return f"{self.origin}/{value}"

    def stylesheet_url(self, href: str) -> str:
        if href.startswith("http"):
            return href
        return self.absolutize(href)


@dataclass(slots=True)
class RewrittenDocument:
    html: str
    size: int
    size_formatted: str
    rewritten: bool = True

    @classmethod
    def from_html(cls, html: str, *, rewritten: bool = True) -> RewrittenDocument:
        size = len(html.encode("utf-8"))
        return cls(
            html=html,
            size=size,
            size_formatted=f"{size / 1024:.2f}KB",
            rewritten=rewritten,
        )


def rewrite_css(css: str, context: RewriteContext) -> str:
    """Absolutize url(...), @import url(...) and bare @import "..." references."""

    def _url(match: re.Match[str]) -> str:
        value = match.group(1).strip()
        if value.startswith("data:"):
            return match.group(0)
        if value.startswith(("http", "//")):
            return f'url("{value}")'
        return f'url("{context.absolutize(value)}")'

    def _import_url(match: re.Match[str]) -> str:
        value = match.group(1).strip()
        if value.startswith("data:"):
            return match.group(0)
        if value.startswith(("http", "//")):
            return f'@import url("{value}")'
        return f'@import url("{context.absolutize(value)}")'

    def _import_string(match: re.Match[str]) -> str:
        value = match.group(1)
        if value.startswith("data:"):
            return match.group(0)
        if value.startswith(("http", "//")):
            return f"@import '{value}';"
        return f"@import '{context.absolutize(value)}';"

    css = CSS_URL_RE.sub(_url, css)
    css = CSS_IMPORT_URL_RE.sub(_import_url, css)
    return CSS_IMPORT_STRING_RE.sub(_import_string, css)


def rewrite_srcset(srcset: str, context: RewriteContext) -> str:
    entries: list[str] = []
    for item in srcset.split(","):
        parts = item.strip().split()
        if not parts:
            continue
        url, descriptor = parts[0], " ".join(parts[1:])
        if not _is_embedded_or_absolute(url):
            url = context.absolutize(url)
        entries.append(f"{url} {descriptor}" if descriptor else url)
    return ", ".join(entries)


def _rewrite_single_attr(
    attrs: str,
    name: str,
    context: RewriteContext,
    passthrough: Callable[[str], bool] = _is_embedded_or_absolute,
) -> str:
    def _replace(match: re.Match[str]) -> str:
        value = match.group(1)
        if passthrough(value):
            return match.group(0)
        return f' {name}="{context.absolutize(value)}"'

    return _single_attr_re(name).sub(_replace, attrs)


def _rewrite_srcset_attr(attrs: str, context: RewriteContext) -> str:
    def _replace(match: re.Match[str]) -> str:
        srcset = match.group(1)
        rewritten = rewrite_srcset(srcset, context)
        if rewritten == srcset:
            return match.group(0)
        return f' srcset="{rewritten}"'

    return _single_attr_re("srcset").sub(_replace, attrs)


def rewrite_media_tags(html: str, context: RewriteContext) -> str:
    """Absolutize image, <source> and <video poster> references."""

    def _img(match: re.Match[str]) -> str:
        attrs = _rewrite_single_attr(match.group(1), "src", context)
        attrs = _rewrite_srcset_attr(attrs, context)
        for name in IMG_URL_ATTRS:
            attrs = _rewrite_single_attr(attrs, name, context)
        return f"<img{attrs}>"

    def _source(match: re.Match[str]) -> str:
        attrs = _rewrite_srcset_attr(match.group(1), context)
        attrs = _rewrite_single_attr(attrs, "src", context)
        return f"<source{attrs}>"

    def _video(match: re.Match[str]) -> str:
        return f"<video{_rewrite_single_attr(match.group(1), 'poster', context)}>"

    html = IMG_TAG_RE.sub(_img, html)
    html = SOURCE_TAG_RE.sub(_source, html)
    return VIDEO_TAG_RE.sub(_video, html)


def rewrite_generic_attrs(html: str, context: RewriteContext) -> str:
    """Absolutize href/src/action/data-src/data-href on any ``word attr="..."`` sequence.

    Not tag-aware: any attribute-looking text preceded by a word or space
    character is rewritten, matching the historical scope of this pass.
    """
    for name in GENERIC_URL_ATTRS:
        pattern = re.compile(
            rf"""(?<=[\s\w])({re.escape(name)})=["']([^"']+)["']""",
            re.IGNORECASE,
        )

        def _replace(match: re.Match[str]) -> str:
            value = match.group(2)
            if _is_generic_passthrough(value):
                return match.group(0)
            return f'{match.group(1)}="{context.absolutize(value)}"'

        html = pattern.sub(_replace, html)
    return html


def _stylesheet_links(html: str) -> list[tuple[str, str]]:
    links: list[tuple[str, str]] = []
    for match in LINK_TAG_RE.finditer(html):
        tag = match.group(0)
        rel = REL_ATTR_RE.search(tag)
        href = HREF_ATTR_RE.search(tag)
        if rel is None or href is None:
            continue
        if "stylesheet" not in rel.group(1).lower().split():
            continue
        links.append((tag, href.group(1)))
    return links


class ContentRewriter:
    """Turn raw HTML into an origin-neutral document for an isolated frame."""

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    async def rewrite(self, html: str, final_url: str) -> RewrittenDocument:
        try:
            rewritten = await self._rewrite(html, final_url)
        except Exception as exc:
            logger.warning(f"Rewrite failed for {final_url}, serving original HTML: {exc!r}")
            return RewrittenDocument.from_html(html, rewritten=False)
        return RewrittenDocument.from_html(rewritten)

    async def _rewrite(self, html: str, final_url: str) -> str:
        context = RewriteContext.from_url(final_url)

        # An explicit <base> in the source always wins.
        if "<base" not in html.lower():
            html = _insert_before_head_close(html, f'<base href="{context.origin}/">')

        combined_css = ""
        for tag, href in _stylesheet_links(html):
            css = await self._fetch_stylesheet(href, context)
            if css:
                combined_css += f"/* CSS from: {href} */\n{css}\n\n"
            html = html.replace(tag, "", 1)

        for inline_css in STYLE_BLOCK_RE.findall(html):
            combined_css += f"/* Inline style */\n{inline_css}\n\n"
        html = STYLE_BLOCK_RE.sub("", html)

        if combined_css:
            style_tag = (
                "<style>\n/* Combined CSS from original website */\n"
                f"{combined_css}</style>"
            )
            html = _insert_before_head_close(html, style_tag)

        html = rewrite_media_tags(html, context)
        return rewrite_generic_attrs(html, context)

    async def _fetch_stylesheet(self, href: str, context: RewriteContext) -> str:
        css_url = context.stylesheet_url(href)
        try:
            result = await self.resolver.fetch(normalize_url(css_url))
        except SafeSpaceError as exc:
            logger.warning(f"Skipping stylesheet {css_url}: {exc.message}")
            return ""
        if not result.content:
            logger.warning(f"Stylesheet {css_url} returned an empty body")
            return ""
        return rewrite_css(result.content, context)
