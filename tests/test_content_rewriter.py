from __future__ import annotations

import pytest

from safespace.errors import FetchExhausted
from safespace.tools.content_rewriter import (
    ContentRewriter,
    RewriteContext,
    rewrite_css,
    rewrite_generic_attrs,
    rewrite_srcset,
)
from safespace.tools.fetch_resolver import FetchAttempt, FetchResult

PAGE_URL = "https://example.com/blog/post"
CONTEXT = RewriteContext(origin="https://example.com")


class FakeResolver:
    def __init__(self, bodies: dict[str, str] | None = None, error: Exception | None = None):
        self.bodies = bodies or {}
        self.error = error
        self.requested: list[str] = []

    async def fetch(self, target):
        self.requested.append(target.href)
        if self.error is not None:
            raise self.error
        if target.href not in self.bodies:
            raise FetchExhausted(
                [FetchAttempt(url=target.href, transport="direct", error="direct fetch failed: HTTP 404")]
            )
        return FetchResult(content=self.bodies[target.href], final_url=target.href, transport="direct")


@pytest.mark.asyncio
async def test_base_tag_inserted_once_before_head_close():
    rewriter = ContentRewriter(FakeResolver())
    html = "<html><HEAD><title>t</title></HEAD><body></body></html>"

    first = await rewriter.rewrite(html, PAGE_URL)
    second = await rewriter.rewrite(first.html, PAGE_URL)

    assert '<base href="https://example.com/"></HEAD>' in first.html
    assert second.html.count("<base") == 1


@pytest.mark.asyncio
async def test_existing_base_tag_is_kept():
    rewriter = ContentRewriter(FakeResolver())
    html = '<html><head><base href="https://cdn.example.org/"></head><body></body></html>'

    document = await rewriter.rewrite(html, PAGE_URL)

    assert document.html.count("<base") == 1
    assert 'href="https://cdn.example.org/"' in document.html


@pytest.mark.asyncio
async def test_relative_links_are_absolutized_against_origin():
    rewriter = ContentRewriter(FakeResolver())
    html = (
        "<html><head></head><body>"
        '<a href="/about">a</a>'
        '<a href="contact.html">b</a>'
        '<a href="../up.html">c</a>'
        '<a href="#top">d</a>'
        '<a href="//cdn.example.net/x">e</a>'
        '<a href="https://other.org/">f</a>'
        '<form action="/search"></form>'
        "</body></html>"
    )

    document = await rewriter.rewrite(html, PAGE_URL)

    assert 'href="https://example.com/about"' in document.html
    assert 'href="https://example.com/contact.html"' in document.html
    assert 'href="https://example.com/../up.html"' in document.html
    assert 'href="#top"' in document.html
    assert 'href="//cdn.example.net/x"' in document.html
    assert 'href="https://other.org/"' in document.html
    assert 'action="https://example.com/search"' in document.html


@pytest.mark.asyncio
async def test_media_references_are_absolutized():
    rewriter = ContentRewriter(FakeResolver())
    html = (
        "<html><head></head><body>"
        '<img src="/logo.png" data-src="lazy.png" alt="logo">'
        '<img src="data:image/png;base64,AAAA">'
        '<video poster="thumb.jpg"><source src="/clip.mp4" type="video/mp4"></video>'
        "</body></html>"
    )

    document = await rewriter.rewrite(html, PAGE_URL)

    assert 'src="https://example.com/logo.png"' in document.html
    assert 'data-src="https://example.com/lazy.png"' in document.html
    assert 'src="data:image/png;base64,AAAA"' in document.html
    assert 'poster="https://example.com/thumb.jpg"' in document.html
    assert 'src="https://example.com/clip.mp4"' in document.html


def test_rewrite_srcset_keeps_descriptors_and_absolute_entries():
    srcset = "a.png 1x, /b.png 2x, https://c.org/c.png 3x, "
    assert rewrite_srcset(srcset, CONTEXT) == (
        "https://example.com/a.png 1x, https://example.com/b.png 2x, https://c.org/c.png 3x"
    )


def test_rewrite_srcset_absolutizes_root_relative_entries():
    context = RewriteContext(origin="https://ex.com")
    assert rewrite_srcset("/a.png 1x, /b.png 2x", context) == "https://ex.com/a.png 1x, https://ex.com/b.png 2x"


@pytest.mark.asyncio
async def test_picture_source_srcset_is_absolutized():
    html = (
        "<html><head></head><body><picture>"
        '<source srcset="/a.webp 1x, b.webp 2x" type="image/webp">'
        '<img src="/a.png">'
        "</picture></body></html>"
    )

    document = await ContentRewriter(FakeResolver()).rewrite(html, "https://ex.com/gallery")

    assert '<source srcset="https://ex.com/a.webp 1x, https://ex.com/b.webp 2x" type="image/webp">' in document.html
    assert '<img src="https://ex.com/a.png">' in document.html


def test_rewrite_css_handles_urls_and_imports():
    css = (
        "body { background: url('img/bg.png'); }\n"
        ".icon { background: url(data:image/png;base64,AAAA); }\n"
        "@font-face { src: url( //fonts.example.net/a.woff ); }\n"
        '@import "theme.css";\n'
        "@import url(/print.css);\n"
    )

    rewritten = rewrite_css(css, CONTEXT)

    assert 'url("https://example.com/img/bg.png")' in rewritten
    assert "url(data:image/png;base64,AAAA)" in rewritten
    assert 'url("//fonts.example.net/a.woff")' in rewritten
    assert "@import 'https://example.com/theme.css';" in rewritten
    assert '@import url("https://example.com/print.css")' in rewritten


def test_rewrite_generic_attrs_is_not_tag_aware():
    text = 'see href="/docs" in the markup'
    assert rewrite_generic_attrs(text, CONTEXT) == 'see href="https://example.com/docs" in the markup'


@pytest.mark.asyncio
async def test_stylesheets_are_inlined_with_provenance():
    resolver = FakeResolver({"https://example.com/css/site.css": "h1 { background: url(hero.jpg); }"})
    rewriter = ContentRewriter(resolver)
    html = (
        "<html><head>"
        '<link rel="stylesheet" href="/css/site.css">'
        '<link rel="icon" href="/favicon.ico">'
        "<style>p { color: red; }</style>"
        "</head><body><p>hi</p></body></html>"
    )

    document = await rewriter.rewrite(html, PAGE_URL)

    assert resolver.requested == ["https://example.com/css/site.css"]
    assert 'rel="stylesheet"' not in document.html
    assert 'href="https://example.com/favicon.ico"' in document.html
    assert "/* Combined CSS from original website */" in document.html
    assert "/* CSS from: /css/site.css */" in document.html
    assert 'url("https://example.com/hero.jpg")' in document.html
    assert "/* Inline style */\np { color: red; }" in document.html
    assert document.html.count("<style>") == 1
    assert document.html.index("<style>") < document.html.index("</head>")


@pytest.mark.asyncio
async def test_scheme_relative_stylesheet_is_treated_as_root_relative():
    resolver = FakeResolver({"https://example.com//cdn.example.net/a.css": "a { color: blue; }"})
    html = '<html><head><link href="//cdn.example.net/a.css" rel="stylesheet"></head><body></body></html>'

    document = await ContentRewriter(resolver).rewrite(html, PAGE_URL)

    assert resolver.requested == ["https://example.com//cdn.example.net/a.css"]
    assert "/* CSS from: //cdn.example.net/a.css */" in document.html
    assert "<link" not in document.html


@pytest.mark.asyncio
async def test_scheme_relative_media_references_are_absolutized():
    html = (
        "<html><head></head><body>"
        '<img src="//cdn.ex.net/a.png" srcset="//cdn.ex.net/a.png 1x">'
        '<script src="//cdn.ex.net/app.js"></script>'
        "</body></html>"
    )

    document = await ContentRewriter(FakeResolver()).rewrite(html, "https://ex.com/")

    assert '<img src="https://ex.com//cdn.ex.net/a.png" srcset="https://ex.com//cdn.ex.net/a.png 1x">' in document.html
    assert '<script src="//cdn.ex.net/app.js">' in document.html


@pytest.mark.asyncio
async def test_unfetchable_stylesheet_is_dropped():
    html = '<html><head><link rel="stylesheet" href="/missing.css"></head><body></body></html>'

    document = await ContentRewriter(FakeResolver()).rewrite(html, PAGE_URL)

    assert document.rewritten is True
    assert "<link" not in document.html
    assert "Combined CSS" not in document.html


@pytest.mark.asyncio
async def test_unexpected_failure_returns_original_html():
    html = '<html><head><link rel="stylesheet" href="/a.css"></head><body>é</body></html>'
    rewriter = ContentRewriter(FakeResolver(error=RuntimeError("resolver crashed")))

    document = await rewriter.rewrite(html, PAGE_URL)

    assert document.rewritten is False
    assert document.html == html
    assert document.size == len(html.encode("utf-8"))


@pytest.mark.asyncio
async def test_size_is_reported_in_kilobytes():
    document = await ContentRewriter(FakeResolver()).rewrite("<html></html>", PAGE_URL)
    assert document.size_formatted.endswith("KB")
    assert document.size == len(document.html.encode("utf-8"))


@pytest.mark.asyncio
async def test_document_without_relative_references_only_gains_base_tag():
    html = '<html><head><title>x</title></head><body><a href="https://ex.com/a">a</a><p>text</p></body></html>'

    document = await ContentRewriter(FakeResolver()).rewrite(html, "https://ex.com/")

    assert document.html.replace('<base href="https://ex.com/">', "", 1) == html
