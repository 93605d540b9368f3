from __future__ import annotations

import pytest

from safespace.errors import InvalidURL
from safespace.tools.url_normalizer import (
    is_http_url,
    normalize_url,
    parse_absolute_url,
    swap_scheme,
)


def test_normalize_url_prefixes_https_when_scheme_missing():
    target = normalize_url("example.com")
    assert target.href == "https://example.com/"
    assert target.origin == "https://example.com"
    assert target.explicit_scheme is False
    assert target.display == "example.com"


def test_normalize_url_canonicalizes_host_and_default_port():
    target = normalize_url("  http://Example.COM:80/a?b=1 ")
    assert target.href == "http://example.com/a?b=1"
    assert target.hostname == "example.com"
    assert target.scheme == "http"


def test_normalize_url_keeps_non_default_port_and_brackets_ipv6():
    target = normalize_url("http://[::1]:8080/status")
    assert target.host == "[::1]:8080"
    assert target.origin == "http://[::1]:8080"


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("", "URL is required"),
        ("   ", "URL is required"),
        ("ftp://files.example.com", "Only HTTP/HTTPS URLs are allowed"),
        ("https://exa mple.com", "Invalid URL format"),
        ("https://example.com:99999/", "Invalid URL format"),
        ("x" * 2001, "URL too long"),
    ],
)
def test_normalize_url_rejects_bad_input(raw, message):
    with pytest.raises(InvalidURL) as exc_info:
        normalize_url(raw)
    assert exc_info.value.message == message
    assert exc_info.value.to_payload() == {"error": message}


def test_normalize_url_never_yields_script_scheme():
    with pytest.raises(InvalidURL):
        normalize_url("javascript:alert(1)")


def test_parse_absolute_url_does_not_add_scheme():
    with pytest.raises(InvalidURL) as exc_info:
        parse_absolute_url("example.com")
    assert exc_info.value.message == "Invalid URL format"

    with pytest.raises(InvalidURL) as exc_info:
        parse_absolute_url("")
    assert exc_info.value.message == "Missing URL parameter"


def test_is_http_url():
    assert is_http_url("https://example.com")
    assert is_http_url("http://example.com/path")
    assert not is_http_url("example.com")
    assert not is_http_url("file:///etc/passwd")


def test_swap_scheme():
    assert swap_scheme("https://example.com/a") == "http://example.com/a"
    assert swap_scheme("http://example.com/a") == "https://example.com/a"


def test_normalize_url_percent_encodes_spaces_outside_the_host():
    target = normalize_url("https://ex.com/a b?q=x y#top part")
    assert target.href == "https://ex.com/a%20b?q=x%20y#top%20part"


def test_normalize_url_drops_embedded_tabs_and_newlines():
    assert normalize_url("https://ex.com/a\tb\n").href == "https://ex.com/ab"
