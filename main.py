"""SafeSpace - URL safety analyzer

Simple CLI for analyzing URLs, rendering previews and running the API server.
"""

import argparse
import asyncio
import sys

from safespace.errors import SafeSpaceError
from safespace.services.url_analyzer import analyze_url
from safespace.tools.content_rewriter import ContentRewriter
from safespace.tools.fetch_resolver import FetchResolver
from safespace.tools.url_normalizer import normalize_url


def run_analysis(url: str) -> int:
    """Print the safety verdict for a URL."""
    result = analyze_url(url)
    print(f"URL: {result.url}")
    print("-" * 50)
    print(f"[*] Verdict: {result.safety_level.value} (score {result.score}/100)")
    for check in result.checks:
        mark = "+" if check.passed else "!"
        print(f"  [{mark}] {check.name} ({check.severity}): {check.message}")
    print(f"\n{result.explanation}")
    return 0 if result.can_preview else 1


async def run_preview(url: str, output: str | None = None) -> int:
    """Fetch and rewrite a page, writing the HTML to a file or stdout."""
    resolver = FetchResolver()
    try:
        fetched = await resolver.fetch(normalize_url(url))
    except SafeSpaceError as exc:
        print(f"[!] Error: {exc.message}", file=sys.stderr)
        return 1

    document = await ContentRewriter(resolver).rewrite(fetched.content, fetched.final_url)
    print(f"[+] Fetched {fetched.final_url} via {fetched.transport} ({document.size_formatted})", file=sys.stderr)

    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(document.html)
        print(f"[+] Preview written to {output}", file=sys.stderr)
    else:
        print(document.html)
    return 0


def run_server(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("safespace.main:app", host=host, port=port)
    return 0


def main():
    parser = argparse.ArgumentParser(description="SafeSpace URL safety analyzer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Score a URL")
    analyze_parser.add_argument("url", help="URL to analyze")

    preview_parser = subparsers.add_parser("preview", help="Fetch and rewrite a page")
    preview_parser.add_argument("url", help="URL to preview")
    preview_parser.add_argument("--output", "-o", help="Write HTML here instead of stdout")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", "-p", type=int, default=8000)

    args = parser.parse_args()

    if args.command == "analyze":
        sys.exit(run_analysis(args.url))
    if args.command == "preview":
        sys.exit(asyncio.run(run_preview(args.url, args.output)))
    sys.exit(run_server(args.host, args.port))


if __name__ == "__main__":
    main()
