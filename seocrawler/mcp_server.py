"""MCP Server for the SEO crawler and indexability auditor.

Provides tools for:
- Crawling a site and reconciling its link graph with its sitemaps
- Auditing indexability signals (status, redirects, canonical, noindex, hreflang)

With the HTTP transport the same app also serves a small JSON API:
``GET /healthz``, ``POST /api/crawl`` and ``POST /api/audit``.

Usage:
    # STDIO (for Claude Desktop, etc.)
    python -m seocrawler.mcp_server

    # HTTP (for remote access and the JSON API)
    python -m seocrawler.mcp_server --transport http --port 8787

    # Or via FastMCP CLI
    fastmcp run seocrawler/mcp_server.py:mcp --transport http --port 8787

Environment Variables:
    CRAWLER_DEFAULT_DEPTH, CRAWLER_MAX_PAGES, CRAWLER_USER_AGENT,
    CRAWLER_MAX_CONCURRENCY, CRAWLER_RESPECT_ROBOTS, CRAWLER_TIMEOUT,
    CRAWLER_IGNORE_EXT_FILE, CRAWLER_SNAPSHOT_DIR (see .env.example)
"""

from __future__ import annotations

import argparse
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import load_settings
from .models import AuditRequest, CrawlRequest
from .output import (
    audit_results_to_json,
    format_audit_markdown,
    format_crawl_markdown,
    summarize_audit,
    to_json,
    write_snapshot,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before settings are read
load_dotenv()

# Create the MCP server
mcp = FastMCP(
    name="SEO Crawler",
    instructions="""
    An SEO crawler server that provides:

    1. crawl_site: Breadth-first crawl of a site merged with its sitemaps.
       Returns the URL inventory, internal link edges, sitemap endpoints,
       stats and reports (orphans in sitemap, linked but not in sitemap,
       status code buckets).

    2. audit_indexability: Per-URL audit of status, redirect chain,
       canonical, meta robots / X-Robots-Tag, noindex flags and hreflang.

    3. health: Liveness check.

    Output formats:
    - json: Full result (default)
    - markdown: Human-readable summary
    """,
)


class OutputFormat(str, Enum):
    """Output format for tool results."""

    markdown = "markdown"
    json = "json"


def _parse_format(output_format: str) -> OutputFormat:
    try:
        return OutputFormat(output_format.lower())
    except ValueError:
        return OutputFormat.json


def _error(message: str, **context: Any) -> str:
    LOGGER.error(message)
    return json.dumps({"error": message, **context}, ensure_ascii=False)


# =============================================================================
# TOOLS
# =============================================================================


@mcp.tool
async def crawl_site(
    url: str,
    depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    include_subdomains: bool = False,
    user_agent: Optional[str] = None,
    respect_robots: Optional[bool] = None,
    output_format: str = "json",
) -> str:
    """
    Crawl a website breadth-first and reconcile it with its sitemaps.

    Args:
        url: The seed URL to start crawling from
        depth: Maximum link depth, 0-6 (default: CRAWLER_DEFAULT_DEPTH or 2)
        max_pages: Maximum number of fetches, 1-5000 (default: CRAWLER_MAX_PAGES or 500)
        include_subdomains: Treat sibling subdomains as internal (default: false)
        user_agent: User agent for requests (default: CRAWLER_USER_AGENT)
        respect_robots: Honor robots.txt (default: CRAWLER_RESPECT_ROBOTS)
        output_format: "json" (default) or "markdown"
            - json: inventory, edges, sitemap, stats and reports
            - markdown: summary with stats, status buckets and the first
              URLs that are linked but missing from the sitemap

    Returns:
        Crawl result in the specified format, or a JSON error object.

    Examples:
        # Basic site crawl
        crawl_site(url="https://example.com/")

        # Shallow crawl with a small budget
        crawl_site(url="https://example.com/", depth=1, max_pages=50)

        # Summary only
        crawl_site(url="https://example.com/", output_format="markdown")
    """
    from . import crawl_site_async

    fmt = _parse_format(output_format)
    request = CrawlRequest(
        start_url=url,
        depth=depth,
        max_pages=max_pages,
        include_subdomains=include_subdomains,
        user_agent=user_agent,
    )

    try:
        request.check_bounds()
        result = await crawl_site_async(
            url,
            depth=depth,
            max_pages=max_pages,
            include_subdomains=include_subdomains,
            user_agent=user_agent,
            respect_robots=respect_robots,
        )
    except ValueError as exc:
        return _error(f"Invalid crawl request: {exc}", url=url)
    except Exception as exc:
        return _error(f"Unexpected error: {exc}", url=url)

    if fmt == OutputFormat.markdown:
        return format_crawl_markdown(url, result)
    return to_json(result.to_dict())


@mcp.tool
async def audit_indexability(
    urls: List[str],
    user_agent: Optional[str] = None,
    output_format: str = "json",
) -> str:
    """
    Audit the indexability signals of one or more URLs.

    Args:
        urls: URLs to audit (1-200)
        user_agent: User agent for requests (default: CRAWLER_USER_AGENT)
        output_format: "json" (default) or "markdown"

    Returns:
        JSON with one result per URL (status, finalUrl, redirectChain,
        canonical, metaRobots, xRobots, noindex, hreflang, issues), or a
        markdown report.

    Examples:
        audit_indexability(urls=["https://example.com/", "https://example.com/old"])
    """
    from . import audit_urls_async

    fmt = _parse_format(output_format)
    request = AuditRequest(urls=list(urls), user_agent=user_agent)

    try:
        request.check_bounds()
        results = await audit_urls_async(request.urls, user_agent=user_agent)
    except ValueError as exc:
        return _error(f"Invalid audit request: {exc}", urls=list(urls))
    except Exception as exc:
        return _error(f"Unexpected error: {exc}", urls=list(urls))

    LOGGER.info("Audit summary: %s", summarize_audit(results))
    if fmt == OutputFormat.markdown:
        return format_audit_markdown(results)
    return audit_results_to_json(results)


@mcp.tool
async def health() -> str:
    """Liveness check for the MCP server."""
    from . import __version__

    return json.dumps({"ok": True, "name": "seocrawler", "version": __version__})


# =============================================================================
# HTTP API (custom routes, served with the HTTP transport)
# =============================================================================


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        return await request.json()
    except ValueError as exc:
        raise ValueError(f"Request body is not valid JSON: {exc}") from exc


@mcp.custom_route("/healthz", methods=["GET"])
async def healthz(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True})


@mcp.custom_route("/api/crawl", methods=["GET"])
async def crawl_ready(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True, "msg": "crawl endpoint ready"})


@mcp.custom_route("/api/crawl", methods=["POST"])
async def api_crawl(request: Request) -> JSONResponse:
    from . import run_crawl

    try:
        crawl_request = CrawlRequest.from_dict(await _read_json(request))
        crawl_request.check_bounds()
        result = await run_crawl(crawl_request)
        snapshot = write_snapshot(
            crawl_request.to_dict(), result, load_settings().snapshot_dir
        )
    except (ValueError, OSError) as exc:
        LOGGER.warning("Rejected crawl request: %s", exc)
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)

    return JSONResponse(
        {"ok": True, "snapshotFile": str(snapshot), "output": result.to_dict()}
    )


@mcp.custom_route("/api/audit", methods=["POST"])
async def api_audit(request: Request) -> JSONResponse:
    from . import run_audit

    try:
        audit_request = AuditRequest.from_dict(await _read_json(request))
        audit_request.check_bounds()
        results = await run_audit(audit_request)
    except ValueError as exc:
        LOGGER.warning("Rejected audit request: %s", exc)
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)

    return JSONResponse({"ok": True, "results": [r.to_dict() for r in results]})


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the SEO crawler MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    CRAWLER_DEFAULT_DEPTH    Default crawl depth (default: 2)
    CRAWLER_MAX_PAGES        Default page budget (default: 500)
    CRAWLER_USER_AGENT       Default user agent (default: seocrawler)
    CRAWLER_RESPECT_ROBOTS   Honor robots.txt when set to 1/true/yes
    CRAWLER_SNAPSHOT_DIR     Where POST /api/crawl writes snapshots

Examples:
    # STDIO transport (default, for Claude Desktop)
    python -m seocrawler.mcp_server

    # HTTP transport (MCP at /mcp plus the JSON API)
    python -m seocrawler.mcp_server --transport http --port 8787

    # Custom host/port
    python -m seocrawler.mcp_server --transport http --host 0.0.0.0 --port 9000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8787,
        help="Port to bind to for HTTP transport (default: 8787)",
    )

    args = parser.parse_args()

    settings = load_settings()
    LOGGER.info(
        "Defaults: depth=%d, max_pages=%d, user_agent=%s, respect_robots=%s",
        settings.default_depth,
        settings.max_pages,
        settings.user_agent,
        settings.respect_robots,
    )

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
