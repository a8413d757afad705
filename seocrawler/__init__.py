"""SEO crawler and indexability auditor.

This module provides a clean API for mapping a website's internal link
graph against its declared sitemaps and for auditing the indexability
signals of individual URLs. It supports:

- Site crawling with depth/page limits (BFS strategy) merged with sitemaps
- Orphan / linked-but-not-in-sitemap reports and status histograms
- Indexability audits (redirect chain, canonical, noindex, hreflang)

Example usage:

    from seocrawler import crawl_site_async, audit_urls_async

    # Site crawl
    result = await crawl_site_async("https://example.com/", depth=2, max_pages=100)
    print(result.stats.pages_fetched, result.reports.status_buckets)
    for key in result.reports.linked_not_in_sitemap:
        print("missing from sitemap:", key)

    # Audit
    for audit in await audit_urls_async(["https://example.com/"]):
        print(audit.final_url, audit.noindex.to_dict(), audit.issues)

    # Request objects (as accepted by the MCP tools and HTTP API)
    from seocrawler import CrawlRequest, run_crawl
    result = await run_crawl(CrawlRequest.from_dict({"startUrl": "https://example.com/"}))
"""

from __future__ import annotations

from typing import List, Optional

import httpx

from .audit import audit_urls, audit_urls_async
from .config import CrawlerSettings, load_settings
from .directives import RobotsDirectives, merge_directives, parse_robots_directives
from .fetch import FetchError, FetchResult, fetch_chain
from .models import (
    AuditRequest,
    AuditResult,
    CrawlRequest,
    CrawlResult,
    Edge,
    InventoryItem,
    RedirectHop,
)
from .site import crawl_site, crawl_site_async
from .urls import UrlCanonicalizer, is_internal, normalize_for_key

__version__ = "0.4.0"

__all__ = [
    # Requests and results
    "CrawlRequest",
    "CrawlResult",
    "InventoryItem",
    "Edge",
    "RedirectHop",
    "AuditRequest",
    "AuditResult",
    "RobotsDirectives",
    # Site crawl
    "crawl_site",
    "crawl_site_async",
    "run_crawl",
    # Audit
    "audit_urls",
    "audit_urls_async",
    "run_audit",
    # Building blocks
    "fetch_chain",
    "FetchResult",
    "FetchError",
    "normalize_for_key",
    "is_internal",
    "UrlCanonicalizer",
    "parse_robots_directives",
    "merge_directives",
    # Config
    "CrawlerSettings",
    "load_settings",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (lazy import to avoid dependency if not needed)."""
    from .mcp_server import mcp

    return mcp


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


async def run_crawl(
    request: CrawlRequest,
    *,
    settings: Optional[CrawlerSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> CrawlResult:
    """Run a crawl described by a request object."""
    return await crawl_site_async(
        request.start_url,
        depth=request.depth,
        max_pages=request.max_pages,
        include_subdomains=request.include_subdomains,
        user_agent=request.user_agent,
        settings=settings,
        client=client,
    )


async def run_audit(
    request: AuditRequest,
    *,
    settings: Optional[CrawlerSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[AuditResult]:
    """Run an audit described by a request object."""
    return await audit_urls_async(
        request.urls,
        user_agent=request.user_agent,
        settings=settings,
        client=client,
    )
