"""Request and result structures for crawl and audit runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .directives import RobotsDirectives

DISCOVERED_HTML = "html"
DISCOVERED_SITEMAP = "sitemap"
DISCOVERED_BOTH = "both"

# Depth recorded for sitemap placeholders that were never reached by BFS.
SITEMAP_DEPTH = 9999

STATUS_BUCKETS = ("0xx", "2xx", "3xx", "4xx", "5xx")

# Bounds enforced on requests arriving through the MCP tools and HTTP API.
MAX_REQUEST_DEPTH = 6
MAX_REQUEST_PAGES = 5000
MAX_AUDIT_URLS = 200


def merge_provenance(previous: str, current: str) -> str:
    """Combine two provenances; ``both`` is never downgraded."""
    if previous == current:
        return previous
    return DISCOVERED_BOTH


@dataclass(slots=True)
class CrawlRequest:
    """Input of a site crawl. None fields fall back to settings."""

    start_url: str
    depth: Optional[int] = None
    max_pages: Optional[int] = None
    include_subdomains: bool = False
    user_agent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlRequest":
        if not isinstance(data, dict):
            raise ValueError("Crawl request must be a JSON object")
        start_url = data.get("startUrl")
        if not isinstance(start_url, str) or not start_url:
            raise ValueError("startUrl is required")
        return cls(
            start_url=start_url,
            depth=_optional_int(data, "depth"),
            max_pages=_optional_int(data, "maxPages"),
            include_subdomains=bool(data.get("includeSubdomains", False)),
            user_agent=data.get("userAgent") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startUrl": self.start_url,
            "depth": self.depth,
            "maxPages": self.max_pages,
            "includeSubdomains": self.include_subdomains,
            "userAgent": self.user_agent,
        }

    def check_bounds(self) -> None:
        """Raise ValueError when a field is outside the accepted range."""
        if self.depth is not None and not 0 <= self.depth <= MAX_REQUEST_DEPTH:
            raise ValueError(f"depth must be between 0 and {MAX_REQUEST_DEPTH}")
        if self.max_pages is not None and not 1 <= self.max_pages <= MAX_REQUEST_PAGES:
            raise ValueError(f"maxPages must be between 1 and {MAX_REQUEST_PAGES}")


@dataclass(slots=True)
class AuditRequest:
    """Input of an indexability audit."""

    urls: List[str]
    user_agent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditRequest":
        if not isinstance(data, dict):
            raise ValueError("Audit request must be a JSON object")
        urls = data.get("urls")
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            raise ValueError("urls must be a list of strings")
        return cls(urls=list(urls), user_agent=data.get("userAgent") or None)

    def to_dict(self) -> Dict[str, Any]:
        return {"urls": list(self.urls), "userAgent": self.user_agent}

    def check_bounds(self) -> None:
        if not 1 <= len(self.urls) <= MAX_AUDIT_URLS:
            raise ValueError(f"urls must contain between 1 and {MAX_AUDIT_URLS} entries")


def _optional_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


@dataclass(slots=True)
class RedirectHop:
    """One followed redirect."""

    from_url: str
    to_url: str
    status: int

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_url, "to": self.to_url, "status": self.status}


@dataclass(slots=True)
class InventoryItem:
    """One discovered URL, keyed by its normalized form."""

    url: str
    normalized_url: str
    final_url: str
    status: int  # 0 = never fetched
    content_type: Optional[str] = None
    depth: int = SITEMAP_DEPTH
    discovered_by: str = DISCOVERED_HTML  # html, sitemap, both
    redirect_chain: List[RedirectHop] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "normalizedUrl": self.normalized_url,
            "finalUrl": self.final_url,
            "status": self.status,
            "contentType": self.content_type,
            "depth": self.depth,
            "discoveredBy": self.discovered_by,
            "redirectChain": [hop.to_dict() for hop in self.redirect_chain],
        }


@dataclass(slots=True)
class Edge:
    """Internal ``<a href>`` link between two normalized keys."""

    from_key: str
    to_key: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_key, "to": self.to_key}


@dataclass(slots=True)
class CrawlStats:
    pages_fetched: int = 0
    pages_from_sitemap: int = 0
    pages_from_html: int = 0
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "pagesFetched": self.pages_fetched,
            "pagesFromSitemap": self.pages_from_sitemap,
            "pagesFromHtml": self.pages_from_html,
            "elapsedMs": self.elapsed_ms,
        }


@dataclass(slots=True)
class CrawlReports:
    orphans_in_sitemap: List[str] = field(default_factory=list)
    linked_not_in_sitemap: List[str] = field(default_factory=list)
    status_buckets: Dict[str, int] = field(
        default_factory=lambda: {bucket: 0 for bucket in STATUS_BUCKETS}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orphansInSitemap": list(self.orphans_in_sitemap),
            "linkedNotInSitemap": list(self.linked_not_in_sitemap),
            "statusBuckets": dict(self.status_buckets),
        }


@dataclass(slots=True)
class CrawlResult:
    """Inventory, link graph and derived reports of one crawl."""

    inventory: List[InventoryItem] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    sitemap: List[str] = field(default_factory=list)  # endpoints consulted
    stats: CrawlStats = field(default_factory=CrawlStats)
    reports: CrawlReports = field(default_factory=CrawlReports)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inventory": [item.to_dict() for item in self.inventory],
            "edges": [edge.to_dict() for edge in self.edges],
            "sitemap": list(self.sitemap),
            "stats": self.stats.to_dict(),
            "reports": self.reports.to_dict(),
        }


@dataclass(slots=True)
class HreflangLink:
    lang: str
    href: str

    def to_dict(self) -> Dict[str, str]:
        return {"lang": self.lang, "href": self.href}


@dataclass(slots=True)
class NoindexFlags:
    meta: bool = False
    header: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {"meta": self.meta, "header": self.header}


@dataclass(slots=True)
class AuditResult:
    """Indexability signals for one audited URL."""

    url: str
    final_url: str
    status: int
    content_type: Optional[str] = None
    canonical: Optional[str] = None
    meta_robots: Optional[RobotsDirectives] = None
    x_robots: Optional[RobotsDirectives] = None
    noindex: NoindexFlags = field(default_factory=NoindexFlags)
    hreflang: List[HreflangLink] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    redirect_chain: List[RedirectHop] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "status": self.status,
            "contentType": self.content_type,
            "canonical": self.canonical,
            "metaRobots": (
                self.meta_robots.to_dict() if self.meta_robots is not None else None
            ),
            "xRobots": self.x_robots.to_dict() if self.x_robots is not None else None,
            "noindex": self.noindex.to_dict(),
            "hreflang": [link.to_dict() for link in self.hreflang],
            "issues": list(self.issues),
            "redirectChain": [hop.to_dict() for hop in self.redirect_chain],
        }
