"""Site crawler: breadth-first link discovery merged with sitemap declarations."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Set

import httpx
from bs4 import BeautifulSoup

from .config import CrawlerSettings, load_settings
from .fetch import FetchError, FetchResult, build_client, fetch_chain
from .models import (
    DISCOVERED_BOTH,
    DISCOVERED_HTML,
    DISCOVERED_SITEMAP,
    SITEMAP_DEPTH,
    STATUS_BUCKETS,
    CrawlReports,
    CrawlResult,
    CrawlStats,
    Edge,
    InventoryItem,
    merge_provenance,
)
from .robots import RobotsAgent, RobotsCache, allow_all_agent
from .sitemap import collect_sitemap_urls, discover_sitemaps
from .urls import (
    UrlCanonicalizer,
    absolutize,
    is_http_url,
    is_internal,
    normalize_for_key,
    www_counterpart,
)

LOGGER = logging.getLogger(__name__)


@dataclass
class _Node:
    """Frontier entry."""

    url: str
    depth: int


def extract_links(html: str, base_url: str) -> List[str]:
    """Absolute targets of every ``<a href>``, de-duplicated in page order."""
    soup = BeautifulSoup(html, "html.parser")
    links: Dict[str, None] = {}
    for anchor in soup.find_all("a", href=True):
        raw = str(anchor.get("href") or "").strip()
        if not raw:
            continue
        absolute = absolutize(base_url, raw)
        if absolute:
            links.setdefault(absolute)
    return list(links)


def status_bucket(status: int) -> Optional[str]:
    if status == 0:
        return "0xx"
    family = f"{status // 100}xx"
    return family if family in STATUS_BUCKETS else None


def count_status_buckets(items: Iterable[InventoryItem]) -> Dict[str, int]:
    buckets = {bucket: 0 for bucket in STATUS_BUCKETS}
    for item in items:
        bucket = status_bucket(item.status)
        if bucket:
            buckets[bucket] += 1
    return buckets


class _CrawlRun:
    """State of one crawl. Lives for a single ``crawl_site_async`` call.

    Visits run concurrently on one event loop. The seen-set check-and-mark
    and the fetch-budget reservation never straddle an ``await``.
    """

    def __init__(
        self,
        *,
        start_url: str,
        max_depth: int,
        max_pages: int,
        include_subdomains: bool,
        user_agent: str,
        respect_robots: bool,
        max_concurrency: int,
        timeout: float,
        canonicalizer: UrlCanonicalizer,
        client: httpx.AsyncClient,
    ) -> None:
        self.start_url = start_url
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.include_subdomains = include_subdomains
        self.user_agent = user_agent
        self.max_concurrency = max(1, max_concurrency)
        self.timeout = timeout
        self.canonicalizer = canonicalizer
        self.client = client
        self.robots: Optional[RobotsCache] = (
            RobotsCache(client, user_agent=user_agent, timeout=timeout)
            if respect_robots
            else None
        )

        self.seen: Set[str] = set()
        self.inventory: Dict[str, InventoryItem] = {}
        self.edges: List[Edge] = []
        self.queue: Deque[_Node] = deque()
        self.fetched = 0
        self._reserved = 0

        self.from_sitemap: Dict[str, None] = {}
        self.sitemap_endpoints: List[str] = []

    # -- budget -------------------------------------------------------------

    def _budget_left(self) -> int:
        return self.max_pages - self.fetched - self._reserved

    def _reserve_fetch(self) -> bool:
        if self._budget_left() <= 0:
            return False
        self._reserved += 1
        return True

    def _settle_fetch(self, succeeded: bool) -> None:
        self._reserved -= 1
        if succeeded:
            self.fetched += 1

    async def _fetch(self, url: str) -> Optional[FetchResult]:
        """Fetch within the page budget; None when over budget or failed."""
        if not self._reserve_fetch():
            return None
        try:
            result = await fetch_chain(
                self.client, url, user_agent=self.user_agent, timeout=self.timeout
            )
        except FetchError as exc:
            self._settle_fetch(False)
            LOGGER.debug("Dropping %s: %s", url, exc)
            return None
        self._settle_fetch(True)
        return result

    async def _robots_for(self, url: str) -> RobotsAgent:
        if self.robots is None:
            return allow_all_agent()
        return await self.robots.get_agent(url)

    # -- phases -------------------------------------------------------------

    async def resolve_sitemaps(self) -> None:
        start_agent = await self._robots_for(self.start_url)
        endpoints = discover_sitemaps(self.start_url, start_agent.sitemaps)
        counterpart = www_counterpart(self.start_url)
        if counterpart:
            for endpoint in discover_sitemaps(counterpart):
                if endpoint not in endpoints:
                    endpoints.append(endpoint)
        self.sitemap_endpoints = endpoints

        for endpoint in endpoints:
            urls = await collect_sitemap_urls(
                self.client,
                endpoint,
                user_agent=self.user_agent,
                limit=self.max_pages,
                timeout=self.timeout,
            )
            LOGGER.debug("Sitemap %s contributed %d URL(s)", endpoint, len(urls))
            for url in urls:
                self.from_sitemap.setdefault(normalize_for_key(url))

    def seed(self) -> None:
        self.queue.append(_Node(self.start_url, 0))
        counterpart = www_counterpart(self.start_url)
        if counterpart:
            self.queue.append(_Node(counterpart, 0))

    def register_sitemap_urls(self) -> None:
        for key in self.from_sitemap:
            existing = self.inventory.get(key)
            if existing is not None:
                existing.discovered_by = merge_provenance(
                    existing.discovered_by, DISCOVERED_SITEMAP
                )
                continue
            self.inventory[key] = InventoryItem(
                url=key,
                normalized_url=key,
                final_url=key,
                status=0,
                content_type=None,
                depth=SITEMAP_DEPTH,
                discovered_by=DISCOVERED_SITEMAP,
            )

    async def run_frontier(self) -> None:
        while self.queue and self._budget_left() > 0:
            batch = [
                self.queue.popleft()
                for _ in range(min(self.max_concurrency, len(self.queue)))
            ]
            outcomes = await asyncio.gather(
                *(self.visit(node) for node in batch), return_exceptions=True
            )
            for node, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    LOGGER.warning("Unexpected error visiting %s: %s", node.url, outcome)

        if self._budget_left() <= 0:
            LOGGER.info("Reached page limit of %d", self.max_pages)

    async def visit(self, node: _Node) -> None:
        if self._budget_left() <= 0:
            return
        key = normalize_for_key(node.url)
        if key in self.seen:
            return
        self.seen.add(key)

        if not is_internal(self.start_url, node.url, self.include_subdomains):
            LOGGER.debug("Skipping off-site %s", node.url)
            return
        if self.canonicalizer.has_ignored_extension(node.url):
            LOGGER.debug("Skipping ignored extension %s", node.url)
            return
        agent = await self._robots_for(node.url)
        if not agent.is_allowed(node.url):
            LOGGER.debug("Disallowed by robots.txt: %s", node.url)
            return

        result = await self._fetch(node.url)
        if result is None:
            return

        self._record(node, key, result)
        if 200 <= result.status < 300 and result.is_html():
            self._record_links(node, key, result)

        LOGGER.debug(
            "Crawled %s -> %d (%d/%d)",
            node.url,
            result.status,
            self.fetched,
            self.max_pages,
        )

        if agent.crawl_delay:
            await asyncio.sleep(agent.crawl_delay)

    def _record(self, node: _Node, key: str, result: FetchResult) -> None:
        item = InventoryItem(
            url=node.url,
            normalized_url=key,
            final_url=result.final_url,
            status=result.status,
            content_type=result.content_type,
            depth=node.depth,
            discovered_by=DISCOVERED_BOTH if key in self.from_sitemap else DISCOVERED_HTML,
            redirect_chain=result.redirect_chain,
        )
        previous = self.inventory.get(key)
        if previous is not None:
            item.discovered_by = merge_provenance(previous.discovered_by, item.discovered_by)
        self.inventory[key] = item

    def _record_links(self, node: _Node, key: str, result: FetchResult) -> None:
        for target in extract_links(result.response.text, result.final_url):
            if not is_internal(self.start_url, target, self.include_subdomains):
                continue
            if self.canonicalizer.has_ignored_extension(target):
                continue
            target_key = normalize_for_key(target)
            self.edges.append(Edge(key, target_key))
            if target_key not in self.seen and node.depth < self.max_depth:
                self.queue.append(_Node(target, node.depth + 1))

    def _inbound_keys(self) -> Dict[str, None]:
        return dict.fromkeys(edge.to_key for edge in self.edges)

    async def resolve_linked_sitemap_urls(self) -> None:
        """Fetch sitemap URLs that gained an inbound link but were never visited."""
        inbound = self._inbound_keys()
        candidates = [
            key
            for key in self.from_sitemap
            if key in inbound and self.inventory[key].status == 0
        ]
        room = max(0, self.max_pages - self.fetched)
        pending = candidates[:room]
        for start in range(0, len(pending), self.max_concurrency):
            batch = pending[start : start + self.max_concurrency]
            await asyncio.gather(*(self._resolve_placeholder(key) for key in batch))

    async def _resolve_placeholder(self, key: str) -> None:
        result = await self._fetch(key)
        if result is None:
            return
        item = self.inventory[key]
        item.final_url = result.final_url
        item.status = result.status
        item.content_type = result.content_type
        item.depth = min(item.depth, self.max_depth + 1)
        item.discovered_by = DISCOVERED_BOTH
        item.redirect_chain = result.redirect_chain

    def build_result(self, elapsed_ms: int) -> CrawlResult:
        inventory = list(self.inventory.values())
        inbound = self._inbound_keys()
        reports = CrawlReports(
            orphans_in_sitemap=[key for key in self.from_sitemap if key not in inbound],
            linked_not_in_sitemap=[key for key in inbound if key not in self.from_sitemap],
            status_buckets=count_status_buckets(inventory),
        )
        stats = CrawlStats(
            pages_fetched=self.fetched,
            pages_from_sitemap=len(self.from_sitemap),
            pages_from_html=sum(
                1
                for item in inventory
                if item.discovered_by in (DISCOVERED_HTML, DISCOVERED_BOTH)
            ),
            elapsed_ms=elapsed_ms,
        )
        return CrawlResult(
            inventory=inventory,
            edges=list(self.edges),
            sitemap=list(self.sitemap_endpoints),
            stats=stats,
            reports=reports,
        )

    async def execute(self) -> CrawlResult:
        started = time.monotonic()
        await self.resolve_sitemaps()
        self.seed()
        self.register_sitemap_urls()
        await self.run_frontier()
        await self.resolve_linked_sitemap_urls()
        return self.build_result(int((time.monotonic() - started) * 1000))


async def crawl_site_async(
    url: str,
    *,
    depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    include_subdomains: bool = False,
    user_agent: Optional[str] = None,
    respect_robots: Optional[bool] = None,
    settings: Optional[CrawlerSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> CrawlResult:
    """
    Crawl a website breadth-first and reconcile it with its sitemaps.

    Args:
        url: The seed URL (absolute http/https).
        depth: Maximum link depth (0 = seed page only). Defaults to settings.
        max_pages: Maximum number of fetches for the whole run.
        include_subdomains: Treat sibling subdomains as internal.
        user_agent: User agent for the first attempt of every fetch.
        respect_robots: Honor robots.txt. Defaults to settings.
        settings: Explicit settings; read from the environment when None.
        client: Optional pre-built httpx client (must not follow redirects).

    Returns:
        CrawlResult with inventory, edges, sitemap endpoints, stats and reports.

    Raises:
        ValueError: If the seed URL is not an absolute http(s) URL or a
            limit is negative.
    """
    settings = settings or load_settings()
    max_depth = settings.default_depth if depth is None else depth
    page_budget = settings.max_pages if max_pages is None else max_pages
    if max_depth < 0:
        raise ValueError(f"depth must be non-negative, got {max_depth}")
    if page_budget < 0:
        raise ValueError(f"max_pages must be non-negative, got {page_budget}")
    if not is_http_url(url):
        raise ValueError(f"Invalid start URL: {url!r}")

    LOGGER.info(
        "Starting site crawl: %s (depth=%d, max_pages=%d)", url, max_depth, page_budget
    )

    run_kwargs = dict(
        start_url=url,
        max_depth=max_depth,
        max_pages=page_budget,
        include_subdomains=include_subdomains,
        user_agent=user_agent or settings.user_agent,
        respect_robots=(
            settings.respect_robots if respect_robots is None else respect_robots
        ),
        max_concurrency=settings.max_concurrency,
        timeout=settings.timeout,
        canonicalizer=settings.build_canonicalizer(),
    )

    if client is not None:
        result = await _CrawlRun(client=client, **run_kwargs).execute()
    else:
        async with build_client(settings.timeout) as owned_client:
            result = await _CrawlRun(client=owned_client, **run_kwargs).execute()

    LOGGER.info(
        "Site crawl complete: %d fetched, %d inventory item(s), %d edge(s)",
        result.stats.pages_fetched,
        len(result.inventory),
        len(result.edges),
    )
    return result


def crawl_site(
    url: str,
    *,
    depth: Optional[int] = None,
    max_pages: Optional[int] = None,
    include_subdomains: bool = False,
    user_agent: Optional[str] = None,
    respect_robots: Optional[bool] = None,
    settings: Optional[CrawlerSettings] = None,
) -> CrawlResult:
    """Synchronous wrapper for crawl_site_async."""
    return asyncio.run(
        crawl_site_async(
            url,
            depth=depth,
            max_pages=max_pages,
            include_subdomains=include_subdomains,
            user_agent=user_agent,
            respect_robots=respect_robots,
            settings=settings,
        )
    )
