"""Indexability audit: status, redirects, canonical, robots directives, hreflang.

Each URL is audited independently; results keep the order of the input.

Example::

    from seocrawler.audit import audit_urls

    for result in audit_urls(["https://example.com/"]):
        print(result.status, result.canonical, result.noindex.to_dict(), result.issues)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import httpx
from bs4 import BeautifulSoup

from .config import CrawlerSettings, load_settings
from .directives import RobotsDirectives, merge_all
from .fetch import FetchError, build_client, fetch_chain
from .models import AuditResult, HreflangLink, NoindexFlags
from .urls import absolutize, is_http_url, same_etld1

LOGGER = logging.getLogger(__name__)

ISSUE_FETCH_FAILED = "fetch failed"
ISSUE_MULTIPLE_CANONICALS = "multiple canonicals"
ISSUE_CONFLICTING_NOINDEX = "conflicting noindex between meta and header"
ISSUE_CANONICAL_OFF_DOMAIN = "canonical points to different eTLD+1"
ISSUE_INVALID_CANONICAL = "invalid canonical URL"


@dataclass(slots=True)
class HtmlSignals:
    """Indexability signals found in a page body."""

    canonical: Optional[str] = None
    canonical_invalid: bool = False
    hreflang: List[HreflangLink] = field(default_factory=list)
    meta_robots: Optional[RobotsDirectives] = None
    issues: List[str] = field(default_factory=list)


def _rel_tokens(tag) -> List[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [token.lower() for token in rel]


def extract_html_signals(html: str, base_url: str) -> HtmlSignals:
    """Parse canonical, hreflang alternates and meta robots from ``html``.

    Relative hrefs are resolved against ``base_url`` (the final URL).
    """
    soup = BeautifulSoup(html, "html.parser")
    signals = HtmlSignals()

    links = soup.find_all("link")
    canonicals = [tag for tag in links if "canonical" in _rel_tokens(tag)]
    if len(canonicals) > 1:
        signals.issues.append(ISSUE_MULTIPLE_CANONICALS)
    if canonicals:
        href = str(canonicals[0].get("href") or "").strip()
        if href:
            resolved = absolutize(base_url, href)
            if resolved and is_http_url(resolved):
                signals.canonical = resolved
            else:
                signals.canonical_invalid = True

    for tag in links:
        if "alternate" not in _rel_tokens(tag) or not tag.has_attr("hreflang"):
            continue
        lang = str(tag.get("hreflang") or "").strip()
        href = str(tag.get("href") or "").strip()
        if not lang or not href:
            continue
        resolved = absolutize(base_url, href)
        if resolved:
            signals.hreflang.append(HreflangLink(lang=lang, href=resolved))

    metas = [
        tag
        for tag in soup.find_all("meta")
        if str(tag.get("name") or "").strip().lower() == "robots"
    ]
    if metas:
        signals.meta_robots = merge_all(str(tag.get("content") or "") for tag in metas)

    return signals


def _failed_result(url: str) -> AuditResult:
    return AuditResult(url=url, final_url=url, status=0, issues=[ISSUE_FETCH_FAILED])


async def _audit_one(
    client: httpx.AsyncClient, url: str, user_agent: str, timeout: float
) -> AuditResult:
    try:
        fetched = await fetch_chain(client, url, user_agent=user_agent, timeout=timeout)
    except FetchError as exc:
        LOGGER.debug("Audit fetch failed for %s: %s", url, exc)
        return _failed_result(url)

    response = fetched.response
    x_robots = merge_all(response.headers.get_list("x-robots-tag"))

    signals = HtmlSignals()
    if fetched.status != 204 and fetched.is_html() and response.content:
        signals = extract_html_signals(response.text, fetched.final_url)

    issues = list(signals.issues)
    noindex = NoindexFlags(
        meta=bool(signals.meta_robots and signals.meta_robots.noindex),
        header=bool(x_robots and x_robots.noindex),
    )
    if noindex.meta != noindex.header:
        issues.append(ISSUE_CONFLICTING_NOINDEX)

    if signals.canonical_invalid:
        issues.append(ISSUE_INVALID_CANONICAL)
    elif signals.canonical and not same_etld1(fetched.final_url, signals.canonical):
        issues.append(ISSUE_CANONICAL_OFF_DOMAIN)

    return AuditResult(
        url=url,
        final_url=fetched.final_url,
        status=fetched.status,
        content_type=fetched.content_type,
        canonical=signals.canonical,
        meta_robots=signals.meta_robots,
        x_robots=x_robots,
        noindex=noindex,
        hreflang=signals.hreflang,
        issues=issues,
        redirect_chain=fetched.redirect_chain,
    )


async def _audit_all(
    client: httpx.AsyncClient,
    urls: Sequence[str],
    user_agent: str,
    settings: CrawlerSettings,
) -> List[AuditResult]:
    semaphore = asyncio.Semaphore(max(1, settings.max_concurrency))

    async def bounded(url: str) -> AuditResult:
        async with semaphore:
            return await _audit_one(client, url, user_agent, settings.timeout)

    return list(await asyncio.gather(*(bounded(url) for url in urls)))


async def audit_urls_async(
    urls: Sequence[str],
    *,
    user_agent: Optional[str] = None,
    settings: Optional[CrawlerSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[AuditResult]:
    """
    Audit the indexability signals of every URL.

    Args:
        urls: URLs to audit; duplicates are audited twice.
        user_agent: User agent for the first attempt. Defaults to settings.
        settings: Explicit settings; read from the environment when None.
        client: Optional pre-built httpx client (must not follow redirects).

    Returns:
        One AuditResult per input URL, in input order. Unreachable URLs
        get status 0 and the issue "fetch failed".

    Raises:
        ValueError: If ``urls`` is empty.
    """
    if not urls:
        raise ValueError("At least one URL is required")

    settings = settings or load_settings()
    agent = user_agent or settings.user_agent
    LOGGER.info("Auditing %d URL(s)", len(urls))

    if client is not None:
        results = await _audit_all(client, urls, agent, settings)
    else:
        async with build_client(settings.timeout) as owned_client:
            results = await _audit_all(owned_client, urls, agent, settings)

    LOGGER.info(
        "Audit complete: %d result(s), %d with issues",
        len(results),
        sum(1 for result in results if result.issues),
    )
    return results


def audit_urls(
    urls: Sequence[str],
    *,
    user_agent: Optional[str] = None,
    settings: Optional[CrawlerSettings] = None,
) -> List[AuditResult]:
    """Synchronous wrapper for audit_urls_async."""
    return asyncio.run(audit_urls_async(urls, user_agent=user_agent, settings=settings))
