"""Sitemap endpoint discovery and bounded URL collection."""

from __future__ import annotations

import gzip
import logging
import xml.etree.ElementTree as ET
import zlib
from typing import List, Optional, Sequence, Set, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx

from .fetch import FetchError, fetch_chain

LOGGER = logging.getLogger(__name__)

SITEMAP_PATH = "/sitemap.xml"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].lower()


def discover_sitemaps(start_url: str, robots_sitemaps: Sequence[str] = ()) -> List[str]:
    """Robots-declared sitemaps plus a guessed ``/sitemap.xml`` at the start origin.

    Pure: performs no I/O. Order is preserved, duplicates are dropped.
    """
    found = dict.fromkeys(s for s in robots_sitemaps if s)
    try:
        parts = urlsplit(start_url)
    except ValueError:
        return list(found)
    if parts.scheme and parts.netloc:
        found.setdefault(urlunsplit((parts.scheme, parts.netloc, SITEMAP_PATH, "", "")))
    return list(found)


def parse_sitemap_xml(text: str) -> Tuple[str, List[str]]:
    """Parse a sitemap document.

    Returns ``(kind, locations)`` where ``kind`` is ``"sitemapindex"``,
    ``"urlset"`` or ``""`` for anything else.

    Raises:
        xml.etree.ElementTree.ParseError: If the body is not well-formed XML.
    """
    root = ET.fromstring(text)
    kind = _local_name(root.tag)
    if kind not in ("sitemapindex", "urlset"):
        return "", []

    locations: List[str] = []
    for entry in root:
        for child in entry:
            if _local_name(child.tag) == "loc" and child.text and child.text.strip():
                locations.append(child.text.strip())
                break
    return kind, locations


def _decode_body(response: httpx.Response, url: str) -> str:
    content = response.content
    if content[:2] == b"\x1f\x8b" or url.lower().endswith(".gz"):
        try:
            content = gzip.decompress(content)
        except (OSError, EOFError, zlib.error):
            pass
        else:
            return content.decode("utf-8", errors="replace")
    return response.text


async def _fetch_sitemap(
    client: httpx.AsyncClient, url: str, user_agent: str, timeout: float
) -> Optional[str]:
    try:
        result = await fetch_chain(client, url, user_agent=user_agent, timeout=timeout)
    except FetchError as exc:
        LOGGER.debug("Sitemap %s unreachable: %s", url, exc)
        return None
    if not 200 <= result.status < 300:
        LOGGER.debug("Sitemap %s answered %d", url, result.status)
        return None
    return _decode_body(result.response, url)


async def collect_sitemap_urls(
    client: httpx.AsyncClient,
    sitemap_url: str,
    *,
    user_agent: str,
    limit: int = 2000,
    timeout: float = 20.0,
    _visited: Optional[Set[str]] = None,
) -> List[str]:
    """Collect page URLs from a sitemap or sitemap index.

    Index documents are expanded recursively; the remaining capacity is
    passed down so the aggregate never exceeds ``limit``. A fetch or parse
    failure yields an empty list for that endpoint. An index that refers
    back to an endpoint already being expanded is not followed again.
    """
    visited = set() if _visited is None else _visited
    if limit <= 0 or sitemap_url in visited:
        return []
    visited.add(sitemap_url)

    text = await _fetch_sitemap(client, sitemap_url, user_agent, timeout)
    if text is None:
        return []

    try:
        kind, locations = parse_sitemap_xml(text)
    except ET.ParseError as exc:
        LOGGER.warning("Malformed sitemap at %s: %s", sitemap_url, exc)
        return []

    if kind == "urlset":
        return locations[:limit]

    if kind == "sitemapindex":
        collected: List[str] = []
        for child in locations:
            remaining = limit - len(collected)
            if remaining <= 0:
                break
            collected.extend(
                await collect_sitemap_urls(
                    client,
                    child,
                    user_agent=user_agent,
                    limit=remaining,
                    timeout=timeout,
                    _visited=visited,
                )
            )
        return collected[:limit]

    LOGGER.debug("Sitemap %s is neither a urlset nor a sitemap index", sitemap_url)
    return []
