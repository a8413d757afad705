"""Redirect-following HTTP fetcher with a browser user-agent fallback.

Redirects are followed by hand (the client never follows them) so every
hop can be recorded. When an origin answers with a status commonly used by
bot protection, or the request fails outright, the whole chain is retried
once with a realistic browser user agent.

Public API::

    from seocrawler.fetch import build_client, fetch_chain, FetchError

    async with build_client(timeout=20.0) as client:
        result = await fetch_chain(client, "https://example.com", user_agent="seocrawler")
        print(result.final_url, result.response.status_code, len(result.redirect_chain))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

import httpx

from .models import RedirectHop

LOGGER = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
BLOCKED_STATUSES = frozenset({403, 406, 409, 410, 429, 451, 503})
MAX_REDIRECTS = 10

FALLBACK_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.9,es;q=0.8"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class FetchResult:
    """Final response of one logical fetch plus the hops that led to it."""

    response: httpx.Response
    final_url: str
    redirect_chain: List[RedirectHop] = field(default_factory=list)

    @property
    def status(self) -> int:
        return self.response.status_code

    @property
    def content_type(self) -> Optional[str]:
        return self.response.headers.get("content-type")

    def is_html(self) -> bool:
        return "text/html" in (self.content_type or "").lower()


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FetchError(Exception):
    """Raised when a URL could not be fetched, even after the fallback."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


_TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, ValueError)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_client(timeout: float = 20.0) -> httpx.AsyncClient:
    """Create the shared client; redirects are handled by ``fetch_chain``."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(timeout),
    )


def request_headers(user_agent: str) -> dict:
    return {
        "User-Agent": user_agent,
        "Accept": ACCEPT,
        "Accept-Language": ACCEPT_LANGUAGE,
    }


async def _get(
    client: httpx.AsyncClient, url: str, user_agent: str, timeout: float
) -> httpx.Response:
    return await asyncio.wait_for(
        client.get(url, headers=request_headers(user_agent), timeout=timeout),
        timeout,
    )


async def _follow(
    client: httpx.AsyncClient, url: str, user_agent: str, timeout: float
) -> FetchResult:
    hops: List[RedirectHop] = []
    current_url = url
    response = await _get(client, current_url, user_agent, timeout)

    while response.status_code in REDIRECT_STATUSES and len(hops) < MAX_REDIRECTS:
        location = response.headers.get("location")
        if not location:
            break
        next_url = urljoin(current_url, location.strip())
        hops.append(RedirectHop(current_url, next_url, response.status_code))
        current_url = next_url
        response = await _get(client, current_url, user_agent, timeout)

    return FetchResult(response=response, final_url=current_url, redirect_chain=hops)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def fetch_chain(
    client: httpx.AsyncClient,
    url: str,
    *,
    user_agent: str,
    timeout: float = 20.0,
) -> FetchResult:
    """Fetch ``url`` following up to ten redirects by hand.

    Args:
        client: Client created with ``follow_redirects=False``.
        url: Absolute URL to fetch.
        user_agent: Caller user agent for the first attempt.
        timeout: Deadline in seconds for each individual request.

    Returns:
        :class:`FetchResult` for the last response observed.

    Raises:
        FetchError: If the origin is unreachable, including after the
            fallback user agent was tried.
    """
    try:
        result = await _follow(client, url, user_agent, timeout)
    except _TRANSPORT_ERRORS as exc:
        if user_agent == FALLBACK_USER_AGENT:
            raise FetchError(f"Request failed: {exc!r}", url=url) from exc
        LOGGER.debug("Fetch of %s failed (%r); retrying with fallback UA", url, exc)
        try:
            return await _follow(client, url, FALLBACK_USER_AGENT, timeout)
        except _TRANSPORT_ERRORS as retry_exc:
            raise FetchError(f"Request failed: {retry_exc!r}", url=url) from retry_exc

    if result.status in BLOCKED_STATUSES and user_agent != FALLBACK_USER_AGENT:
        LOGGER.debug(
            "%s answered %d for UA %r; retrying with fallback UA",
            result.final_url,
            result.status,
            user_agent,
        )
        try:
            return await _follow(client, url, FALLBACK_USER_AGENT, timeout)
        except _TRANSPORT_ERRORS as exc:
            LOGGER.debug("Fallback fetch of %s failed: %r", url, exc)
            return result

    return result
