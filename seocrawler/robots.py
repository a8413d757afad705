"""robots.txt policy per origin.

Fails open: when robots.txt cannot be fetched, or answers with an error
status, every URL is allowed and no sitemaps or crawl delay are reported.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx

from .fetch import FetchError, fetch_chain

LOGGER = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(r"^\s*([A-Za-z-]+)\s*:\s*(.*?)\s*$")


@dataclass
class RobotsAgent:
    """Allow-check, crawl-delay and declared sitemaps for one origin."""

    user_agent: str = "*"
    parser: Optional[RobotFileParser] = None
    crawl_delay: Optional[float] = None
    sitemaps: List[str] = field(default_factory=list)

    def is_allowed(self, url: str) -> bool:
        if self.parser is None:
            return True
        return self.parser.can_fetch(self.user_agent, url)


def allow_all_agent() -> RobotsAgent:
    """Permissive stand-in used when robots.txt is disabled or unreachable."""
    return RobotsAgent()


def origin_of(url: str) -> str:
    """``scheme://host[:port]`` of ``url`` (lower-cased), or "" if invalid."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def _crawl_delay_groups(text: str) -> List[Tuple[List[str], Optional[float]]]:
    """``(agents, crawl_delay)`` per user-agent group, in file order.

    ``RobotFileParser`` only keeps integer delays, so ``Crawl-delay: 0.5``
    would be lost. Values that are not finite non-negative numbers are ignored.
    """
    groups: List[Tuple[List[str], Optional[float]]] = []
    agents: List[str] = []
    delay: Optional[float] = None
    in_agents = False

    for raw_line in text.splitlines():
        match = _DIRECTIVE_RE.match(raw_line.split("#", 1)[0])
        if not match:
            continue
        name, value = match.group(1).lower(), match.group(2)
        if name == "user-agent":
            if not in_agents:
                if agents:
                    groups.append((agents, delay))
                agents, delay = [], None
                in_agents = True
            agents.append(value.lower())
            continue
        in_agents = False
        if name == "crawl-delay" and agents:
            try:
                parsed = float(value)
            except ValueError:
                continue
            if math.isfinite(parsed) and parsed >= 0:
                delay = parsed

    if agents:
        groups.append((agents, delay))
    return groups


def _crawl_delay_for(text: str, user_agent: str) -> Optional[float]:
    """Crawl-delay of the group matching ``user_agent``, else of ``*``."""
    token = user_agent.split("/")[0].lower()
    wildcard: List[Optional[float]] = []
    for agents, delay in _crawl_delay_groups(text):
        if any(agent != "*" and agent and agent in token for agent in agents):
            return delay
        if "*" in agents:
            wildcard.append(delay)
    return wildcard[0] if wildcard else None


def parse_robots(text: str, user_agent: str) -> RobotsAgent:
    """Build an agent from robots.txt content."""
    parser = RobotFileParser()
    parser.parse(text.splitlines())

    delay = _crawl_delay_for(text, user_agent)

    return RobotsAgent(
        user_agent=user_agent,
        parser=parser,
        crawl_delay=delay if delay else None,
        sitemaps=list(parser.site_maps() or []),
    )


async def fetch_robots_agent(
    client: httpx.AsyncClient,
    origin: str,
    *,
    user_agent: str,
    timeout: float = 20.0,
) -> RobotsAgent:
    """Fetch and parse ``<origin>/robots.txt``."""
    robots_url = f"{origin}/robots.txt"
    try:
        result = await fetch_chain(client, robots_url, user_agent=user_agent, timeout=timeout)
    except FetchError as exc:
        LOGGER.warning("robots.txt unreachable at %s: %s", robots_url, exc)
        return allow_all_agent()

    if result.status >= 400:
        LOGGER.debug("robots.txt at %s answered %d; allowing all", robots_url, result.status)
        return allow_all_agent()

    agent = parse_robots(result.response.text, user_agent)
    LOGGER.debug(
        "robots.txt at %s: %d sitemap(s), crawl-delay=%s",
        robots_url,
        len(agent.sitemaps),
        agent.crawl_delay,
    )
    return agent


class RobotsCache:
    """Lazily populated robots agents keyed by origin.

    One lock per origin keeps concurrent callers from fetching the same
    robots.txt twice.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        user_agent: str,
        timeout: float = 20.0,
    ) -> None:
        self._client = client
        self._user_agent = user_agent
        self._timeout = timeout
        self._agents: Dict[str, RobotsAgent] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get_agent(self, url: str) -> RobotsAgent:
        origin = origin_of(url)
        if not origin:
            return allow_all_agent()
        if origin in self._agents:
            return self._agents[origin]

        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            if origin not in self._agents:
                self._agents[origin] = await fetch_robots_agent(
                    self._client,
                    origin,
                    user_agent=self._user_agent,
                    timeout=self._timeout,
                )
        return self._agents[origin]
