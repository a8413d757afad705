"""Runtime settings for crawl and audit runs.

Settings come from environment variables (optionally loaded from a
``.env`` file by the entry points). They are read at call time inside
``load_settings`` so tests can monkeypatch the environment freely and a
late ``.env`` load still takes effect.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .urls import UrlCanonicalizer, load_ignore_extensions

LOGGER = logging.getLogger(__name__)

DEFAULT_DEPTH = 2
DEFAULT_MAX_PAGES = 500
DEFAULT_USER_AGENT = "seocrawler"
DEFAULT_MAX_CONCURRENCY = 6
DEFAULT_TIMEOUT = 20.0
DEFAULT_SNAPSHOT_DIR = "./data/snapshots"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass
class CrawlerSettings:
    """Defaults substituted when a request leaves a field unset."""

    default_depth: int = DEFAULT_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    respect_robots: bool = False
    timeout: float = DEFAULT_TIMEOUT
    ignore_ext_file: Optional[str] = None
    snapshot_dir: str = DEFAULT_SNAPSHOT_DIR

    def with_overrides(self, **overrides) -> "CrawlerSettings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def build_canonicalizer(self) -> UrlCanonicalizer:
        return UrlCanonicalizer(load_ignore_extensions(self.ignore_ext_file))


def _convert_int(name: str, value: Optional[str], default: int, minimum: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        LOGGER.warning("Invalid %s=%r; falling back to %d.", name, value, default)
        return default
    if parsed < minimum:
        LOGGER.warning(
            "%s=%d is below %d; falling back to %d.", name, parsed, minimum, default
        )
        return default
    return parsed


def _convert_float(name: str, value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        LOGGER.warning("Invalid %s=%r; falling back to %s.", name, value, default)
        return default
    if parsed <= 0:
        LOGGER.warning("%s must be positive; falling back to %s.", name, default)
        return default
    return parsed


def load_settings(environ: Optional[Mapping[str, str]] = None) -> CrawlerSettings:
    """Build settings from ``environ`` (default: ``os.environ``)."""
    env = os.environ if environ is None else environ
    return CrawlerSettings(
        default_depth=_convert_int(
            "CRAWLER_DEFAULT_DEPTH", env.get("CRAWLER_DEFAULT_DEPTH"), DEFAULT_DEPTH, 0
        ),
        max_pages=_convert_int(
            "CRAWLER_MAX_PAGES", env.get("CRAWLER_MAX_PAGES"), DEFAULT_MAX_PAGES, 0
        ),
        user_agent=(env.get("CRAWLER_USER_AGENT") or "").strip() or DEFAULT_USER_AGENT,
        max_concurrency=_convert_int(
            "CRAWLER_MAX_CONCURRENCY",
            env.get("CRAWLER_MAX_CONCURRENCY"),
            DEFAULT_MAX_CONCURRENCY,
            1,
        ),
        respect_robots=(env.get("CRAWLER_RESPECT_ROBOTS") or "").strip().lower()
        in _TRUTHY,
        timeout=_convert_float("CRAWLER_TIMEOUT", env.get("CRAWLER_TIMEOUT"), DEFAULT_TIMEOUT),
        ignore_ext_file=env.get("CRAWLER_IGNORE_EXT_FILE") or None,
        snapshot_dir=env.get("CRAWLER_SNAPSHOT_DIR") or DEFAULT_SNAPSHOT_DIR,
    )
