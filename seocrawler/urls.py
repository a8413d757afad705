"""URL canonicalization helpers shared by the crawler and the auditor."""

from __future__ import annotations

import ipaddress
import logging
import posixpath
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

LOGGER = logging.getLogger(__name__)

ASSET_PATH = Path(__file__).parent / "assets" / "ignore-extensions.txt"

# Query parameters dropped from the dedup key (plus every ``utm_*``).
TRACKING_PARAMS = frozenset({"gclid", "fbclid", "igshid", "mc_cid", "mc_eid"})
TRACKING_PREFIX = "utm_"

MULTIPART_SUFFIXES: Tuple[str, ...] = ("tar.gz", "tar.bz2", "tar.xz")

_DEFAULT_PORTS = {"http": 80, "https": 443}
_DIRECTORY_INDEX = re.compile(r"^index\.[a-z0-9]+$", re.IGNORECASE)
_DUPLICATE_SLASHES = re.compile(r"/{2,}")


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith(TRACKING_PREFIX) or lowered in TRACKING_PARAMS


def _normalize_path(path: str) -> str:
    path = _DUPLICATE_SLASHES.sub("/", path).rstrip("/")
    head, _, last = path.rpartition("/")
    while _DIRECTORY_INDEX.match(last):
        path = head.rstrip("/")
        head, _, last = path.rpartition("/")
    return path or "/"


def _normalize_query(query: str) -> str:
    if not query:
        return ""
    pairs = [
        (name, value)
        for name, value in parse_qsl(query, keep_blank_values=True)
        if not _is_tracking_param(name)
    ]
    pairs.sort(key=lambda pair: pair[0])
    return urlencode(pairs)


def normalize_for_key(url: str) -> str:
    """Return the deduplication key for ``url``.

    Lower-cases scheme and host, drops userinfo, default ports, the
    fragment, tracking parameters and a trailing ``index.*`` segment, sorts
    the query by parameter name and strips the trailing slash (the root
    path keeps its single ``/``). ``www.`` is preserved and the scheme is
    never switched. Anything that is not an absolute http(s) URL is returned
    unchanged.
    """
    try:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        host = parts.hostname
        port = parts.port
    except ValueError:
        return url

    if scheme not in _DEFAULT_PORTS or not host:
        return url

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"

    return urlunsplit(
        (scheme, netloc, _normalize_path(parts.path), _normalize_query(parts.query), "")
    )


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def etld1(host: str) -> str:
    """Approximate eTLD+1: the last two dot-separated labels of ``host``.

    Multi-label public suffixes (``co.uk``, ``com.ar``) are not handled.
    """
    return ".".join(host.lower().rstrip(".").split(".")[-2:])


def same_etld1(a: str, b: str) -> bool:
    """True when both URLs share the approximate eTLD+1."""
    host_a, host_b = _hostname(a), _hostname(b)
    if not host_a or not host_b:
        return False
    return etld1(host_a) == etld1(host_b)


def is_internal(base: str, target: str, include_subdomains: bool = False) -> bool:
    """True when ``target`` belongs to the site rooted at ``base``."""
    base_host, target_host = _hostname(base), _hostname(target)
    if not base_host or not target_host:
        return False
    if etld1(base_host) != etld1(target_host):
        return False
    if not include_subdomains:
        return base_host == target_host
    return True


def absolutize(base: str, href: str) -> Optional[str]:
    """Resolve ``href`` against ``base``; None when it cannot be resolved."""
    try:
        resolved = urljoin(base, href.strip())
    except ValueError:
        return None
    return resolved or None


def is_http_url(url: str) -> bool:
    """True for an absolute http(s) URL with a host."""
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    return parts.scheme.lower() in _DEFAULT_PORTS and bool(parts.hostname)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def www_counterpart(url: str) -> Optional[str]:
    """Toggle a leading ``www.`` on the host of ``url``.

    Returns None for IP literals, single-label hosts and unparseable URLs.
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if not host or "." not in host or _is_ip_literal(host):
        return None

    if host.startswith("www."):
        other = host[len("www."):]
        if "." not in other:
            return None
    else:
        other = f"www.{host}"

    netloc = f"{other}:{port}" if port is not None else other
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


# ---------------------------------------------------------------------------
# Ignored extensions
# ---------------------------------------------------------------------------


def default_ignore_extensions_path() -> Path:
    return ASSET_PATH


@lru_cache(maxsize=16)
def _read_ignore_file(path: str) -> Tuple[str, ...]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Could not read ignore-extension list %s: %s", path, exc)
        return ()
    return tuple(
        line.strip().lower() for line in text.splitlines() if line.strip()
    )


def load_ignore_extensions(path: Optional[str] = None) -> Tuple[str, ...]:
    """Load the newline-delimited ignore list.

    ``path`` overrides the packaged asset when it points at an existing
    file. A missing asset yields an empty list. Each file is read once.
    """
    candidate = Path(path) if path and Path(path).is_file() else ASSET_PATH
    if path and candidate == ASSET_PATH:
        LOGGER.debug("Ignore-extension override %s not found; using asset", path)
    if not candidate.is_file():
        return ()
    return _read_ignore_file(str(candidate))


class UrlCanonicalizer:
    """Extension filter configured with an explicit ignore list."""

    def __init__(self, ignored_extensions: Iterable[str] = ()) -> None:
        self.ignored_extensions = frozenset(
            ext.strip().lower() for ext in ignored_extensions if ext.strip()
        )

    def _listed(self, extension: str) -> bool:
        return (
            extension in self.ignored_extensions
            or f".{extension}" in self.ignored_extensions
        )

    def has_ignored_extension(self, url: str) -> bool:
        try:
            path = urlsplit(url).path.lower()
        except ValueError:
            return False

        for suffix in MULTIPART_SUFFIXES:
            if path.endswith(f".{suffix}") and self._listed(suffix):
                return True

        extension = posixpath.splitext(path)[1]
        if not extension:
            return False
        return self._listed(extension[1:])
