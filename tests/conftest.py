"""Shared fixtures and global pytest hooks for strict test-accounting guardrails."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

import httpx
import pytest

from seocrawler.config import CrawlerSettings

Route = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------------------
# Fake HTTP origin
# ---------------------------------------------------------------------------


class FakeSite:
    """Maps absolute URLs to canned responses served through MockTransport.

    Each route is a factory so that every request receives a fresh
    response object. Unknown URLs answer 404. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def respond(
        self,
        url: str,
        *,
        status: int = 200,
        body: Union[str, bytes] = "",
        content_type: Optional[str] = "text/html; charset=utf-8",
        headers: Optional[List[tuple]] = None,
    ) -> None:
        raw_headers = list(headers or [])
        if content_type:
            raw_headers.append(("content-type", content_type))
        content = body.encode("utf-8") if isinstance(body, str) else body

        def route(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, headers=raw_headers, content=content)

        self.add(url, route)

    def html(self, url: str, body: str, status: int = 200, **kwargs) -> None:
        self.respond(url, status=status, body=body, **kwargs)

    def redirect(self, url: str, location: str, status: int = 301) -> None:
        self.respond(url, status=status, content_type=None, headers=[("location", location)])

    def fail(self, url: str) -> None:
        def route(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self.add(url, route)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, headers=[("content-type", "text/plain")], content=b"not found")
        return route(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), follow_redirects=False
        )

    def hits(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)


@pytest.fixture
def fake_site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def settings() -> CrawlerSettings:
    """Environment-independent defaults."""
    return CrawlerSettings()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CRAWLER_DEFAULT_DEPTH",
        "CRAWLER_MAX_PAGES",
        "CRAWLER_USER_AGENT",
        "CRAWLER_MAX_CONCURRENCY",
        "CRAWLER_RESPECT_ROBOTS",
        "CRAWLER_TIMEOUT",
        "CRAWLER_IGNORE_EXT_FILE",
        "CRAWLER_SNAPSHOT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Test accounting
# ---------------------------------------------------------------------------


@dataclass
class _TestAccounting:
    deselected: int = 0
    skipped: int = 0
    xfailed: int = 0
    xpassed: int = 0


_ACCOUNTING = _TestAccounting()


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _ACCOUNTING.deselected += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return

    if getattr(report, "wasxfail", False):
        if report.outcome == "skipped":
            _ACCOUNTING.xfailed += 1
        elif report.outcome == "passed":
            _ACCOUNTING.xpassed += 1
        return

    if report.outcome == "skipped":
        _ACCOUNTING.skipped += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = [
        f"{name}={count}"
        for name, count in vars(_ACCOUNTING).items()
        if count
    ]
    if not violations:
        return

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=",
            "Strict guard failed: test accounting violations detected "
            f"({', '.join(violations)})",
        )
        reporter.write_line(
            "Hard guard requires zero skipped/deselected/xfail/xpass tests."
        )

    session.exitstatus = 1
