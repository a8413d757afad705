"""Tests for the redirect-following fetcher."""

from __future__ import annotations

import httpx
import pytest

from seocrawler.fetch import (
    ACCEPT,
    FALLBACK_USER_AGENT,
    MAX_REDIRECTS,
    FetchError,
    build_client,
    fetch_chain,
)


@pytest.mark.asyncio
async def test_redirect_chain_301_302_200(fake_site):
    fake_site.redirect("https://ex.com/a", "/b", status=301)
    fake_site.redirect("https://ex.com/b", "https://ex.com/c", status=302)
    fake_site.html("https://ex.com/c", "<p>done</p>")

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/a", user_agent="X")

    assert result.status == 200
    assert result.final_url == "https://ex.com/c"
    assert [hop.to_dict() for hop in result.redirect_chain] == [
        {"from": "https://ex.com/a", "to": "https://ex.com/b", "status": 301},
        {"from": "https://ex.com/b", "to": "https://ex.com/c", "status": 302},
    ]
    assert result.is_html()


@pytest.mark.asyncio
async def test_missing_location_stops_following(fake_site):
    fake_site.respond("https://ex.com/a", status=302, content_type=None)

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/a", user_agent="X")

    assert result.status == 302
    assert result.final_url == "https://ex.com/a"
    assert result.redirect_chain == []


@pytest.mark.asyncio
async def test_redirect_loop_capped(fake_site):
    fake_site.redirect("https://ex.com/a", "/b")
    fake_site.redirect("https://ex.com/b", "/a")

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/a", user_agent="X")

    assert len(result.redirect_chain) == MAX_REDIRECTS
    assert result.status == 301


@pytest.mark.asyncio
async def test_request_headers(fake_site):
    fake_site.html("https://ex.com/", "ok")

    async with fake_site.client() as client:
        await fetch_chain(client, "https://ex.com/", user_agent="X")

    request = fake_site.requests[0]
    assert request.headers["user-agent"] == "X"
    assert request.headers["accept"] == ACCEPT
    assert "en" in request.headers["accept-language"]


@pytest.mark.asyncio
async def test_blocked_status_retried_with_fallback_ua(fake_site):
    def route(request: httpx.Request) -> httpx.Response:
        if request.headers["user-agent"] == FALLBACK_USER_AGENT:
            return httpx.Response(200, headers={"content-type": "text/html"}, text="ok")
        return httpx.Response(403, text="denied")

    fake_site.add("https://ex.com/", route)

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/", user_agent="X")

    assert result.status == 200
    assert result.final_url == "https://ex.com/"
    assert [r.headers["user-agent"] for r in fake_site.requests] == ["X", FALLBACK_USER_AGENT]


@pytest.mark.asyncio
async def test_blocked_status_kept_when_fallback_errors(fake_site):
    def route(request: httpx.Request) -> httpx.Response:
        if request.headers["user-agent"] == FALLBACK_USER_AGENT:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(429, text="slow down")

    fake_site.add("https://ex.com/", route)

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/", user_agent="X")

    assert result.status == 429


@pytest.mark.asyncio
async def test_blocked_status_not_retried_for_fallback_ua(fake_site):
    fake_site.respond("https://ex.com/", status=503)

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/", user_agent=FALLBACK_USER_AGENT)

    assert result.status == 503
    assert fake_site.hits("https://ex.com/") == 1


@pytest.mark.asyncio
async def test_plain_404_not_retried(fake_site):
    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/missing", user_agent="X")

    assert result.status == 404
    assert len(fake_site.requests) == 1


@pytest.mark.asyncio
async def test_network_error_retried_then_raises(fake_site):
    fake_site.fail("https://ex.com/")

    async with fake_site.client() as client:
        with pytest.raises(FetchError) as excinfo:
            await fetch_chain(client, "https://ex.com/", user_agent="X")

    assert excinfo.value.url == "https://ex.com/"
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert len(fake_site.requests) == 2


@pytest.mark.asyncio
async def test_network_error_with_fallback_ua_raises_immediately(fake_site):
    fake_site.fail("https://ex.com/")

    async with fake_site.client() as client:
        with pytest.raises(FetchError):
            await fetch_chain(client, "https://ex.com/", user_agent=FALLBACK_USER_AGENT)

    assert len(fake_site.requests) == 1


@pytest.mark.asyncio
async def test_network_error_recovered_by_fallback(fake_site):
    def route(request: httpx.Request) -> httpx.Response:
        if request.headers["user-agent"] != FALLBACK_USER_AGENT:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200, text="ok")

    fake_site.add("https://ex.com/", route)

    async with fake_site.client() as client:
        result = await fetch_chain(client, "https://ex.com/", user_agent="X")

    assert result.status == 200


@pytest.mark.asyncio
async def test_invalid_url_raises_fetch_error():
    async with build_client(timeout=1.0) as client:
        with pytest.raises(FetchError):
            await fetch_chain(client, "https://ex.com:99999/", user_agent="X")


def test_build_client_does_not_follow_redirects():
    client = build_client(timeout=3.0)
    assert client.follow_redirects is False
    assert client.timeout.read == 3.0
