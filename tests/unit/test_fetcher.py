"""
Unit Tests for the aiohttp Feed Fetcher
=======================================

Runs against a local aiohttp test server.
"""

import asyncio

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from feedreader.config.settings import FetchSettings
from feedreader.ingestion.fetcher import FEED_ACCEPT, FeedFetcher, is_feed_content_type
from feedreader.utils.exceptions import ErrorCode, FeedFetchError


@pytest.fixture
def seen_requests():
    return []


@pytest_asyncio.fixture
async def server(seen_requests, rss_feed_xml, html_page):
    async def feed(request):
        seen_requests.append(request.headers.copy())
        return web.Response(text=rss_feed_xml, content_type="application/rss+xml")

    async def page(request):
        return web.Response(text=html_page, content_type="text/html")

    async def blocked(request):
        return web.Response(status=403)

    async def broken(request):
        return web.Response(status=500)

    async def slow(request):
        await asyncio.sleep(0.5)
        return web.Response(text=rss_feed_xml, content_type="application/rss+xml")

    async def proxy(request):
        target = request.query.get("url", "")
        if target.endswith("/broken"):
            return web.Response(text=rss_feed_xml, content_type="application/rss+xml")
        return web.Response(status=502)

    app = web.Application()
    app.router.add_get("/feed.xml", feed)
    app.router.add_get("/page", page)
    app.router.add_get("/blocked", blocked)
    app.router.add_get("/broken", broken)
    app.router.add_get("/slow", slow)
    app.router.add_get("/proxy", proxy)

    test_server = TestServer(app)
    await test_server.start_server()
    yield test_server
    await test_server.close()


def url_for(server, path):
    return str(server.make_url(path))


@pytest_asyncio.fixture
async def fetcher(settings):
    fetcher = FeedFetcher(settings)
    yield fetcher
    await fetcher.close()


@pytest.fixture
def proxied_settings(settings, server):
    settings.fetch = FetchSettings(cors_proxy_url=url_for(server, "/proxy") + "?url=")
    return settings


class TestContentTypes:

    @pytest.mark.parametrize("content_type", [
        "application/rss+xml; charset=utf-8",
        "application/atom+xml",
        "text/xml",
        "application/rdf+xml",
        "application/feed+json",
        "APPLICATION/JSON",
    ])
    def test_feed_types(self, content_type):
        assert is_feed_content_type(content_type)

    @pytest.mark.parametrize("content_type", ["text/html; charset=utf-8", "text/plain", "", None])
    def test_non_feed_types(self, content_type):
        assert not is_feed_content_type(content_type)


class TestFetchFeed:

    @pytest.mark.asyncio
    async def test_success_sends_headers(self, server, fetcher, seen_requests):
        document = await fetcher.fetch_feed(url_for(server, "/feed.xml"))

        assert "Tom &amp; Jerry" in document.text
        assert document.content_type.startswith("application/rss+xml")
        assert seen_requests[0]["Accept"] == FEED_ACCEPT
        assert seen_requests[0]["User-Agent"] == "FeedReader/1.0.0"

    @pytest.mark.asyncio
    async def test_not_found(self, server, fetcher):
        with pytest.raises(FeedFetchError) as exc_info:
            await fetcher.fetch_feed(url_for(server, "/missing"))

        assert exc_info.value.error_code == ErrorCode.FEED_HTTP_ERROR
        assert exc_info.value.user_message.startswith("Fetch failed: 404")

    @pytest.mark.asyncio
    async def test_blocked(self, server, fetcher):
        with pytest.raises(FeedFetchError) as exc_info:
            await fetcher.fetch_feed(url_for(server, "/blocked"))

        assert exc_info.value.error_code == ErrorCode.FEED_ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_html_is_not_a_feed(self, server, fetcher, html_page):
        with pytest.raises(FeedFetchError) as exc_info:
            await fetcher.fetch_feed(url_for(server, "/page"))
        assert exc_info.value.error_code == ErrorCode.FEED_NOT_FOUND

        document = await fetcher.fetch_page(url_for(server, "/page"))
        assert document.text == html_page

    @pytest.mark.asyncio
    async def test_timeout(self, server, settings):
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=0.1))
        fetcher = FeedFetcher(settings, session=session)
        try:
            with pytest.raises(FeedFetchError) as exc_info:
                await fetcher.fetch_feed(url_for(server, "/slow"))
        finally:
            await fetcher.close()
            await session.close()

        assert exc_info.value.error_code == ErrorCode.FEED_FETCH_TIMEOUT

    @pytest.mark.asyncio
    async def test_connection_refused(self, fetcher):
        with pytest.raises(FeedFetchError) as exc_info:
            await fetcher.fetch_feed("http://127.0.0.1:1/feed.xml")

        assert exc_info.value.error_code == ErrorCode.FEED_NETWORK_ERROR


class TestProxyFallback:

    @pytest.mark.asyncio
    async def test_proxy_used_after_direct_failure(self, server, proxied_settings):
        fetcher = FeedFetcher(proxied_settings)
        url = url_for(server, "/broken")
        try:
            document = await fetcher.fetch_feed(url)
        finally:
            await fetcher.close()

        assert document.url == url
        assert "Tom &amp; Jerry" in document.text

    @pytest.mark.asyncio
    async def test_access_denied_kept_when_proxy_fails(self, server, proxied_settings):
        fetcher = FeedFetcher(proxied_settings)
        try:
            with pytest.raises(FeedFetchError) as exc_info:
                await fetcher.fetch_feed(url_for(server, "/blocked"))
        finally:
            await fetcher.close()

        assert exc_info.value.error_code == ErrorCode.FEED_ACCESS_DENIED


class TestProbe:

    @pytest.mark.asyncio
    async def test_probe(self, server, fetcher):
        assert (await fetcher.probe(url_for(server, "/feed.xml"))).startswith("application/rss+xml")
        assert await fetcher.probe(url_for(server, "/missing")) is None
