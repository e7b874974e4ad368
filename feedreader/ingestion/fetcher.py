"""
Feed Fetcher
============

Async HTTP access for the feed worker using aiohttp.

- Feed requests advertise every supported feed MIME type
- Non-2xx responses and non-feed content types fail before any parsing
- Optional proxy retry for URLs the direct request cannot reach
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import aiohttp

from ..config.settings import FeedReaderSettings, get_settings
from ..utils.exceptions import ErrorCode, FeedFetchError
from ..utils.logging import get_logger_for_component

FEED_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/xml, text/xml, "
    "application/feed+json, application/json"
)
PAGE_ACCEPT = "text/html, application/xhtml+xml, application/xml;q=0.9, */*;q=0.8"

FEED_CONTENT_TYPE_MARKERS = ("xml", "rss", "atom", "rdf", "json")
BLOCKED_STATUSES = {401, 403, 451}


@dataclass
class FetchedDocument:
    """Body of a successful fetch."""

    url: str
    text: str
    content_type: str = ""


def is_feed_content_type(content_type: Optional[str]) -> bool:
    """True when a Content-Type header names an XML, RSS, Atom, RDF or JSON body."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return any(marker in media_type for marker in FEED_CONTENT_TYPE_MARKERS)


class FeedFetcher:
    """
    aiohttp based fetcher owned by the feed worker.

    The client session is created lazily inside the event loop that first
    uses it and must be closed from that same loop.
    """

    def __init__(
        self,
        settings: Optional[FeedReaderSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("fetcher")
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.fetch.request_timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self.settings.user_agent},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch_feed(self, url: str) -> FetchedDocument:
        """Fetch a feed document.

        Raises:
            FeedFetchError: On network failure, non-2xx status, timeout or a
                content type that is not a feed type
        """
        return await self._fetch(url, accept=FEED_ACCEPT, require_feed_type=True)

    async def fetch_page(self, url: str) -> FetchedDocument:
        """Fetch an HTML page (used for feed discovery)."""
        return await self._fetch(url, accept=PAGE_ACCEPT, require_feed_type=False)

    async def probe(self, url: str) -> Optional[str]:
        """HEAD a URL and return its Content-Type when the status is 2xx."""
        session = await self._get_session()
        try:
            async with session.head(url, allow_redirects=True) as response:
                if 200 <= response.status < 300:
                    return response.headers.get("Content-Type", "")
                return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.debug(f"Probe failed for {url}: {e}")
            return None

    async def _fetch(self, url: str, accept: str, require_feed_type: bool) -> FetchedDocument:
        try:
            return await self._fetch_once(url, url, accept, require_feed_type)
        except FeedFetchError as direct_error:
            proxy = self.settings.fetch.cors_proxy_url
            if not proxy or direct_error.error_code == ErrorCode.FEED_NOT_FOUND:
                raise

            proxy_url = f"{proxy}{quote(url, safe='')}"
            self.logger.info(f"Direct fetch failed for {url}, retrying through proxy")
            try:
                return await self._fetch_once(proxy_url, url, accept, require_feed_type)
            except FeedFetchError as proxy_error:
                if direct_error.error_code == ErrorCode.FEED_ACCESS_DENIED:
                    raise direct_error from proxy_error
                raise

    async def _fetch_once(
        self, request_url: str, url: str, accept: str, require_feed_type: bool
    ) -> FetchedDocument:
        session = await self._get_session()
        start_time = time.time()

        try:
            async with session.get(request_url, headers={"Accept": accept}) as response:
                status = response.status
                if status in BLOCKED_STATUSES:
                    raise FeedFetchError(
                        f"Access blocked: {status} {response.reason}",
                        feed_url=url,
                        status=status,
                        error_code=ErrorCode.FEED_ACCESS_DENIED,
                    )
                if not 200 <= status < 300:
                    raise FeedFetchError(
                        f"Fetch failed: {status} {response.reason}",
                        feed_url=url,
                        status=status,
                        error_code=ErrorCode.FEED_HTTP_ERROR,
                    )

                content_type = response.headers.get("Content-Type", "")
                if require_feed_type and content_type and not is_feed_content_type(content_type):
                    raise FeedFetchError(
                        f"No feed found at this URL (content type {content_type})",
                        feed_url=url,
                        status=status,
                        error_code=ErrorCode.FEED_NOT_FOUND,
                    )

                text = await response.text(errors="replace")

        except asyncio.TimeoutError as e:
            raise FeedFetchError(
                f"Request timed out after {self.settings.fetch.request_timeout}s",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Failed to fetch {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        self.logger.debug(
            f"Fetched {url} in {time.time() - start_time:.2f}s, {len(text)} chars",
            extra={"status": status, "content_type": content_type},
        )
        return FetchedDocument(url=url, text=text, content_type=content_type)
