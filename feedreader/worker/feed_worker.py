"""
Feed Worker
===========

Hosts network fetching and feed parsing on a dedicated thread with its own
asyncio event loop. The only way in is ``post_message`` with a JSON encoded
request; the only way out is the ``on_message`` callback with a JSON encoded
response.
"""

import asyncio
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from ..config.settings import FeedReaderSettings, get_settings
from ..ingestion.discovery import FeedDiscovery
from ..ingestion.fetcher import FeedFetcher, FetchedDocument
from ..ingestion.models import ParsedFeed
from ..ingestion.normalizer import FeedNormalizer
from ..utils.exceptions import (
    ErrorCode,
    FeedError,
    FeedErrorType,
    FeedReaderError,
    ValidationError,
    classify_feed_error,
)
from ..utils.logging import PerformanceLogger, get_logger_for_component
from ..utils.validators import URLValidator
from .protocol import (
    CANCEL,
    PARSE_FEED,
    REFRESH_FEED,
    RESULT_TYPES,
    VALIDATE_FEED,
    ProtocolError,
    decode_message,
    encode_message,
    error_message,
    failure_payload,
    make_message,
)

logger = get_logger_for_component("worker")


class Fetcher(Protocol):
    async def fetch_feed(self, url: str) -> FetchedDocument: ...

    async def fetch_page(self, url: str) -> FetchedDocument: ...

    async def probe(self, url: str) -> Optional[str]: ...

    async def close(self) -> None: ...


def _error_text(exception: Exception) -> str:
    if isinstance(exception, FeedReaderError):
        return exception.message
    return str(exception) or type(exception).__name__


class FeedRequestHandler:
    """Turns request payloads into response payloads.

    Expected failures (bad URL, HTTP errors, non-feed documents) come back as
    ``{"success": False, "error", "errorType"}``. Anything else propagates to
    the worker, which reports it as an ``ERROR`` message.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        normalizer: FeedNormalizer,
        discovery: Optional[FeedDiscovery] = None,
    ):
        self.fetcher = fetcher
        self.normalizer = normalizer
        self.discovery = discovery or FeedDiscovery(fetcher)

    async def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            VALIDATE_FEED: self.handle_validate,
            PARSE_FEED: self.handle_parse,
            REFRESH_FEED: self.handle_refresh,
        }
        message_type = message["type"]
        payload = await handlers[message_type](message.get("payload") or {})
        return make_message(RESULT_TYPES[message_type], message["id"], payload)

    async def handle_validate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve a user supplied URL to a feed and summarize it."""
        try:
            url = URLValidator.validate_feed_url(payload.get("url"))
        except ValidationError as e:
            return failure_payload(e.message, FeedErrorType.INVALID_URL)

        try:
            feed_url, parsed = await self._load_feed(url, discover=True)
        except FeedReaderError as e:
            logger.info(f"Validation failed for {url}: {e.message}")
            return failure_payload(e.message, classify_feed_error(e))

        feed: Dict[str, Any] = {
            "title": parsed.title,
            "siteUrl": parsed.site_url,
            "favicon": parsed.favicon,
        }
        if parsed.description:
            feed["description"] = parsed.description

        return {
            "success": True,
            "feedUrl": feed_url,
            "feed": feed,
            "articleCount": len(parsed.items),
        }

    async def handle_parse(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._full_parse(payload.get("url"))

    async def handle_refresh(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        feed_logger = get_logger_for_component("worker", feed_id=payload.get("feedId"))
        result = await self._full_parse(payload.get("feedUrl"))
        if not result["success"]:
            feed_logger.warning(f"Refresh failed: {result['error']}")
        return result

    async def _full_parse(self, raw_url: Any) -> Dict[str, Any]:
        try:
            url = URLValidator.validate_feed_url(raw_url)
            _, parsed = await self._load_feed(url, discover=False)
        except FeedReaderError as e:
            return failure_payload(_error_text(e), classify_feed_error(e))

        return {
            "success": True,
            "feed": parsed.metadata_dict(),
            "articles": parsed.articles_dicts(),
        }

    async def _load_feed(self, url: str, discover: bool) -> Tuple[str, ParsedFeed]:
        """Fetch and parse ``url``; with ``discover`` a non-feed page is searched for a feed link."""
        try:
            document = await self.fetcher.fetch_feed(url)
            return url, self.normalizer.parse(document.text, url)
        except FeedReaderError as e:
            if not discover or classify_feed_error(e) is not FeedErrorType.NOT_A_FEED:
                raise
            direct_error = e

        page = await self.fetcher.fetch_page(url)
        discovered = await self.discovery.discover(page.text, url)
        if not discovered or discovered == url:
            raise FeedError(
                "No feed found at this URL",
                feed_url=url,
                error_code=ErrorCode.FEED_NOT_FOUND,
            ) from direct_error

        logger.info(f"Discovered feed {discovered} for {url}")
        document = await self.fetcher.fetch_feed(discovered)
        return discovered, self.normalizer.parse(document.text, discovered)


class FeedWorker:
    """
    Thread-hosted request processor.

    Each request runs as its own task on the worker loop so that a CANCEL
    can interrupt it. Cancelled requests produce no response.
    """

    def __init__(
        self,
        on_message: Callable[[str], None],
        settings: Optional[FeedReaderSettings] = None,
        fetcher_factory: Optional[Callable[[], Fetcher]] = None,
        name: str = "feed-worker",
    ):
        self.settings = settings or get_settings()
        self.name = name
        self._on_message = on_message
        self._fetcher_factory = fetcher_factory or (lambda: FeedFetcher(self.settings))

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._stopping = False
        self._fetcher: Optional[Fetcher] = None
        self._handler: Optional[FeedRequestHandler] = None
        self._active: Dict[str, asyncio.Task] = {}

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopping

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.debug(f"{self.name} started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop, cancel in-flight requests and join the thread."""
        thread = self._thread
        if thread is None:
            return
        self._stopping = True

        loop = self._loop
        if loop is not None and not loop.is_closed():
            try:
                loop.call_soon_threadsafe(loop.stop)
            except RuntimeError:
                logger.debug(f"{self.name} loop already closed")

        if threading.current_thread() is not thread:
            thread.join(timeout)
        self._thread = None
        logger.debug(f"{self.name} stopped")

    def post_message(self, raw: str) -> None:
        """Queue a JSON encoded message for the worker loop. Safe from any thread."""
        loop = self._loop
        if self._stopping or loop is None or loop.is_closed():
            raise RuntimeError(f"{self.name} is not running")
        loop.call_soon_threadsafe(self._dispatch, raw)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop

        try:
            self._fetcher = self._fetcher_factory()
            self._handler = FeedRequestHandler(self._fetcher, FeedNormalizer(self.settings))
        finally:
            self._ready.set()

        try:
            loop.run_forever()
        finally:
            try:
                loop.run_until_complete(self._shutdown())
            finally:
                loop.close()

    async def _shutdown(self) -> None:
        tasks = list(self._active.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._active.clear()

        if self._fetcher is not None:
            await self._fetcher.close()

    def _dispatch(self, raw: str) -> None:
        try:
            message = decode_message(raw)
        except ProtocolError as e:
            logger.error(f"Dropping malformed message: {e}")
            return

        message_type = message["type"]
        request_id = message["id"]

        if message_type == CANCEL:
            task = self._active.pop(request_id, None)
            if task is not None:
                task.cancel()
                logger.debug(f"Cancelled request {request_id}")
            return

        if message_type not in RESULT_TYPES:
            self._emit(error_message(request_id, f"Unknown message type: {message_type}"))
            return

        task = self._loop.create_task(self._process(message))
        self._active[request_id] = task

    async def _process(self, message: Dict[str, Any]) -> None:
        request_id = message["id"]
        request_logger = get_logger_for_component("worker", request_id=request_id)

        try:
            with PerformanceLogger(request_logger, message["type"]):
                response = await self._handler.handle(message)
        except asyncio.CancelledError:
            request_logger.debug("Request cancelled before completion")
            raise
        except Exception as e:
            request_logger.exception(f"Unhandled error in {message['type']} handler")
            response = error_message(request_id, _error_text(e))
        finally:
            if self._active.get(request_id) is asyncio.current_task():
                del self._active[request_id]

        self._emit(response)

    def _emit(self, message: Dict[str, Any]) -> None:
        try:
            self._on_message(encode_message(message))
        except Exception:
            logger.exception(f"Response callback failed for {message.get('id')}")
