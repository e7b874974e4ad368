"""
Feed Worker Client
==================

Caller-side half of the execution boundary. Owns the worker, allocates
correlation ids and resolves one awaitable per request.
"""

import asyncio
import itertools
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from ..config.settings import FeedReaderSettings, get_settings
from ..utils.exceptions import FeedErrorType
from ..utils.logging import get_logger_for_component
from .feed_worker import FeedWorker
from .protocol import (
    CANCEL,
    ERROR,
    PARSE_FEED,
    REFRESH_FEED,
    RESULT_TYPES,
    VALIDATE_FEED,
    ProtocolError,
    decode_message,
    encode_message,
    failure_payload,
    make_message,
)

UNEXPECTED_RESPONSE = "Unexpected response from worker"


class Worker(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def post_message(self, raw: str) -> None: ...


class FeedWorkerClient:
    """Request/response facade over a FeedWorker.

    Example:
        client = FeedWorkerClient(settings)
        request_id = client.new_request_id()
        task = asyncio.create_task(client.refresh_feed(feed.id, feed.feed_url, request_id))
        ...
        client.cancel(request_id)   # task never resolves
        client.terminate()
    """

    def __init__(
        self,
        settings: Optional[FeedReaderSettings] = None,
        worker_factory: Optional[Callable[[Callable[[str], None]], Worker]] = None,
    ):
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("worker_client")
        self._worker_factory = worker_factory or (
            lambda on_message: FeedWorker(on_message, settings=self.settings)
        )
        self._worker: Optional[Worker] = None
        self._pending: Dict[str, Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def has_worker(self) -> bool:
        return self._worker is not None

    def new_request_id(self) -> str:
        """Allocate a correlation id of the form ``req-<counter>-<epoch ms>``."""
        with self._lock:
            counter = next(self._counter)
        return f"req-{counter}-{int(time.time() * 1000)}"

    async def validate_feed(self, url: str, request_id: Optional[str] = None) -> Dict[str, Any]:
        return await self._send_request(VALIDATE_FEED, {"url": url}, request_id)

    async def parse_feed(self, url: str, request_id: Optional[str] = None) -> Dict[str, Any]:
        return await self._send_request(PARSE_FEED, {"url": url}, request_id)

    async def refresh_feed(
        self, feed_id: str, feed_url: str, request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._send_request(
            REFRESH_FEED, {"feedId": feed_id, "feedUrl": feed_url}, request_id
        )

    def cancel(self, request_id: str) -> None:
        """Stop waiting for a request. Its awaitable is never resolved."""
        with self._lock:
            self._pending.pop(request_id, None)

        worker = self._worker
        if worker is None:
            return
        try:
            worker.post_message(encode_message(make_message(CANCEL, request_id)))
        except RuntimeError as e:
            self.logger.debug(f"Cancel of {request_id} not delivered: {e}")

    def terminate(self) -> None:
        """Stop the worker and forget every pending request."""
        worker = self._worker
        self._worker = None
        with self._lock:
            dropped = len(self._pending)
            self._pending.clear()
        if worker is not None:
            worker.stop()
            self.logger.info(f"Worker terminated, {dropped} pending requests dropped")

    def _ensure_worker(self) -> Worker:
        if self._worker is None:
            worker = self._worker_factory(self._on_message)
            worker.start()
            self._worker = worker
        return self._worker

    async def _send_request(
        self, message_type: str, payload: Dict[str, Any], request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        request_id = request_id or self.new_request_id()
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        with self._lock:
            self._pending[request_id] = (loop, future)

        try:
            worker = self._ensure_worker()
            worker.post_message(encode_message(make_message(message_type, request_id, payload)))
            response = await future
        finally:
            with self._lock:
                entry = self._pending.get(request_id)
                if entry is not None and entry[1] is future:
                    del self._pending[request_id]

        return self._unwrap(message_type, response)

    def _unwrap(self, message_type: str, response: Dict[str, Any]) -> Dict[str, Any]:
        response_type = response.get("type")
        payload = response.get("payload")

        if response_type == RESULT_TYPES[message_type] and isinstance(payload, dict):
            return payload

        if response_type == ERROR and isinstance(payload, dict):
            self.logger.error(
                f"Worker error for {response.get('id')}: {payload.get('error')}",
                extra={"code": payload.get("code")},
            )
            return failure_payload(
                payload.get("error") or UNEXPECTED_RESPONSE, FeedErrorType.FETCH_FAILED
            )

        self.logger.warning(f"Unexpected {response_type} response to {message_type}")
        return failure_payload(UNEXPECTED_RESPONSE, FeedErrorType.FETCH_FAILED)

    def _on_message(self, raw: str) -> None:
        """Called on the worker thread for every response."""
        try:
            message = decode_message(raw)
        except ProtocolError as e:
            self.logger.warning(f"Ignoring malformed worker response: {e}")
            return

        with self._lock:
            entry = self._pending.pop(message["id"], None)

        if entry is None:
            self.logger.debug(f"Ignoring response for unknown request {message['id']}")
            return

        loop, future = entry
        try:
            loop.call_soon_threadsafe(_resolve, future, message)
        except RuntimeError:
            self.logger.debug(f"Caller loop closed before {message['id']} resolved")


def _resolve(future: asyncio.Future, message: Dict[str, Any]) -> None:
    if not future.done():
        future.set_result(message)
