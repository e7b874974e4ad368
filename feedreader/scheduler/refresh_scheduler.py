"""
FeedReader Refresh Scheduler
============================

Periodically refreshes every subscribed feed through the feed worker.

Features:
- Initial refresh shortly after start, then a fixed interval
- Minimum interval between cycles and a single in-flight cycle
- Sequential per-feed refresh with failures isolated per feed
- Deterministic article ids so re-fetched articles are skipped
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from ..config.settings import FeedReaderSettings, get_settings
from ..database.models import Article, Feed
from ..storage import FeedStore
from ..utils.logging import get_logger_for_component
from ..worker.client import FeedWorkerClient

RefreshCallback = Callable[[List["RefreshResult"]], Any]


@dataclass
class RefreshResult:
    """Outcome of refreshing one feed."""
    feed_id: str
    feed_title: str
    new_articles: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "feedId": self.feed_id,
            "feedTitle": self.feed_title,
            "newArticles": self.new_articles,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class RefreshScheduler:
    """
    Drives refresh cycles over all feeds in the store.

    The scheduler is an explicitly constructed object; ``start`` and
    ``stop`` control the timers, ``refresh_all`` can also be called directly.
    """

    def __init__(
        self,
        worker_client: FeedWorkerClient,
        store: FeedStore,
        settings: Optional[FeedReaderSettings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.worker_client = worker_client
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock or time.time
        self.logger = get_logger_for_component("scheduler")

        self._running = False
        self._refresh_in_progress = False
        self._last_refresh_time: Optional[float] = None
        self._on_complete: Optional[RefreshCallback] = None
        self._initial_handle: Optional[asyncio.TimerHandle] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()

    def is_running(self) -> bool:
        return self._running

    def is_refresh_in_progress(self) -> bool:
        return self._refresh_in_progress

    def time_since_last_refresh(self) -> Optional[float]:
        """Seconds since the last cycle started, None if none has run."""
        if self._last_refresh_time is None:
            return None
        return self.clock() - self._last_refresh_time

    def start(self, on_complete: Optional[RefreshCallback] = None) -> None:
        """Schedule the initial and recurring refreshes.

        Must be called from a running event loop. Calling it again while
        running does nothing.
        """
        if self._running:
            return

        loop = asyncio.get_running_loop()
        refresh = self.settings.refresh

        self._on_complete = on_complete
        self._running = True
        self._initial_handle = loop.call_later(refresh.initial_delay_seconds, self._launch_cycle)
        self._periodic_task = loop.create_task(self._periodic_refresh(refresh.interval_seconds))

        self.logger.info(
            f"Refresh scheduler started: first refresh in {refresh.initial_delay_seconds}s, "
            f"then every {refresh.interval_seconds}s"
        )

    def stop(self) -> None:
        """Cancel pending timers. A cycle already running is allowed to finish."""
        if not self._running:
            return

        self._running = False
        if self._initial_handle is not None:
            self._initial_handle.cancel()
            self._initial_handle = None
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            self._periodic_task = None
        self._on_complete = None

        self.logger.info("Refresh scheduler stopped")

    async def wait_for_idle(self) -> None:
        """Wait for cycles launched by the timers to finish."""
        if self._cycle_tasks:
            await asyncio.gather(*list(self._cycle_tasks), return_exceptions=True)

    def _launch_cycle(self) -> None:
        self._initial_handle = None
        task = asyncio.get_running_loop().create_task(self.refresh_all())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)

    async def _periodic_refresh(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._launch_cycle()

    async def refresh_all(self) -> List[RefreshResult]:
        """Refresh every feed in store order.

        Returns:
            One RefreshResult per feed; empty when the cycle was skipped by
            the concurrency guard or the minimum interval, or when the feed
            list could not be loaded
        """
        if self._refresh_in_progress:
            self.logger.debug("Refresh already in progress, skipping")
            return []

        now = self.clock()
        min_interval = self.settings.refresh.min_interval_seconds
        if self._last_refresh_time is not None and now - self._last_refresh_time < min_interval:
            self.logger.debug(
                f"Last refresh {now - self._last_refresh_time:.0f}s ago, "
                f"minimum interval is {min_interval}s"
            )
            return []

        self._refresh_in_progress = True
        self._last_refresh_time = now
        results: List[RefreshResult] = []

        try:
            try:
                feeds = self.store.get_all_feeds()
            except Exception as e:
                self.logger.error(f"Refresh cycle aborted, could not load feeds: {e}")
                return []

            self.logger.info(f"Refreshing {len(feeds)} feeds")
            for feed in feeds:
                results.append(await self.refresh_single_feed(feed))
        finally:
            self._refresh_in_progress = False

        new_total = sum(result.new_articles for result in results)
        failed = sum(1 for result in results if not result.success)
        self.logger.info(
            f"Refresh cycle complete: {new_total} new articles, {failed} failed feeds",
            extra={"feeds": len(results), "new_articles": new_total, "failed": failed},
        )

        await self._notify(results)
        return results

    async def _notify(self, results: List[RefreshResult]) -> None:
        callback = self._on_complete
        if callback is None:
            return
        try:
            outcome = callback(results)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            self.logger.exception("Refresh completion callback failed")

    async def refresh_single_feed(self, feed: Feed) -> RefreshResult:
        """Refresh one feed; any failure is reported in the result."""
        feed_logger = get_logger_for_component("scheduler", feed_id=feed.id)
        timeout = self.settings.refresh.feed_timeout_seconds
        request_id = self.worker_client.new_request_id()

        try:
            response = await asyncio.wait_for(
                self.worker_client.refresh_feed(feed.id, feed.feed_url, request_id=request_id),
                timeout,
            )
        except asyncio.TimeoutError:
            self.worker_client.cancel(request_id)
            feed_logger.warning(f"Refresh of {feed.feed_url} timed out after {timeout}s")
            return RefreshResult(feed.id, feed.title, error=f"Refresh timed out after {timeout}s")
        except Exception as e:
            feed_logger.error(f"Refresh of {feed.feed_url} failed: {e}")
            return RefreshResult(feed.id, feed.title, error=str(e))

        if not response.get("success"):
            error = response.get("error") or "Unknown error"
            feed_logger.warning(f"Refresh of {feed.feed_url} failed: {error}")
            return RefreshResult(feed.id, feed.title, error=error)

        try:
            self.store.update_feed_last_fetched(feed.id, datetime.now(timezone.utc))
        except Exception as e:
            feed_logger.error(f"Could not record fetch time: {e}")
            return RefreshResult(feed.id, feed.title, error=str(e))

        new_articles = 0
        for data in response.get("articles") or []:
            try:
                article = Article.from_parsed(feed.id, data)
            except (KeyError, TypeError, ValueError) as e:
                feed_logger.warning(f"Skipping malformed article: {e}")
                continue
            try:
                if self.store.upsert_article(article):
                    new_articles += 1
            except Exception as e:
                feed_logger.error(f"Failed to store article {article.id}: {e}")

        if new_articles:
            feed_logger.info(f"{new_articles} new articles from {feed.title}")
        return RefreshResult(feed.id, feed.title, new_articles=new_articles)
