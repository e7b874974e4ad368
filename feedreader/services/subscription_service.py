"""
Subscription Service
====================

Shared service for subscription management used by the CLI.

Features:
- URL validation with feed discovery through the worker
- Subscribe with deterministic feed and article ids
- Unsubscribe (articles are removed with the feed)
- Moving feeds between folders
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..database.models import Article, Feed
from ..ingestion.identity import feed_id_from_url
from ..storage.store import SQLiteFeedStore
from ..utils.exceptions import FeedReaderError
from ..utils.logging import get_logger_for_component
from ..worker.client import FeedWorkerClient


@dataclass
class SubscribeResult:
    """Outcome of a subscribe request."""
    feed: Optional[Feed] = None
    new_articles: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class SubscriptionService:
    """Subscription operations on top of the worker client and the store."""

    def __init__(self, worker_client: FeedWorkerClient, store: SQLiteFeedStore):
        """Initialize the subscription service.

        Args:
            worker_client: Client used for all fetching and parsing
            store: Feed store the subscriptions are written to
        """
        self.worker_client = worker_client
        self.store = store
        self.logger = get_logger_for_component("subscription_service")

    async def validate(self, url: str) -> Dict[str, Any]:
        """VALIDATE_FEED payload for ``url`` (discovers the feed behind a page URL)."""
        return await self.worker_client.validate_feed(url)

    async def subscribe(self, url: str, folder_id: Optional[str] = None) -> SubscribeResult:
        """Subscribe to the feed at or behind ``url``.

        Args:
            url: Feed URL or the URL of a page advertising a feed
            folder_id: Folder to place the feed in

        Returns:
            SubscribeResult with the stored feed and its initial article count
        """
        validation = await self.validate(url)
        if not validation.get("success"):
            return SubscribeResult(
                error=validation.get("error") or "Validation failed",
                error_type=validation.get("errorType"),
            )

        feed_url = validation["feedUrl"]
        existing = self.store.get_feed(feed_id_from_url(feed_url))
        if existing is not None:
            return SubscribeResult(feed=existing, error="Already subscribed to this feed")

        parsed = await self.worker_client.parse_feed(feed_url)
        if not parsed.get("success"):
            return SubscribeResult(
                error=parsed.get("error") or "Failed to parse feed",
                error_type=parsed.get("errorType"),
            )

        feed = Feed.from_metadata(feed_url, parsed.get("feed") or {}, folder_id=folder_id)

        try:
            self.store.create_feed(feed)
            new_articles = 0
            for data in parsed.get("articles") or []:
                try:
                    article = Article.from_parsed(feed.id, data)
                except (KeyError, TypeError, ValueError) as e:
                    self.logger.warning(f"Skipping malformed article from {feed_url}: {e}")
                    continue
                if self.store.upsert_article(article):
                    new_articles += 1
            self.store.update_feed_last_fetched(feed.id, datetime.now(timezone.utc))
        except FeedReaderError as e:
            self.logger.error(f"Failed to store subscription {feed.id}: {e}")
            return SubscribeResult(feed=feed, error=e.user_message)

        self.logger.info(f"Subscribed to {feed.title} ({feed_url}), {new_articles} articles")
        return SubscribeResult(feed=feed, new_articles=new_articles)

    def unsubscribe(self, feed_id: str) -> bool:
        """Remove a feed and its articles. False when the feed is unknown."""
        removed = self.store.delete_feed(feed_id)
        if removed:
            self.logger.info(f"Unsubscribed from {feed_id}")
        return removed

    def move_feed(self, feed_id: str, folder_id: Optional[str]) -> bool:
        """Move a feed into ``folder_id``, or out of any folder with None."""
        if folder_id is not None and self.store.folders.get_folder(folder_id) is None:
            self.logger.warning(f"Cannot move {feed_id}: folder {folder_id} does not exist")
            return False
        return self.store.move_feed(feed_id, folder_id)
