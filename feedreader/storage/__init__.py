"""
FeedReader Storage Layer
========================

Repository pattern implementations for data access abstraction.

This module provides:
- The FeedStore interface the refresh scheduler depends on
- Feed, article and folder repositories over SQLite
- SQLiteFeedStore combining them
"""

from datetime import datetime
from typing import List, Protocol, runtime_checkable

from ..database.models import Article, Feed
from .article_repository import ArticleRepository
from .feed_repository import FeedRepository
from .folder_repository import FolderRepository
from .store import SQLiteFeedStore


@runtime_checkable
class FeedStore(Protocol):
    """Persistence operations needed by a refresh cycle."""

    def get_all_feeds(self) -> List[Feed]: ...

    def upsert_article(self, article: Article) -> bool:
        """Insert unless present; True when a row was written."""
        ...

    def update_feed_last_fetched(self, feed_id: str, timestamp: datetime) -> None: ...


__all__ = [
    "FeedStore",
    "ArticleRepository",
    "FeedRepository",
    "FolderRepository",
    "SQLiteFeedStore",
]
