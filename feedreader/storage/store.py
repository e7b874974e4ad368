"""
SQLite Feed Store
=================

Facade over the feed, article and folder repositories implementing the
``FeedStore`` interface used by the refresh scheduler.
"""

from datetime import datetime
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Article, Feed, Folder
from ..database.schema import DatabaseSchema
from .article_repository import ArticleRepository
from .feed_repository import FeedRepository
from .folder_repository import FolderRepository


class SQLiteFeedStore:
    """FeedStore backed by the pooled SQLite connection."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.feeds = FeedRepository(db_connection)
        self.articles = ArticleRepository(db_connection)
        self.folders = FolderRepository(db_connection)

    @classmethod
    def open(cls, db_path: str, pool_size: int = 5) -> "SQLiteFeedStore":
        """Create the schema if needed and return a store for ``db_path``."""
        DatabaseSchema(db_path).create_tables()
        return cls(DatabaseConnection(db_path, pool_size=pool_size))

    def close(self) -> None:
        self.db.close_all_connections()

    # FeedStore interface

    def get_all_feeds(self) -> List[Feed]:
        return self.feeds.get_all_feeds()

    def upsert_article(self, article: Article) -> bool:
        return self.articles.upsert_article(article)

    def update_feed_last_fetched(self, feed_id: str, timestamp: datetime) -> None:
        self.feeds.update_last_fetched(feed_id, timestamp)

    # Subscription management

    def get_feed(self, feed_id: str) -> Optional[Feed]:
        return self.feeds.get_feed(feed_id)

    def create_feed(self, feed: Feed) -> bool:
        return self.feeds.create_feed(feed)

    def delete_feed(self, feed_id: str) -> bool:
        return self.feeds.delete_feed(feed_id)

    def move_feed(self, feed_id: str, folder_id: Optional[str]) -> bool:
        return self.feeds.move_feed(feed_id, folder_id)

    def ensure_folder(self, name: str) -> Folder:
        """Folder for ``name``, created on first use."""
        folder = Folder.from_name(name)
        existing = self.folders.get_folder(folder.id)
        if existing is not None:
            return existing
        self.folders.create_folder(folder)
        return folder

    def list_articles(self, feed_id: Optional[str] = None, limit: int = 50) -> List[Article]:
        return self.articles.list_articles(feed_id=feed_id, limit=limit)

    def count_articles(self, feed_id: Optional[str] = None) -> int:
        return self.articles.count_articles(feed_id=feed_id)
