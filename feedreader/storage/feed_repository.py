"""
Feed Repository
===============

Repository pattern implementation for subscribed feeds.
"""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Feed
from ..ingestion.content_cleaner import to_iso8601
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return to_iso8601(value) if value is not None else None


class FeedRepository:
    """Repository for managing feed rows."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    def create_feed(self, feed: Feed) -> bool:
        """Insert a feed unless one with the same id exists.

        Args:
            feed: Feed object to create

        Returns:
            True if a row was inserted, False if the feed already existed

        Raises:
            DatabaseError: If database operation fails
        """
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO feeds (
                        id, title, feed_url, site_url, favicon, folder_id,
                        last_fetched_at, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        feed.id,
                        feed.title,
                        feed.feed_url,
                        feed.site_url,
                        feed.favicon,
                        feed.folder_id,
                        _timestamp(feed.last_fetched_at),
                        _timestamp(feed.created_at),
                        _timestamp(feed.updated_at),
                    ),
                )

            created = cursor.rowcount == 1
            if created:
                self.logger.info(f"Created feed {feed.id}: {feed.feed_url}")
            return created

        except sqlite3.Error as e:
            self.logger.error(f"Failed to create feed {feed.id}: {e}")
            raise DatabaseError(
                f"Failed to create feed: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_feed(self, feed_id: str) -> Optional[Feed]:
        try:
            row = self.db.execute_one("SELECT * FROM feeds WHERE id = ?", (feed_id,))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to get feed {feed_id}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return Feed.from_db_row(row) if row else None

    def get_all_feeds(self) -> List[Feed]:
        """All feeds in subscription order.

        Raises:
            DatabaseError: If the feeds cannot be read
        """
        try:
            rows = self.db.execute_query("SELECT * FROM feeds ORDER BY rowid")
        except sqlite3.Error as e:
            self.logger.error(f"Failed to list feeds: {e}")
            raise DatabaseError(
                f"Failed to list feeds: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return [Feed.from_db_row(row) for row in rows]

    def get_feeds_in_folder(self, folder_id: Optional[str]) -> List[Feed]:
        """Feeds in a folder; ``None`` selects feeds outside any folder."""
        if folder_id is None:
            query, params = "SELECT * FROM feeds WHERE folder_id IS NULL ORDER BY rowid", ()
        else:
            query, params = "SELECT * FROM feeds WHERE folder_id = ? ORDER BY rowid", (folder_id,)
        try:
            rows = self.db.execute_query(query, params)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list feeds in folder {folder_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e
        return [Feed.from_db_row(row) for row in rows]

    def update_last_fetched(self, feed_id: str, timestamp: datetime) -> bool:
        return self._update(
            feed_id,
            "last_fetched_at = ?",
            (to_iso8601(timestamp),),
            "update last fetched time for",
        )

    def move_feed(self, feed_id: str, folder_id: Optional[str]) -> bool:
        return self._update(feed_id, "folder_id = ?", (folder_id,), "move")

    def delete_feed(self, feed_id: str) -> bool:
        """Delete a feed; its articles go with it (ON DELETE CASCADE)."""
        try:
            deleted = self.db.execute_update("DELETE FROM feeds WHERE id = ?", (feed_id,))
        except sqlite3.Error as e:
            self.logger.error(f"Failed to delete feed {feed_id}: {e}")
            raise DatabaseError(
                f"Failed to delete feed: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

        if deleted:
            self.logger.info(f"Deleted feed {feed_id}")
        return deleted > 0

    def _update(self, feed_id: str, assignment: str, params: tuple, action: str) -> bool:
        now = to_iso8601(datetime.now(timezone.utc))
        try:
            updated = self.db.execute_update(
                f"UPDATE feeds SET {assignment}, updated_at = ? WHERE id = ?",
                params + (now, feed_id),
            )
        except sqlite3.Error as e:
            self.logger.error(f"Failed to {action} feed {feed_id}: {e}")
            raise DatabaseError(
                f"Failed to {action} feed {feed_id}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return updated > 0
