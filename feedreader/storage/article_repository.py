"""
Article Repository
==================

Article storage with insert-or-skip semantics. An article row is written
once per id; later refreshes never overwrite it, so read and star flags
survive re-fetches.
"""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Article
from ..ingestion.content_cleaner import to_iso8601
from ..utils.exceptions import DatabaseError, ErrorCode
from ..utils.logging import get_logger_for_component


class ArticleRepository:
    """Repository for managing article rows."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("article_repository")

    def upsert_article(self, article: Article) -> bool:
        """Insert an article unless its id is already stored.

        Args:
            article: Article to store

        Returns:
            True if inserted, False if an article with the same id existed

        Raises:
            DatabaseError: If the insert fails (e.g. unknown feed_id)
        """
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO articles (
                        id, feed_id, title, url, published_at, preview, content,
                        is_read, is_starred, is_deleted, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        article.id,
                        article.feed_id,
                        article.title,
                        article.url,
                        to_iso8601(article.published_at),
                        article.preview,
                        article.content,
                        article.is_read,
                        article.is_starred,
                        article.is_deleted,
                        to_iso8601(article.created_at),
                        to_iso8601(article.updated_at),
                    ),
                )
            return cursor.rowcount == 1

        except sqlite3.Error as e:
            self.logger.error(f"Failed to store article {article.id}: {e}")
            raise DatabaseError(
                f"Failed to store article: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_article(self, article_id: str) -> Optional[Article]:
        try:
            row = self.db.execute_one("SELECT * FROM articles WHERE id = ?", (article_id,))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to get article {article_id}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return Article.from_db_row(row) if row else None

    def list_articles(
        self,
        feed_id: Optional[str] = None,
        limit: int = 50,
        include_deleted: bool = False,
    ) -> List[Article]:
        """Articles newest first by publish date.

        Args:
            feed_id: Restrict to one feed
            limit: Maximum number of articles
            include_deleted: Include soft-deleted articles
        """
        conditions = []
        params: list = []
        if feed_id is not None:
            conditions.append("feed_id = ?")
            params.append(feed_id)
        if not include_deleted:
            conditions.append("is_deleted = 0")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"SELECT * FROM articles {where} ORDER BY published_at DESC, rowid DESC LIMIT ?"
        params.append(limit)

        try:
            rows = self.db.execute_query(query, tuple(params))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list articles: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return [Article.from_db_row(row) for row in rows]

    def count_articles(self, feed_id: Optional[str] = None, include_deleted: bool = False) -> int:
        conditions = []
        params: list = []
        if feed_id is not None:
            conditions.append("feed_id = ?")
            params.append(feed_id)
        if not include_deleted:
            conditions.append("is_deleted = 0")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        try:
            row = self.db.execute_one(f"SELECT COUNT(*) FROM articles {where}", tuple(params))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to count articles: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return row[0] if row else 0

    def mark_read(self, article_id: str, is_read: bool = True) -> bool:
        return self._set_flag(article_id, "is_read", is_read)

    def set_starred(self, article_id: str, is_starred: bool = True) -> bool:
        return self._set_flag(article_id, "is_starred", is_starred)

    def soft_delete(self, article_id: str) -> bool:
        """Hide an article; the row stays so a refresh cannot bring it back."""
        return self._set_flag(article_id, "is_deleted", True)

    def _set_flag(self, article_id: str, column: str, value: bool) -> bool:
        now = to_iso8601(datetime.now(timezone.utc))
        try:
            updated = self.db.execute_update(
                f"UPDATE articles SET {column} = ?, updated_at = ? WHERE id = ?",
                (value, now, article_id),
            )
        except sqlite3.Error as e:
            self.logger.error(f"Failed to update {column} for article {article_id}: {e}")
            raise DatabaseError(
                f"Failed to update article: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return updated > 0
