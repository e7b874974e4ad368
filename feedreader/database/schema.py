"""
FeedReader Database Schema
==========================

Three tables, created in dependency order:

- ``folders``: user folders feeds can be moved into
- ``feeds``: subscriptions, keyed by the id derived from the feed URL;
  deleting a folder leaves its feeds unfiled
- ``articles``: one row per article URL; removed together with their feed
"""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

TABLES = (
    (
        "folders",
        """
        CREATE TABLE IF NOT EXISTS folders (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "feeds",
        """
        CREATE TABLE IF NOT EXISTS feeds (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            feed_url TEXT NOT NULL,
            site_url TEXT NOT NULL,
            favicon TEXT,
            folder_id TEXT REFERENCES folders(id) ON DELETE SET NULL,
            last_fetched_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "articles",
        """
        CREATE TABLE IF NOT EXISTS articles (
            id TEXT PRIMARY KEY,
            feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
            title TEXT NOT NULL,
            url TEXT NOT NULL,
            published_at TIMESTAMP NOT NULL,
            preview TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL DEFAULT '',
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            is_starred BOOLEAN NOT NULL DEFAULT FALSE,
            is_deleted BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
)

INDEXES = {
    "idx_feeds_folder": "feeds(folder_id)",
    "idx_articles_feed": "articles(feed_id)",
    "idx_articles_published": "articles(published_at)",
    "idx_articles_feed_deleted": "articles(feed_id, is_deleted)",
}

EXPECTED_TABLES = {name for name, _ in TABLES}


class DatabaseSchema:
    """Creates, checks and drops the FeedReader tables in one SQLite file."""

    def __init__(self, db_path: str = "data/feedreader.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def create_tables(self) -> None:
        """Create missing tables and indexes; existing ones are left alone."""
        conn = self._connect()
        try:
            with conn:
                for _, ddl in TABLES:
                    conn.execute(ddl)
                for index_name, target in INDEXES.items():
                    conn.execute(f"CREATE INDEX IF NOT EXISTS {index_name} ON {target}")
        finally:
            conn.close()
        logger.info("Schema ready in %s", self.db_path)

    def drop_tables(self) -> None:
        """Drop every table, children first."""
        conn = self._connect()
        try:
            with conn:
                for name, _ in reversed(TABLES):
                    conn.execute(f"DROP TABLE IF EXISTS {name}")
        finally:
            conn.close()
        logger.info("Dropped all tables in %s", self.db_path)

    def existing_tables(self) -> set:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
            ).fetchall()
        finally:
            conn.close()
        return {row[0] for row in rows}

    def verify_schema(self) -> bool:
        """True when every table exists."""
        try:
            missing = EXPECTED_TABLES - self.existing_tables()
        except sqlite3.Error as e:
            logger.error("Could not inspect %s: %s", self.db_path, e)
            return False

        if missing:
            logger.warning("Schema in %s is missing tables: %s", self.db_path, ", ".join(sorted(missing)))
            return False
        return True
