"""
FeedReader Database Connection Management
=========================================

A small pool of SQLite connections shared by the repositories. Connections
are opened lazily; when every pooled connection is busy an overflow
connection is opened and closed again on release. WAL journaling lets the
CLI read while a refresh cycle writes.
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Full, LifoQueue
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
)

_BUSY_TIMEOUT_SECONDS = 30.0
_ACQUIRE_TIMEOUT_SECONDS = 2.0
_SLOW_ACQUIRE_SECONDS = 1.0

_COUNTED_TABLES = ("folders", "feeds", "articles")


class DatabaseConnection:
    """Thread-safe pooled access to one SQLite database file."""

    def __init__(self, db_path: str = "data/feedreader.db", pool_size: int = 5):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool_size = pool_size

        self._idle: LifoQueue = LifoQueue(maxsize=pool_size)
        self._opened = 0
        self._lock = threading.Lock()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=_BUSY_TIMEOUT_SECONDS, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        for pragma in _PRAGMAS:
            conn.execute(pragma)

        with self._lock:
            self._opened += 1
            opened = self._opened
        logger.debug("Opened SQLite connection %d to %s", opened, self.db_path)
        return conn

    def _discard(self, conn: sqlite3.Connection) -> None:
        conn.close()
        with self._lock:
            self._opened -= 1

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except Empty:
            pass

        with self._lock:
            can_grow = self._opened < self.pool_size
        if can_grow:
            return self._open()

        started = time.perf_counter()
        try:
            conn = self._idle.get(timeout=_ACQUIRE_TIMEOUT_SECONDS)
        except Empty:
            logger.warning("All %d pooled connections busy, opening an overflow connection", self.pool_size)
            return self._open()

        waited = time.perf_counter() - started
        if waited > _SLOW_ACQUIRE_SECONDS:
            logger.warning("Waited %.2fs for a database connection", waited)
        return conn

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.rollback()
        try:
            self._idle.put_nowait(conn)
        except Full:
            self._discard(conn)

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Borrow a connection for the duration of the ``with`` block.

        Any transaction left open by the caller is rolled back on release.
        """
        conn = self._acquire()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error("SQLite error on %s: %s", self.db_path, e)
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside ``BEGIN IMMEDIATE``; commit or roll back."""
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                logger.debug("Transaction on %s rolled back", self.db_path)
                raise
            conn.commit()

    def execute_query(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Run one write statement and commit it.

        Returns:
            The statement's ``rowcount``
        """
        with self.transaction() as conn:
            return conn.execute(query, params).rowcount

    def get_database_info(self) -> Dict[str, Any]:
        """File size and per-table row counts for the ``init-db`` command."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            existing = {
                row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
            counts = {
                table: (conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] if table in existing else 0)
                for table in _COUNTED_TABLES
            }

        return {
            "database_size_mb": page_count * page_size / (1024 * 1024),
            "table_counts": counts,
            "idle_connections": self._idle.qsize(),
            "open_connections": self._opened,
        }

    def close_all_connections(self) -> None:
        """Close every idle connection; borrowed ones close when released."""
        closed = 0
        while True:
            try:
                conn = self._idle.get_nowait()
            except Empty:
                break
            self._discard(conn)
            closed += 1
        logger.debug("Closed %d pooled connections to %s", closed, self.db_path)
