"""
Foundation Tests for FeedReader
===============================

Test suite for core foundation components including database,
configuration and logging.
"""

import json
import logging
import sqlite3

import pytest

from feedreader.config.settings import (
    DatabaseSettings,
    FeedReaderSettings,
    FetchSettings,
    LoggingSettings,
    RefreshSettings,
)
from feedreader.database.connection import DatabaseConnection
from feedreader.database.schema import DatabaseSchema
from feedreader.utils.exceptions import ConfigurationError
from feedreader.utils.logging import (
    ContextConsoleFormatter,
    PerformanceLogger,
    get_logger_for_component,
    setup_logger,
)


class TestDatabaseSchema:
    """Test database schema creation and validation."""

    def test_create_tables(self, tmp_path):
        """Test database table creation."""
        db_path = tmp_path / "test.db"
        DatabaseSchema(str(db_path)).create_tables()

        with sqlite3.connect(db_path) as conn:
            cursor = conn.execute("""
                SELECT name FROM sqlite_master
                WHERE type='table' AND name NOT LIKE 'sqlite_%'
            """)
            tables = {row[0] for row in cursor.fetchall()}

        assert tables == {"folders", "feeds", "articles"}

    def test_verify_schema(self, tmp_path):
        """Schema verification fails before and passes after creation."""
        schema = DatabaseSchema(str(tmp_path / "test.db"))

        assert not schema.verify_schema()
        schema.create_tables()
        assert schema.verify_schema()

    def test_drop_tables(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "test.db"))
        schema.create_tables()
        schema.drop_tables()

        assert not schema.verify_schema()

    def test_create_tables_is_repeatable(self, tmp_path):
        schema = DatabaseSchema(str(tmp_path / "test.db"))
        schema.create_tables()
        schema.create_tables()

        assert schema.verify_schema()


class TestDatabaseConnection:
    """Test database connection management and pooling."""

    def test_connection_pooling(self, tmp_path):
        """More concurrent users than pooled connections still work."""
        db_manager = DatabaseConnection(str(tmp_path / "test.db"), pool_size=2)

        contexts = [db_manager.get_connection() for _ in range(3)]
        for context in contexts:
            with context as conn:
                assert conn.execute("SELECT 1").fetchone()[0] == 1

        db_manager.close_all_connections()

    def test_foreign_keys_enforced(self, test_db):
        db_manager = DatabaseConnection(test_db, pool_size=1)

        with pytest.raises(sqlite3.IntegrityError):
            db_manager.execute_update(
                "INSERT INTO articles (id, feed_id, title, url, published_at) VALUES (?, ?, ?, ?, ?)",
                ("article-x", "feed-missing", "X", "https://example.com/x", "2024-09-05T12:00:00.000Z"),
            )

        db_manager.close_all_connections()

    def test_transaction_management(self, test_db):
        """Commit on success, rollback on error."""
        db_manager = DatabaseConnection(test_db, pool_size=1)

        with db_manager.transaction() as conn:
            conn.execute("INSERT INTO folders (id, name) VALUES ('tech', 'Tech')")

        with pytest.raises(ValueError):
            with db_manager.transaction() as conn:
                conn.execute("INSERT INTO folders (id, name) VALUES ('news', 'News')")
                raise ValueError("Test error")

        rows = db_manager.execute_query("SELECT id FROM folders")
        assert [row["id"] for row in rows] == ["tech"]

        db_manager.close_all_connections()


class TestConfiguration:
    """Test settings loading and validation."""

    def test_defaults(self, tmp_path):
        settings = FeedReaderSettings(database=DatabaseSettings(path=str(tmp_path / "x.db")))

        assert settings.refresh.initial_delay_seconds == 5
        assert settings.refresh.interval_seconds == 3600
        assert settings.refresh.min_interval_seconds == 900
        assert settings.fetch.cors_proxy_url is None
        assert settings.user_agent == "FeedReader/1.0.0"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("FEEDREADER_REFRESH__INTERVAL_SECONDS", "1800")
        monkeypatch.setenv("FEEDREADER_FETCH__USER_AGENT", "TestAgent/2.0")

        settings = FeedReaderSettings(database=DatabaseSettings(path=str(tmp_path / "x.db")))

        assert settings.refresh.interval_seconds == 1800
        assert settings.user_agent == "TestAgent/2.0"

    def test_min_interval_must_not_exceed_interval(self, tmp_path):
        settings = FeedReaderSettings(
            database=DatabaseSettings(path=str(tmp_path / "x.db")),
            logging=LoggingSettings(file_path=None),
            refresh=RefreshSettings(interval_seconds=60, min_interval_seconds=900),
        )

        with pytest.raises(ConfigurationError):
            settings.validate_configuration()

    def test_proxy_must_be_http(self):
        with pytest.raises(ValueError):
            FetchSettings(cors_proxy_url="ftp://proxy.example.com/?url=")
        assert FetchSettings(cors_proxy_url="").cors_proxy_url is None

    def test_debug_forces_debug_level(self, settings):
        settings.debug = True
        assert settings.get_effective_log_level() == "DEBUG"

        settings.debug = False
        assert settings.get_effective_log_level() == "INFO"


class TestLogging:
    """Test logging system."""

    def test_logger_setup(self, tmp_path):
        """File output is structured JSON."""
        log_file = tmp_path / "test.log"
        logger = setup_logger(
            name="feedreader_test_setup",
            level="INFO",
            log_file=str(log_file),
            console=False,
        )

        logger.info("Test message", extra={"feed_id": "feed-x"})
        for handler in logger.handlers:
            handler.close()

        record = json.loads(log_file.read_text().splitlines()[0])
        assert record["message"] == "Test message"
        assert record["level"] == "INFO"
        assert record["feed_id"] == "feed-x"
        assert "extra" not in record

    def test_console_formatter_appends_context(self):
        formatter = ContextConsoleFormatter("%(name)s: %(message)s")
        record = logging.makeLogRecord(
            {"name": "feedreader.worker", "msg": "Parsed feed", "feed_id": "feed-x", "request_id": "req-1-1"}
        )
        plain = logging.makeLogRecord({"name": "feedreader.worker", "msg": "Started"})

        assert formatter.format(record) == "feedreader.worker: Parsed feed [feed_id=feed-x request_id=req-1-1]"
        assert formatter.format(plain) == "feedreader.worker: Started"

    def test_component_logger_context(self):
        logger = get_logger_for_component("scheduler", feed_id="feed-x", request_id="req-1-1")

        assert logger.logger.name == "feedreader.scheduler"
        assert logger.extra == {"component": "scheduler", "feed_id": "feed-x", "request_id": "req-1-1"}

    def test_performance_logger(self, caplog):
        caplog.set_level(logging.DEBUG, logger="feedreader_test_perf")
        logger = logging.getLogger("feedreader_test_perf")

        with PerformanceLogger(logger, "test_operation", param1="value1") as perf:
            pass
        assert "Completed test_operation" in caplog.text
        assert perf.duration is not None

        with pytest.raises(RuntimeError):
            with PerformanceLogger(logger, "failing_operation"):
                raise RuntimeError("boom")
        assert "Failed failing_operation" in caplog.text
