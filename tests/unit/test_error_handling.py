"""
Error Handling Tests for FeedReader
===================================

Tests for the exception hierarchy, failure classification and URL
validation.
"""

import pytest

from feedreader.utils.exceptions import (
    DatabaseError,
    ErrorCode,
    FeedError,
    FeedErrorType,
    FeedFetchError,
    FeedParseError,
    FeedReaderError,
    UnknownFormatError,
    ValidationError,
    classify_feed_error,
)
from feedreader.utils.validators import URLValidator, validate_url


class TestExceptionHierarchy:
    """Test exception attributes and string forms."""

    def test_str_includes_error_code(self):
        error = FeedFetchError("Fetch failed: 500 Server Error", feed_url="https://example.com/rss", status=500)

        assert str(error) == "[F004] Fetch failed: 500 Server Error"
        assert error.user_message == "Fetch failed: 500 Server Error"
        assert error.status == 500
        assert error.feed_url == "https://example.com/rss"
        assert error.context == {"feed_url": "https://example.com/rss", "status": 500}

    def test_to_dict(self):
        error = UnknownFormatError(feed_url="https://example.com/feed")
        data = error.to_dict()

        assert data["error_type"] == "UnknownFormatError"
        assert data["error_code"] == "F007"
        assert data["recoverable"] is False

    def test_database_error_hides_details_from_users(self):
        error = DatabaseError("no such table: feeds", error_code=ErrorCode.DATABASE_ERROR)

        assert error.user_message == "Database operation failed"
        assert error.recoverable

    def test_all_inherit_from_base(self):
        for error in (FeedError("x"), FeedParseError("x"), ValidationError("x"), DatabaseError("x")):
            assert isinstance(error, FeedReaderError)


class TestClassification:
    """Test mapping of errors onto worker failure tags."""

    @pytest.mark.parametrize("error,expected", [
        (ValidationError("bad", error_code=ErrorCode.FEED_INVALID_URL), FeedErrorType.INVALID_URL),
        (ValidationError("missing", error_code=ErrorCode.VALIDATION_REQUIRED_FIELD), FeedErrorType.INVALID_URL),
        (FeedFetchError("slow", error_code=ErrorCode.FEED_FETCH_TIMEOUT), FeedErrorType.TIMEOUT),
        (FeedFetchError("403", error_code=ErrorCode.FEED_ACCESS_DENIED), FeedErrorType.CORS_BLOCKED),
        (FeedFetchError("html", error_code=ErrorCode.FEED_NOT_FOUND), FeedErrorType.NOT_A_FEED),
        (UnknownFormatError(), FeedErrorType.NOT_A_FEED),
        (FeedParseError("broken xml"), FeedErrorType.NOT_A_FEED),
        (FeedFetchError("500", error_code=ErrorCode.FEED_HTTP_ERROR), FeedErrorType.FETCH_FAILED),
        (FeedFetchError("reset"), FeedErrorType.FETCH_FAILED),
        (TimeoutError(), FeedErrorType.TIMEOUT),
        (RuntimeError("boom"), FeedErrorType.FETCH_FAILED),
    ])
    def test_classify(self, error, expected):
        assert classify_feed_error(error) is expected


class TestURLValidator:
    """Test URL validation and normalization."""

    @pytest.mark.parametrize("url,expected", [
        ("https://Blog.Example.com", "https://blog.example.com/"),
        ("  HTTP://example.com/feed.xml#top ", "http://example.com/feed.xml"),
        ("https://example.com/feed?format=rss", "https://example.com/feed?format=rss"),
    ])
    def test_normalization(self, url, expected):
        assert URLValidator.validate_feed_url(url) == expected

    @pytest.mark.parametrize("url", ["", None, "example.com/feed", "ftp://example.com/feed", "https://", "javascript:alert(1)"])
    def test_rejected(self, url):
        with pytest.raises(ValidationError):
            URLValidator.validate_feed_url(url)
        assert validate_url(url) is False

    def test_validate_url(self):
        assert validate_url("https://example.com/rss")
