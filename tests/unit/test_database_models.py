"""
Database Models Test Suite
==========================

Tests for the Pydantic folder, feed and article models.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from feedreader.database.models import Article, Feed, Folder


class TestFolder:
    """Test Folder model validation."""

    def test_from_name(self):
        folder = Folder.from_name("Tech & Science")

        assert folder.id == "tech-science"
        assert folder.name == "Tech & Science"
        assert isinstance(folder.created_at, datetime)
        assert str(folder) == "Folder(Tech & Science)"

    def test_name_validation(self):
        with pytest.raises(ValidationError):
            Folder(id="x", name="   ")


class TestFeed:
    """Test Feed model construction."""

    def test_from_metadata(self):
        feed = Feed.from_metadata(
            "https://blog.example.com/feed.xml",
            {
                "title": "Example Blog",
                "siteUrl": "https://blog.example.com/",
                "favicon": "https://www.google.com/s2/favicons?domain=blog.example.com&sz=32",
            },
            folder_id="tech",
        )

        assert feed.id == "feed-blog-example-com-feed-xml"
        assert feed.title == "Example Blog"
        assert feed.site_url == "https://blog.example.com/"
        assert feed.folder_id == "tech"
        assert feed.last_fetched_at is None

    def test_title_falls_back_to_url(self):
        feed = Feed.from_metadata("https://example.com/rss", {})

        assert feed.title == "https://example.com/rss"
        assert feed.site_url == ""
        assert feed.favicon is None

    def test_url_kept_verbatim(self):
        feed = Feed.from_metadata("https://Example.com/rss?x=1", {"title": "X"})

        assert feed.feed_url == "https://Example.com/rss?x=1"


class TestArticle:
    """Test Article model construction from worker results."""

    def test_from_parsed(self):
        article = Article.from_parsed(
            "feed-x",
            {
                "url": "https://example.com/posts/1?utm_source=rss",
                "title": "Hello",
                "publishedAt": "2024-09-05T12:00:00.000Z",
                "preview": "Hello world",
                "content": "<p>Hello world</p>",
            },
        )

        assert article.id == "article-example-com-posts-1"
        assert article.feed_id == "feed-x"
        assert article.published_at == datetime(2024, 9, 5, 12, 0, tzinfo=timezone.utc)
        assert not (article.is_read or article.is_starred or article.is_deleted)

    def test_defaults_for_missing_fields(self):
        article = Article.from_parsed("feed-x", {"url": "https://example.com/a"})

        assert article.title == "Untitled"
        assert article.preview == ""
        assert article.published_at.tzinfo is not None

    def test_url_required(self):
        with pytest.raises(KeyError):
            Article.from_parsed("feed-x", {"title": "No link"})
