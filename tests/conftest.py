"""
PyTest Configuration and Fixtures
=================================

Shared fixtures for FeedReader tests:
- Settings pointing at a per-test temporary database
- Schema-initialized SQLite databases and stores
- Sample RSS, Atom, JSON Feed and RDF documents
- An in-memory fetcher for exercising the worker without network access
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDREADER_DEBUG"] = "true"
os.environ["FEEDREADER_DATABASE__PATH"] = str(
    Path(tempfile.gettempdir()) / "feedreader_tests" / "feedreader.db"
)
os.environ["FEEDREADER_LOGGING__FILE_PATH"] = ""

from feedreader.config.settings import (
    DatabaseSettings,
    FeedReaderSettings,
    LoggingSettings,
    RefreshSettings,
)
from feedreader.database.connection import DatabaseConnection
from feedreader.database.schema import DatabaseSchema
from feedreader.ingestion.fetcher import FetchedDocument
from feedreader.storage.store import SQLiteFeedStore
from feedreader.utils.exceptions import ErrorCode, FeedFetchError


# ============================================================================
# Settings and Database Fixtures
# ============================================================================


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to a temporary directory, no file logging."""
    return FeedReaderSettings(
        database=DatabaseSettings(path=str(tmp_path / "feedreader.db"), pool_size=2),
        logging=LoggingSettings(file_path=None, console_logging=False),
        refresh=RefreshSettings(
            initial_delay_seconds=0.01,
            interval_seconds=3600,
            min_interval_seconds=900,
            feed_timeout_seconds=5,
        ),
    )


@pytest.fixture
def test_db(settings):
    """Path of a database with the schema created."""
    DatabaseSchema(settings.database.path).create_tables()
    return settings.database.path


@pytest.fixture
def db_connection(test_db):
    conn = DatabaseConnection(test_db, pool_size=2)
    yield conn
    conn.close_all_connections()


@pytest.fixture
def store(db_connection):
    return SQLiteFeedStore(db_connection)


# ============================================================================
# Sample Documents
# ============================================================================


SAMPLE_RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
    <channel>
        <title>Tom &amp; Jerry&apos;s Blog</title>
        <link>https://blog.example.com/</link>
        <description>Cartoon news</description>
        <item>
            <title>Caf&#233; &#x26; Bar</title>
            <link>https://blog.example.com/posts/1</link>
            <description>Short description</description>
            <content:encoded><![CDATA[<p>Full <strong>content</strong> here</p>]]></content:encoded>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
            <guid isPermaLink="false">post-1</guid>
        </item>
        <item>
            <title>Guid Only</title>
            <guid>https://blog.example.com/posts/2</guid>
            <description>&lt;p&gt;Escaped &lt;b&gt;markup&lt;/b&gt;&lt;/p&gt;</description>
            <pubDate>Wed, 04 Sep 2024 15:30:00 GMT</pubDate>
        </item>
        <item>
            <title>Orphan</title>
            <description>No link and no guid</description>
        </item>
        <item>
            <link>https://blog.example.com/posts/4</link>
            <description>No title and no date</description>
        </item>
    </channel>
</rss>"""

SAMPLE_ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Atom Example</title>
    <subtitle>Atom subtitle</subtitle>
    <link rel="alternate" href="https://atom.example.com/"/>
    <link rel="self" href="https://atom.example.com/feed.xml"/>
    <id>urn:uuid:feed</id>
    <updated>2024-09-07T00:00:01Z</updated>
    <entry>
        <title>Atom Entry</title>
        <link rel="alternate" href="https://atom.example.com/entries/1"/>
        <id>urn:uuid:entry-1</id>
        <published>2024-09-05T12:00:00Z</published>
        <updated>2024-09-06T12:00:00Z</updated>
        <summary>Short summary</summary>
        <content type="html">&lt;p&gt;Full &lt;em&gt;atom&lt;/em&gt; content&lt;/p&gt;</content>
    </entry>
    <entry>
        <title>Enclosure Only</title>
        <link rel="enclosure" href="https://atom.example.com/media/2.mp3"/>
        <id>urn:uuid:entry-2</id>
        <updated>2024-09-04T08:30:00+02:00</updated>
        <summary>Only a summary</summary>
    </entry>
</feed>"""

SAMPLE_JSON_FEED = """{
    "version": "https://jsonfeed.org/version/1.1",
    "title": "JSON &amp; Friends",
    "home_page_url": "https://json.example.com/",
    "feed_url": "https://json.example.com/feed.json",
    "description": "A JSON feed",
    "items": [
        {
            "id": "1",
            "url": "https://json.example.com/posts/1",
            "title": "Hello",
            "content_html": "<p>Hello <b>world</b></p>",
            "content_text": "Hello world as text",
            "date_published": "2024-09-05T12:00:00Z"
        },
        {
            "id": "https://json.example.com/posts/2",
            "content_text": "Plain text only",
            "date_modified": "2024-09-06T10:00:00+00:00"
        },
        {
            "id": "3",
            "title": "No link"
        },
        "not an object"
    ]
}"""

SAMPLE_RDF_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/">
    <channel rdf:about="https://rdf.example.com/">
        <title>RDF Example</title>
        <link>https://rdf.example.com/</link>
        <description>RDF site summary</description>
    </channel>
    <item rdf:about="https://rdf.example.com/items/1">
        <title>RDF Item</title>
        <link>https://rdf.example.com/items/1</link>
        <description>RDF description</description>
    </item>
</rdf:RDF>"""

SAMPLE_HTML_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>Blog home</title>
    <link rel="stylesheet" href="/style.css">
    <link rel="alternate" type="application/atom+xml" href="/atom.xml">
    <link rel="alternate" type="application/rss+xml" href="/feed.xml">
</head>
<body><p>Welcome</p></body>
</html>"""


@pytest.fixture
def rss_feed_xml():
    return SAMPLE_RSS_FEED


@pytest.fixture
def atom_feed_xml():
    return SAMPLE_ATOM_FEED


@pytest.fixture
def json_feed_text():
    return SAMPLE_JSON_FEED


@pytest.fixture
def rdf_feed_xml():
    return SAMPLE_RDF_FEED


@pytest.fixture
def html_page():
    return SAMPLE_HTML_PAGE


# ============================================================================
# Fake Network
# ============================================================================


Response = Union[str, Exception]


class FakeFetcher:
    """Serves canned documents keyed by exact URL.

    A value is either the document text or an exception to raise. Unknown
    URLs answer with an HTTP 404 fetch error.
    """

    def __init__(self):
        self.feeds: Dict[str, Response] = {}
        self.pages: Dict[str, Response] = {}
        self.probes: Dict[str, str] = {}
        self.delays: Dict[str, float] = {}
        self.requests: List[Tuple[str, str]] = []
        self.closed = False

    async def fetch_feed(self, url: str) -> FetchedDocument:
        self.requests.append(("feed", url))
        return await self._respond(self.feeds, url, "application/xml")

    async def fetch_page(self, url: str) -> FetchedDocument:
        self.requests.append(("page", url))
        return await self._respond(self.pages, url, "text/html")

    async def probe(self, url: str) -> Optional[str]:
        self.requests.append(("probe", url))
        return self.probes.get(url)

    async def close(self) -> None:
        self.closed = True

    async def _respond(self, table: Dict[str, Response], url: str, content_type: str) -> FetchedDocument:
        if url in self.delays:
            await asyncio.sleep(self.delays[url])
        if url not in table:
            raise FeedFetchError(
                "Fetch failed: 404 Not Found",
                feed_url=url,
                status=404,
                error_code=ErrorCode.FEED_HTTP_ERROR,
            )
        value = table[url]
        if isinstance(value, Exception):
            raise value
        return FetchedDocument(url=url, text=value, content_type=content_type)


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()
