"""
Feed Format Normalizer
======================

Turns raw RSS 2.0, Atom, JSON Feed and RDF (RSS 1.0) documents into a
canonical ParsedFeed.

Format detection runs on the raw text before any parsing, in this order:
JSON Feed, Atom, RSS 2.0, RDF. XML families are parsed with feedparser;
JSON Feed documents with the json module. A malformed item never aborts the
parse: it is dropped and recorded in ``ParsedFeed.warnings``.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import feedparser

from ..config.settings import FeedReaderSettings, get_settings
from ..utils.exceptions import FeedParseError, UnknownFormatError
from ..utils.logging import get_logger_for_component
from .content_cleaner import (
    decode_entities,
    favicon_for,
    make_preview,
    normalize_date,
    site_origin,
    to_iso8601,
    utc_now_iso,
)
from .models import ParsedArticle, ParsedFeed

FORMAT_JSON = "json"
FORMAT_ATOM = "atom"
FORMAT_RSS = "rss"
FORMAT_RDF = "rdf"

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
RDF_NAMESPACE = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
JSON_FEED_VERSION_PREFIXES = ("https://jsonfeed.org/version/", "http://jsonfeed.org/version/")

UNTITLED_FEED = "Untitled Feed"
UNTITLED_ARTICLE = "Untitled"

_ATOM_ROOT = re.compile(r"<feed[\s>]", re.IGNORECASE)
_RSS_ROOT = re.compile(r"<rss[\s>]", re.IGNORECASE)
_RDF_ROOT = re.compile(r"<(\w+:)?RDF[\s>]")


def _strip_bom(raw_text: str) -> str:
    return raw_text[1:] if raw_text.startswith("\ufeff") else raw_text


def _load_json_feed(raw_text: str) -> Optional[Dict[str, Any]]:
    """Return the decoded document when it is a JSON Feed, else None."""
    if not raw_text.lstrip().startswith("{"):
        return None
    try:
        document = json.loads(raw_text)
    except ValueError:
        return None
    if not isinstance(document, dict):
        return None
    version = document.get("version")
    if isinstance(version, str) and version.startswith(JSON_FEED_VERSION_PREFIXES):
        return document
    return None


def detect_format(raw_text: str) -> str:
    """Identify the feed family of a raw document.

    Raises:
        UnknownFormatError: When no recognizable feed marker is present
    """
    raw_text = _strip_bom(raw_text or "")
    if not raw_text or not raw_text.strip():
        raise UnknownFormatError("Unknown feed format: document is empty")

    if _load_json_feed(raw_text) is not None:
        return FORMAT_JSON
    if ATOM_NAMESPACE in raw_text and _ATOM_ROOT.search(raw_text):
        return FORMAT_ATOM
    if _RSS_ROOT.search(raw_text) or "<channel>" in raw_text:
        return FORMAT_RSS
    if RDF_NAMESPACE in raw_text and _RDF_ROOT.search(raw_text):
        return FORMAT_RDF

    raise UnknownFormatError("Unknown feed format")


class FeedNormalizer:
    """
    Multi-format feed parser producing ParsedFeed objects.

    Features:
    - Format detection independent of the parsing library
    - Field fallbacks for content, links and dates
    - Entities decoded exactly once in every extracted text field
    - Per-item error isolation
    """

    def __init__(self, settings: Optional[FeedReaderSettings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("normalizer")

    def parse(self, raw_text: str, source_url: str) -> ParsedFeed:
        """Parse a raw feed document.

        Args:
            raw_text: Document text as fetched
            source_url: URL the document was fetched from

        Returns:
            ParsedFeed with at most ``fetch.max_articles_per_feed`` items

        Raises:
            UnknownFormatError: If the document is not a feed
            FeedParseError: If a recognized document yields nothing usable
        """
        raw_text = _strip_bom(raw_text or "")
        feed_format = detect_format(raw_text)

        if feed_format == FORMAT_JSON:
            parsed = self._parse_json_feed(_load_json_feed(raw_text), source_url)
        else:
            parsed = self._parse_xml_feed(raw_text, source_url, feed_format)

        for warning in parsed.warnings:
            self.logger.warning(f"{source_url}: {warning}")

        self.logger.debug(
            f"Parsed {len(parsed.items)} items from {source_url}",
            extra={"format": feed_format, "feed_url": source_url},
        )
        return parsed

    # ------------------------------------------------------------------
    # RSS / Atom / RDF
    # ------------------------------------------------------------------

    def _parse_xml_feed(self, raw_text: str, source_url: str, feed_format: str) -> ParsedFeed:
        result = feedparser.parse(
            raw_text.encode("utf-8"),
            response_headers={
                "content-type": "application/xml; charset=utf-8",
                "content-location": source_url,
            },
        )

        if result.bozo and not result.entries and not result.feed:
            raise FeedParseError(
                f"Failed to parse {feed_format} document: {result.get('bozo_exception')}",
                feed_url=source_url,
            )

        if not result.get("version"):
            raise UnknownFormatError(
                f"Unknown feed format: no {feed_format} feed found in document", feed_url=source_url
            )

        if result.bozo:
            self.logger.debug(
                f"Feed parsing warning for {source_url}: {result.get('bozo_exception')}"
            )

        channel = result.feed
        site_url = channel.get("link") or site_origin(source_url)

        parsed = ParsedFeed(
            title=_plain(channel.get("title")) or UNTITLED_FEED,
            site_url=site_url,
            feed_url=source_url,
            format=feed_format,
            favicon=favicon_for(site_url),
            description=_plain(channel.get("subtitle")) or None,
        )

        for index, entry in enumerate(result.entries):
            if len(parsed.items) >= self.settings.fetch.max_articles_per_feed:
                break
            try:
                article = self._extract_xml_article(entry, feed_format)
            except (AttributeError, KeyError, TypeError, ValueError, IndexError) as e:
                parsed.warnings.append(f"item {index} skipped: {e}")
                continue
            if article is None:
                parsed.warnings.append(f"item {index} skipped: no link or guid")
                continue
            parsed.items.append(article)

        return parsed

    def _extract_xml_article(self, entry: Any, feed_format: str) -> Optional[ParsedArticle]:
        url = self._entry_link(entry, guid_fallback=feed_format != FORMAT_ATOM)
        if not url:
            return None

        content = self._entry_content(entry)

        return ParsedArticle(
            id=entry.get("id") or url,
            title=_plain(entry.get("title")) or UNTITLED_ARTICLE,
            url=url,
            published_at=self._entry_date(entry),
            content=content,
            preview=make_preview(content),
        )

    @staticmethod
    def _entry_link(entry: Any, guid_fallback: bool) -> str:
        """RSS/RDF: link, then guid. Atom: alternate link, then any link."""
        link = entry.get("link")
        if link:
            return link.strip()

        if guid_fallback:
            return (entry.get("id") or "").strip()

        for candidate in entry.get("links") or []:
            href = candidate.get("href")
            if href:
                return href.strip()
        return ""

    @staticmethod
    def _entry_content(entry: Any) -> str:
        """Full content (content:encoded / atom:content) over summary/description."""
        for block in entry.get("content") or []:
            value = block.get("value")
            if value:
                return value.strip()
        return (entry.get("summary") or entry.get("description") or "").strip()

    @staticmethod
    def _entry_date(entry: Any) -> str:
        for key in ("published_parsed", "updated_parsed", "created_parsed"):
            value = entry.get(key)
            if value:
                try:
                    return to_iso8601(datetime(*value[:6], tzinfo=timezone.utc))
                except (TypeError, ValueError):
                    continue
        for key in ("published", "updated"):
            if entry.get(key):
                return normalize_date(entry.get(key))
        return utc_now_iso()

    # ------------------------------------------------------------------
    # JSON Feed
    # ------------------------------------------------------------------

    def _parse_json_feed(self, document: Dict[str, Any], source_url: str) -> ParsedFeed:
        site_url = document.get("home_page_url") or site_origin(source_url)
        if not isinstance(site_url, str):
            site_url = site_origin(source_url)

        parsed = ParsedFeed(
            title=decode_entities(_as_text(document.get("title"))) or UNTITLED_FEED,
            site_url=site_url,
            feed_url=source_url,
            format=FORMAT_JSON,
            favicon=favicon_for(site_url),
            description=decode_entities(_as_text(document.get("description"))) or None,
        )

        items = document.get("items")
        if not isinstance(items, list):
            parsed.warnings.append("document has no items array")
            return parsed

        for index, item in enumerate(items):
            if len(parsed.items) >= self.settings.fetch.max_articles_per_feed:
                break
            if not isinstance(item, dict):
                parsed.warnings.append(f"item {index} skipped: not an object")
                continue
            article = self._extract_json_article(item)
            if article is None:
                parsed.warnings.append(f"item {index} skipped: no url or id")
                continue
            parsed.items.append(article)

        return parsed

    @staticmethod
    def _extract_json_article(item: Dict[str, Any]) -> Optional[ParsedArticle]:
        item_id = _as_text(item.get("id"))
        url = _as_text(item.get("url")) or _as_text(item.get("external_url"))
        if not url and item_id.startswith(("http://", "https://")):
            url = item_id
        if not url:
            return None

        content = (
            _as_text(item.get("content_html"))
            or _as_text(item.get("content_text"))
            or _as_text(item.get("summary"))
        )

        return ParsedArticle(
            id=item_id or url,
            title=decode_entities(_as_text(item.get("title"))) or UNTITLED_ARTICLE,
            url=url.strip(),
            published_at=normalize_date(
                _as_text(item.get("date_published")) or _as_text(item.get("date_modified"))
            ),
            content=content.strip(),
            preview=make_preview(content),
        )


def _as_text(value: Any) -> str:
    """JSON values that should be strings; numbers are accepted for ids."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def parse_feed(raw_text: str, source_url: str, settings: Optional[FeedReaderSettings] = None) -> ParsedFeed:
    """Quick function to parse one document."""
    return FeedNormalizer(settings).parse(raw_text, source_url)


def _plain(value: Optional[str]) -> str:
    """feedparser output; its entities are already decoded."""
    return (value or "").strip()
