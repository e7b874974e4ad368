"""
Content Cleaner
===============

Text helpers shared by the normalizer and discovery:

- HTML entity decoding for extracted text fields
- Markup stripping and preview generation
- Publish date parsing (ISO-8601 and RFC-2822) with a "now" fallback
- Site origin and favicon derivation
"""

import html
import re
import warnings
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

PREVIEW_LENGTH = 200
FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={host}&sz=32"

_WHITESPACE = re.compile(r"\s+")
_TAG = re.compile(r"</?[A-Za-z][^<>]*>")


def decode_entities(text: Optional[str]) -> str:
    """Decode named and numeric HTML entities (&amp;, &apos;, &#39;, &#x27;...)."""
    if not text:
        return ""
    return html.unescape(text).strip()


def strip_html(content: Optional[str]) -> str:
    """Return the plain text of an HTML fragment with whitespace collapsed."""
    if not content:
        return ""

    with warnings.catch_warnings():
        # Short fragments that look like URLs or file names trigger a bs4 hint
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(content, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text(" ")
    # Escaped markup inside the content decodes to tag-like text
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def make_preview(content: Optional[str], length: int = PREVIEW_LENGTH) -> str:
    """Plain-text preview of at most ``length`` characters."""
    return strip_html(content)[:length].rstrip()


def utc_now_iso() -> str:
    return to_iso8601(datetime.now(timezone.utc))


def to_iso8601(value: datetime) -> str:
    """Serialize as ISO-8601 UTC with a Z suffix; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 or RFC-2822 timestamp, None when unparsable."""
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    iso_value = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(iso_value)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_date(value: Optional[str]) -> str:
    """ISO-8601 string for a raw date, substituting the current instant."""
    parsed = parse_date(value)
    return to_iso8601(parsed) if parsed else utc_now_iso()


def site_origin(url: str) -> str:
    """scheme://host[:port] of a URL, empty string when it has no host."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


def favicon_for(site_url: Optional[str]) -> Optional[str]:
    """Stable favicon lookup URL for a site; no network access."""
    if not site_url:
        return None
    try:
        host = urlsplit(site_url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return FAVICON_SERVICE.format(host=host)
