"""
Feed Discovery
==============

Finds a feed URL for an arbitrary web page: first from
``<link rel="alternate">`` tags, then by probing conventional feed paths on
the page's origin. Absence of a feed is a normal outcome (None), not an error.
"""

import warnings
from typing import Optional, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from ..utils.logging import get_logger_for_component
from .content_cleaner import site_origin

# Preference order: RSS, Atom, JSON Feed
FEED_LINK_TYPES = (
    ("application/rss+xml",),
    ("application/atom+xml",),
    ("application/feed+json", "application/json"),
)

COMMON_FEED_PATHS = (
    "/feed",
    "/rss",
    "/feed.xml",
    "/rss.xml",
    "/atom.xml",
    "/index.xml",
)

PROBE_CONTENT_MARKERS = ("xml", "rss", "atom")

logger = get_logger_for_component("discovery")


class Prober(Protocol):
    async def probe(self, url: str) -> Optional[str]:
        """Content type of a 2xx response, None otherwise."""


def _is_alternate(link) -> bool:
    rel = link.get("rel")
    if not rel:
        return False
    if isinstance(rel, str):
        rel = rel.split()
    return "alternate" in [value.lower() for value in rel]


def discover_feed_url(html: str, page_url: str) -> Optional[str]:
    """Feed URL advertised by the page's link tags, resolved against page_url."""
    if not html:
        return None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(html, "html.parser")

    links = [
        link for link in soup.find_all("link", href=True) if _is_alternate(link)
    ]

    for accepted_types in FEED_LINK_TYPES:
        for link in links:
            link_type = (link.get("type") or "").split(";", 1)[0].strip().lower()
            href = link["href"].strip()
            if link_type in accepted_types and href:
                return urljoin(page_url, href)

    return None


class FeedDiscovery:
    """Link-tag inspection with well-known path probing as fallback."""

    def __init__(self, prober: Prober):
        self.prober = prober

    async def discover(self, html: str, page_url: str) -> Optional[str]:
        """Find a candidate feed URL for a page.

        Args:
            html: Page HTML
            page_url: URL the page was fetched from

        Returns:
            Absolute feed URL, or None when nothing was found
        """
        feed_url = discover_feed_url(html, page_url)
        if feed_url:
            logger.debug(f"Discovered feed link {feed_url} on {page_url}")
            return feed_url

        origin = site_origin(page_url)
        if not origin:
            return None

        for path in COMMON_FEED_PATHS:
            candidate = origin + path
            content_type = await self.prober.probe(candidate)
            if content_type and any(
                marker in content_type.lower() for marker in PROBE_CONTENT_MARKERS
            ):
                logger.debug(f"Discovered feed by probing {candidate}")
                return candidate

        return None
