"""
Transient parse output.

These objects live for the duration of one parse and are converted to wire
dictionaries before crossing the worker boundary. Persisted records are in
``feedreader.database.models``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ParsedArticle:
    """One normalized item/entry."""

    id: str
    title: str
    url: str
    published_at: str
    content: str
    preview: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "publishedAt": self.published_at,
            "content": self.content,
            "preview": self.preview,
        }


@dataclass
class ParsedFeed:
    """Canonical feed produced from any supported format."""

    title: str
    site_url: str
    feed_url: str
    format: str
    favicon: Optional[str] = None
    description: Optional[str] = None
    items: List[ParsedArticle] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def metadata_dict(self) -> Dict[str, Any]:
        """Feed metadata as sent in PARSE/REFRESH results."""
        data = {
            "title": self.title,
            "url": self.feed_url,
            "siteUrl": self.site_url,
            "favicon": self.favicon,
            "format": self.format,
        }
        if self.description:
            data["description"] = self.description
        return data

    def articles_dicts(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self.items]
