"""
FeedReader Data Models
======================

Pydantic models for persisted records. They mirror the database schema and
are built either from database rows (``from_db_row``) or from the
camelCase dictionaries returned by the feed worker.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..ingestion.identity import article_id_from_url, feed_id_from_url, folder_id_from_name


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Folder(BaseModel):
    """User folder for grouping feeds."""
    id: str = Field(..., min_length=1, description="Slug of the folder name")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    created_at: Optional[datetime] = Field(default_factory=_utc_now)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Folder name cannot be empty")
        return v

    @classmethod
    def from_name(cls, name: str) -> "Folder":
        return cls(id=folder_id_from_name(name), name=name)

    @classmethod
    def from_db_row(cls, row: Any) -> "Folder":
        return cls(**dict(row))

    def __str__(self) -> str:
        return f"Folder({self.name})"


class Feed(BaseModel):
    """Subscribed feed source.

    URLs are kept as plain strings: ids are derived from the exact text, so
    URL normalization here would change identity.
    """
    id: str = Field(..., description="feed-<derived id of feed_url>")
    title: str = Field(..., description="Feed title")
    feed_url: str = Field(..., min_length=1, description="URL the feed document is fetched from")
    site_url: str = Field(default="", description="Site the feed belongs to")
    favicon: Optional[str] = Field(default=None, description="Favicon lookup URL")
    folder_id: Optional[str] = Field(default=None, description="Containing folder")
    last_fetched_at: Optional[datetime] = Field(default=None, description="Last successful refresh")
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @classmethod
    def from_metadata(
        cls, feed_url: str, metadata: Dict[str, Any], folder_id: Optional[str] = None
    ) -> "Feed":
        """Build a new Feed from the ``feed`` dictionary of a parse result."""
        return cls(
            id=feed_id_from_url(feed_url),
            title=metadata.get("title") or feed_url,
            feed_url=feed_url,
            site_url=metadata.get("siteUrl") or "",
            favicon=metadata.get("favicon"),
            folder_id=folder_id,
        )

    @classmethod
    def from_db_row(cls, row: Any) -> "Feed":
        return cls(**dict(row))

    def __str__(self) -> str:
        return f"Feed({self.title})"


class Article(BaseModel):
    """Stored article; one per unique article URL."""
    id: str = Field(..., description="article-<derived id of url>")
    feed_id: str = Field(..., description="Owning feed")
    title: str = Field(..., description="Article title")
    url: str = Field(..., min_length=1, description="Canonical article URL")
    published_at: datetime = Field(default_factory=_utc_now)
    preview: str = Field(default="", description="Plain-text preview")
    content: str = Field(default="", description="HTML content")
    is_read: bool = False
    is_starred: bool = False
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @classmethod
    def from_parsed(cls, feed_id: str, data: Dict[str, Any]) -> "Article":
        """Build an Article from a worker article dictionary, assigning its id."""
        return cls(
            id=article_id_from_url(data["url"]),
            feed_id=feed_id,
            title=data.get("title") or "Untitled",
            url=data["url"],
            published_at=data.get("publishedAt") or _utc_now(),
            preview=data.get("preview") or "",
            content=data.get("content") or "",
        )

    @classmethod
    def from_db_row(cls, row: Any) -> "Article":
        return cls(**dict(row))

    def __str__(self) -> str:
        return f"Article({self.title[:50]})"
