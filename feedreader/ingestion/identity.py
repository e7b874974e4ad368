"""
Deterministic identifiers derived from URLs.

The same URL always yields the same id, across formats, feeds and process
restarts. This is what makes feed and article inserts idempotent.
"""

import re
from urllib.parse import urlsplit

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _slug(text: str) -> str:
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def derive_id(url: str) -> str:
    """Slug of the URL's host and path.

    Query string, fragment, scheme, port and credentials are ignored. Input
    that cannot be split as a URL is slugged as a whole.
    """
    url = (url or "").strip()
    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
        path = parts.path
    except ValueError:
        return _slug(url)

    if not host and not parts.scheme:
        # "example.com/post" without a scheme lands entirely in path
        return _slug(path)
    return _slug(host + path)


def feed_id_from_url(url: str) -> str:
    return f"feed-{derive_id(url)}"


def article_id_from_url(url: str) -> str:
    return f"article-{derive_id(url)}"


def folder_id_from_name(name: str) -> str:
    return _slug(name or "")
