"""
Feed Reader Input Validators
============================

User-supplied URLs are checked and normalized here before anything is
fetched.
"""

from urllib.parse import urlparse, urlunparse

from .exceptions import ErrorCode, ValidationError


def _invalid_url(message: str, code: ErrorCode = ErrorCode.FEED_INVALID_URL) -> ValidationError:
    return ValidationError(message, field_name="url", error_code=code)


class URLValidator:
    """Absolute http(s) URLs only."""

    ALLOWED_SCHEMES = ("http", "https")

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed or page URL.

        Scheme and host are lowercased, the fragment is dropped and an empty
        path becomes ``/``. Query strings are kept.

        Raises:
            ValidationError: If ``url`` is empty, relative, or not http(s)
        """
        if not isinstance(url, str) or not url.strip():
            raise _invalid_url("A URL is required", ErrorCode.VALIDATION_REQUIRED_FIELD)

        try:
            parsed = urlparse(url.strip())
        except ValueError as e:
            raise _invalid_url(f"Malformed URL: {e}") from e

        scheme = parsed.scheme.lower()
        if scheme not in cls.ALLOWED_SCHEMES:
            raise _invalid_url(f"Unsupported scheme {scheme or '(none)'!r}; use http or https")
        if not parsed.netloc:
            raise _invalid_url("URL has no host")

        return urlunparse(parsed._replace(
            scheme=scheme,
            netloc=parsed.netloc.lower(),
            path=parsed.path or "/",
            fragment="",
        ))


def validate_url(url: str) -> bool:
    """Whether ``url`` passes ``URLValidator.validate_feed_url``."""
    try:
        URLValidator.validate_feed_url(url)
    except ValidationError:
        return False
    return True
