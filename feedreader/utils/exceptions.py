"""
Feed Reader Exceptions
======================

Every error raised by the package derives from ``FeedReaderError`` and
carries an ``ErrorCode``, a context dict for logs, and a ``user_message``
safe to show in the CLI. Subclasses only declare their defaults.

Across the worker boundary errors travel as ``FeedErrorType`` tags; see
``classify_feed_error``.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable error codes, grouped by letter."""

    # C: configuration
    CONFIG_INVALID = "C001"

    # D: SQLite store
    DATABASE_CONNECTION = "D001"
    DATABASE_ERROR = "D006"

    # F: fetching and parsing feeds
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"
    FEED_UNKNOWN_FORMAT = "F007"
    FEED_HTTP_ERROR = "F008"

    # V: input validation
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"


class FeedErrorType(str, Enum):
    """Failure tags carried across the worker boundary."""

    INVALID_URL = "INVALID_URL"
    FETCH_FAILED = "FETCH_FAILED"
    NOT_A_FEED = "NOT_A_FEED"
    CORS_BLOCKED = "CORS_BLOCKED"
    TIMEOUT = "TIMEOUT"


class FeedReaderError(Exception):
    """Base class for package errors.

    Args:
        message: Technical description, used in logs and ``str()``
        error_code: Overrides the class's ``default_code``
        context: Extra fields for structured logs
        user_message: Overrides the text produced by ``describe()``
        recoverable: Overrides the class's ``default_recoverable``
    """

    default_code: Optional[ErrorCode] = None
    default_recoverable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context: Dict[str, Any] = dict(context or {})
        self.user_message = user_message or self.describe()
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def describe(self) -> str:
        """Text shown to users when no ``user_message`` was given."""
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        if self.error_code is None:
            return self.message
        return f"[{self.error_code.value}] {self.message}"


class ConfigurationError(FeedReaderError):
    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if config_key:
            self.context["config_key"] = config_key

    def describe(self) -> str:
        return f"Configuration error: {self.message}"


class DatabaseError(FeedReaderError):
    """SQLite failures. Details stay in logs; users see a generic message."""

    default_code = ErrorCode.DATABASE_CONNECTION
    default_recoverable = True

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if query:
            self.context["query"] = query

    def describe(self) -> str:
        return "Database operation failed"


class FeedError(FeedReaderError):
    """A feed could not be located, fetched or parsed."""

    default_code = ErrorCode.FEED_PARSE_ERROR
    default_recoverable = True

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.feed_url = feed_url
        if feed_url:
            self.context["feed_url"] = feed_url


class FeedFetchError(FeedError):
    """HTTP status, connection, timeout or content-type failure."""

    default_code = ErrorCode.FEED_NETWORK_ERROR

    def __init__(self, message: str, feed_url: Optional[str] = None, status: Optional[int] = None, **kwargs):
        super().__init__(message, feed_url=feed_url, **kwargs)
        self.status = status
        if status is not None:
            self.context["status"] = status


class UnknownFormatError(FeedError):
    """No RSS, Atom, JSON Feed or RDF marker in the document."""

    default_code = ErrorCode.FEED_UNKNOWN_FORMAT
    default_recoverable = False

    def __init__(self, message: str = "Unknown feed format", **kwargs):
        super().__init__(message, **kwargs)


class FeedParseError(FeedError):
    """The format was recognized but the document is broken."""

    default_code = ErrorCode.FEED_PARSE_ERROR
    default_recoverable = False


class ValidationError(FeedReaderError):
    default_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        self.field_name = field_name
        super().__init__(message, **kwargs)
        if field_name:
            self.context["field_name"] = field_name

    def describe(self) -> str:
        return f"Invalid {self.field_name or 'input'}: {self.message}"


_ERROR_TYPE_BY_CODE = {
    ErrorCode.FEED_INVALID_URL: FeedErrorType.INVALID_URL,
    ErrorCode.VALIDATION_INVALID_FORMAT: FeedErrorType.INVALID_URL,
    ErrorCode.VALIDATION_REQUIRED_FIELD: FeedErrorType.INVALID_URL,
    ErrorCode.FEED_FETCH_TIMEOUT: FeedErrorType.TIMEOUT,
    ErrorCode.FEED_ACCESS_DENIED: FeedErrorType.CORS_BLOCKED,
    ErrorCode.FEED_NOT_FOUND: FeedErrorType.NOT_A_FEED,
    ErrorCode.FEED_UNKNOWN_FORMAT: FeedErrorType.NOT_A_FEED,
    ErrorCode.FEED_PARSE_ERROR: FeedErrorType.NOT_A_FEED,
}


def classify_feed_error(exception: Exception) -> FeedErrorType:
    """Map an exception to the failure tag reported across the worker boundary.

    Args:
        exception: Exception raised while validating, fetching or parsing

    Returns:
        Matching FeedErrorType, FETCH_FAILED when nothing more specific applies
    """
    if isinstance(exception, FeedReaderError) and exception.error_code:
        return _ERROR_TYPE_BY_CODE.get(exception.error_code, FeedErrorType.FETCH_FAILED)
    if isinstance(exception, TimeoutError):
        return FeedErrorType.TIMEOUT
    return FeedErrorType.FETCH_FAILED
