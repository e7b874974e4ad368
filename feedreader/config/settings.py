"""
Feed Reader Configuration
=========================

Settings come from ``FEEDREADER_``-prefixed environment variables, then a
``.env`` file, then the defaults below. Nested sections use ``__``, e.g.
``FEEDREADER_REFRESH__INTERVAL_SECONDS=1800``.
"""

from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FetchSettings(BaseModel):
    """Network fetch and parsing limits."""
    request_timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    max_articles_per_feed: int = Field(default=50, ge=1, le=1000, description="Maximum articles kept from one document")
    cors_proxy_url: Optional[str] = Field(
        default=None,
        description="Proxy prefix retried when a direct fetch fails; the target URL is appended url-encoded",
    )
    user_agent: Optional[str] = Field(default=None, description="Override for the User-Agent header")

    @field_validator("cors_proxy_url")
    @classmethod
    def validate_proxy(cls, v):
        """Proxy prefix must be an http(s) URL when set."""
        if v and not v.lower().startswith(("http://", "https://")):
            raise ValueError("cors_proxy_url must start with http:// or https://")
        return v or None


class RefreshSettings(BaseModel):
    """Refresh scheduler timing."""
    initial_delay_seconds: float = Field(default=5.0, ge=0.0, description="Delay before the first refresh after start")
    interval_seconds: float = Field(default=3600.0, gt=0.0, description="Period of the recurring refresh")
    min_interval_seconds: float = Field(default=900.0, ge=0.0, description="Minimum time between two refresh cycles")
    feed_timeout_seconds: Optional[float] = Field(
        default=120.0, gt=0.0, description="Upper bound for one feed refresh; None waits indefinitely"
    )


class DatabaseSettings(BaseModel):
    """SQLite store location and pool."""
    path: str = Field(default="data/feedreader.db", description="SQLite database file")
    pool_size: int = Field(default=5, ge=1, le=20, description="Pooled connections kept open")


class LoggingSettings(BaseModel):
    """Console and rotating file output."""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_path: Optional[str] = Field(default="logs/feedreader.log", description="JSON log file; None disables it")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Rotation threshold")
    backup_count: int = Field(default=5, ge=1, le=20, description="Rotated files kept")
    structured_logging: bool = Field(default=False, description="JSON on the console as well")
    console_logging: bool = Field(default=True)


class FeedReaderSettings(BaseSettings):
    """All FeedReader settings."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDREADER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = "FeedReader"
    version: str = "1.0.0"
    debug: bool = Field(default=False, description="Forces DEBUG logging")

    def validate_configuration(self) -> None:
        """Cross-field checks and creation of the data and log directories.

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems = []

        if self.refresh.min_interval_seconds > self.refresh.interval_seconds:
            problems.append("refresh.min_interval_seconds must not exceed refresh.interval_seconds")

        for label, path in (("database.path", self.database.path), ("logging.file_path", self.logging.file_path)):
            if not path:
                continue
            try:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                problems.append(f"{label} is not writable: {e}")

        if problems:
            raise ConfigurationError("; ".join(problems))

    @property
    def user_agent(self) -> str:
        """User-Agent header for outbound requests."""
        return self.fetch.user_agent or f"{self.app_name}/{self.version}"

    def get_effective_log_level(self) -> str:
        return LogLevel.DEBUG.value if self.debug else self.logging.level.value


def load_settings() -> FeedReaderSettings:
    """Build settings from the environment, ``.env`` and defaults, then validate.

    Raises:
        ConfigurationError: If a value fails validation
    """
    load_dotenv()

    try:
        settings = FeedReaderSettings()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e

    settings.validate_configuration()
    return settings


_settings: Optional[FeedReaderSettings] = None


def get_settings(reload: bool = False) -> FeedReaderSettings:
    """Process-wide settings, loaded on first use or when ``reload`` is set."""
    global _settings
    if reload or _settings is None:
        _settings = load_settings()
    return _settings
