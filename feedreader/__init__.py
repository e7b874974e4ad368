"""
FeedReader - Feed Ingestion and Refresh Pipeline
================================================

Fetches, normalizes and stores RSS 2.0, Atom, JSON Feed and RDF feeds.

Main Components:
- Ingestion: format detection, normalization, feed discovery, HTTP fetching
- Worker: fetch and parse on a dedicated thread behind a JSON message protocol
- Scheduler: periodic refresh with throttling and duplicate-free article storage
- Storage: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__description__ = "Feed ingestion and refresh pipeline"

from .config.settings import get_settings
from .database.schema import DatabaseSchema
from .utils.exceptions import FeedReaderError
from .utils.logging import configure_application_logging, get_logger_for_component

__all__ = [
    "get_settings",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedReaderError",
]
