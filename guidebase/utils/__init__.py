"""Utility modules for guidebase.

- **errors** -- Domain exception hierarchy rooted at GuidebaseError; each
  failure point raises its own subclass so callers can tell a malformed
  document from a failed store write or a broken search.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text** -- Guide/section id derivation, FTS5 query sanitising, and
  framework/language keyword detection.
"""

from guidebase.utils.errors import (
    ConfigurationError,
    GuidebaseError,
    IndexingStage,
    MalformedDocumentError,
    NotFoundError,
    QueryExecutionError,
    StageFailureError,
    StorageError,
)
from guidebase.utils.logging import configure_logging, get_logger
from guidebase.utils.text import derive_guide_id, detect_keyword, sanitize_fts_query, slugify

__all__ = [
    "ConfigurationError",
    "GuidebaseError",
    "IndexingStage",
    "MalformedDocumentError",
    "NotFoundError",
    "QueryExecutionError",
    "StageFailureError",
    "StorageError",
    "configure_logging",
    "derive_guide_id",
    "detect_keyword",
    "get_logger",
    "sanitize_fts_query",
    "slugify",
]
