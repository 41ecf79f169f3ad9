"""Custom exception hierarchy for guidebase.

All application exceptions inherit from :class:`GuidebaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
backing store (e.g. "sqlite", "chromadb", "local_fs") caused the failure.

The hierarchy is organized by where the failure happens:

    GuidebaseError  (base -- catch-all for any guidebase error)
    +-- MalformedDocumentError  (front matter missing or unparsable)
    +-- StageFailureError       (one persistence stage of one document failed)
    +-- NotFoundError           (guide or section id does not exist)
    +-- QueryExecutionError     (a store call failed while searching)
    +-- StorageError            (raised by store adapters, wraps backend errors)
    +-- ConfigurationError      (startup / missing config)

Parsing and per-document errors are local to one document; the batch
ingestion loop records them and moves on.  Query errors are raised to the
caller as-is, never turned into an empty result list.
"""

from __future__ import annotations

from enum import Enum


class GuidebaseError(Exception):
    """Base exception for all guidebase errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backing store triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[sqlite] database is locked``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Document processing errors
# ---------------------------------------------------------------------------


class MalformedDocumentError(GuidebaseError):
    """Raised when a document is unreadable or its front matter is missing or broken.

    Always fatal for the document in question and never retried
    automatically; nothing is written to any store.
    """

    def __init__(
        self,
        message: str = "Document front matter is missing or malformed",
        source_name: str | None = None,
    ) -> None:
        self._source_name = source_name
        super().__init__(message=message)

    @property
    def source_name(self) -> str | None:
        return self._source_name


class IndexingStage(str, Enum):
    """Persistence stages of :meth:`GuideIndexer.process_document`, in order."""

    BODY_WRITE = "body-write"
    METADATA_WRITE = "metadata-write"
    INDEX_WRITE = "index-write"
    VECTOR_WRITE = "vector-write"


class StageFailureError(GuidebaseError):
    """Raised when one persistence stage fails for one document.

    Remaining stages for that document are skipped.  Stages that already
    completed are *not* rolled back -- the three stores are not written
    atomically.
    """

    def __init__(
        self,
        stage: IndexingStage,
        guide_id: str,
        message: str = "Persistence stage failed",
        provider_name: str | None = None,
    ) -> None:
        self._stage = stage
        self._guide_id = guide_id
        super().__init__(
            message=f"{stage.value} failed for guide '{guide_id}': {message}",
            provider_name=provider_name,
        )

    @property
    def stage(self) -> IndexingStage:
        return self._stage

    @property
    def guide_id(self) -> str:
        return self._guide_id


# ---------------------------------------------------------------------------
# Retrieval errors
# ---------------------------------------------------------------------------


class NotFoundError(GuidebaseError):
    """Raised when a guide (or a section within it) does not exist.

    Expected and handled by callers -- this is a normal outcome of a lookup,
    not a crash.
    """

    def __init__(
        self,
        message: str = "Guide not found",
        guide_id: str | None = None,
        section_id: str | None = None,
    ) -> None:
        self._guide_id = guide_id
        self._section_id = section_id
        super().__init__(message=message)

    @property
    def guide_id(self) -> str | None:
        return self._guide_id

    @property
    def section_id(self) -> str | None:
        return self._section_id


class QueryExecutionError(GuidebaseError):
    """Raised when a keyword or semantic lookup fails during a search."""

    def __init__(
        self,
        message: str = "Search query failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Store / configuration errors
# ---------------------------------------------------------------------------


class StorageError(GuidebaseError):
    """Raised by store adapters when the underlying backend call fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(GuidebaseError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
