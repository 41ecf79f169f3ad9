"""Abstract base class for blob/object storage providers.

Guide bodies are stored as whole objects under a key derived from the guide
id.  Implementations may wrap a local directory, S3, R2, or any other
key/value blob store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: LocalObjectStore (guidebase/providers/object_store/)
class IObjectStore(ABC):
    """Contract for the object store holding raw guide bodies."""

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Store *data* under *key*, replacing any existing object.

        Parameters
        ----------
        key:
            Object key, e.g. ``"guides/sec-1.md"``.
        data:
            Raw bytes to store.
        content_type:
            MIME type recorded alongside the object.
        metadata:
            Optional string metadata recorded alongside the object.

        Raises
        ------
        guidebase.utils.errors.StorageError
            If the write fails.
        """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the bytes stored under *key*, or ``None`` if absent.

        Raises
        ------
        guidebase.utils.errors.StorageError
            If the read fails for a reason other than the key being absent.
        """

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, str] | None:
        """Return the metadata recorded by :meth:`put`, or ``None`` if *key* is absent."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"local_fs"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is configured and reachable."""
