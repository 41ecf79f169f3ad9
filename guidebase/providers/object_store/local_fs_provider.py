"""Filesystem-backed object store provider.

Stores each object as a file under a root directory, mirroring the key's
path segments (``guides/sec-1.md`` -> ``<root>/guides/sec-1.md``).  Content
type and metadata are kept in a JSON sidecar next to the object
(``<name>.meta.json``).  Blocking file I/O runs via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import structlog

from guidebase.interfaces.object_store import IObjectStore
from guidebase.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_SIDECAR_SUFFIX = ".meta.json"


class LocalObjectStore(IObjectStore):
    """Object store rooted at a local directory."""

    def __init__(self, root_dir: str | Path = "data/objects") -> None:
        self._root = Path(root_dir)

    # -- Sync helpers (executed via asyncio.to_thread) -------------------------

    def _resolve(self, key: str) -> Path:
        """Map *key* to a path under the root, rejecting escapes like ``../``."""
        if not key or key.startswith("/"):
            raise StorageError(
                message=f"Invalid object key: {key!r}",
                provider_name=self.get_provider_name(),
            )
        root = self._root.resolve()
        path = (root / key).resolve()
        if root not in path.parents:
            raise StorageError(
                message=f"Object key escapes the store root: {key!r}",
                provider_name=self.get_provider_name(),
            )
        return path

    def _put_sync(
        self, path: Path, data: bytes, content_type: str, metadata: dict[str, str]
    ) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a temp name first so a reader never sees a half-written body.
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
        sidecar = {"content_type": content_type, "size": len(data), "metadata": metadata}
        path.with_name(path.name + _SIDECAR_SUFFIX).write_text(
            json.dumps(sidecar, sort_keys=True), encoding="utf-8"
        )

    @staticmethod
    def _get_sync(path: Path) -> bytes | None:
        if not path.is_file():
            return None
        return path.read_bytes()

    # -- IObjectStore implementation -------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        path = self._resolve(key)
        try:
            await asyncio.to_thread(self._put_sync, path, data, content_type, metadata or {})
        except OSError as exc:
            raise StorageError(
                message=f"Failed to write object '{key}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("object_stored", key=key, size=len(data))

    async def get(self, key: str) -> bytes | None:
        path = self._resolve(key)
        try:
            return await asyncio.to_thread(self._get_sync, path)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to read object '{key}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_metadata(self, key: str) -> dict[str, str] | None:
        """Return the metadata recorded by :meth:`put`, or ``None`` if absent."""
        path = self._resolve(key)
        sidecar = path.with_name(path.name + _SIDECAR_SUFFIX)
        try:
            raw = await asyncio.to_thread(self._get_sync, sidecar)
        except OSError as exc:
            raise StorageError(
                message=f"Failed to read metadata for '{key}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if raw is None:
            return None
        return json.loads(raw.decode("utf-8")).get("metadata", {})

    def get_provider_name(self) -> str:
        return "local_fs"

    def is_available(self) -> bool:
        """Return ``True`` if the root directory exists or can be created."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            return True
        except OSError:
            return False
