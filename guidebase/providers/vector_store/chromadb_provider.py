"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local; no external
service required.
"""

from __future__ import annotations

import json
import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  A version mismatch
# between ChromaDB's bundled PostHog client and the installed one makes
# every capture() call log an error, so telemetry is switched off at the
# env var, the PostHog SDK, and the client Settings.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from guidebase.interfaces.embedding_provider import IEmbeddingProvider
from guidebase.interfaces.vector_store_provider import IVectorStoreProvider
from guidebase.models import Chunk, SearchFilters, VectorMatch
from guidebase.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

# Category and tag filters are applied after the query, so fetch extra rows.
_OVERFETCH_FACTOR = 4


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    guidebase always passes pre-computed embeddings, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "guidebase uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    An :class:`IEmbeddingProvider` is injected at init time so the provider
    can embed query text before passing it to ChromaDB.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "data/chromadb",
        collection_name: str = "guides",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # A collection persisted with a different embedding function makes
        # newer ChromaDB versions raise ValueError; reopen it without one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Fail fast if stored vectors don't match the provider's dimension."""
        if self._collection.count() == 0:
            return

        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return

        stored_dim = len(embeddings[0])
        expected_dim = self._embedding_provider.get_dimension()
        if stored_dim != expected_dim:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=expected_dim,
                provider=self._embedding_provider.get_provider_name(),
            )
            raise StorageError(
                message=(
                    f"Embedding dimension mismatch: collection '{self._collection_name}' "
                    f"has {stored_dim}-dim vectors but provider "
                    f"'{self._embedding_provider.get_provider_name()}' produces "
                    f"{expected_dim}-dim vectors."
                ),
                provider_name=self.get_provider_name(),
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def query(
        self,
        query_text: str,
        top_k: int = 5,
        filters: SearchFilters | None = None,
    ) -> list[VectorMatch]:
        """Perform semantic search against the ChromaDB collection.

        Exact-match filters (status, framework, language) go into the
        ``where`` clause.  Category and tags are list-valued, so they are
        checked on the returned rows; ChromaDB is asked for up to
        ``4 * top_k`` rows to leave enough after that post-filter.
        """
        if filters is not None and filters.is_empty:
            filters = None
        try:
            collection_count = self._collection.count()
            if collection_count == 0:
                return []

            query_embedding = await self._embedding_provider.embed_single(query_text)
            where_clause = self._translate_filters(filters) if filters else None
            fetch_k = min(top_k * _OVERFETCH_FACTOR, collection_count)

            kwargs: dict[str, Any] = {
                "query_embeddings": [query_embedding],
                "n_results": fetch_k,
                "include": ["documents", "metadatas", "distances"],
            }
            if where_clause:
                kwargs["where"] = where_clause

            results = self._collection.query(**kwargs)

            if not results["ids"] or not results["ids"][0]:
                return []

            ids = results["ids"][0]
            documents = results["documents"][0] if results["documents"] else [""] * len(ids)
            metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
            distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

            matches: list[VectorMatch] = []
            for chunk_id, doc_text, meta, distance in zip(
                ids, documents, metadatas, distances, strict=True
            ):
                chunk = self._metadata_to_chunk(chunk_id, meta or {}, doc_text or "")
                if filters and not self._passes_post_filters(chunk, filters):
                    continue
                similarity = max(0.0, min(1.0, 1.0 - distance))
                matches.append(VectorMatch(chunk=chunk, similarity_score=similarity))

            matches.sort(key=lambda m: (-m.similarity_score, m.chunk.id))
            retrieved = matches[:top_k]

            logger.info(
                "chromadb_query",
                query_length=len(query_text),
                raw_results=len(ids),
                results_count=len(retrieved),
                top_score=retrieved[0].similarity_score if retrieved else 0.0,
            )
            return retrieved

        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def upsert_chunks(
        self,
        chunks: list[Chunk],
        embeddings: list[list[float]],
        batch_size: int = 500,
    ) -> int:
        """Upsert pre-embedded chunks in batches of *batch_size*."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        try:
            total_stored = 0
            for start in range(0, len(chunks), batch_size):
                batch_chunks = chunks[start : start + batch_size]
                batch_embeddings = embeddings[start : start + batch_size]

                self._collection.upsert(
                    ids=[c.id for c in batch_chunks],
                    embeddings=batch_embeddings,
                    documents=[c.text for c in batch_chunks],
                    metadatas=[self._chunk_to_metadata(c) for c in batch_chunks],
                )
                total_stored += len(batch_chunks)

            logger.info(
                "chromadb_upsert_chunks",
                count=total_stored,
                batches=(len(chunks) + batch_size - 1) // batch_size,
            )
            return total_stored

        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_guide(self, guide_id: str) -> int:
        """Delete all chunks belonging to *guide_id*."""
        try:
            existing = self._collection.get(where={"guide_id": guide_id}, include=["metadatas"])
            count = len(existing["ids"]) if existing["ids"] else 0

            if count > 0:
                self._collection.delete(where={"guide_id": guide_id})

            logger.info("chromadb_delete_by_guide", guide_id=guide_id, deleted_count=count)
            return count

        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB delete_by_guide failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk) -> dict[str, str | int | float | bool]:
        """Convert a Chunk to a ChromaDB-compatible metadata dict.

        ChromaDB metadata values must be str, int, float, or bool, and may
        not be None.  Lists are stored as JSON arrays in strings.
        """
        meta: dict[str, str | int | float | bool] = {
            "guide_id": chunk.guide_id,
            "section_id": chunk.section_id,
            "title": chunk.title,
            "section_title": chunk.section_title,
            "index": chunk.index,
            "body_offset": chunk.body_offset,
            "token_estimate": chunk.token_estimate,
            "continued": chunk.continued,
            "category": json.dumps(chunk.category),
            "tags": json.dumps(chunk.tags),
        }
        if chunk.subcategory is not None:
            meta["subcategory"] = chunk.subcategory
        if chunk.framework is not None:
            meta["framework"] = chunk.framework
        if chunk.language is not None:
            meta["language"] = chunk.language
        if chunk.status is not None:
            meta["status"] = chunk.status
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> Chunk:
        """Convert a ChromaDB row back to a Chunk.

        The stored document is the chunk ``text``; ``content`` is recovered
        as the text after the context header, i.e. the stripped slice.
        """
        body_offset = int(meta.get("body_offset", 0))
        return Chunk(
            id=chunk_id,
            guide_id=meta.get("guide_id", ""),
            section_id=meta.get("section_id", ""),
            title=meta.get("title", ""),
            section_title=meta.get("section_title", ""),
            index=int(meta.get("index", 0)),
            text=text,
            content=text[body_offset:],
            body_offset=body_offset,
            token_estimate=int(meta.get("token_estimate", 0)),
            continued=bool(meta.get("continued", False)),
            category=ChromaDBProvider._load_list(meta.get("category", "")),
            subcategory=meta.get("subcategory"),
            framework=meta.get("framework"),
            language=meta.get("language"),
            status=meta.get("status"),
            tags=ChromaDBProvider._load_list(meta.get("tags", "")),
        )

    @staticmethod
    def _load_list(value: str | Any) -> list[str]:
        """Decode a list stored by :meth:`_chunk_to_metadata`."""
        if not value or not isinstance(value, str):
            return []
        decoded = json.loads(value)
        return [str(item) for item in decoded] if isinstance(decoded, list) else []

    @staticmethod
    def _translate_filters(filters: SearchFilters) -> dict[str, Any] | None:
        """Translate the exact-match filters into a ChromaDB ``where`` clause."""
        clauses: list[dict[str, Any]] = []
        if filters.status:
            clauses.append({"status": filters.status})
        if filters.framework:
            clauses.append({"framework": filters.framework})
        if filters.language:
            clauses.append({"language": filters.language})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _passes_post_filters(chunk: Chunk, filters: SearchFilters) -> bool:
        """Apply the list-valued filters (category, any-of tags) to one chunk."""
        if filters.category and filters.category not in chunk.category:
            return False
        if filters.tags and not set(filters.tags).intersection(chunk.tags):
            return False
        return True
