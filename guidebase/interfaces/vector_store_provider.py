"""Abstract base class for vector-store service providers.

Defines the contract for storing, querying, and removing embedded guide
chunks.  Implementations may wrap ChromaDB (local/free), Qdrant, Pinecone,
or any other vector database.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from guidebase.models import Chunk, SearchFilters, VectorMatch


# Concrete implementation: ChromaDBProvider (guidebase/providers/vector_store/)
# ChromaDB persists to GUIDEBASE_CHROMADB_PERSIST_DIR (default: data/chromadb).
class IVectorStoreProvider(ABC):
    """Contract for the vector index used by semantic search.

    All query and mutation methods are async to support network-backed stores
    without blocking the event loop.

    **Filters** (:class:`~guidebase.models.SearchFilters`) are applied to the
    chunk metadata written by :meth:`upsert_chunks`: ``status``,
    ``framework`` and ``language`` are exact matches, ``category`` must be
    one of the chunk's categories, and ``tags`` matches a chunk carrying
    any of the listed tags.
    """

    @abstractmethod
    async def query(
        self,
        query_text: str,
        top_k: int = 5,
        filters: SearchFilters | None = None,
    ) -> list[VectorMatch]:
        """Perform a semantic search against the vector store.

        Parameters
        ----------
        query_text:
            The natural-language query to embed and search for.
        top_k:
            Maximum number of results to return.
        filters:
            Optional metadata filters (see class docstring).

        Returns
        -------
        list[VectorMatch]
            Zero or more matches ranked by similarity score (descending).

        Raises
        ------
        guidebase.utils.errors.StorageError
            If the vector store query fails.
        """

    @abstractmethod
    async def upsert_chunks(
        self,
        chunks: list[Chunk],
        embeddings: list[list[float]],
    ) -> int:
        """Insert or replace pre-embedded chunks, keyed by ``Chunk.id``.

        Parameters
        ----------
        chunks:
            The chunks to store.
        embeddings:
            Embedding vectors corresponding positionally to *chunks*,
            generated by an
            :class:`~guidebase.interfaces.embedding_provider.IEmbeddingProvider`.

        Returns
        -------
        int
            The number of chunks stored.

        Raises
        ------
        ValueError
            If ``len(chunks) != len(embeddings)``.
        guidebase.utils.errors.StorageError
            If the store operation fails.
        """

    @abstractmethod
    async def delete_by_guide(self, guide_id: str) -> int:
        """Delete every chunk belonging to *guide_id*.  Returns the count deleted."""

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of chunks in the store."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
