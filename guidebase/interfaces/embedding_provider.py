"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.  The
default implementation runs a local ONNX model through fastembed; any other
backend can be swapped in behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: FastEmbedEmbeddingProvider (guidebase/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    Embeddings are consumed by
    :class:`~guidebase.interfaces.vector_store_provider.IVectorStoreProvider`
    for indexing and query-time similarity search.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the backend has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        guidebase.utils.errors.StorageError
            If the embedding backend fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must stay constant for the lifetime of the provider and match the
        vectors already stored in the vector index.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is installed and usable."""
