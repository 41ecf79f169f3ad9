"""Embedding provider implementations.

Embeddings turn chunk text into vectors that capture its meaning; they are
stored in ChromaDB and compared against the embedded query at search time.

FastEmbedEmbeddingProvider is the only implementation.  fastembed itself is
imported lazily on first use, so importing this package stays cheap.
"""

from guidebase.providers.embedding.fastembed_embedding_provider import (
    FastEmbedEmbeddingProvider,
)

__all__ = ["FastEmbedEmbeddingProvider"]
