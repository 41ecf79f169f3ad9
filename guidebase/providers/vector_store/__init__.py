"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  It stores chunk
embeddings on disk and supports cosine-similarity search with metadata
filtering.  Data persists at GUIDEBASE_CHROMADB_PERSIST_DIR.

To swap ChromaDB for another vector database, create a new class
implementing IVectorStoreProvider and wire it in main.py.
"""

from guidebase.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
