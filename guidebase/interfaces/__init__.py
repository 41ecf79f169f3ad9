"""Public interface definitions for all external collaborators.

The ingestion and search services talk to storage and embedding backends
exclusively through the abstract base classes defined here.  Concrete
adapters implement them and are wired together in ``guidebase/main.py``;
tests inject in-memory fakes instead.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementation
    ─────────────────────────────────────────────────────────────────────
    IObjectStore               ->  LocalObjectStore
    IRelationalStore           ->  SQLiteRelationalStore
    IVectorStoreProvider       ->  ChromaDBProvider
    IEmbeddingProvider         ->  FastEmbedEmbeddingProvider
    ITokenEstimator            ->  HeuristicTokenEstimator
"""

from guidebase.interfaces.embedding_provider import IEmbeddingProvider
from guidebase.interfaces.object_store import IObjectStore
from guidebase.interfaces.relational_store import IRelationalStore, Statement
from guidebase.interfaces.token_estimator import ITokenEstimator
from guidebase.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "IObjectStore",
    "IRelationalStore",
    "ITokenEstimator",
    "IVectorStoreProvider",
    "Statement",
]
