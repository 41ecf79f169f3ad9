"""guidebase composition root.

Wires the concrete providers and services together from :class:`Settings`.
The CLI calls :func:`build_services` once per invocation; any other host
(a web layer, a notebook) would do the same and then await
:func:`initialize_services` before first use.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from guidebase.config.loader import load_settings
from guidebase.config.settings import Settings
from guidebase.interfaces import IEmbeddingProvider, IVectorStoreProvider
from guidebase.providers.embedding import FastEmbedEmbeddingProvider
from guidebase.providers.object_store import LocalObjectStore
from guidebase.providers.relational import SQLiteRelationalStore
from guidebase.services.guide_service import GuideAssembler
from guidebase.services.ingestion import GuideChunker, GuideIndexer
from guidebase.services.search_service import HybridSearchService

logger = structlog.get_logger(logger_name=__name__)


def _build_vector_store(
    app_settings: Settings, embedding_provider: IEmbeddingProvider
) -> IVectorStoreProvider:
    """Open the ChromaDB collection (imported lazily; chromadb is slow to import)."""
    from guidebase.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        embedding_provider=embedding_provider,
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )


def build_services(
    custom_settings: Settings | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
) -> dict[str, Any]:
    """Construct every provider and service with injected dependencies.

    Parameters
    ----------
    custom_settings:
        Application settings.  Resolved by :func:`load_settings` if omitted.
    embedding_provider, vector_store:
        Overrides for the two heavyweight backends, e.g. in-memory fakes.

    Returns
    -------
    dict
        Service and provider instances keyed by role name.
    """
    s = custom_settings or load_settings()
    Path(s.data_dir).mkdir(parents=True, exist_ok=True)

    embedder = embedding_provider or FastEmbedEmbeddingProvider(model_name=s.embedding_model)
    vectors = vector_store or _build_vector_store(s, embedder)
    relational = SQLiteRelationalStore(db_path=s.sqlite_path)
    objects = LocalObjectStore(root_dir=s.object_store_dir)

    chunker = GuideChunker(
        max_chunk_tokens=s.max_chunk_tokens,
        frameworks=s.frameworks,
        languages=s.languages,
    )
    indexer = GuideIndexer(
        object_store=objects,
        relational_store=relational,
        vector_store=vectors,
        embedding_provider=embedder,
        chunker=chunker,
        concurrency=s.ingest_concurrency,
    )
    search_service = HybridSearchService(
        relational_store=relational,
        vector_store=vectors,
        keyword_boost=s.keyword_boost,
        default_limit=s.default_search_limit,
    )
    assembler = GuideAssembler(
        relational_store=relational,
        object_store=objects,
        vector_store=vectors,
    )

    logger.debug(
        "services_built",
        sqlite_path=s.sqlite_path,
        object_store_dir=s.object_store_dir,
        vector_store=vectors.get_provider_name(),
        embedding=embedder.get_provider_name(),
    )
    return {
        "settings": s,
        "embedding_provider": embedder,
        "vector_store": vectors,
        "relational_store": relational,
        "object_store": objects,
        "indexer": indexer,
        "search_service": search_service,
        "guide_assembler": assembler,
    }


async def initialize_services(services: dict[str, Any]) -> None:
    """Create the relational schema; safe to call on every start."""
    await services["relational_store"].initialize()
