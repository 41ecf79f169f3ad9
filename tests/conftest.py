"""Shared pytest fixtures for the guidebase test suite."""

from __future__ import annotations

import hashlib
import math
import re
from pathlib import Path
from textwrap import dedent
from typing import Any

import pytest

from guidebase.interfaces.embedding_provider import IEmbeddingProvider
from guidebase.interfaces.object_store import IObjectStore
from guidebase.interfaces.vector_store_provider import IVectorStoreProvider
from guidebase.models import Chunk, SearchFilters, VectorMatch
from guidebase.providers.relational.sqlite_provider import SQLiteRelationalStore
from guidebase.services.guide_service import GuideAssembler
from guidebase.services.ingestion import GuideIndexer
from guidebase.services.search_service import HybridSearchService

_WORD_RE = re.compile(r"[a-z0-9]+")


# ---------------------------------------------------------------------------
# In-memory fakes
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words hash vectors.

    Every lower-cased word is hashed into one of ``dimension`` buckets and
    the counts are L2-normalised, so texts sharing words have a positive
    cosine similarity and identical texts always embed identically.
    """

    def __init__(self, dimension: int = 128) -> None:
        self._dimension = dimension
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in _WORD_RE.findall(text.lower()):
            bucket = int(hashlib.sha256(word.encode("utf-8")).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self._vector(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed vector store applying every filter in Python."""

    def __init__(self, embedding_provider: IEmbeddingProvider) -> None:
        self._embedding_provider = embedding_provider
        self.rows: dict[str, tuple[Chunk, list[float]]] = {}

    async def query(
        self,
        query_text: str,
        top_k: int = 5,
        filters: SearchFilters | None = None,
    ) -> list[VectorMatch]:
        query_vector = await self._embedding_provider.embed_single(query_text)
        matches: list[VectorMatch] = []
        for chunk, vector in self.rows.values():
            if filters and not _chunk_passes(chunk, filters):
                continue
            similarity = sum(a * b for a, b in zip(query_vector, vector, strict=True))
            matches.append(
                VectorMatch(chunk=chunk, similarity_score=max(0.0, min(1.0, similarity)))
            )
        matches.sort(key=lambda m: (-m.similarity_score, m.chunk.id))
        return matches[:top_k]

    async def upsert_chunks(self, chunks: list[Chunk], embeddings: list[list[float]]) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        for chunk, vector in zip(chunks, embeddings, strict=True):
            self.rows[chunk.id] = (chunk, vector)
        return len(chunks)

    async def delete_by_guide(self, guide_id: str) -> int:
        doomed = [cid for cid, (chunk, _) in self.rows.items() if chunk.guide_id == guide_id]
        for cid in doomed:
            del self.rows[cid]
        return len(doomed)

    async def count(self) -> int:
        return len(self.rows)

    def chunk_ids(self, guide_id: str | None = None) -> list[str]:
        return sorted(
            cid for cid, (chunk, _) in self.rows.items() if guide_id in (None, chunk.guide_id)
        )

    def get_provider_name(self) -> str:
        return "mock-vector"

    def is_available(self) -> bool:
        return True


def _chunk_passes(chunk: Chunk, filters: SearchFilters) -> bool:
    if filters.category and filters.category not in chunk.category:
        return False
    if filters.tags and not set(filters.tags).intersection(chunk.tags):
        return False
    if filters.framework and chunk.framework != filters.framework:
        return False
    if filters.language and chunk.language != filters.language:
        return False
    if filters.status and chunk.status != filters.status:
        return False
    return True


class MockObjectStore(IObjectStore):
    """Dict-backed object store."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.metadata: dict[str, dict[str, Any]] = {}

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        self.objects[key] = data
        self.metadata[key] = {"content_type": content_type, **(metadata or {})}

    async def get(self, key: str) -> bytes | None:
        return self.objects.get(key)

    async def get_metadata(self, key: str) -> dict[str, str] | None:
        if key not in self.metadata:
            return None
        return {k: v for k, v in self.metadata[key].items() if k != "content_type"}

    def get_provider_name(self) -> str:
        return "mock-objects"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Document builders
# ---------------------------------------------------------------------------


def make_document(body: str, **header: Any) -> str:
    """Render a raw guide: YAML front matter built from *header*, then *body*."""
    lines = ["---"]
    for key, value in header.items():
        if isinstance(value, list):
            lines.append(f"{key}: [{', '.join(str(v) for v in value)}]")
        else:
            lines.append(f"{key}: {value}")
    lines.append("---")
    return "\n".join(lines) + "\n" + body


@pytest.fixture
def document_factory():
    """Return :func:`make_document` for building raw guide text."""
    return make_document


@pytest.fixture
def security_guide() -> str:
    """A small guide with three sections and one fenced code block."""
    return make_document(
        dedent(
            """\
            Intro text that belongs to no section.

            # Security Overview

            Protect every endpoint of the application.

            ## Input Validation

            Never trust user input. Apply validation on the server with a schema.

            ```python
            # not a heading
            schema.parse(payload)
            ```

            ## Session Cookies

            Set cookies with the HttpOnly and Secure flags.
            """
        ),
        id="security-guide",
        title='"Security"',
        category=["security", "backend"],
        status="published",
        version="2.0",
        last_updated="2024-03-01",
        tags=["auth", "owasp"],
    )


@pytest.fixture
def routing_guide() -> str:
    """A guide about routing with no mention of validating input."""
    return make_document(
        dedent(
            """\
            # Routing

            Routes map a URL path to a component.

            ## Route Loaders

            Loaders fetch data on the server before the page renders in qwik.

            ## Dynamic Segments

            Use square brackets in a folder name for a dynamic path segment.
            """
        ),
        id="routing-guide",
        title="Routing",
        category="frontend",
        status="draft",
        last_updated="2024-02-10",
        tags=["routing"],
    )


# ---------------------------------------------------------------------------
# Store and service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store(embedding_provider: MockEmbeddingProvider) -> MockVectorStore:
    return MockVectorStore(embedding_provider)


@pytest.fixture
def object_store() -> MockObjectStore:
    return MockObjectStore()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "guides.db"


@pytest.fixture
async def relational_store(db_path: Path) -> SQLiteRelationalStore:
    """A real SQLite store with the schema created under ``tmp_path``."""
    store = SQLiteRelationalStore(db_path=db_path)
    await store.initialize()
    return store


@pytest.fixture
def indexer(
    object_store: MockObjectStore,
    relational_store: SQLiteRelationalStore,
    vector_store: MockVectorStore,
    embedding_provider: MockEmbeddingProvider,
) -> GuideIndexer:
    return GuideIndexer(
        object_store=object_store,
        relational_store=relational_store,
        vector_store=vector_store,
        embedding_provider=embedding_provider,
    )


@pytest.fixture
def search_service(
    relational_store: SQLiteRelationalStore, vector_store: MockVectorStore
) -> HybridSearchService:
    return HybridSearchService(relational_store=relational_store, vector_store=vector_store)


@pytest.fixture
def assembler(
    relational_store: SQLiteRelationalStore,
    object_store: MockObjectStore,
    vector_store: MockVectorStore,
) -> GuideAssembler:
    return GuideAssembler(
        relational_store=relational_store,
        object_store=object_store,
        vector_store=vector_store,
    )
