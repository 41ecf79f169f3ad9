"""Search-side models: filters, per-engine matches, and merged results.

A query fans out to two engines whose raw scores live on different scales:

    keyword  -- FTS5 bm25, negated so that higher is better, then divided by
                the best score in the keyword result set
    semantic -- cosine similarity in [0, 1]

:class:`KeywordMatch` and :class:`VectorMatch` carry those native scores;
:class:`SearchResult` is the merged, source-tagged shape returned to callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from guidebase.models.guide import Chunk


class SearchSource(str, Enum):
    """Which engine produced a search result."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"


class SearchFilters(BaseModel):
    """Metadata predicates applied identically to both engines.

    Unset fields do not constrain the search.  ``tags`` matches a result
    carrying *any* of the listed tags.
    """

    model_config = ConfigDict(frozen=True)

    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    framework: str | None = None
    language: str | None = None
    status: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.category or self.tags or self.framework or self.language or self.status)


# ---------------------------------------------------------------------------
# Engine-native matches.
# ---------------------------------------------------------------------------
class KeywordMatch(BaseModel):
    """One FTS5 hit: a section of a guide and its bm25-derived score."""

    model_config = ConfigDict(frozen=True)

    guide_id: str
    section_id: str
    guide_title: str
    section_title: str
    snippet: str = ""
    native_score: float = Field(description="Negated bm25; higher is more relevant.")
    category: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    status: str | None = None


class VectorMatch(BaseModel):
    """A chunk returned from a vector-store query with its similarity score."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk = Field(description="The retrieved chunk.")
    similarity_score: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Cosine similarity between the query and this chunk.",
    )


# ---------------------------------------------------------------------------
# SearchResult — what HybridSearchService.search() returns.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A merged, deduplicated search hit.

    ``score`` is the combined score used for ranking (boosted for keyword
    hits); ``raw_score`` is the engine's own score before normalisation.
    ``chunk_id`` is set for semantic hits only, since the full-text index
    works at section granularity.
    """

    model_config = ConfigDict(frozen=True)

    guide_id: str
    section_id: str
    title: str
    excerpt: str = ""
    score: float = Field(ge=0.0)
    raw_score: float = 0.0
    source: SearchSource
    chunk_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        """The ``(guide_id, section_id)`` pair results are deduplicated on."""
        return (self.guide_id, self.section_id)
