"""guidebase domain models -- re-exports all public model classes.

Other parts of the codebase import from ``guidebase.models`` rather than
from the individual modules:

    - guide.py      -- Guide metadata, sections, code blocks, chunks, and the
                       aggregates returned by processing and retrieval
    - search.py     -- Search filters, engine-native matches, merged results
    - ingestion.py  -- Per-document ingestion outcome and corpus statistics

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from guidebase.models.guide import (
    Chunk,
    CodeBlock,
    Guide,
    GuideMetadata,
    GuideView,
    ProcessedGuide,
    Section,
)
from guidebase.models.ingestion import CorpusStats, IngestionResult
from guidebase.models.search import (
    KeywordMatch,
    SearchFilters,
    SearchResult,
    SearchSource,
    VectorMatch,
)
from guidebase.utils.errors import IndexingStage

__all__ = [
    "Chunk",
    "CodeBlock",
    "CorpusStats",
    "Guide",
    "GuideMetadata",
    "GuideView",
    "IndexingStage",
    "IngestionResult",
    "KeywordMatch",
    "ProcessedGuide",
    "SearchFilters",
    "SearchResult",
    "SearchSource",
    "Section",
    "VectorMatch",
]
