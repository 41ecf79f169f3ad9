"""Ingestion outcome and corpus statistics models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from guidebase.utils.errors import IndexingStage


# ---------------------------------------------------------------------------
# IngestionResult — outcome of processing one document.
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Summary of a single document processing run.

    Returned per document by :meth:`GuideIndexer.process_batch`.  A failed
    document has ``success=False`` and, when a persistence stage failed,
    the ``stage`` it failed in.  Malformed documents fail before any stage
    runs, so their ``stage`` is ``None``.
    """

    model_config = ConfigDict(frozen=True)

    source_name: str = Field(description="Name the document was submitted under.")
    guide_id: str | None = Field(default=None, description="Resolved guide id, if parsed.")
    title: str | None = None
    success: bool = True
    error: str | None = None
    stage: IndexingStage | None = None
    sections_created: int = Field(default=0, ge=0)
    chunks_created: int = Field(default=0, ge=0)
    total_tokens: int = Field(
        default=0, ge=0, description="Approximate total token count across all chunks."
    )
    ingestion_time: float = Field(
        default=0.0, ge=0.0, description="Wall-clock time in seconds for the run."
    )
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# CorpusStats — a snapshot of the indexed corpus.
# ---------------------------------------------------------------------------
class CorpusStats(BaseModel):
    """Aggregate counts across the relational and vector stores."""

    model_config = ConfigDict(frozen=True)

    total_guides: int = Field(default=0, ge=0)
    total_sections: int = Field(default=0, ge=0)
    total_code_examples: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=0, ge=0, description="Chunks in the vector store.")
    guides_by_category: dict[str, int] = Field(
        default_factory=dict,
        description='Guide count per category (e.g. {"security": 3}).',
    )
    guides_by_status: dict[str, int] = Field(default_factory=dict)
