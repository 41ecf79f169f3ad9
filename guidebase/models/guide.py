"""Guide, section, and chunk models produced by the ingestion pipeline.

A raw guide (YAML front matter + markdown body) is decomposed as::

    raw document ──► GuideMetadata + body
                 ──► Section (one per heading, ordered by start_line)
                 ──► Chunk   (one or more per section, token-bounded)

All models are frozen.  Sections and chunks are regenerated wholesale every
time a guide is processed; they are never patched in place.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_str_list(value: Any) -> list[str]:
    """Normalise a YAML scalar-or-list value to a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value)]


# ---------------------------------------------------------------------------
# GuideMetadata — the parsed front matter of one document.
# ---------------------------------------------------------------------------
class GuideMetadata(BaseModel):
    """Structured header of a guide.

    Built by :class:`~guidebase.services.ingestion.metadata_extractor.FrontmatterExtractor`
    from the YAML block at the top of a document.  ``status`` is opaque to
    the pipeline -- it is stored and filterable but never interpreted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique, stable guide identifier.")
    title: str = Field(min_length=1, description="Human-readable guide title.")
    category: list[str] = Field(
        default_factory=lambda: ["uncategorized"],
        description="One or more category tags.",
    )
    subcategory: str | None = None
    type: str = "guide"
    status: str = "draft"
    version: str = "1.0"
    last_updated: str = Field(description="ISO-8601 date or timestamp of the last edit.")
    tags: list[str] = Field(default_factory=list)
    related_guides: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=list)
    platforms: list[str] = Field(default_factory=list)
    # Front-matter keys the model does not know about, kept verbatim.
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("category", mode="before")
    @classmethod
    def _normalise_category(cls, value: Any) -> list[str]:
        categories = _as_str_list(value)
        return categories or ["uncategorized"]

    @field_validator(
        "tags", "related_guides", "languages", "frameworks", "platforms", mode="before"
    )
    @classmethod
    def _normalise_lists(cls, value: Any) -> list[str]:
        return _as_str_list(value)

    @field_validator("id", "title", "type", "status", "version", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        # YAML reads `version: 1.0` as a float and `id: 42` as an int.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("id")
    @classmethod
    def _reject_chunk_separator(cls, value: str) -> str:
        # "::" separates the parts of a chunk id.
        if "::" in value:
            raise ValueError("guide id must not contain '::'")
        return value

    @field_validator("subcategory", mode="before")
    @classmethod
    def _optional_scalar_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("last_updated", mode="before")
    @classmethod
    def _date_to_iso(cls, value: Any) -> Any:
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return value

    @property
    def category_label(self) -> str:
        """Categories joined for display and chunk headers."""
        return ", ".join(self.category)


# ---------------------------------------------------------------------------
# Guide — metadata plus where the body lives.
# ---------------------------------------------------------------------------
class Guide(GuideMetadata):
    """One processed document as persisted in the relational store."""

    body_location: str = Field(description="Object-store key of the guide body.")
    indexed_at: str | None = Field(
        default=None, description="When the metadata row was last written."
    )


# ---------------------------------------------------------------------------
# CodeBlock — a fenced code example inside a section.
# ---------------------------------------------------------------------------
class CodeBlock(BaseModel):
    """A fenced code block found in a section body."""

    model_config = ConfigDict(frozen=True)

    language: str = Field(default="", description="Info-string language, empty if none.")
    code: str
    caption: str | None = None


# ---------------------------------------------------------------------------
# Section — one heading-delimited region of the body.
# ---------------------------------------------------------------------------
class Section(BaseModel):
    """A heading and the body lines that follow it, up to the next heading.

    ``content`` holds the raw lines (line endings included) without the
    heading line itself; ``heading_line`` keeps that line verbatim so the
    body can be rebuilt exactly from the ordered sections.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Identifier unique within the guide.")
    level: int = Field(ge=1, le=6, description="Heading depth (number of '#').")
    title: str
    content: str = ""
    start_line: int = Field(ge=1, description="1-based line of the heading.")
    end_line: int = Field(ge=1, description="1-based last line of the section.")
    heading_line: str = Field(default="", description="The heading line as written.")
    code_blocks: list[CodeBlock] = Field(default_factory=list)

    @property
    def raw_text(self) -> str:
        """Heading line plus content, exactly as they appear in the body."""
        return self.heading_line + self.content


# ---------------------------------------------------------------------------
# Chunk — a retrieval-sized slice of one section.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A token-bounded slice of a section, prefixed with a context header.

    ``text`` is what gets embedded: the context header followed by the
    stripped slice.  ``content`` is the raw slice of the section content it
    covers, so the chunks of a section concatenate back to the section.
    ``token_estimate`` comes from an :class:`ITokenEstimator` and is an
    approximation, not an exact token count.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    guide_id: str
    section_id: str
    title: str = Field(default="", description="Title of the parent guide.")
    section_title: str = ""
    index: int = Field(default=0, ge=0, description="Position within the section.")
    text: str
    content: str = ""
    body_offset: int = Field(
        default=0, ge=0, description="Length of the context header at the start of text."
    )
    token_estimate: int = Field(default=0, ge=0)
    continued: bool = False
    category: list[str] = Field(default_factory=list)
    subcategory: str | None = None
    framework: str | None = None
    language: str | None = None
    status: str | None = None
    tags: list[str] = Field(default_factory=list)

    @property
    def body_text(self) -> str:
        """The chunk text without its context header."""
        return self.text[self.body_offset :]


# ---------------------------------------------------------------------------
# Aggregates returned by the public operations.
# ---------------------------------------------------------------------------
class ProcessedGuide(BaseModel):
    """Everything one processing pass produced and persisted for a guide."""

    model_config = ConfigDict(frozen=True)

    guide: Guide
    sections: list[Section] = Field(default_factory=list)
    chunks: list[Chunk] = Field(default_factory=list)
    body: str = ""

    @property
    def code_examples(self) -> list[CodeBlock]:
        return [block for section in self.sections for block in section.code_blocks]


class GuideView(BaseModel):
    """A guide as returned by :meth:`GuideAssembler.get_guide`.

    ``body`` is only populated when the whole guide was requested.
    """

    model_config = ConfigDict(frozen=True)

    guide: Guide
    sections: list[Section] = Field(default_factory=list)
    body: str | None = None
