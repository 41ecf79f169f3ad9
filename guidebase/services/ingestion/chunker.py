"""Token-bounded chunking of guide sections for embedding.

Each section becomes one or more :class:`~guidebase.models.Chunk` objects.
Every chunk's ``text`` opens with a short context header so it can stand
alone in a vector index::

    # <guide title>
    Category: <categories>
    Section: <section title>[ (continued)]

    <section content, stripped>

The chunking strategy:

1. **Whole section first** -- if header + content fits within
   ``max_chunk_tokens``, the section is one chunk.

2. **Paragraph packing** -- otherwise the content is cut into paragraph
   units (after blank-line runs outside fenced code) and packed greedily;
   a chunk is closed when the next unit would push it over the ceiling.

3. **No data loss** -- a single unit larger than the ceiling is emitted as
   its own oversized chunk rather than truncated or cut mid-paragraph.

The units of a section concatenate back to its content exactly, so each
chunk's ``content`` is a raw, non-overlapping slice of the section.
"""

from __future__ import annotations

import math

import structlog

from guidebase.interfaces.token_estimator import ITokenEstimator
from guidebase.models import Chunk, GuideMetadata, Section
from guidebase.services.ingestion.section_splitter import FenceTracker
from guidebase.utils.text import detect_keyword, split_lines

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_CHUNK_TOKENS = 1000
DEFAULT_FRAMEWORKS = ("qwik", "react", "vue", "angular", "svelte")
DEFAULT_LANGUAGES = ("typescript", "javascript", "python", "go", "sql")
CHUNK_ID_SEPARATOR = "::"


def make_chunk_id(guide_id: str, section_id: str, index: int | None = None) -> str:
    """Build the vector-store id of a chunk.

    ``<guide_id>::<section_id>`` for a section kept whole, with ``::<index>``
    appended for each piece of a split section.  Section slugs never contain
    ``:`` and guide ids may not contain ``::``, so ids never collide across
    guides or between a split section and a ``-2`` duplicate heading.
    """
    chunk_id = f"{guide_id}{CHUNK_ID_SEPARATOR}{section_id}"
    if index is None:
        return chunk_id
    return f"{chunk_id}{CHUNK_ID_SEPARATOR}{index}"


class HeuristicTokenEstimator(ITokenEstimator):
    """Approximates tokens as ``ceil(characters / 4)``.

    Close enough for sizing chunks of English prose and code; it is not a
    tokenizer, and callers must not treat the result as an exact count.
    """

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) / 4)

    def get_estimator_name(self) -> str:
        return "chars_div_4"


class GuideChunker:
    """Splits sections into chunks no larger than *max_chunk_tokens*.

    Parameters
    ----------
    max_chunk_tokens:
        Soft ceiling per chunk, measured by *estimator* on the full chunk
        text (header included).
    estimator:
        Token estimation strategy; defaults to :class:`HeuristicTokenEstimator`.
    frameworks, languages:
        Keywords scanned for in section content to tag chunks with a
        framework and language.  The first match in list order wins.
    """

    def __init__(
        self,
        max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
        estimator: ITokenEstimator | None = None,
        frameworks: list[str] | tuple[str, ...] = DEFAULT_FRAMEWORKS,
        languages: list[str] | tuple[str, ...] = DEFAULT_LANGUAGES,
    ) -> None:
        if max_chunk_tokens < 1:
            raise ValueError(f"max_chunk_tokens must be >= 1, got {max_chunk_tokens}")
        self._max_tokens = max_chunk_tokens
        self._estimator = estimator or HeuristicTokenEstimator()
        self._frameworks = tuple(frameworks)
        self._languages = tuple(languages)

    @property
    def max_chunk_tokens(self) -> int:
        return self._max_tokens

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk_guide(self, metadata: GuideMetadata, sections: list[Section]) -> list[Chunk]:
        """Chunk every section of a guide, preserving section order."""
        chunks: list[Chunk] = []
        for section in sections:
            chunks.extend(self.chunk_section(metadata, section))
        logger.debug(
            "chunking_complete",
            guide_id=metadata.id,
            sections=len(sections),
            num_chunks=len(chunks),
        )
        return chunks

    def chunk_section(self, metadata: GuideMetadata, section: Section) -> list[Chunk]:
        """Return one or more chunks covering *section* in order.

        Always returns at least one chunk, even for a section with blank
        content, so its title stays searchable.
        """
        whole_text = self._header(metadata, section, continued=False) + section.content.strip()
        if self._estimator.estimate_tokens(whole_text) <= self._max_tokens:
            spans = [section.content]
        else:
            spans = self._pack(metadata, section, self._split_units(section.content))

        framework, language = self.detect_stack(section)
        split = len(spans) > 1
        chunks: list[Chunk] = []
        for index, span in enumerate(spans):
            continued = index > 0
            header = self._header(metadata, section, continued=continued)
            text = header + span.strip()
            estimate = self._estimator.estimate_tokens(text)
            chunk_id = make_chunk_id(metadata.id, section.id, index if split else None)

            if estimate > self._max_tokens:
                logger.warning(
                    "oversized_chunk",
                    guide_id=metadata.id,
                    section_id=section.id,
                    chunk_id=chunk_id,
                    token_estimate=estimate,
                    max_chunk_tokens=self._max_tokens,
                )

            chunks.append(
                Chunk(
                    id=chunk_id,
                    guide_id=metadata.id,
                    section_id=section.id,
                    title=metadata.title,
                    section_title=section.title,
                    index=index,
                    text=text,
                    content=span,
                    body_offset=len(header),
                    token_estimate=estimate,
                    continued=continued,
                    category=list(metadata.category),
                    subcategory=metadata.subcategory,
                    framework=framework,
                    language=language,
                    status=metadata.status,
                    tags=list(metadata.tags),
                )
            )
        return chunks

    def detect_stack(self, section: Section) -> tuple[str | None, str | None]:
        """Return the ``(framework, language)`` first mentioned in *section*."""
        text = f"{section.title}\n{section.content}"
        return detect_keyword(text, self._frameworks), detect_keyword(text, self._languages)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _header(metadata: GuideMetadata, section: Section, continued: bool) -> str:
        marker = " (continued)" if continued else ""
        return (
            f"# {metadata.title}\n"
            f"Category: {metadata.category_label}\n"
            f"Section: {section.title}{marker}\n\n"
        )

    @staticmethod
    def _split_units(content: str) -> list[str]:
        """Cut *content* after each blank-line run that sits outside a code fence.

        Units keep their trailing blank lines, so ``"".join(units) == content``.
        """
        units: list[str] = []
        current: list[str] = []
        current_has_text = False
        fences = FenceTracker()
        after_blank = False

        for line in split_lines(content):
            was_in_fence = fences.in_fence
            fences.feed(line)
            is_blank = not line.strip()

            # Leading blank lines stay with the first paragraph.
            if not was_in_fence and not is_blank and after_blank and current_has_text:
                units.append("".join(current))
                current = []
                current_has_text = False
            current.append(line)
            current_has_text = current_has_text or not is_blank
            after_blank = is_blank and not was_in_fence

        if current:
            units.append("".join(current))
        return units

    def _pack(self, metadata: GuideMetadata, section: Section, units: list[str]) -> list[str]:
        """Greedily pack *units* into spans that fit the token ceiling."""
        spans: list[str] = []
        current = ""
        for unit in units:
            if not current:
                current = unit
                continue
            candidate = current + unit
            header = self._header(metadata, section, continued=bool(spans))
            if self._estimator.estimate_tokens(header + candidate.strip()) <= self._max_tokens:
                current = candidate
            else:
                spans.append(current)
                current = unit
        if current or not spans:
            spans.append(current)
        return spans
