"""Heading-based section splitting for guide bodies.

Walks the body line by line.  A heading line (``#`` to ``######`` followed
by whitespace and text) closes the open section and opens a new one whose
``level`` is the number of ``#`` characters.  Lines inside fenced code
blocks (```` ``` ```` or ``~~~``) are never headings, so a ``# comment`` in a
shell snippet stays part of its section.

Text before the first heading belongs to no section, but line numbers
always count from the first line of the body, so ``start_line`` and
``end_line`` point into the body as stored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog

from guidebase.models import CodeBlock, Section
from guidebase.utils.text import slugify, split_lines

logger = structlog.get_logger(logger_name=__name__)

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})(.*)$")


class FenceTracker:
    """Tracks whether a line sequence is inside a fenced code block.

    Shared by the splitter and the chunker so both agree on what counts as
    code.  Call :meth:`feed` once per line, in order.
    """

    def __init__(self) -> None:
        self._marker: str | None = None

    @property
    def in_fence(self) -> bool:
        return self._marker is not None

    def feed(self, line: str) -> str | None:
        """Consume *line* and return ``"open"``, ``"close"``, or ``None``."""
        match = _FENCE_RE.match(line.rstrip("\r\n"))
        if match is None:
            return None
        marker, rest = match.group(1), match.group(2)
        if self._marker is None:
            # Backtick fences may not carry backticks in their info string.
            if marker[0] == "`" and "`" in rest:
                return None
            self._marker = marker
            return "open"
        if marker[0] == self._marker[0] and len(marker) >= len(self._marker) and not rest.strip():
            self._marker = None
            return "close"
        return None


@dataclass
class _OpenSection:
    level: int
    title: str
    heading_line: str
    start_line: int
    lines: list[str] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)


class SectionSplitter:
    """Splits a guide body into ordered, non-overlapping :class:`Section` objects."""

    def split(self, body: str) -> list[Section]:
        """Return the sections of *body* ordered by ``start_line``.

        A body without headings yields an empty list; that is a valid
        outcome, not an error.
        """
        lines = split_lines(body)
        fences = FenceTracker()
        open_sections: list[_OpenSection] = []
        current: _OpenSection | None = None

        # Fenced block being collected: (language, code lines).
        block: tuple[str, list[str]] | None = None

        for line_no, line in enumerate(lines, start=1):
            was_in_fence = fences.in_fence
            event = fences.feed(line)

            if not was_in_fence and event is None:
                match = _HEADING_RE.match(line.rstrip("\r\n"))
                if match is not None:
                    current = _OpenSection(
                        level=len(match.group(1)),
                        title=match.group(2).strip(),
                        heading_line=line,
                        start_line=line_no,
                    )
                    open_sections.append(current)
                    continue

            if current is None:
                continue  # preamble before the first heading
            current.lines.append(line)

            if event == "open":
                info = _FENCE_RE.match(line.rstrip("\r\n")).group(2).strip()
                block = (info.split()[0] if info else "", [])
            elif event == "close" and block is not None:
                current.code_blocks.append(CodeBlock(language=block[0], code="".join(block[1])))
                block = None
            elif block is not None:
                block[1].append(line)

        # An unterminated fence runs to the end of the body.
        if block is not None and current is not None:
            current.code_blocks.append(CodeBlock(language=block[0], code="".join(block[1])))

        sections = self._finalise(open_sections, total_lines=len(lines))
        logger.debug("sections_split", count=len(sections), lines=len(lines))
        return sections

    @staticmethod
    def _finalise(open_sections: list[_OpenSection], total_lines: int) -> list[Section]:
        sections: list[Section] = []
        used_ids: set[str] = set()

        for position, draft in enumerate(open_sections):
            if position + 1 < len(open_sections):
                end_line = open_sections[position + 1].start_line - 1
            else:
                end_line = total_lines

            section_id = _unique_id(draft.title, position + 1, used_ids)
            used_ids.add(section_id)
            sections.append(
                Section(
                    id=section_id,
                    level=draft.level,
                    title=draft.title,
                    content="".join(draft.lines),
                    start_line=draft.start_line,
                    end_line=end_line,
                    heading_line=draft.heading_line,
                    code_blocks=draft.code_blocks,
                )
            )
        return sections


def _unique_id(title: str, ordinal: int, used: set[str]) -> str:
    """Slug of *title*, suffixed ``-2``, ``-3``... when already taken."""
    base = slugify(title) or f"section-{ordinal}"
    candidate = base
    suffix = 2
    while candidate in used:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate
