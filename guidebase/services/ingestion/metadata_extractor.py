"""YAML front-matter extraction for raw guide documents.

A guide starts with a delimited YAML block::

    ---
    id: sec-1
    title: Security
    category: [security, backend]
    ---
    # Security
    ...

Everything after the closing ``---`` line is the body, verbatim.  Parsing
is strict: a document without the block, with an unterminated block, or
whose block is not a YAML mapping raises :class:`MalformedDocumentError`.
There is no heuristic fallback.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from guidebase.models import GuideMetadata
from guidebase.utils.errors import MalformedDocumentError
from guidebase.utils.text import derive_guide_id, split_lines

logger = structlog.get_logger(logger_name=__name__)

_DELIMITER_RE = re.compile(r"^---[ \t]*(\r\n|\n|\r)?$")

# Front-matter keys mapped onto GuideMetadata fields; anything else lands in extra.
_KNOWN_KEYS = frozenset(
    {
        "id",
        "title",
        "category",
        "subcategory",
        "type",
        "status",
        "version",
        "last_updated",
        "tags",
        "related_guides",
        "languages",
        "frameworks",
        "platforms",
    }
)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FrontmatterExtractor:
    """Splits a raw document into :class:`GuideMetadata` and its body.

    Parameters
    ----------
    clock:
        Returns the ISO timestamp used when a header has no
        ``last_updated``.  Defaults to the current UTC time.
    """

    def __init__(self, clock: Callable[[], str] | None = None) -> None:
        self._clock = clock or _utc_now_iso

    def extract(self, source_name: str, content: str) -> tuple[GuideMetadata, str]:
        """Parse *content* submitted under *source_name*.

        Returns
        -------
        tuple[GuideMetadata, str]
            The structured header and the body that follows it.

        Raises
        ------
        MalformedDocumentError
            If the header block is absent, unterminated, not valid YAML,
            not a mapping, or fails validation.
        """
        header_text, body = self._split(source_name, content)

        try:
            raw = yaml.safe_load(header_text)
        except yaml.YAMLError as exc:
            raise MalformedDocumentError(
                message=f"Front matter of '{source_name}' is not valid YAML: {exc}",
                source_name=source_name,
            ) from exc

        if not isinstance(raw, dict):
            raise MalformedDocumentError(
                message=(
                    f"Front matter of '{source_name}' must be a mapping, "
                    f"got {type(raw).__name__}"
                ),
                source_name=source_name,
            )

        metadata = self._build_metadata(source_name, raw)
        logger.debug(
            "frontmatter_extracted",
            source_name=source_name,
            guide_id=metadata.id,
            body_length=len(body),
        )
        return metadata, body

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _split(source_name: str, content: str) -> tuple[str, str]:
        """Return ``(header_text, body)`` or raise if no delimited block opens the document."""
        text = content.removeprefix("\ufeff")
        lines = split_lines(text)

        if not lines or not _DELIMITER_RE.match(lines[0]):
            raise MalformedDocumentError(
                message=f"'{source_name}' does not start with a '---' front-matter block",
                source_name=source_name,
            )

        for index in range(1, len(lines)):
            if _DELIMITER_RE.match(lines[index]):
                header_text = "".join(lines[1:index])
                body = "".join(lines[index + 1 :])
                return header_text, body

        raise MalformedDocumentError(
            message=f"Front matter of '{source_name}' is never closed with '---'",
            source_name=source_name,
        )

    def _build_metadata(self, source_name: str, raw: dict[Any, Any]) -> GuideMetadata:
        fields: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in raw.items():
            if key in _KNOWN_KEYS:
                if value is not None:
                    fields[key] = value
            else:
                extra[str(key)] = value

        if not str(fields.get("id", "")).strip():
            fields["id"] = derive_guide_id(source_name)
        if not str(fields.get("title", "")).strip():
            fields["title"] = source_name.rsplit("/", 1)[-1].removesuffix(".md") or source_name
        fields.setdefault("last_updated", self._clock())

        try:
            return GuideMetadata(**fields, extra=extra)
        except ValidationError as exc:
            raise MalformedDocumentError(
                message=f"Front matter of '{source_name}' is invalid: {exc}",
                source_name=source_name,
            ) from exc
