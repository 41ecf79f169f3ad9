"""Guide retrieval by id, plus corpus statistics.

Reads the relational store (metadata, sections, code examples) and the
object store (raw body).  It never touches the chunker: a guide is
reassembled from what indexing persisted, not re-parsed.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from guidebase.interfaces import IObjectStore, IRelationalStore, IVectorStoreProvider
from guidebase.models import CodeBlock, CorpusStats, Guide, GuideView, Section
from guidebase.services import schema
from guidebase.utils.errors import NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_LIST_COLUMNS = ("category", "tags", "related_guides", "languages", "frameworks", "platforms")


class GuideAssembler:
    """Builds :class:`GuideView` objects for direct retrieval by id."""

    def __init__(
        self,
        relational_store: IRelationalStore,
        object_store: IObjectStore,
        vector_store: IVectorStoreProvider | None = None,
    ) -> None:
        self._relational_store = relational_store
        self._object_store = object_store
        self._vector_store = vector_store

    async def get_guide(self, guide_id: str, section_id: str | None = None) -> GuideView:
        """Return a guide with all its sections, or just one of them.

        The raw body is included only when no *section_id* is given.

        Raises
        ------
        NotFoundError
            If the guide, or the requested section within it, does not exist.
        """
        guide = await self._load_guide(guide_id)

        if section_id is not None:
            section_rows = await self._relational_store.execute(
                schema.SELECT_SECTION_SQL, (guide_id, section_id)
            )
            if not section_rows:
                logger.info("guide_not_found", guide_id=guide_id, section_id=section_id)
                raise NotFoundError(
                    message=f"Section '{section_id}' not found in guide '{guide_id}'",
                    guide_id=guide_id,
                    section_id=section_id,
                )
        else:
            section_rows = await self._relational_store.execute(
                schema.SELECT_SECTIONS_SQL, (guide_id,)
            )

        code_blocks = await self._code_blocks_by_section(guide_id)
        sections = [_row_to_section(row, code_blocks.get(row["id"], [])) for row in section_rows]

        body: str | None = None
        if section_id is None:
            body = await self._read_body(guide)

        return GuideView(guide=guide, sections=sections, body=body)

    async def get_related_guides(self, guide_id: str) -> list[Guide]:
        """Return the guides listed in *guide_id*'s ``related_guides``.

        Guides come back in the order the header declares them.  Ids that
        are not (or no longer) indexed are skipped.

        Raises
        ------
        NotFoundError
            If *guide_id* itself does not exist.
        """
        guide = await self._load_guide(guide_id)
        related_ids = list(dict.fromkeys(guide.related_guides))
        if not related_ids:
            return []

        placeholders = ", ".join("?" for _ in related_ids)
        rows = await self._relational_store.execute(
            schema.SELECT_GUIDES_BY_ID_SQL.format(placeholders=placeholders), related_ids
        )
        by_id = {row["id"]: _row_to_guide(row) for row in rows}
        missing = [rid for rid in related_ids if rid not in by_id]
        if missing:
            logger.info("related_guides_missing", guide_id=guide_id, missing=missing)
        return [by_id[rid] for rid in related_ids if rid in by_id]

    async def get_corpus_stats(self) -> CorpusStats:
        """Return aggregate counts across the relational and vector stores."""
        guides = await self._relational_store.execute(schema.COUNT_GUIDES_SQL)
        sections = await self._relational_store.execute(schema.COUNT_SECTIONS_SQL)
        code_examples = await self._relational_store.execute(schema.COUNT_CODE_EXAMPLES_SQL)
        by_category = await self._relational_store.execute(schema.GUIDES_BY_CATEGORY_SQL)
        by_status = await self._relational_store.execute(schema.GUIDES_BY_STATUS_SQL)
        total_chunks = await self._vector_store.count() if self._vector_store else 0

        return CorpusStats(
            total_guides=guides[0]["n"],
            total_sections=sections[0]["n"],
            total_code_examples=code_examples[0]["n"],
            total_chunks=total_chunks,
            guides_by_category={row["category"]: row["n"] for row in by_category},
            guides_by_status={row["status"]: row["n"] for row in by_status},
        )

    async def _load_guide(self, guide_id: str) -> Guide:
        rows = await self._relational_store.execute(schema.SELECT_GUIDE_SQL, (guide_id,))
        if not rows:
            logger.info("guide_not_found", guide_id=guide_id)
            raise NotFoundError(message=f"Guide '{guide_id}' not found", guide_id=guide_id)
        return _row_to_guide(rows[0])

    async def _read_body(self, guide: Guide) -> str | None:
        raw = await self._object_store.get(guide.body_location)
        if raw is None:
            logger.warning("guide_body_missing", guide_id=guide.id, key=guide.body_location)
            return None

        # The body is written before the metadata; a failed later stage leaves them out of step.
        stored = await self._object_store.get_metadata(guide.body_location) or {}
        if (stored.get("version"), stored.get("last_updated")) != (
            guide.version,
            guide.last_updated,
        ):
            logger.warning(
                "guide_body_stale",
                guide_id=guide.id,
                guide_version=guide.version,
                body_version=stored.get("version"),
                guide_last_updated=guide.last_updated,
                body_last_updated=stored.get("last_updated"),
            )
        return raw.decode("utf-8")

    async def _code_blocks_by_section(self, guide_id: str) -> dict[str, list[CodeBlock]]:
        rows = await self._relational_store.execute(schema.SELECT_CODE_EXAMPLES_SQL, (guide_id,))
        blocks: dict[str, list[CodeBlock]] = {}
        for row in rows:
            blocks.setdefault(row["section_id"], []).append(
                CodeBlock(language=row["language"], code=row["code"], caption=row["caption"])
            )
        return blocks


def _row_to_guide(row: dict[str, Any]) -> Guide:
    data = dict(row)
    for column in _LIST_COLUMNS:
        data[column] = json.loads(data[column]) if data.get(column) else []
    data["extra"] = json.loads(data["extra"]) if data.get("extra") else {}
    return Guide(**data)


def _row_to_section(row: dict[str, Any], code_blocks: list[CodeBlock]) -> Section:
    return Section(
        id=row["id"],
        level=row["level"],
        title=row["title"],
        content=row["content"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        heading_line=row["heading_line"],
        code_blocks=code_blocks,
    )
