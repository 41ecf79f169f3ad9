"""Guide indexing coordinator: parse -> split -> chunk -> persist.

Orchestrates one document through the pipeline and into the three stores:

1. **Parse** (FrontmatterExtractor) -- header + body, or MalformedDocumentError.
2. **Split** (SectionSplitter) -- ordered sections keyed by heading depth.
3. **Chunk** (GuideChunker) -- token-bounded chunks with context headers.
4. **Persist**, in order, each stage tagged for error reporting:

   =============== =========================================================
   body-write      body -> object store under ``guides/<guide_id>.md``
   metadata-write  upsert guide row, replace sections + code examples (1 tx)
   index-write     replace the guide's FTS rows (delete-then-insert, 1 tx)
   vector-write    embed chunk texts, drop the guide's vectors, upsert new
   =============== =========================================================

A failing stage aborts the remaining stages for that document only.  The
stages are not atomic across stores: a failure after body-write leaves the
new body next to stale metadata until the document is processed again.
Every stage replaces the guide's previous state wholesale, so re-running a
document converges.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Sequence
from functools import partial
from pathlib import Path
from typing import Any

import structlog

from guidebase.interfaces import (
    IEmbeddingProvider,
    IObjectStore,
    IRelationalStore,
    IVectorStoreProvider,
    Statement,
)
from guidebase.models import (
    Chunk,
    Guide,
    IngestionResult,
    ProcessedGuide,
    Section,
)
from guidebase.services import schema
from guidebase.services.ingestion.chunker import GuideChunker
from guidebase.services.ingestion.metadata_extractor import FrontmatterExtractor
from guidebase.services.ingestion.section_splitter import SectionSplitter
from guidebase.utils.errors import (
    GuidebaseError,
    IndexingStage,
    MalformedDocumentError,
    StageFailureError,
)

logger = structlog.get_logger(logger_name=__name__)

_BODY_CONTENT_TYPE = "text/markdown; charset=utf-8"


def body_key(guide_id: str) -> str:
    """Object-store key holding the body of *guide_id*."""
    return f"guides/{guide_id}.md"


class GuideIndexer:
    """Processes raw guide documents and persists them to all stores.

    Parameters
    ----------
    object_store:
        Receives the raw body of each guide.
    relational_store:
        Holds guide metadata, sections, code examples, and the FTS index.
    vector_store:
        Holds chunk embeddings for semantic search.
    embedding_provider:
        Embeds chunk texts before they are written to *vector_store*.
    chunker:
        Section chunker; defaults to a :class:`GuideChunker` with a
        1000-token ceiling.
    extractor, splitter:
        Parsing collaborators; injectable for tests.
    concurrency:
        Default number of documents :meth:`process_batch` runs at once.
    """

    def __init__(
        self,
        object_store: IObjectStore,
        relational_store: IRelationalStore,
        vector_store: IVectorStoreProvider,
        embedding_provider: IEmbeddingProvider,
        chunker: GuideChunker | None = None,
        extractor: FrontmatterExtractor | None = None,
        splitter: SectionSplitter | None = None,
        concurrency: int = 1,
    ) -> None:
        self._object_store = object_store
        self._relational_store = relational_store
        self._vector_store = vector_store
        self._embedding_provider = embedding_provider
        self._chunker = chunker or GuideChunker()
        self._extractor = extractor or FrontmatterExtractor()
        self._splitter = splitter or SectionSplitter()
        self._concurrency = max(1, concurrency)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_document(self, name: str, content: str) -> ProcessedGuide:
        """Parse one raw document and persist it to every store.

        Parameters
        ----------
        name:
            Source name (usually the file name); the guide id is derived
            from it when the header has no ``id``.
        content:
            Raw document text: front matter followed by the markdown body.

        Returns
        -------
        ProcessedGuide
            The guide, its sections and chunks, and the stored body.

        Raises
        ------
        MalformedDocumentError
            If the front matter is missing or invalid.  Nothing is written.
        StageFailureError
            If a persistence stage fails; ``stage`` names which one.
        """
        metadata, body = self._extractor.extract(name, content)
        sections = self._splitter.split(body)
        if not sections:
            logger.warning("document_has_no_sections", source_name=name, guide_id=metadata.id)
        chunks = self._chunker.chunk_guide(metadata, sections)

        guide = Guide(**metadata.model_dump(), body_location=body_key(metadata.id))

        await self._run_stage(
            IndexingStage.BODY_WRITE, guide.id, lambda: self._write_body(guide, body)
        )
        await self._run_stage(
            IndexingStage.METADATA_WRITE,
            guide.id,
            lambda: self._relational_store.execute_batch(
                self._metadata_statements(guide, sections)
            ),
        )
        await self._run_stage(
            IndexingStage.INDEX_WRITE,
            guide.id,
            lambda: self._relational_store.execute_batch(
                self._fts_statements(guide, sections)
            ),
        )
        await self._run_stage(
            IndexingStage.VECTOR_WRITE, guide.id, lambda: self._write_vectors(guide.id, chunks)
        )

        logger.info(
            "document_processed",
            source_name=name,
            guide_id=guide.id,
            sections=len(sections),
            chunks=len(chunks),
        )
        return ProcessedGuide(guide=guide, sections=sections, chunks=chunks, body=body)

    async def process_batch(
        self,
        files: Sequence[tuple[str, str]],
        concurrency: int | None = None,
    ) -> list[IngestionResult]:
        """Process several documents; one failure never stops the others.

        Parameters
        ----------
        files:
            ``(name, content)`` pairs.
        concurrency:
            Maximum documents in flight at once; defaults to the value given
            at construction.  Documents sharing a guide id are not
            serialised against each other.

        Returns
        -------
        list[IngestionResult]
            One result per input, in input order.
        """
        return await self._run_bounded(
            [partial(self._process_one, name, content) for name, content in files],
            concurrency,
        )

    async def process_files(
        self,
        files: Sequence[tuple[str, str | Path]],
        concurrency: int | None = None,
    ) -> list[IngestionResult]:
        """Read and process ``(name, path)`` pairs from disk.

        Each file is read and decoded inside its own job, so a file that
        cannot be read or is not valid UTF-8 fails alone with a
        :class:`MalformedDocumentError` result.
        """
        return await self._run_bounded(
            [partial(self._process_file, name, Path(file_path)) for name, file_path in files],
            concurrency,
        )

    async def process_directory(
        self, dir_path: str | Path, concurrency: int | None = None
    ) -> list[IngestionResult]:
        """Process every ``*.md`` file under *dir_path* (recursively, sorted)."""
        path = Path(dir_path)
        if not path.is_dir():
            raise NotADirectoryError(f"Not a directory: {dir_path}")

        files = [(str(fp.relative_to(path)), fp) for fp in sorted(path.rglob("*.md"))]
        logger.info("directory_scan_complete", dir_path=str(path), files=len(files))
        return await self.process_files(files, concurrency=concurrency)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run_bounded(
        self,
        jobs: list[Callable[[], Awaitable[IngestionResult]]],
        concurrency: int | None,
    ) -> list[IngestionResult]:
        semaphore = asyncio.Semaphore(max(1, concurrency or self._concurrency))

        async def _bounded(job: Callable[[], Awaitable[IngestionResult]]) -> IngestionResult:
            async with semaphore:
                return await job()

        results = await asyncio.gather(*(_bounded(job) for job in jobs))

        failed = sum(1 for r in results if not r.success)
        logger.info(
            "batch_processing_complete",
            documents=len(results),
            succeeded=len(results) - failed,
            failed=failed,
        )
        return list(results)

    async def _process_file(self, name: str, file_path: Path) -> IngestionResult:
        try:
            content = await asyncio.to_thread(read_document, name, file_path)
        except MalformedDocumentError as exc:
            logger.warning("document_unreadable", source_name=name, error=str(exc))
            return IngestionResult(source_name=name, success=False, error=str(exc))
        return await self._process_one(name, content)

    async def _process_one(self, name: str, content: str) -> IngestionResult:
        start = time.monotonic()
        try:
            processed = await self.process_document(name, content)
        except MalformedDocumentError as exc:
            logger.warning("document_malformed", source_name=name, error=str(exc))
            return IngestionResult(source_name=name, success=False, error=str(exc))
        except StageFailureError as exc:
            return IngestionResult(
                source_name=name,
                guide_id=exc.guide_id,
                success=False,
                error=str(exc),
                stage=exc.stage,
                ingestion_time=round(time.monotonic() - start, 3),
            )
        except GuidebaseError as exc:
            logger.error("document_failed", source_name=name, error=str(exc))
            return IngestionResult(source_name=name, success=False, error=str(exc))

        warnings = [] if processed.sections else ["document has no sections"]
        return IngestionResult(
            source_name=name,
            guide_id=processed.guide.id,
            title=processed.guide.title,
            sections_created=len(processed.sections),
            chunks_created=len(processed.chunks),
            total_tokens=sum(c.token_estimate for c in processed.chunks),
            ingestion_time=round(time.monotonic() - start, 3),
            warnings=warnings,
        )

    @staticmethod
    async def _run_stage(
        stage: IndexingStage,
        guide_id: str,
        operation: Callable[[], Awaitable[Any]],
    ) -> None:
        """Await *operation*, re-raising any failure tagged with *stage*."""
        try:
            await operation()
        except Exception as exc:
            logger.error("stage_failed", stage=stage.value, guide_id=guide_id, error=str(exc))
            raise StageFailureError(
                stage=stage,
                guide_id=guide_id,
                message=getattr(exc, "message", None) or str(exc) or type(exc).__name__,
                provider_name=getattr(exc, "provider_name", None),
            ) from exc

    async def _write_body(self, guide: Guide, body: str) -> None:
        await self._object_store.put(
            guide.body_location,
            body.encode("utf-8"),
            content_type=_BODY_CONTENT_TYPE,
            metadata={
                "guide_id": guide.id,
                "version": guide.version,
                "last_updated": guide.last_updated,
            },
        )

    async def _write_vectors(self, guide_id: str, chunks: list[Chunk]) -> None:
        embeddings = await self._embedding_provider.embed([c.text for c in chunks])
        # Drop first: a shorter re-chunking must not leave orphaned chunk ids.
        await self._vector_store.delete_by_guide(guide_id)
        if chunks:
            await self._vector_store.upsert_chunks(chunks, embeddings)

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------

    def _metadata_statements(self, guide: Guide, sections: list[Section]) -> list[Statement]:
        statements: list[Statement] = [
            (schema.UPSERT_GUIDE_SQL, _guide_params(guide)),
            (schema.DELETE_SECTIONS_SQL, (guide.id,)),
            (schema.DELETE_CODE_EXAMPLES_SQL, (guide.id,)),
        ]
        for position, section in enumerate(sections):
            framework, language = self._chunker.detect_stack(section)
            statements.append(
                (
                    schema.INSERT_SECTION_SQL,
                    (
                        guide.id,
                        section.id,
                        position,
                        section.level,
                        section.title,
                        section.content,
                        section.heading_line,
                        section.start_line,
                        section.end_line,
                        framework,
                        language,
                    ),
                )
            )
            for block_position, block in enumerate(section.code_blocks):
                statements.append(
                    (
                        schema.INSERT_CODE_EXAMPLE_SQL,
                        (guide.id, section.id, block_position, block.language, block.code, block.caption),
                    )
                )
        return statements

    @staticmethod
    def _fts_statements(guide: Guide, sections: list[Section]) -> list[Statement]:
        tags = " ".join(guide.tags)
        statements: list[Statement] = [(schema.DELETE_FTS_SQL, (guide.id,))]
        for section in sections:
            statements.append(
                (
                    schema.INSERT_FTS_SQL,
                    (guide.id, section.id, guide.title, section.title, section.content, tags),
                )
            )
        return statements


def _guide_params(guide: Guide) -> tuple[Any, ...]:
    """Positional parameters for :data:`schema.UPSERT_GUIDE_SQL`."""
    return (
        guide.id,
        guide.title,
        json.dumps(guide.category),
        guide.subcategory,
        guide.type,
        guide.status,
        guide.version,
        guide.last_updated,
        json.dumps(guide.tags),
        json.dumps(guide.related_guides),
        json.dumps(guide.languages),
        json.dumps(guide.frameworks),
        json.dumps(guide.platforms),
        json.dumps(guide.extra, default=str),
        guide.body_location,
    )


def read_document(source_name: str, file_path: Path) -> str:
    """Read *file_path* as UTF-8 text.

    Raises
    ------
    MalformedDocumentError
        If the file cannot be read or is not valid UTF-8.
    """
    try:
        raw = file_path.read_bytes()
    except OSError as exc:
        raise MalformedDocumentError(
            message=f"Cannot read '{source_name}': {exc}", source_name=source_name
        ) from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedDocumentError(
            message=f"'{source_name}' is not valid UTF-8: {exc}", source_name=source_name
        ) from exc
