"""Hybrid keyword + semantic search over the guide corpus.

Runs an FTS5 keyword lookup and a vector similarity lookup concurrently,
then fuses the two ranked lists:

1. **Keyword scores** -- ``-bm25`` per section, divided by the best score in
   the keyword result set (so the top keyword hit is 1.0), then multiplied
   by ``keyword_boost``.
2. **Semantic scores** -- cosine similarity in [0, 1], used as-is.
3. **Merge** -- one list sorted by score, descending.  Ties go to keyword
   hits, then to ``guide_id``, ``section_id``, and ``chunk_id``, so the
   order is fully deterministic for a fixed corpus.
4. **Dedup** -- the first (best) hit per ``(guide_id, section_id)`` wins.
5. **Truncate** to ``limit``.

This is rank fusion by a single scoring rule; ``keyword_boost`` is the only
tuning knob.  A failure in either lookup fails the whole search with
:class:`QueryExecutionError`; it is never reported as "no results".
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog

from guidebase.interfaces import IRelationalStore, IVectorStoreProvider
from guidebase.models import (
    KeywordMatch,
    SearchFilters,
    SearchResult,
    SearchSource,
    VectorMatch,
)
from guidebase.services import schema
from guidebase.utils.errors import QueryExecutionError
from guidebase.utils.text import sanitize_fts_query

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_KEYWORD_BOOST = 1.1
DEFAULT_LIMIT = 5
_SEMANTIC_EXCERPT_CHARS = 200


class HybridSearchService:
    """Fuses full-text and vector search results into one ranked list.

    Parameters
    ----------
    relational_store:
        Store holding the ``guides_fts`` index (read-only here).
    vector_store:
        Vector index of guide chunks (read-only here).
    keyword_boost:
        Multiplier applied to normalised keyword scores before merging.
    default_limit:
        Result count used when :meth:`search` is called without ``limit``.
    """

    def __init__(
        self,
        relational_store: IRelationalStore,
        vector_store: IVectorStoreProvider,
        keyword_boost: float = DEFAULT_KEYWORD_BOOST,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        if keyword_boost <= 0:
            raise ValueError(f"keyword_boost must be positive, got {keyword_boost}")
        self._relational_store = relational_store
        self._vector_store = vector_store
        self._keyword_boost = keyword_boost
        self._default_limit = default_limit

    @property
    def keyword_boost(self) -> float:
        return self._keyword_boost

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Return at most *limit* deduplicated results for *query*.

        Raises
        ------
        ValueError
            If *query* is blank or *limit* is below 1.
        QueryExecutionError
            If either the keyword or the semantic lookup fails.
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        limit = self._default_limit if limit is None else limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        filters = filters or SearchFilters()

        keyword_outcome, semantic_outcome = await asyncio.gather(
            self._keyword_lookup(query, filters, limit),
            self._vector_store.query(query, top_k=limit, filters=filters),
            return_exceptions=True,
        )
        keyword_matches = self._unwrap(
            keyword_outcome, "keyword", self._relational_store.get_provider_name()
        )
        vector_matches = self._unwrap(
            semantic_outcome, "semantic", self._vector_store.get_provider_name()
        )

        candidates = self._keyword_results(keyword_matches) + self._semantic_results(
            vector_matches
        )
        results = self.merge(candidates, limit)

        logger.info(
            "hybrid_search_complete",
            query_length=len(query),
            filtered=not filters.is_empty,
            keyword_hits=len(keyword_matches),
            semantic_hits=len(vector_matches),
            results=len(results),
            top_score=results[0].score if results else 0.0,
        )
        return results

    @staticmethod
    def merge(candidates: list[SearchResult], limit: int) -> list[SearchResult]:
        """Sort, deduplicate on ``(guide_id, section_id)``, and truncate."""
        ordered = sorted(
            candidates,
            key=lambda r: (
                -r.score,
                0 if r.source is SearchSource.KEYWORD else 1,
                r.guide_id,
                r.section_id,
                r.chunk_id or "",
            ),
        )
        seen: set[tuple[str, str]] = set()
        merged: list[SearchResult] = []
        for result in ordered:
            if result.key in seen:
                continue
            seen.add(result.key)
            merged.append(result)
            if len(merged) == limit:
                break
        return merged

    # ------------------------------------------------------------------
    # Keyword side
    # ------------------------------------------------------------------

    async def _keyword_lookup(
        self, query: str, filters: SearchFilters, limit: int
    ) -> list[KeywordMatch]:
        sql, params = self._build_keyword_query(query, filters, limit)
        rows = await self._relational_store.execute(sql, params)
        return [
            KeywordMatch(
                guide_id=row["guide_id"],
                section_id=row["section_id"],
                guide_title=row["guide_title"],
                section_title=row["section_title"],
                snippet=row["snippet"] or "",
                native_score=float(row["native_score"]),
                category=_json_list(row["category"]),
                tags=_json_list(row["tags"]),
                status=row["status"],
            )
            for row in rows
        ]

    @staticmethod
    def _build_keyword_query(
        query: str, filters: SearchFilters, limit: int
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = [sanitize_fts_query(query)]

        for name in ("category", "status", "framework", "language"):
            value = getattr(filters, name)
            if value:
                clauses.append(f"\n  AND {schema.KEYWORD_FILTER_CLAUSES[name]}")
                params.append(value)
        if filters.tags:
            placeholders = ", ".join("?" for _ in filters.tags)
            clauses.append(f"\n  AND {schema.KEYWORD_TAGS_CLAUSE.format(placeholders=placeholders)}")
            params.extend(filters.tags)

        params.append(limit)
        return schema.KEYWORD_SEARCH_SQL.format(filters="".join(clauses)), params

    def _keyword_results(self, matches: list[KeywordMatch]) -> list[SearchResult]:
        if not matches:
            return []
        best = max(m.native_score for m in matches)
        results: list[SearchResult] = []
        for match in matches:
            # FTS5 bm25 can collapse to ~0 on tiny corpora; rank them all equal then.
            normalised = max(match.native_score, 0.0) / best if best > 0 else 1.0
            results.append(
                SearchResult(
                    guide_id=match.guide_id,
                    section_id=match.section_id,
                    title=match.guide_title,
                    excerpt=match.snippet,
                    score=normalised * self._keyword_boost,
                    raw_score=match.native_score,
                    source=SearchSource.KEYWORD,
                    metadata={
                        "section_title": match.section_title,
                        "category": match.category,
                        "tags": match.tags,
                        "status": match.status,
                    },
                )
            )
        return results

    # ------------------------------------------------------------------
    # Semantic side
    # ------------------------------------------------------------------

    @staticmethod
    def _semantic_results(matches: list[VectorMatch]) -> list[SearchResult]:
        results: list[SearchResult] = []
        for match in matches:
            chunk = match.chunk
            results.append(
                SearchResult(
                    guide_id=chunk.guide_id,
                    section_id=chunk.section_id,
                    title=chunk.title,
                    excerpt=chunk.body_text.strip()[:_SEMANTIC_EXCERPT_CHARS],
                    score=match.similarity_score,
                    raw_score=match.similarity_score,
                    source=SearchSource.SEMANTIC,
                    chunk_id=chunk.id,
                    metadata={
                        "section_title": chunk.section_title,
                        "category": chunk.category,
                        "tags": chunk.tags,
                        "status": chunk.status,
                        "framework": chunk.framework,
                        "language": chunk.language,
                    },
                )
            )
        return results

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------

    @staticmethod
    def _unwrap(outcome: Any, engine: str, provider_name: str) -> Any:
        """Return a gathered lookup result, or raise its failure.

        Cancellation and other non-``Exception`` signals propagate untouched;
        ordinary failures become :class:`QueryExecutionError`.
        """
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.error(
                "search_lookup_failed", engine=engine, provider=provider_name, error=str(outcome)
            )
            raise QueryExecutionError(
                message=f"{engine} lookup failed: {outcome}",
                provider_name=provider_name,
            ) from outcome
        return outcome


def _json_list(value: str | None) -> list[str]:
    if not value:
        return []
    parsed = json.loads(value)
    return [str(v) for v in parsed] if isinstance(parsed, list) else []
