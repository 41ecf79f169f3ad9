"""Unit tests for HybridSearchService -- scoring, merging, and failures.

Both stores are mocks; the end-to-end behaviour against SQLite lives in
tests/integration/test_search_scenarios.py.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from guidebase.interfaces import IRelationalStore, IVectorStoreProvider
from guidebase.models import Chunk, SearchFilters, SearchResult, SearchSource, VectorMatch
from guidebase.services.search_service import HybridSearchService
from guidebase.utils.errors import QueryExecutionError, StorageError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _row(guide_id: str, section_id: str, score: float) -> dict:
    return {
        "guide_id": guide_id,
        "section_id": section_id,
        "guide_title": guide_id.title(),
        "section_title": section_id.title(),
        "snippet": f"...<mark>{section_id}</mark>...",
        "native_score": score,
        "category": json.dumps(["security"]),
        "tags": json.dumps(["auth"]),
        "status": "published",
        "framework": None,
        "language": None,
    }


def _match(guide_id: str, section_id: str, score: float, index: int = 0) -> VectorMatch:
    header = "# T\nCategory: x\nSection: S\n\n"
    return VectorMatch(
        chunk=Chunk(
            id=f"{guide_id}-{section_id}-{index}",
            guide_id=guide_id,
            section_id=section_id,
            title=guide_id.title(),
            section_title=section_id.title(),
            index=index,
            text=header + "semantic body " * 30,
            body_offset=len(header),
        ),
        similarity_score=score,
    )


def _result(guide_id: str, section_id: str, score: float, source: SearchSource, chunk_id=None):
    return SearchResult(
        guide_id=guide_id,
        section_id=section_id,
        title=guide_id,
        score=score,
        source=source,
        chunk_id=chunk_id,
    )


@pytest.fixture
def relational_mock() -> MagicMock:
    mock = MagicMock(spec=IRelationalStore)
    mock.get_provider_name.return_value = "mock-sqlite"
    mock.execute = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def vector_mock() -> MagicMock:
    mock = MagicMock(spec=IVectorStoreProvider)
    mock.get_provider_name.return_value = "mock-vector"
    mock.query = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def service(relational_mock, vector_mock) -> HybridSearchService:
    return HybridSearchService(relational_store=relational_mock, vector_store=vector_mock)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class TestScoring:
    @pytest.mark.asyncio
    async def test_keyword_scores_are_normalised_and_boosted(
        self, service, relational_mock
    ) -> None:
        relational_mock.execute.return_value = [_row("g1", "a", 4.0), _row("g2", "b", 2.0)]

        results = await service.search("validation")

        assert [r.score for r in results] == [pytest.approx(1.1), pytest.approx(0.55)]
        assert results[0].raw_score == 4.0
        assert results[0].source is SearchSource.KEYWORD
        assert results[0].excerpt == "...<mark>a</mark>..."
        assert results[0].metadata["category"] == ["security"]

    @pytest.mark.asyncio
    async def test_non_positive_keyword_scores_rank_equal(self, service, relational_mock) -> None:
        relational_mock.execute.return_value = [_row("g1", "a", 0.0), _row("g2", "b", -0.5)]
        results = await service.search("q")
        assert all(r.score == pytest.approx(1.1) for r in results)

    @pytest.mark.asyncio
    async def test_semantic_results_use_similarity(self, service, vector_mock) -> None:
        vector_mock.query.return_value = [_match("g1", "a", 0.8)]
        result, = await service.search("q")
        assert result.score == pytest.approx(0.8)
        assert result.source is SearchSource.SEMANTIC
        assert result.chunk_id == "g1::a::0"
        assert len(result.excerpt) == 200
        assert result.excerpt.startswith("semantic body")

    @pytest.mark.asyncio
    async def test_custom_boost(self, relational_mock, vector_mock) -> None:
        relational_mock.execute.return_value = [_row("g1", "a", 3.0)]
        service = HybridSearchService(relational_mock, vector_mock, keyword_boost=2.0)
        result, = await service.search("q")
        assert result.score == pytest.approx(2.0)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class TestMerge:
    def test_dedup_keeps_best_per_section(self) -> None:
        merged = HybridSearchService.merge(
            [
                _result("g1", "a", 0.9, SearchSource.SEMANTIC, "g1::a::0"),
                _result("g1", "a", 1.1, SearchSource.KEYWORD),
                _result("g1", "a", 0.7, SearchSource.SEMANTIC, "g1::a::1"),
                _result("g2", "b", 0.8, SearchSource.SEMANTIC, "g2-b"),
            ],
            limit=10,
        )
        assert [(r.guide_id, r.section_id, r.source) for r in merged] == [
            ("g1", "a", SearchSource.KEYWORD),
            ("g2", "b", SearchSource.SEMANTIC),
        ]

    def test_ties_prefer_keyword_then_ids(self) -> None:
        merged = HybridSearchService.merge(
            [
                _result("g2", "a", 0.5, SearchSource.SEMANTIC, "g2-a"),
                _result("g1", "b", 0.5, SearchSource.SEMANTIC, "g1-b"),
                _result("g3", "a", 0.5, SearchSource.KEYWORD),
                _result("g1", "a", 0.5, SearchSource.SEMANTIC, "g1::a"),
            ],
            limit=10,
        )
        assert [(r.guide_id, r.section_id) for r in merged] == [
            ("g3", "a"),
            ("g1", "a"),
            ("g1", "b"),
            ("g2", "a"),
        ]

    def test_truncates_after_dedup(self) -> None:
        candidates = [
            _result("g", "a", 1.0, SearchSource.KEYWORD),
            _result("g", "a", 0.9, SearchSource.SEMANTIC, "g-a"),
            _result("g", "b", 0.8, SearchSource.SEMANTIC, "g-b"),
            _result("g", "c", 0.7, SearchSource.SEMANTIC, "g-c"),
        ]
        merged = HybridSearchService.merge(candidates, limit=2)
        assert [r.section_id for r in merged] == ["a", "b"]

    def test_order_is_independent_of_input_order(self) -> None:
        candidates = [
            _result("g1", "a", 0.4, SearchSource.SEMANTIC, "g1::a"),
            _result("g2", "a", 0.4, SearchSource.SEMANTIC, "g2-a"),
            _result("g3", "c", 0.9, SearchSource.KEYWORD),
        ]
        forward = HybridSearchService.merge(candidates, limit=5)
        backward = HybridSearchService.merge(list(reversed(candidates)), limit=5)
        assert forward == backward

    @pytest.mark.asyncio
    async def test_search_never_returns_duplicate_keys(
        self, service, relational_mock, vector_mock
    ) -> None:
        relational_mock.execute.return_value = [_row("g1", "a", 2.0), _row("g1", "b", 1.0)]
        vector_mock.query.return_value = [
            _match("g1", "a", 0.99, 0),
            _match("g1", "a", 0.98, 1),
            _match("g1", "b", 0.97),
            _match("g2", "c", 0.5),
        ]
        results = await service.search("q", limit=10)
        keys = [r.key for r in results]
        assert len(keys) == len(set(keys)) == 3


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------


class TestKeywordQuery:
    def test_no_filters(self) -> None:
        sql, params = HybridSearchService._build_keyword_query("a-b c", SearchFilters(), 5)
        assert params == ['"a-b" c', 5]
        assert "AND" not in sql.split("MATCH ?")[1].split("ORDER BY")[0]

    def test_all_filters_bind_in_order(self) -> None:
        filters = SearchFilters(
            category="security",
            tags=["auth", "csrf"],
            framework="qwik",
            language="typescript",
            status="published",
        )
        sql, params = HybridSearchService._build_keyword_query("cookies", filters, 3)
        assert params == [
            "cookies",
            "security",
            "published",
            "qwik",
            "typescript",
            "auth",
            "csrf",
            3,
        ]
        assert sql.count("?") == len(params)
        assert "json_each(guides.tags)" in sql

    @pytest.mark.asyncio
    async def test_filters_reach_both_engines(self, service, relational_mock, vector_mock) -> None:
        filters = SearchFilters(status="published")
        await service.search("q", filters=filters, limit=4)

        vector_mock.query.assert_awaited_once_with("q", top_k=4, filters=filters)
        _, params = relational_mock.execute.await_args.args
        assert "published" in params


# ---------------------------------------------------------------------------
# Validation and failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_empty_query(self, service, query: str) -> None:
        with pytest.raises(ValueError):
            await service.search(query)

    @pytest.mark.asyncio
    async def test_limit_below_one(self, service) -> None:
        with pytest.raises(ValueError):
            await service.search("q", limit=0)

    def test_boost_must_be_positive(self, relational_mock, vector_mock) -> None:
        with pytest.raises(ValueError):
            HybridSearchService(relational_mock, vector_mock, keyword_boost=0)

    @pytest.mark.asyncio
    async def test_keyword_failure_is_query_error(self, service, relational_mock) -> None:
        cause = StorageError("disk I/O error", provider_name="sqlite")
        relational_mock.execute.side_effect = cause

        with pytest.raises(QueryExecutionError) as exc_info:
            await service.search("q")
        assert exc_info.value.__cause__ is cause
        assert exc_info.value.provider_name == "mock-sqlite"

    @pytest.mark.asyncio
    async def test_semantic_failure_is_query_error(self, service, vector_mock) -> None:
        vector_mock.query.side_effect = RuntimeError("collection gone")
        with pytest.raises(QueryExecutionError, match="semantic lookup failed"):
            await service.search("q")

    @pytest.mark.asyncio
    async def test_failure_is_not_an_empty_result(self, service, relational_mock, vector_mock) -> None:
        relational_mock.execute.return_value = [_row("g1", "a", 1.0)]
        vector_mock.query.side_effect = RuntimeError("down")
        with pytest.raises(QueryExecutionError):
            await service.search("q")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, service, vector_mock) -> None:
        vector_mock.query.side_effect = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await service.search("q")
