"""Unit tests for the guidebase.cli.guides command-line tool.

Handlers are driven with an injected services dict of mocks; the parser
and ``main()`` are tested without building real providers.
"""

from __future__ import annotations

import json
from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from guidebase.cli.guides import (
    _build_parser,
    _handle_get,
    _handle_ingest,
    _handle_related,
    _handle_search,
    _handle_stats,
    _run,
    main,
)
from guidebase.models import (
    CorpusStats,
    Guide,
    GuideView,
    IngestionResult,
    SearchResult,
    SearchSource,
    Section,
)
from guidebase.utils.errors import IndexingStage, NotFoundError, QueryExecutionError

# ======================================================================
# Shared helpers
# ======================================================================


def _guide() -> Guide:
    return Guide(
        id="security-guide",
        title="Security",
        category=["security", "backend"],
        status="published",
        last_updated="2024-03-01",
        tags=["auth"],
        body_location="guides/security-guide.md",
    )


def _section(section_id: str = "input-validation") -> Section:
    return Section(
        id=section_id,
        level=2,
        title="Input Validation",
        content="\nValidate on the server.\n",
        start_line=7,
        end_line=9,
        heading_line="## Input Validation\n",
    )


@pytest.fixture
def services() -> dict:
    indexer = MagicMock()
    indexer.process_files = AsyncMock(return_value=[])
    indexer.process_directory = AsyncMock(return_value=[])
    search_service = MagicMock()
    search_service.search = AsyncMock(return_value=[])
    assembler = MagicMock()
    assembler.get_guide = AsyncMock()
    assembler.get_corpus_stats = AsyncMock()
    assembler.get_related_guides = AsyncMock(return_value=[])
    relational = MagicMock()
    relational.initialize = AsyncMock()
    return {
        "indexer": indexer,
        "search_service": search_service,
        "guide_assembler": assembler,
        "relational_store": relational,
    }


def _search_args(**overrides) -> Namespace:
    fields = {
        "query": "validation",
        "category": None,
        "tags": None,
        "framework": None,
        "language": None,
        "status": None,
        "limit": None,
        "json": False,
    }
    fields.update(overrides)
    return Namespace(command="search", **fields)


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_search_arguments(self) -> None:
        args = _build_parser().parse_args(
            ["search", "route loaders", "--tag", "a", "--tag", "b", "--limit", "3", "--json"]
        )
        assert args.command == "search"
        assert args.query == "route loaders"
        assert args.tags == ["a", "b"]
        assert args.limit == 3
        assert args.json is True

    def test_ingest_requires_a_path(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["ingest"])

    def test_get_section(self) -> None:
        args = _build_parser().parse_args(["get", "g1", "--section", "s1"])
        assert (args.guide_id, args.section, args.json) == ("g1", "s1", False)

    def test_related_arguments(self) -> None:
        args = _build_parser().parse_args(["--config", "alt.yaml", "related", "g1", "--json"])
        assert (args.command, args.guide_id, args.json) == ("related", "g1", True)
        assert args.config == "alt.yaml"

    def test_bad_config_exits_1(self, tmp_path: Path, capsys) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("search:\n  keyword_boost: 0\n", encoding="utf-8")
        with patch("guidebase.main.build_services") as build:
            with pytest.raises(SystemExit) as exc_info:
                main(["--config", str(config), "stats"])

        assert exc_info.value.code == 1
        assert "Invalid configuration" in capsys.readouterr().err
        build.assert_not_called()

    def test_main_without_command_exits_1(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_main_dispatches_with_built_services(self, services) -> None:
        services["guide_assembler"].get_corpus_stats.return_value = CorpusStats()
        with (
            patch("guidebase.cli.guides.configure_logging") as configure,
            patch("guidebase.main.build_services", return_value=services),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["--log-level", "DEBUG", "stats"])

        assert exc_info.value.code == 0
        configure.assert_called_once_with("DEBUG", json_output=False)
        services["relational_store"].initialize.assert_awaited_once()


# ======================================================================
# ingest
# ======================================================================


class TestIngest:
    @pytest.mark.asyncio
    async def test_files_are_handed_over_by_path(self, tmp_path: Path, services, capsys) -> None:
        guide = tmp_path / "auth.md"
        guide.write_text("---\ntitle: Auth\n---\n# Auth\n", encoding="utf-8")
        services["indexer"].process_files.return_value = [
            IngestionResult(
                source_name="auth.md", guide_id="auth", sections_created=1, chunks_created=1
            )
        ]

        code = await _handle_ingest(
            Namespace(paths=[str(guide)], concurrency=2), services
        )

        assert code == 0
        services["indexer"].process_files.assert_awaited_once_with(
            [("auth.md", guide)], concurrency=2
        )
        out = capsys.readouterr().out
        assert "OK      auth.md -> auth (1 sections, 1 chunks)" in out
        assert "1 succeeded, 0 failed" in out

    @pytest.mark.asyncio
    async def test_directories_use_process_directory(self, tmp_path: Path, services) -> None:
        code = await _handle_ingest(Namespace(paths=[str(tmp_path)], concurrency=None), services)
        assert code == 0
        services["indexer"].process_directory.assert_awaited_once_with(tmp_path, concurrency=None)
        services["indexer"].process_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_prints_stage_and_exits_1(self, tmp_path: Path, services, capsys) -> None:
        services["indexer"].process_directory.return_value = [
            IngestionResult(source_name="ok.md", guide_id="ok"),
            IngestionResult(
                source_name="bad.md",
                guide_id="bad",
                success=False,
                error="vector-write failed for guide 'bad': down",
                stage=IndexingStage.VECTOR_WRITE,
            ),
        ]
        code = await _handle_ingest(Namespace(paths=[str(tmp_path)], concurrency=None), services)

        assert code == 1
        out = capsys.readouterr().out
        assert "FAILED  bad.md [vector-write]: vector-write failed" in out
        assert "1 succeeded, 1 failed" in out

    @pytest.mark.asyncio
    async def test_missing_path_exits_1(self, tmp_path: Path, services, capsys) -> None:
        code = await _handle_ingest(
            Namespace(paths=[str(tmp_path / "nope.md")], concurrency=None), services
        )
        assert code == 1
        assert "no such file or directory" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_warnings_are_printed(self, tmp_path: Path, services, capsys) -> None:
        services["indexer"].process_directory.return_value = [
            IngestionResult(source_name="e.md", guide_id="e", warnings=["document has no sections"])
        ]
        await _handle_ingest(Namespace(paths=[str(tmp_path)], concurrency=None), services)
        assert "warning: document has no sections" in capsys.readouterr().out


# ======================================================================
# search
# ======================================================================


class TestSearch:
    @pytest.mark.asyncio
    async def test_text_output(self, services, capsys) -> None:
        services["search_service"].search.return_value = [
            SearchResult(
                guide_id="security-guide",
                section_id="input-validation",
                title="Security",
                excerpt="Apply <mark>validation</mark>\n on the server",
                score=1.1,
                source=SearchSource.KEYWORD,
            )
        ]
        code = await _handle_search(_search_args(), services)

        assert code == 0
        out = capsys.readouterr().out
        assert "1. [keyword 1.100] security-guide#input-validation  Security" in out
        assert "Apply <mark>validation</mark> on the server" in out

    @pytest.mark.asyncio
    async def test_filters_are_forwarded(self, services) -> None:
        await _handle_search(
            _search_args(tags=["auth"], framework="qwik", status="published", limit=3), services
        )
        call = services["search_service"].search.await_args
        assert call.args == ("validation",)
        assert call.kwargs["limit"] == 3
        filters = call.kwargs["filters"]
        assert filters.tags == ["auth"]
        assert filters.framework == "qwik"
        assert filters.status == "published"
        assert filters.category is None

    @pytest.mark.asyncio
    async def test_json_output(self, services, capsys) -> None:
        services["search_service"].search.return_value = [
            SearchResult(
                guide_id="g",
                section_id="s",
                title="G",
                score=0.5,
                source=SearchSource.SEMANTIC,
                chunk_id="g-s",
            )
        ]
        await _handle_search(_search_args(json=True), services)
        payload = json.loads(capsys.readouterr().out)
        assert payload[0]["source"] == "semantic"
        assert payload[0]["chunk_id"] == "g-s"

    @pytest.mark.asyncio
    async def test_no_results(self, services, capsys) -> None:
        assert await _handle_search(_search_args(), services) == 0
        assert "No results." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_query_error_exits_1(self, services, capsys) -> None:
        services["search_service"].search.side_effect = QueryExecutionError("keyword lookup failed")
        assert await _handle_search(_search_args(), services) == 1
        assert "keyword lookup failed" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_invalid_arguments_exit_2(self, services) -> None:
        services["search_service"].search.side_effect = ValueError("query must not be empty")
        assert await _handle_search(_search_args(query=" "), services) == 2


# ======================================================================
# get / stats
# ======================================================================


class TestGetAndStats:
    @pytest.mark.asyncio
    async def test_get_whole_guide(self, services, capsys) -> None:
        services["guide_assembler"].get_guide.return_value = GuideView(
            guide=_guide(), sections=[_section()], body="## Input Validation\n..."
        )
        args = Namespace(command="get", guide_id="security-guide", section=None, json=False)

        assert await _handle_get(args, services) == 0
        out = capsys.readouterr().out
        assert "Category:      security, backend" in out
        assert "[input-validation] Input Validation (lines 7-9)" in out
        assert "## Input Validation\n..." in out

    @pytest.mark.asyncio
    async def test_get_single_section(self, services, capsys) -> None:
        services["guide_assembler"].get_guide.return_value = GuideView(
            guide=_guide(), sections=[_section()], body=None
        )
        args = Namespace(
            command="get", guide_id="security-guide", section="input-validation", json=False
        )
        assert await _handle_get(args, services) == 0
        services["guide_assembler"].get_guide.assert_awaited_once_with(
            "security-guide", section_id="input-validation"
        )
        assert "Validate on the server." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_get_json(self, services, capsys) -> None:
        services["guide_assembler"].get_guide.return_value = GuideView(
            guide=_guide(), sections=[], body="body"
        )
        args = Namespace(command="get", guide_id="security-guide", section=None, json=True)
        await _handle_get(args, services)
        payload = json.loads(capsys.readouterr().out)
        assert payload["guide"]["id"] == "security-guide"
        assert payload["body"] == "body"

    @pytest.mark.asyncio
    async def test_get_missing_exits_1(self, services, capsys) -> None:
        services["guide_assembler"].get_guide.side_effect = NotFoundError(
            "Guide 'missing-id' not found", guide_id="missing-id"
        )
        args = Namespace(command="get", guide_id="missing-id", section=None, json=False)
        assert await _handle_get(args, services) == 1
        assert "missing-id" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_related(self, services, capsys) -> None:
        services["guide_assembler"].get_related_guides.return_value = [_guide()]
        args = Namespace(command="related", guide_id="hub", json=False)

        assert await _handle_related(args, services) == 0
        out = capsys.readouterr().out
        assert "Related to hub:" in out
        assert "security-guide" in out
        assert "[security, backend; published]" in out

    @pytest.mark.asyncio
    async def test_related_none(self, services, capsys) -> None:
        args = Namespace(command="related", guide_id="hub", json=False)
        assert await _handle_related(args, services) == 0
        assert "No related guides for hub." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_related_json(self, services, capsys) -> None:
        services["guide_assembler"].get_related_guides.return_value = [_guide()]
        args = Namespace(command="related", guide_id="hub", json=True)
        await _handle_related(args, services)
        payload = json.loads(capsys.readouterr().out)
        assert [g["id"] for g in payload] == ["security-guide"]

    @pytest.mark.asyncio
    async def test_related_missing_exits_1(self, services, capsys) -> None:
        services["guide_assembler"].get_related_guides.side_effect = NotFoundError(
            "Guide 'missing-id' not found", guide_id="missing-id"
        )
        args = Namespace(command="related", guide_id="missing-id", json=False)
        assert await _handle_related(args, services) == 1
        assert "missing-id" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_stats(self, services, capsys) -> None:
        services["guide_assembler"].get_corpus_stats.return_value = CorpusStats(
            total_guides=2,
            total_sections=6,
            total_code_examples=1,
            total_chunks=7,
            guides_by_category={"security": 1, "frontend": 1},
            guides_by_status={"draft": 1, "published": 1},
        )
        assert await _handle_stats(Namespace(command="stats"), services) == 0
        out = capsys.readouterr().out
        assert "Total guides:        2" in out
        assert "Total chunks:        7" in out
        assert "security" in out

    @pytest.mark.asyncio
    async def test_run_initialises_before_dispatch(self, services) -> None:
        services["guide_assembler"].get_corpus_stats.return_value = CorpusStats()
        assert await _run(Namespace(command="stats"), services) == 0
        services["relational_store"].initialize.assert_awaited_once()
