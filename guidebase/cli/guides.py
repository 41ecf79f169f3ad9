# =============================================================================
# guidebase/cli/guides.py — Guide corpus CLI
# =============================================================================
#
# Operator tool for the guide corpus.  Every subcommand builds the full
# service graph from config/config.yaml plus GUIDEBASE_* env vars / .env,
# creates the relational schema if needed, and then runs a single operation.
#
# Supported subcommands:
#
#   ingest  Index one or more .md files and/or directories of them
#   search  Hybrid search with optional category/tag/framework/language/
#           status filters; --json prints the raw result models
#   get     Print one guide (metadata, section outline, body) or a single
#           section of it with --section
#   related List the guides named in a guide's related_guides header
#   stats   Corpus counts by category and status
#
# Exit codes: 0 on success, 1 when any document fails to ingest, a lookup
# fails, or a guide/section is not found, 2 on invalid search arguments.
#
# Usage examples:
#   python -m guidebase.cli ingest guides/
#   python -m guidebase.cli ingest guides/auth.md guides/routing.md --concurrency 4
#   python -m guidebase.cli search "route loaders" --framework qwik --limit 3
#   python -m guidebase.cli get auth-guide --section session-cookies
#   python -m guidebase.cli related auth-guide
#   python -m guidebase.cli stats
# =============================================================================

"""Standalone CLI for indexing and querying the guide corpus.

Usage::

    python -m guidebase.cli ingest guides/
    python -m guidebase.cli search "route loaders" --framework qwik
    python -m guidebase.cli get auth-guide --json
    python -m guidebase.cli stats
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from guidebase.config.loader import DEFAULT_CONFIG_PATH, load_settings
from guidebase.models import GuideView, IngestionResult, SearchFilters
from guidebase.utils.errors import GuidebaseError, NotFoundError
from guidebase.utils.logging import configure_logging


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Index every path given; directories are scanned for ``*.md``."""
    indexer = services["indexer"]
    results: list[IngestionResult] = []
    missing = 0

    files: list[tuple[str, Path]] = []
    for raw_path in args.paths:
        path = Path(raw_path)
        if path.is_dir():
            print(f"Scanning directory: {path}")
            results.extend(await indexer.process_directory(path, concurrency=args.concurrency))
        elif path.is_file():
            files.append((path.name, path))
        else:
            print(f"Error: no such file or directory: {raw_path}", file=sys.stderr)
            missing += 1

    if files:
        results.extend(await indexer.process_files(files, concurrency=args.concurrency))

    for result in results:
        _print_ingestion_result(result)

    failed = sum(1 for r in results if not r.success)
    print(f"\nProcessed {len(results)} documents: {len(results) - failed} succeeded, {failed} failed")
    return 1 if failed or missing else 0


def _print_ingestion_result(result: IngestionResult) -> None:
    if result.success:
        print(
            f"OK      {result.source_name} -> {result.guide_id} "
            f"({result.sections_created} sections, {result.chunks_created} chunks)"
        )
        for warning in result.warnings:
            print(f"        warning: {warning}")
        return
    stage = f" [{result.stage.value}]" if result.stage else ""
    print(f"FAILED  {result.source_name}{stage}: {result.error}")


async def _handle_search(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Run a hybrid search and print the ranked results."""
    filters = SearchFilters(
        category=args.category,
        tags=args.tags or [],
        framework=args.framework,
        language=args.language,
        status=args.status,
    )
    try:
        results = await services["search_service"].search(
            args.query, filters=filters, limit=args.limit
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except GuidebaseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
        return 0

    if not results:
        print("No results.")
        return 0

    for rank, result in enumerate(results, start=1):
        print(
            f"{rank}. [{result.source.value} {result.score:.3f}] "
            f"{result.guide_id}#{result.section_id}  {result.title}"
        )
        if result.excerpt:
            print(f"   {' '.join(result.excerpt.split())}")
    return 0


async def _handle_get(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Print one guide, or one of its sections."""
    try:
        view = await services["guide_assembler"].get_guide(args.guide_id, section_id=args.section)
    except NotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(view.model_dump(mode="json"), indent=2))
        return 0

    _print_guide_view(view, single_section=args.section is not None)
    return 0


def _print_guide_view(view: GuideView, single_section: bool) -> None:
    guide = view.guide
    print(guide.title)
    print("=" * 40)
    print(f"  Id:            {guide.id}")
    print(f"  Category:      {guide.category_label}")
    print(f"  Status:        {guide.status}")
    print(f"  Version:       {guide.version}")
    print(f"  Last updated:  {guide.last_updated}")
    if guide.tags:
        print(f"  Tags:          {', '.join(guide.tags)}")

    if single_section:
        section = view.sections[0]
        print(f"\n{section.heading_line or section.title}")
        print(section.content)
        return

    print("\n  Sections:")
    for section in view.sections:
        indent = "  " * (section.level - 1)
        print(
            f"    {indent}[{section.id}] {section.title} "
            f"(lines {section.start_line}-{section.end_line})"
        )
    if view.body is None:
        print("\n  (body unavailable)")
    else:
        print()
        print(view.body)


async def _handle_related(args: argparse.Namespace, services: dict[str, Any]) -> int:
    """Print the guides a guide declares as related."""
    try:
        guides = await services["guide_assembler"].get_related_guides(args.guide_id)
    except NotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([g.model_dump(mode="json") for g in guides], indent=2))
        return 0

    if not guides:
        print(f"No related guides for {args.guide_id}.")
        return 0

    print(f"Related to {args.guide_id}:")
    for guide in guides:
        print(f"  {guide.id:<24s} {guide.title}  [{guide.category_label}; {guide.status}]")
    return 0


async def _handle_stats(args: argparse.Namespace, services: dict[str, Any]) -> int:  # noqa: ARG001
    """Print corpus statistics."""
    stats = await services["guide_assembler"].get_corpus_stats()

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Total guides:        {stats.total_guides}")
    print(f"  Total sections:      {stats.total_sections}")
    print(f"  Total code examples: {stats.total_code_examples}")
    print(f"  Total chunks:        {stats.total_chunks}")

    if stats.guides_by_category:
        print("\n  Guides by category:")
        for category, count in sorted(stats.guides_by_category.items()):
            print(f"    {category:<20s} {count}")
    if stats.guides_by_status:
        print("\n  Guides by status:")
        for status, count in sorted(stats.guides_by_status.items()):
            print(f"    {status:<20s} {count}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "search": _handle_search,
    "get": _handle_get,
    "related": _handle_related,
    "stats": _handle_stats,
}


async def _run(args: argparse.Namespace, services: dict[str, Any]) -> int:
    from guidebase.main import initialize_services

    await initialize_services(services)
    return await _HANDLERS[args.command](args, services)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the guide CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m guidebase.cli",
        description="Index and search a corpus of markdown guides.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: GUIDEBASE_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines on stderr"
    )
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help=f"YAML config file; GUIDEBASE_* env vars override it (default: {DEFAULT_CONFIG_PATH})",
    )
    subparsers = parser.add_subparsers(dest="command", help="Corpus commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Index guide files or directories")
    ingest_parser.add_argument("paths", nargs="+", help="Markdown files or directories")
    ingest_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Documents processed at once (default: GUIDEBASE_INGEST_CONCURRENCY)",
    )

    # -- search --
    search_parser = subparsers.add_parser("search", help="Hybrid keyword + semantic search")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("--category", help="Only guides in this category")
    search_parser.add_argument(
        "--tag",
        action="append",
        dest="tags",
        help="Only guides with this tag (repeatable; any tag matches)",
    )
    search_parser.add_argument("--framework", help="Only chunks/sections for this framework")
    search_parser.add_argument("--language", help="Only chunks/sections for this language")
    search_parser.add_argument("--status", help="Only guides with this status")
    search_parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # -- get --
    get_parser = subparsers.add_parser("get", help="Print a guide by id")
    get_parser.add_argument("guide_id", help="Guide id")
    get_parser.add_argument("--section", default=None, help="Print only this section")
    get_parser.add_argument("--json", action="store_true", help="Print the guide as JSON")

    # -- related --
    related_parser = subparsers.add_parser("related", help="List a guide's related guides")
    related_parser.add_argument("guide_id", help="Guide id")
    related_parser.add_argument("--json", action="store_true", help="Print the guides as JSON")

    # -- stats --
    subparsers.add_parser("stats", help="Show corpus statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, resolves Settings from the YAML config and the
    environment, builds the service graph, and exits with the handler's
    return code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        app_settings = load_settings(args.config)
    except GuidebaseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    configure_logging(args.log_level or app_settings.log_level, json_output=args.json_logs)

    # Deferred so that --help never pays for the provider imports.
    from guidebase.main import build_services

    services = build_services(app_settings)
    sys.exit(asyncio.run(_run(args, services)))


if __name__ == "__main__":
    main()
