"""SQLite-backed relational store with an FTS5 full-text index.

Persists guide metadata, sections, code examples, and the ``guides_fts``
virtual table to a local SQLite database (default ``data/guides.db``).
Uses ``aiosqlite`` for async I/O; each call opens its own connection, so
the store holds no cross-call state beyond the database path.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from guidebase.interfaces.relational_store import IRelationalStore, Statement
from guidebase.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/guides.db")

_CREATE_GUIDES_SQL = """\
CREATE TABLE IF NOT EXISTS guides (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    category        TEXT NOT NULL DEFAULT '[]',
    subcategory     TEXT,
    type            TEXT NOT NULL DEFAULT 'guide',
    status          TEXT NOT NULL DEFAULT 'draft',
    version         TEXT NOT NULL DEFAULT '1.0',
    last_updated    TEXT NOT NULL,
    tags            TEXT NOT NULL DEFAULT '[]',
    related_guides  TEXT NOT NULL DEFAULT '[]',
    languages       TEXT NOT NULL DEFAULT '[]',
    frameworks      TEXT NOT NULL DEFAULT '[]',
    platforms       TEXT NOT NULL DEFAULT '[]',
    extra           TEXT NOT NULL DEFAULT '{}',
    body_location   TEXT NOT NULL,
    indexed_at      TEXT NOT NULL
);
"""

_CREATE_SECTIONS_SQL = """\
CREATE TABLE IF NOT EXISTS sections (
    guide_id      TEXT    NOT NULL,
    id            TEXT    NOT NULL,
    position      INTEGER NOT NULL,
    level         INTEGER NOT NULL,
    title         TEXT    NOT NULL,
    content       TEXT    NOT NULL,
    heading_line  TEXT    NOT NULL,
    start_line    INTEGER NOT NULL,
    end_line      INTEGER NOT NULL,
    framework     TEXT,
    language      TEXT,
    PRIMARY KEY (guide_id, id)
);
"""

_CREATE_CODE_EXAMPLES_SQL = """\
CREATE TABLE IF NOT EXISTS code_examples (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    guide_id    TEXT    NOT NULL,
    section_id  TEXT    NOT NULL,
    position    INTEGER NOT NULL,
    language    TEXT    NOT NULL DEFAULT '',
    code        TEXT    NOT NULL,
    caption     TEXT
);
"""

_CREATE_FTS_SQL = """\
CREATE VIRTUAL TABLE IF NOT EXISTS guides_fts USING fts5(
    guide_id UNINDEXED,
    section_id UNINDEXED,
    title,
    section_title,
    content,
    tags
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_guides_status ON guides(status);",
    "CREATE INDEX IF NOT EXISTS idx_sections_guide ON sections(guide_id, position);",
    "CREATE INDEX IF NOT EXISTS idx_code_examples_guide ON code_examples(guide_id);",
]


class SQLiteRelationalStore(IRelationalStore):
    """SQLite persistence for guide metadata and the keyword index."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables, indices, and FTS5 table if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("PRAGMA journal_mode=WAL;")
                await db.execute(_CREATE_GUIDES_SQL)
                await db.execute(_CREATE_SECTIONS_SQL)
                await db.execute(_CREATE_CODE_EXAMPLES_SQL)
                await db.execute(_CREATE_FTS_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except sqlite3.Error as exc:
            raise StorageError(
                message=f"Failed to initialise database at {self._db_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("guides_db_initialized", path=str(self._db_path))

    async def execute(
        self, statement: str, params: Sequence[Any] = ()
    ) -> list[dict[str, Any]]:
        """Run one statement in its own transaction and return rows as dicts."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(statement, tuple(params))
                rows = await cursor.fetchall()
                await db.commit()
        except sqlite3.Error as exc:
            raise StorageError(
                message=f"SQLite statement failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [dict(r) for r in rows]

    async def execute_batch(self, statements: Sequence[Statement]) -> None:
        """Run every statement inside a single transaction.

        sqlite3 opens the transaction implicitly on the first write; any
        failure rolls the whole batch back before the error is raised.
        """
        if not statements:
            return
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                try:
                    for sql, params in statements:
                        await db.execute(sql, tuple(params))
                    await db.commit()
                except sqlite3.Error:
                    await db.rollback()
                    raise
        except sqlite3.Error as exc:
            raise StorageError(
                message=f"SQLite batch failed after rollback: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("sqlite_batch_committed", statements=len(statements))

    def get_provider_name(self) -> str:
        return "sqlite"

    def is_available(self) -> bool:
        """Return ``True`` if the database file exists (i.e. was initialised)."""
        return self._db_path.exists()
