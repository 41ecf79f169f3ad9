"""Relational store provider implementations.

SQLiteRelationalStore holds guide metadata, sections, code examples, and the
FTS5 keyword index in one local database file.
"""

from guidebase.providers.relational.sqlite_provider import SQLiteRelationalStore

__all__ = ["SQLiteRelationalStore"]
