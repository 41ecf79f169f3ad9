"""Abstract base class for relational (SQL + full-text) store providers.

The services own their SQL (see :mod:`guidebase.services.schema`); the store
only executes it.  Implementations must support SQLite FTS5 syntax
(``MATCH``, ``bm25()``, ``snippet()``) since the keyword search relies on it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

# A single parameterised statement: (sql, positional params).
Statement = tuple[str, Sequence[Any]]


# Concrete implementation: SQLiteRelationalStore (guidebase/providers/relational/)
class IRelationalStore(ABC):
    """Contract for the relational store holding guide metadata and the FTS index."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables, indices, and the full-text virtual table if missing."""

    @abstractmethod
    async def execute(
        self, statement: str, params: Sequence[Any] = ()
    ) -> list[dict[str, Any]]:
        """Run one statement and return its rows as dicts.

        Parameters
        ----------
        statement:
            SQL text with ``?`` placeholders.
        params:
            Positional parameters bound to the placeholders.

        Returns
        -------
        list[dict[str, Any]]
            Result rows keyed by column name; empty for statements that
            return no rows.

        Raises
        ------
        guidebase.utils.errors.StorageError
            If the statement fails.
        """

    @abstractmethod
    async def execute_batch(self, statements: Sequence[Statement]) -> None:
        """Run *statements* in order inside one transaction.

        Either every statement is applied or, on failure, none of them is.

        Raises
        ------
        guidebase.utils.errors.StorageError
            If any statement fails; the transaction is rolled back.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is configured and reachable."""
