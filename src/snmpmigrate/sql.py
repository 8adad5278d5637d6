"""Batched write helpers over an asyncpg connection.

Two builders bound the size of any single round-trip to the database:

- :class:`BulkInsert` accumulates rows for one table and ships them with one
  ``executemany`` round-trip whenever the estimated payload crosses the
  threshold.
- :class:`BatchedStatement` accumulates literal SQL statements and executes
  the buffer as one multi-statement string whenever it overflows.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import asyncpg

from snmpmigrate.consolidation.errors import StatementError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_THRESHOLD_BYTES = 512 * 1024

# A finished statement buffer at or below this size holds no real statement.
NEGLIGIBLE_STATEMENT_BYTES = 16


def quote_ident(identifier: str) -> str:
    return f'"{identifier.replace(chr(34), chr(34) * 2)}"'


def insert_statement(table: str, columns: Sequence[str]) -> str:
    """Build a positional-parameter INSERT for *table*."""
    column_sql = ", ".join(quote_ident(column) for column in columns)
    placeholders = ", ".join(f"${idx}" for idx in range(1, len(columns) + 1))
    return f"INSERT INTO {quote_ident(table)} ({column_sql}) VALUES ({placeholders})"


def quote_literal(value: str) -> str:
    """Render *value* as a standard-conforming SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def _estimate_row_bytes(row: Sequence[Any]) -> int:
    return sum(len(str(value).encode("utf-8")) + 1 for value in row)


class BulkInsert:
    """Accumulate rows for *table* and insert them in size-bounded chunks."""

    def __init__(
        self,
        table: str,
        columns: Sequence[str],
        *,
        threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES,
    ) -> None:
        self.table = table
        self.columns = tuple(columns)
        self.sql = insert_statement(table, self.columns)
        self.threshold_bytes = threshold_bytes
        self._rows: list[tuple[Any, ...]] = []
        self._pending_bytes = 0
        self.rows_written = 0
        self.batches = 0

    def __len__(self) -> int:
        return len(self._rows)

    async def add(self, conn: Any, row: Sequence[Any]) -> None:
        """Queue *row*; flush first if the buffer has crossed the threshold."""
        if len(row) != len(self.columns):
            raise ValueError(
                f"{self.table}: expected {len(self.columns)} values, got {len(row)}"
            )
        self._rows.append(tuple(row))
        self._pending_bytes += _estimate_row_bytes(row)
        if self._pending_bytes > self.threshold_bytes:
            await self._flush(conn)

    async def execute(self, conn: Any) -> int:
        """Flush whatever is still buffered. Returns the total rows written."""
        if self._rows:
            await self._flush(conn)
        return self.rows_written

    async def _flush(self, conn: Any) -> None:
        rows, self._rows = self._rows, []
        self._pending_bytes = 0
        try:
            await conn.executemany(self.sql, rows)
        except asyncpg.PostgresError as exc:
            raise StatementError(f"insert into {self.table}", exc) from exc
        self.rows_written += len(rows)
        self.batches += 1
        logger.debug("Inserted %d row(s) into %s", len(rows), self.table)


class BatchedStatement:
    """Accumulate SQL statements and execute them in size-bounded batches.

    Usage::

        batch = BatchedStatement(threshold_bytes=...)
        batch.begin()
        for ...:
            batch.append("UPDATE ...;\\n")
            await batch.flush_if_overflowed(conn)
        await batch.end(conn)
    """

    def __init__(
        self, *, name: str = "batch", threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES
    ) -> None:
        self.name = name
        self.threshold_bytes = threshold_bytes
        self._parts: list[str] = []
        self._size = 0
        self.statements = 0
        self.executions = 0

    def begin(self) -> None:
        self._parts = []
        self._size = 0

    def append(self, statement: str) -> None:
        self._parts.append(statement)
        self._size += len(statement.encode("utf-8"))
        self.statements += 1

    @property
    def size(self) -> int:
        return self._size

    async def flush_if_overflowed(self, conn: Any) -> None:
        """Execute and reset the buffer once it has crossed the threshold."""
        if self._size <= self.threshold_bytes:
            return
        await self._execute(conn, "".join(self._parts))
        self.begin()

    async def end(self, conn: Any) -> None:
        """Close the buffer and execute it unless it is effectively empty."""
        sql = "".join(self._parts)
        self._parts = []
        self._size = 0
        if len(sql.encode("utf-8")) <= NEGLIGIBLE_STATEMENT_BYTES:
            return
        await self._execute(conn, sql)

    async def _execute(self, conn: Any, sql: str) -> None:
        try:
            await conn.execute(sql)
        except asyncpg.PostgresError as exc:
            raise StatementError(self.name, exc) from exc
        self.executions += 1
        logger.debug("Executed %s batch (%d bytes)", self.name, len(sql))
