"""Identifier allocation for newly minted interface rows."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import asyncpg

from snmpmigrate.consolidation.errors import IdAllocationError, StatementError

logger = logging.getLogger(__name__)

# interface.interfaceid is a BIGINT.
MAX_ID = 2**63 - 1


class IdAllocator(Protocol):
    """Hands out fresh, globally unique identifiers for a named entity class."""

    def next_id(self, entity: str) -> int: ...


class SequenceAllocator:
    """Deterministic allocator: each entity gets ``start, start + 1, ...``."""

    def __init__(self, start: int = 1, *, limit: int = MAX_ID) -> None:
        if start < 1:
            raise ValueError("start must be >= 1")
        self._start = start
        self._limit = limit
        self._next: dict[str, int] = {}

    def next_id(self, entity: str) -> int:
        value = self._next.get(entity, self._start)
        if value > self._limit:
            raise IdAllocationError(f"Identifier space exhausted for {entity!r} (limit={self._limit})")
        self._next[entity] = value + 1
        return value


class MaxIdAllocator(SequenceAllocator):
    """Allocator seeded from the current maximum identifier of each table.

    Safe only while nothing else inserts into the seeded tables, which the
    surrounding upgrade procedure guarantees.
    """

    @classmethod
    async def seeded(
        cls, conn: Any, tables: dict[str, str], *, limit: int = MAX_ID
    ) -> MaxIdAllocator:
        """Build an allocator whose sequences start after ``MAX(column)``.

        Parameters
        ----------
        conn:
            asyncpg connection (or anything exposing ``fetchval``).
        tables:
            Mapping of entity/table name to its identifier column.
        """
        allocator = cls(limit=limit)
        for table, column in tables.items():
            try:
                current = await conn.fetchval(f"SELECT COALESCE(MAX({column}), 0) FROM {table}")
            except asyncpg.PostgresError as exc:
                raise StatementError(f"{table} identifier seed", exc) from exc
            allocator._next[table] = int(current or 0) + 1
            logger.debug("Seeded %s identifiers after %s", table, current)
        return allocator
