"""Shared unit-test fixtures: an in-memory stand-in for an asyncpg connection.

``FakeConnection`` models just enough of the ``interface`` / ``interface_snmp``
tables for the orphan query to see rows inserted earlier in the same pass, and
records every call in order so tests can assert on write ordering.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from typing import Any

import pytest

from snmpmigrate.consolidation.loader import LEGACY_ITEMS_QUERY, ORPHAN_INTERFACES_QUERY


def legacy_row(
    interfaceid: int,
    *,
    item_type: int = 4,
    community: str = "public",
    port: str = "",
    hostid: int = 100,
    interface_port: str = "161",
    bulk: int = 1,
    **overrides: Any,
) -> dict[str, Any]:
    """Build one row shaped like the result of ``LEGACY_ITEMS_QUERY``."""
    row: dict[str, Any] = {
        "interfaceid": interfaceid,
        "item_type": item_type,
        "bulk": bulk,
        "snmp_community": community,
        "snmpv3_securityname": "",
        "snmpv3_securitylevel": 0,
        "snmpv3_authpassphrase": "",
        "snmpv3_privpassphrase": "",
        "snmpv3_authprotocol": 0,
        "snmpv3_privprotocol": 0,
        "snmpv3_contextname": "",
        "port": port,
        "hostid": hostid,
        "interface_type": 2,
        "useip": 1,
        "ip": "192.0.2.10",
        "dns": "",
        "interface_port": interface_port,
    }
    row.update(overrides)
    return row


class FakeConnection:
    """Records fetch/execute/insert calls made by the consolidation pass."""

    def __init__(
        self,
        legacy_rows: list[dict[str, Any]] | None = None,
        snmp_interfaces: dict[int, int] | None = None,
    ) -> None:
        self.legacy_rows = list(legacy_rows or [])
        # interfaceid -> bulk, for every interface of the SNMP type
        self.snmp_interfaces = dict(snmp_interfaces or {})
        self.configured: set[int] = set()
        self.calls: list[tuple[str, Any]] = []
        self.inserts: list[tuple[str, list[tuple[Any, ...]], str]] = []
        self.executed: list[str] = []
        self.fetchvals: dict[str, Any] = {}
        self.retag_count = 0
        self.fail: dict[str, Exception] = {}

    def _maybe_fail(self, key: str) -> None:
        if key in self.fail:
            raise self.fail[key]

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        if query == LEGACY_ITEMS_QUERY:
            self.calls.append(("fetch", "legacy"))
            self._maybe_fail("fetch:legacy")
            return list(self.legacy_rows)
        if query == ORPHAN_INTERFACES_QUERY:
            self.calls.append(("fetch", "orphans"))
            self._maybe_fail("fetch:orphans")
            return [
                {"interfaceid": interfaceid, "bulk": bulk}
                for interfaceid, bulk in sorted(self.snmp_interfaces.items())
                if interfaceid not in self.configured
            ]
        raise AssertionError(f"unexpected query: {query}")

    async def fetchval(self, query: str, *args: Any) -> Any:
        self.calls.append(("fetchval", query))
        self._maybe_fail("fetchval")
        for fragment, value in self.fetchvals.items():
            if fragment in query:
                return value
        if "MAX(interfaceid)" in query:
            return max(self.snmp_interfaces, default=0)
        return 0

    async def execute(self, query: str, *args: Any) -> str:
        self.calls.append(("execute", query))
        self.executed.append(query)
        if query.startswith("UPDATE items SET type=20 WHERE"):
            self._maybe_fail("execute:retag")
            return f"UPDATE {self.retag_count}"
        self._maybe_fail("execute")
        return "UPDATE 1"

    async def executemany(self, command: str, args: Iterable[Sequence[Any]]) -> None:
        table_name = command.split()[2].strip('"')
        self.calls.append(("insert", table_name))
        self._maybe_fail(f"insert:{table_name}")
        rows = [tuple(row) for row in args]
        self.inserts.append((table_name, rows, command))
        if table_name == "interface_snmp":
            self.configured.update(row[0] for row in rows)
        elif table_name == "interface":
            for row in rows:
                if row[3] == 2:
                    self.snmp_interfaces[row[0]] = 1

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        self.calls.append(("transaction", "begin"))
        try:
            yield
        except BaseException:
            self.calls.append(("transaction", "rollback"))
            raise
        self.calls.append(("transaction", "commit"))

    def transaction(self) -> Any:
        return self._transaction()

    def rows_inserted(self, table: str) -> list[tuple[Any, ...]]:
        return [row for name, rows, _ in self.inserts if name == table for row in rows]

    def item_updates(self) -> list[str]:
        return [
            statement
            for sql in self.executed
            for statement in sql.splitlines()
            if statement.startswith("UPDATE items SET type=20,interfaceid=")
        ]


@pytest.fixture
def fake_conn() -> FakeConnection:
    """Provide an empty FakeConnection; tests fill ``legacy_rows`` as needed."""
    return FakeConnection()

