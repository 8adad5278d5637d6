"""Write the consolidation result back to the database."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import asyncpg

from snmpmigrate.consolidation.errors import StatementError
from snmpmigrate.consolidation.models import (
    CONFIG_COLUMNS,
    HOST_STATUS_TEMPLATE,
    INTERFACE_COLUMNS,
    ITEM_TYPE_SNMP,
    LEGACY_ITEM_TYPES,
    ConfigRecord,
    InterfaceRecord,
    Resolution,
)
from snmpmigrate.sql import (
    DEFAULT_BATCH_THRESHOLD_BYTES,
    BatchedStatement,
    BulkInsert,
    quote_literal,
)

logger = logging.getLogger(__name__)

CONFIG_TABLE = "interface_snmp"
INTERFACE_TABLE = "interface"

_LEGACY_TYPES_SQL = ",".join(str(t) for t in LEGACY_ITEM_TYPES)


async def save_configs(
    conn: Any,
    records: Iterable[ConfigRecord],
    *,
    threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES,
) -> int:
    """Bulk-insert configuration rows. Returns the number of rows written."""
    insert = BulkInsert(CONFIG_TABLE, CONFIG_COLUMNS, threshold_bytes=threshold_bytes)
    for record in records:
        await insert.add(conn, record.as_row())
    return await insert.execute(conn)


async def save_resolutions(
    conn: Any,
    resolutions: Iterable[Resolution],
    *,
    threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES,
) -> int:
    """Insert the configuration of every resolution not marked ``skip``."""
    return await save_configs(
        conn,
        (entry.config_record() for entry in resolutions if not entry.skip),
        threshold_bytes=threshold_bytes,
    )


async def create_interfaces(
    conn: Any,
    interfaces: Iterable[InterfaceRecord],
    *,
    threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES,
) -> int:
    """Bulk-insert newly minted interface rows."""
    insert = BulkInsert(INTERFACE_TABLE, INTERFACE_COLUMNS, threshold_bytes=threshold_bytes)
    for interface in interfaces:
        await insert.add(conn, interface.as_row())
    return await insert.execute(conn)


def item_update_statement(entry: Resolution) -> str:
    """Build the statement re-pointing the items behind *entry*.

    Items are matched on everything the loader grouped them by, so that rows
    which merely share some of the values are left alone.
    """
    item = entry.item
    a = item.attributes
    return (
        f"UPDATE items SET type={ITEM_TYPE_SNMP},interfaceid={entry.interfaceid}"
        " FROM hosts h"
        " WHERE items.hostid=h.hostid"
        f" AND h.status<>{HOST_STATUS_TEMPLATE}"
        f" AND items.type={item.item_type}"
        f" AND items.interfaceid={item.interfaceid}"
        f" AND items.snmp_community={quote_literal(a.community)}"
        f" AND items.snmpv3_securityname={quote_literal(a.securityname)}"
        f" AND items.snmpv3_securitylevel={a.securitylevel}"
        f" AND items.snmpv3_authpassphrase={quote_literal(a.authpassphrase)}"
        f" AND items.snmpv3_privpassphrase={quote_literal(a.privpassphrase)}"
        f" AND items.snmpv3_authprotocol={a.authprotocol}"
        f" AND items.snmpv3_privprotocol={a.privprotocol}"
        f" AND items.snmpv3_contextname={quote_literal(a.contextname)}"
        f" AND items.port={quote_literal(item.port)};\n"
    )


async def update_items(
    conn: Any,
    resolutions: Iterable[Resolution],
    *,
    threshold_bytes: int = DEFAULT_BATCH_THRESHOLD_BYTES,
) -> int:
    """Re-point items at their split-off interfaces. Returns statements queued."""
    batch = BatchedStatement(name="item update", threshold_bytes=threshold_bytes)
    batch.begin()
    for entry in resolutions:
        batch.append(item_update_statement(entry))
        await batch.flush_if_overflowed(conn)
    await batch.end(conn)
    logger.info(
        "Queued %d item update statement(s) in %d batch(es)", batch.statements, batch.executions
    )
    return batch.statements


def _affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg status tag such as ``UPDATE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


async def retag_items(conn: Any) -> int:
    """Give every remaining legacy-tagged item the unified SNMP type."""
    try:
        status = await conn.execute(
            f"UPDATE items SET type={ITEM_TYPE_SNMP} WHERE type IN ({_LEGACY_TYPES_SQL})"
        )
    except asyncpg.PostgresError as exc:
        raise StatementError("item type sweep", exc) from exc
    updated = _affected_rows(status)
    logger.info("Re-tagged %d remaining legacy SNMP item(s)", updated)
    return updated
