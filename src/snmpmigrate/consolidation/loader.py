"""Read the denormalized legacy SNMP rows the consolidation pass works on."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import asyncpg

from snmpmigrate.consolidation.errors import StatementError
from snmpmigrate.consolidation.models import (
    HOST_STATUS_TEMPLATE,
    INTERFACE_TYPE_SNMP,
    LEGACY_ITEM_TYPES,
    LegacyItemConfig,
    SnmpAttributes,
    version_for_item_type,
)

logger = logging.getLogger(__name__)

_LEGACY_TYPES_SQL = ",".join(str(t) for t in LEGACY_ITEM_TYPES)

# One row per distinct (interface, item type, settings, port, host) combination,
# joined with the legacy interface it points at. The ORDER BY is load-bearing:
# the consolidator's sibling scan relies on rows grouped by interface id, and
# the remaining keys fix which row becomes each interface's representative.
LEGACY_ITEMS_QUERY = f"""
    SELECT s.interfaceid,
           s.type AS item_type,
           s.bulk,
           s.snmp_community,
           s.snmpv3_securityname,
           s.snmpv3_securitylevel,
           s.snmpv3_authpassphrase,
           s.snmpv3_privpassphrase,
           s.snmpv3_authprotocol,
           s.snmpv3_privprotocol,
           s.snmpv3_contextname,
           s.port,
           s.hostid,
           n.type AS interface_type,
           n.useip,
           n.ip,
           n.dns,
           n.port AS interface_port
    FROM (
        SELECT i.interfaceid,
               i.type,
               f.bulk,
               i.snmp_community,
               i.snmpv3_securityname,
               i.snmpv3_securitylevel,
               i.snmpv3_authpassphrase,
               i.snmpv3_privpassphrase,
               i.snmpv3_authprotocol,
               i.snmpv3_privprotocol,
               i.snmpv3_contextname,
               i.port,
               i.hostid
        FROM items i
        JOIN hosts h ON i.hostid = h.hostid
        JOIN interface f ON i.interfaceid = f.interfaceid
        WHERE i.type IN ({_LEGACY_TYPES_SQL})
          AND h.status <> {HOST_STATUS_TEMPLATE}
        GROUP BY i.interfaceid,
                 i.type,
                 f.bulk,
                 i.snmp_community,
                 i.snmpv3_securityname,
                 i.snmpv3_securitylevel,
                 i.snmpv3_authpassphrase,
                 i.snmpv3_privpassphrase,
                 i.snmpv3_authprotocol,
                 i.snmpv3_privprotocol,
                 i.snmpv3_contextname,
                 i.port,
                 i.hostid
    ) s
    JOIN interface n ON s.interfaceid = n.interfaceid
    ORDER BY s.interfaceid ASC,
             s.type,
             s.port,
             s.snmp_community,
             s.snmpv3_securityname,
             s.snmpv3_securitylevel,
             s.snmpv3_authpassphrase,
             s.snmpv3_privpassphrase,
             s.snmpv3_authprotocol,
             s.snmpv3_privprotocol,
             s.snmpv3_contextname,
             s.hostid
"""

ORPHAN_INTERFACES_QUERY = f"""
    SELECT h.interfaceid, h.bulk
    FROM interface h
    WHERE h.type = {INTERFACE_TYPE_SNMP}
      AND NOT EXISTS (
          SELECT 1 FROM interface_snmp s WHERE s.interfaceid = h.interfaceid
      )
    ORDER BY h.interfaceid
"""


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    return default if value is None else int(value)


async def _fetch(conn: Any, query: str, operation: str) -> list[Any]:
    try:
        return await conn.fetch(query)
    except asyncpg.PostgresError as exc:
        raise StatementError(operation, exc) from exc


def legacy_item_from_row(row: Mapping[str, Any]) -> LegacyItemConfig:
    """Convert one row of :data:`LEGACY_ITEMS_QUERY` into a record."""
    item_type = int(row["item_type"])
    attributes = SnmpAttributes(
        version=version_for_item_type(item_type),
        bulk=_int(row["bulk"], 1),
        community=_text(row["snmp_community"]),
        securityname=_text(row["snmpv3_securityname"]),
        securitylevel=_int(row["snmpv3_securitylevel"]),
        authpassphrase=_text(row["snmpv3_authpassphrase"]),
        privpassphrase=_text(row["snmpv3_privpassphrase"]),
        authprotocol=_int(row["snmpv3_authprotocol"]),
        privprotocol=_int(row["snmpv3_privprotocol"]),
        contextname=_text(row["snmpv3_contextname"]),
    )
    return LegacyItemConfig(
        interfaceid=int(row["interfaceid"]),
        item_type=item_type,
        attributes=attributes,
        port=_text(row["port"]),
        hostid=int(row["hostid"]),
        interface_type=int(row["interface_type"]),
        useip=_int(row["useip"], 1),
        ip=_text(row["ip"]),
        dns=_text(row["dns"]),
        interface_port=_text(row["interface_port"]),
    )


async def load_legacy_items(conn: Any) -> list[LegacyItemConfig]:
    """Load every distinct legacy item configuration, ordered by interface id."""
    rows = await _fetch(conn, LEGACY_ITEMS_QUERY, "legacy item query")
    items = [legacy_item_from_row(row) for row in rows]
    logger.info("Loaded %d legacy SNMP item configuration(s)", len(items))
    return items


async def load_orphan_interfaces(conn: Any) -> list[tuple[int, int]]:
    """Return ``(interfaceid, bulk)`` for SNMP interfaces without configuration."""
    rows = await _fetch(conn, ORPHAN_INTERFACES_QUERY, "orphan interface query")
    orphans = [(int(row["interfaceid"]), _int(row["bulk"], 1)) for row in rows]
    logger.info("Found %d SNMP interface(s) without configuration", len(orphans))
    return orphans
