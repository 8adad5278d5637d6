"""Post-migration checks for the SNMP interface consolidation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import asyncpg

from snmpmigrate.consolidation.errors import StatementError
from snmpmigrate.consolidation.models import (
    HOST_STATUS_TEMPLATE,
    INTERFACE_TYPE_SNMP,
    ITEM_TYPE_SNMP,
    LEGACY_ITEM_TYPES,
)

logger = logging.getLogger(__name__)

_LEGACY_TYPES_SQL = ",".join(str(t) for t in LEGACY_ITEM_TYPES)

_CHECKS: dict[str, str] = {
    "legacy_tagged_items": f"""
        SELECT COUNT(*) FROM items WHERE type IN ({_LEGACY_TYPES_SQL})
    """,
    "snmp_interfaces_without_config": f"""
        SELECT COUNT(*)
        FROM interface n
        WHERE n.type = {INTERFACE_TYPE_SNMP}
          AND NOT EXISTS (SELECT 1 FROM interface_snmp s WHERE s.interfaceid = n.interfaceid)
    """,
    "configs_without_interface": """
        SELECT COUNT(*)
        FROM interface_snmp s
        WHERE NOT EXISTS (SELECT 1 FROM interface n WHERE n.interfaceid = s.interfaceid)
    """,
    "snmp_items_without_config": f"""
        SELECT COUNT(*)
        FROM items i
        JOIN hosts h ON h.hostid = i.hostid
        WHERE i.type = {ITEM_TYPE_SNMP}
          AND h.status <> {HOST_STATUS_TEMPLATE}
          AND i.interfaceid IS NOT NULL
          AND NOT EXISTS (SELECT 1 FROM interface_snmp s WHERE s.interfaceid = i.interfaceid)
    """,
}


@dataclass
class VerificationReport:
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(count == 0 for count in self.counts.values())

    @property
    def failures(self) -> dict[str, int]:
        return {name: count for name, count in self.counts.items() if count}


async def verify_consolidation(conn: Any) -> VerificationReport:
    """Count violations of the post-migration invariants (all should be zero)."""
    report = VerificationReport()
    for name, query in _CHECKS.items():
        try:
            report.counts[name] = int(await conn.fetchval(query) or 0)
        except asyncpg.PostgresError as exc:
            raise StatementError(f"verification check {name}", exc) from exc
    if report.ok:
        logger.info("SNMP consolidation verified: all invariants hold")
    else:
        logger.warning("SNMP consolidation verification failed: %s", report.failures)
    return report
