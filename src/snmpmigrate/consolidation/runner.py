"""Entry points for the SNMP interface consolidation pass.

The pass rewrites items that still carry per-item SNMP settings so that each
interface owns exactly one ``interface_snmp`` row:

1. load the distinct legacy item configurations (ordered by interface id)
2. resolve each one to a canonical interface id (see ``consolidator``)
3. insert representative configurations, new interfaces, and the
   configurations of split-off interfaces
4. insert placeholder configurations for SNMP interfaces nobody references
5. re-point split-off items, then re-tag every remaining legacy item

Writes are ordered so that ``interface_snmp`` rows never precede the
interface they reference.

The pass must run exactly once per database. With no legacy items left it
performs no inserts or updates.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import asdict, dataclass, field
from typing import Any

from snmpmigrate.config import MigrationConfig
from snmpmigrate.consolidation.consolidator import INTERFACE_ENTITY, consolidate_items
from snmpmigrate.consolidation.errors import ConsolidationError
from snmpmigrate.consolidation.loader import load_legacy_items, load_orphan_interfaces
from snmpmigrate.consolidation.models import Outcome
from snmpmigrate.consolidation.orphans import default_configs
from snmpmigrate.consolidation.persister import (
    create_interfaces,
    retag_items,
    save_configs,
    save_resolutions,
    update_items,
)
from snmpmigrate.core.logging import migration_step
from snmpmigrate.ids import IdAllocator, MaxIdAllocator

logger = logging.getLogger(__name__)

STEP_NAME = "interface_snmp_consolidation"


@dataclass
class ConsolidationReport:
    """Counts describing what one pass did (or, for a plan, would do)."""

    legacy_configs: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    configs_inserted: int = 0
    interfaces_inserted: int = 0
    default_configs_inserted: int = 0
    item_update_statements: int = 0
    items_retagged: int = 0
    dry_run: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


async def _allocator_for(conn: Any, allocator: IdAllocator | None) -> IdAllocator:
    if allocator is not None:
        return allocator
    return await MaxIdAllocator.seeded(conn, {INTERFACE_ENTITY: "interfaceid"})


async def plan_consolidation(
    conn: Any,
    config: MigrationConfig | None = None,
    *,
    allocator: IdAllocator | None = None,
) -> ConsolidationReport:
    """Load and consolidate in memory; report what a run would write."""
    config = config or MigrationConfig()
    with migration_step(STEP_NAME):
        items = await load_legacy_items(conn)
        result = consolidate_items(
            items,
            await _allocator_for(conn, allocator),
            strict_equality=config.strict_equality,
        )
        new_configs = sum(1 for entry in result.pending_new if not entry.skip)
        # Interfaces that receive a representative config are not orphans once
        # a real run has inserted it.
        orphans = [
            (interfaceid, bulk)
            for interfaceid, bulk in await load_orphan_interfaces(conn)
            if result.resolved.find(interfaceid) is None
        ]
        return ConsolidationReport(
            legacy_configs=len(items),
            outcomes={str(o): result.outcomes[o] for o in Outcome},
            configs_inserted=len(result.resolved) + new_configs,
            interfaces_inserted=len(result.interfaces),
            default_configs_inserted=len(default_configs(orphans)),
            item_update_statements=len(result.pending_new),
            dry_run=True,
        )


async def run_consolidation(
    conn: Any,
    config: MigrationConfig | None = None,
    *,
    allocator: IdAllocator | None = None,
) -> ConsolidationReport:
    """Run the pass against *conn* (an asyncpg connection).

    Raises
    ------
    ConsolidationError
        On corrupted legacy data, identifier exhaustion, or a rejected batch.
        Nothing is compensated here; with ``single_transaction`` the enclosing
        transaction rolls every batch back.
    """
    config = config or MigrationConfig()
    threshold = config.batch_threshold_bytes

    with migration_step(STEP_NAME):
        async with AsyncExitStack() as stack:
            if config.single_transaction:
                await stack.enter_async_context(conn.transaction())

            items = await load_legacy_items(conn)
            result = consolidate_items(
                items,
                await _allocator_for(conn, allocator),
                strict_equality=config.strict_equality,
            )

            report = ConsolidationReport(
                legacy_configs=len(items),
                outcomes={str(o): result.outcomes[o] for o in Outcome},
            )
            report.configs_inserted = await save_resolutions(
                conn, result.resolved, threshold_bytes=threshold
            )
            report.interfaces_inserted = await create_interfaces(
                conn, result.interfaces, threshold_bytes=threshold
            )
            report.configs_inserted += await save_resolutions(
                conn, result.pending_new, threshold_bytes=threshold
            )
            report.default_configs_inserted = await save_configs(
                conn,
                default_configs(await load_orphan_interfaces(conn)),
                threshold_bytes=threshold,
            )
            if len(result.pending_new):
                report.item_update_statements = await update_items(
                    conn, result.pending_new, threshold_bytes=threshold
                )
            report.items_retagged = await retag_items(conn)

        logger.info(
            "SNMP consolidation finished: %d config(s), %d interface(s), %d default(s)",
            report.configs_inserted,
            report.interfaces_inserted,
            report.default_configs_inserted,
        )
        return report


async def consolidate(
    conn: Any,
    config: MigrationConfig | None = None,
    *,
    allocator: IdAllocator | None = None,
) -> bool:
    """Run the pass once; return True on success and False on any failure."""
    try:
        await run_consolidation(conn, config, allocator=allocator)
    except ConsolidationError:
        logger.exception("SNMP consolidation failed")
        return False
    return True
