"""Programmatic Alembic runner that sequences the SNMP upgrade.

The upgrade is three steps that must run in order, exactly once:

1. ``snmp_001`` creates ``interface_snmp`` (Alembic revision)
2. the consolidation pass fills it from the legacy item columns
3. ``snmp_002`` drops the legacy columns (Alembic revision)

A failed pass stops the sequence before step 3, so the legacy data stays
available for another attempt.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import create_engine, pool

from alembic import command
from snmpmigrate.config import MigrationConfig
from snmpmigrate.consolidation.runner import ConsolidationReport, run_consolidation
from snmpmigrate.db import Database, sqlalchemy_url

logger = logging.getLogger(__name__)

# Root of the alembic directory (sibling to src/)
ALEMBIC_DIR = Path(__file__).resolve().parent.parent.parent / "alembic"
VERSIONS_DIR = ALEMBIC_DIR / "versions" / "snmp"

CREATE_TABLE_REVISION = "snmp_001"
DROP_LEGACY_REVISION = "snmp_002"


def _build_alembic_config(db_url: str) -> Config:
    """Build an Alembic Config pointing at the SNMP version directory."""
    config = Config(str(ALEMBIC_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    # Alembic Config uses configparser interpolation; percent-encoded DB URLs
    # must escape '%' as '%%'.
    config.set_main_option("sqlalchemy.url", sqlalchemy_url(db_url).replace("%", "%%"))
    config.set_main_option("version_locations", str(VERSIONS_DIR))
    return config


def current_revision(db_url: str) -> str | None:
    """Return the Alembic revision the database is stamped with, if any."""
    engine = create_engine(sqlalchemy_url(db_url), poolclass=pool.NullPool)
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()


def upgrade_to(db_url: str, revision: str) -> None:
    """Upgrade the SNMP chain to *revision*."""
    logger.info("Running SNMP migration chain (target=%s)", revision)
    command.upgrade(_build_alembic_config(db_url), revision)


async def run_upgrade(
    db_url: str, config: MigrationConfig | None = None
) -> ConsolidationReport | None:
    """Run the full SNMP upgrade sequence.

    Returns the consolidation report, or None when the database had already
    been upgraded and nothing ran.
    """
    config = config or MigrationConfig()
    if current_revision(db_url) == DROP_LEGACY_REVISION:
        logger.info("SNMP upgrade already applied; nothing to do")
        return None

    upgrade_to(db_url, CREATE_TABLE_REVISION)
    async with Database(db_url) as conn:
        report = await run_consolidation(conn, config)
    upgrade_to(db_url, DROP_LEGACY_REVISION)
    return report
