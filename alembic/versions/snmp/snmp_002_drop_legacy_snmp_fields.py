"""drop_legacy_snmp_fields

Revision ID: snmp_002
Revises: snmp_001
Create Date: 2020-03-02 00:00:01.000000

Drops the columns that carried SNMP settings per item (and the bulk flag on
interface) once the consolidation pass has copied them into interface_snmp.

Downgrade restores the columns with their old defaults only; the values
themselves are not reconstructed.
"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "snmp_002"
down_revision = "snmp_001"
branch_labels = None
depends_on = None

_LEGACY_ITEM_COLUMNS = (
    ("snmp_community", "VARCHAR(64) NOT NULL DEFAULT ''"),
    ("snmpv3_securityname", "VARCHAR(64) NOT NULL DEFAULT ''"),
    ("snmpv3_securitylevel", "INTEGER NOT NULL DEFAULT 0"),
    ("snmpv3_authpassphrase", "VARCHAR(64) NOT NULL DEFAULT ''"),
    ("snmpv3_privpassphrase", "VARCHAR(64) NOT NULL DEFAULT ''"),
    ("snmpv3_authprotocol", "INTEGER NOT NULL DEFAULT 0"),
    ("snmpv3_privprotocol", "INTEGER NOT NULL DEFAULT 0"),
    ("snmpv3_contextname", "VARCHAR(255) NOT NULL DEFAULT ''"),
    ("port", "VARCHAR(64) NOT NULL DEFAULT ''"),
)


def upgrade() -> None:
    op.execute("ALTER TABLE interface DROP COLUMN IF EXISTS bulk")
    for column, _definition in _LEGACY_ITEM_COLUMNS:
        op.execute(f"ALTER TABLE items DROP COLUMN IF EXISTS {column}")


def downgrade() -> None:
    op.execute("ALTER TABLE interface ADD COLUMN IF NOT EXISTS bulk INTEGER NOT NULL DEFAULT 1")
    for column, definition in _LEGACY_ITEM_COLUMNS:
        op.execute(f"ALTER TABLE items ADD COLUMN IF NOT EXISTS {column} {definition}")
