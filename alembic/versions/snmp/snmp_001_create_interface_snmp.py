"""create_interface_snmp

Revision ID: snmp_001
Revises:
Create Date: 2020-03-02 00:00:00.000000

Creates interface_snmp, the per-interface home for SNMP settings that used to
be embedded in every SNMP item. Each row shares its primary key with the
interface it configures and disappears with it.

The table starts empty; the consolidation pass (snmpmigrate.consolidation)
fills it before snmp_002 drops the legacy columns.
"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "snmp_001"
down_revision = None
branch_labels = ("snmp",)
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS interface_snmp (
            interfaceid BIGINT NOT NULL,
            version INTEGER NOT NULL DEFAULT 2,
            bulk INTEGER NOT NULL DEFAULT 1,
            community VARCHAR(64) NOT NULL DEFAULT '',
            securityname VARCHAR(64) NOT NULL DEFAULT '',
            securitylevel INTEGER NOT NULL DEFAULT 0,
            authpassphrase VARCHAR(64) NOT NULL DEFAULT '',
            privpassphrase VARCHAR(64) NOT NULL DEFAULT '',
            authprotocol INTEGER NOT NULL DEFAULT 0,
            privprotocol INTEGER NOT NULL DEFAULT 0,
            contextname VARCHAR(255) NOT NULL DEFAULT '',
            PRIMARY KEY (interfaceid)
        )
    """)

    op.execute("""
        DO $$
        BEGIN
            IF NOT EXISTS (
                SELECT 1 FROM pg_constraint WHERE conname = 'c_interface_snmp_1'
            ) THEN
                ALTER TABLE interface_snmp
                    ADD CONSTRAINT c_interface_snmp_1
                    FOREIGN KEY (interfaceid) REFERENCES interface (interfaceid)
                    ON DELETE CASCADE;
            END IF;
        END
        $$;
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE interface_snmp DROP CONSTRAINT IF EXISTS c_interface_snmp_1")
    op.execute("DROP TABLE IF EXISTS interface_snmp")
