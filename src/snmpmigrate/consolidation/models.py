"""In-memory records for the SNMP interface consolidation pass.

All records live only for the duration of one pass: they are built from the
legacy rows, flushed to the database once, then discarded.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

# Legacy per-kind item tags and the unified tag that replaces them.
ITEM_TYPE_SNMPV1 = 1
ITEM_TYPE_SNMPV2C = 4
ITEM_TYPE_SNMPV3 = 6
ITEM_TYPE_SNMP = 20
LEGACY_ITEM_TYPES: tuple[int, ...] = (ITEM_TYPE_SNMPV1, ITEM_TYPE_SNMPV2C, ITEM_TYPE_SNMPV3)

SNMP_VERSION_1 = 1
SNMP_VERSION_2 = 2
SNMP_VERSION_3 = 3

INTERFACE_TYPE_SNMP = 2
HOST_STATUS_TEMPLATE = 3

DEFAULT_COMMUNITY = "{$SNMP_COMMUNITY}"


class Outcome(enum.StrEnum):
    """How a legacy item configuration was resolved to a canonical identifier."""

    REPRESENTATIVE = "representative"
    REUSE_EXISTING = "reuse_existing"
    REUSE_SIBLING = "reuse_sibling"
    CREATE_NEW = "create_new"


def version_for_item_type(item_type: int) -> int:
    """Map a legacy item tag to the SNMP protocol version it implied."""
    if item_type == ITEM_TYPE_SNMPV1:
        return SNMP_VERSION_1
    if item_type == ITEM_TYPE_SNMPV2C:
        return SNMP_VERSION_2
    return SNMP_VERSION_3


def item_type_for_version(version: int) -> int:
    """Inverse of :func:`version_for_item_type`."""
    if version == SNMP_VERSION_1:
        return ITEM_TYPE_SNMPV1
    if version == SNMP_VERSION_2:
        return ITEM_TYPE_SNMPV2C
    return ITEM_TYPE_SNMPV3


@dataclass(frozen=True)
class SnmpAttributes:
    """The attribute tuple that used to be embedded in every SNMP item."""

    version: int
    bulk: int
    community: str = ""
    securityname: str = ""
    securitylevel: int = 0
    authpassphrase: str = ""
    privpassphrase: str = ""
    authprotocol: int = 0
    privprotocol: int = 0
    contextname: str = ""


@dataclass(frozen=True)
class LegacyItemConfig:
    """One distinct legacy item configuration, as loaded from the items table.

    ``port`` is the per-item override; an empty string defers to the legacy
    interface's own port (``interface_port``).
    """

    interfaceid: int
    item_type: int
    attributes: SnmpAttributes
    port: str
    hostid: int
    interface_type: int
    useip: int
    ip: str
    dns: str
    interface_port: str

    @property
    def effective_port(self) -> str:
        return self.port or self.interface_port

    @property
    def uses_interface_port(self) -> bool:
        return self.port == "" or self.port == self.interface_port


@dataclass(frozen=True)
class InterfaceRecord:
    """A canonical row for the ``interface`` table."""

    interfaceid: int
    hostid: int
    main: int
    type: int
    useip: int
    ip: str
    dns: str
    port: str

    def as_row(self) -> tuple[object, ...]:
        return (
            self.interfaceid,
            self.hostid,
            self.main,
            self.type,
            self.useip,
            self.ip,
            self.dns,
            self.port,
        )


INTERFACE_COLUMNS: tuple[str, ...] = (
    "interfaceid",
    "hostid",
    "main",
    "type",
    "useip",
    "ip",
    "dns",
    "port",
)


@dataclass(frozen=True)
class ConfigRecord:
    """A canonical row for the ``interface_snmp`` table (1:1 with an interface)."""

    interfaceid: int
    attributes: SnmpAttributes

    def as_row(self) -> tuple[object, ...]:
        a = self.attributes
        return (
            self.interfaceid,
            a.version,
            a.bulk,
            a.community,
            a.securityname,
            a.securitylevel,
            a.authpassphrase,
            a.privpassphrase,
            a.authprotocol,
            a.privprotocol,
            a.contextname,
        )

    @classmethod
    def default_for(cls, interfaceid: int, bulk: int = 1) -> ConfigRecord:
        """Build the placeholder configuration for an interface nobody references."""
        return cls(
            interfaceid=interfaceid,
            attributes=SnmpAttributes(
                version=SNMP_VERSION_2,
                bulk=bulk,
                community=DEFAULT_COMMUNITY,
            ),
        )


CONFIG_COLUMNS: tuple[str, ...] = (
    "interfaceid",
    "version",
    "bulk",
    "community",
    "securityname",
    "securitylevel",
    "authpassphrase",
    "privpassphrase",
    "authprotocol",
    "privprotocol",
    "contextname",
)


@dataclass(frozen=True)
class Resolution:
    """A legacy item configuration together with the canonical id it resolved to.

    ``skip`` marks entries that need no ``interface_snmp`` insert of their own
    because they share a previously created record.
    """

    item: LegacyItemConfig
    interfaceid: int
    outcome: Outcome
    port: str
    skip: bool = False

    @property
    def legacy_interfaceid(self) -> int:
        return self.item.interfaceid

    def config_record(self) -> ConfigRecord:
        return ConfigRecord(interfaceid=self.interfaceid, attributes=self.item.attributes)

    def shared_by(self, item: LegacyItemConfig) -> Resolution:
        """Return a skip entry for *item* that reuses this entry's canonical id."""
        return replace(self, item=item, outcome=Outcome.REUSE_SIBLING, skip=True)
