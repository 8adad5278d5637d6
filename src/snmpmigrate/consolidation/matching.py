"""Equality predicates used to decide whether two SNMP configurations merge.

Fields are compared in a fixed order: security level, auth protocol, priv
protocol, version, bulk, then the string fields (byte-exact, case-sensitive).

The legacy predicate compared ``version`` and ``bulk`` of the first tuple
against themselves, so those two fields never took part in deduplication.
``strict=False`` reproduces that behaviour; ``strict=True`` (the default)
compares them like every other field.
"""

from __future__ import annotations

from snmpmigrate.consolidation.models import LegacyItemConfig, Resolution, SnmpAttributes

_STRING_FIELDS = ("community", "securityname", "authpassphrase", "privpassphrase", "contextname")


def attributes_equal(a: SnmpAttributes, b: SnmpAttributes, *, strict: bool = True) -> bool:
    """Return True when two attribute tuples are interchangeable."""
    if a.securitylevel != b.securitylevel:
        return False
    if a.authprotocol != b.authprotocol:
        return False
    if a.privprotocol != b.privprotocol:
        return False
    if strict:
        if a.version != b.version:
            return False
        if a.bulk != b.bulk:
            return False
    return all(getattr(a, name) == getattr(b, name) for name in _STRING_FIELDS)


def attributes_and_id_equal(
    representative: Resolution, item: LegacyItemConfig, *, strict: bool = True
) -> bool:
    """Like :func:`attributes_equal`, but the identifiers must agree as well."""
    if representative.interfaceid != item.interfaceid:
        return False
    return attributes_equal(representative.item.attributes, item.attributes, strict=strict)


def port_compatible(item: LegacyItemConfig, resolved_port: str) -> bool:
    """Return True when *item* may share an interface listening on *resolved_port*.

    An empty override defers to the legacy interface's own port, so it is
    compatible only with a candidate that kept that port.
    """
    return item.effective_port == resolved_port
