"""Default configurations for SNMP interfaces that no item references."""

from __future__ import annotations

from collections.abc import Iterable

from snmpmigrate.consolidation.models import ConfigRecord


def default_configs(orphans: Iterable[tuple[int, int]]) -> list[ConfigRecord]:
    """Synthesize one placeholder configuration per ``(interfaceid, bulk)`` pair.

    The placeholder community tells operators the interface still has to be
    configured; every other credential field is left empty.
    """
    seen: set[int] = set()
    records: list[ConfigRecord] = []
    for interfaceid, bulk in orphans:
        if interfaceid in seen:
            continue
        seen.add(interfaceid)
        records.append(ConfigRecord.default_for(interfaceid, bulk=bulk))
    return records
