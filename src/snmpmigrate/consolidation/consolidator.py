"""Resolve every legacy item configuration to a canonical interface identifier.

The pass walks the loaded rows once, in ascending legacy interface order, and
classifies each one:

1. representative: first configuration seen for a legacy interface that
   keeps the interface's port; it claims the legacy id as its canonical id.
2. reuse_existing: identical to the representative; nothing to write.
3. reuse_sibling: identical to a record already split off from the same
   legacy interface; only the item reference needs rewriting.
4. create_new: nothing compatible exists; mint a new interface and
   configuration pair.

Both collections are kept sorted by legacy interface id. Because the input is
ordered by that key, the siblings of the current row always form the tail of
the pending-new collection, so the backward scan stops at the first entry
belonging to a different legacy interface.
"""

from __future__ import annotations

import bisect
import logging
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from snmpmigrate.consolidation.errors import LegacyDataError
from snmpmigrate.consolidation.matching import (
    attributes_and_id_equal,
    attributes_equal,
    port_compatible,
)
from snmpmigrate.consolidation.models import (
    InterfaceRecord,
    LegacyItemConfig,
    Outcome,
    Resolution,
)
from snmpmigrate.ids import IdAllocator

logger = logging.getLogger(__name__)

INTERFACE_ENTITY = "interface"


class OrderedResolutions:
    """Resolutions kept sorted by legacy interface id.

    Appends must arrive in non-decreasing key order; this is what allows the
    binary search in :meth:`find` and the bounded scan in :meth:`tail_run`.
    """

    def __init__(self) -> None:
        self._keys: list[int] = []
        self._entries: list[Resolution] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Resolution]:
        return iter(self._entries)

    def append(self, entry: Resolution) -> None:
        key = entry.legacy_interfaceid
        if self._keys and key < self._keys[-1]:
            raise LegacyDataError(
                f"Legacy rows are not ordered by interface id: {key} after {self._keys[-1]}"
            )
        self._keys.append(key)
        self._entries.append(entry)

    def find(self, key: int) -> Resolution | None:
        """Binary search for the first entry filed under *key*."""
        index = bisect.bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            return self._entries[index]
        return None

    def tail_run(self, key: int) -> Iterator[Resolution]:
        """Yield the trailing entries filed under *key*, newest first."""
        for index in range(len(self._entries) - 1, -1, -1):
            if self._keys[index] != key:
                break
            yield self._entries[index]


@dataclass
class ConsolidationResult:
    """Everything the consolidator decided, ready to be persisted."""

    resolved: OrderedResolutions = field(default_factory=OrderedResolutions)
    pending_new: OrderedResolutions = field(default_factory=OrderedResolutions)
    interfaces: list[InterfaceRecord] = field(default_factory=list)
    outcomes: Counter[Outcome] = field(default_factory=Counter)


class Consolidator:
    """Classifies legacy item configurations; see the module docstring."""

    def __init__(self, allocator: IdAllocator, *, strict_equality: bool = True) -> None:
        self._allocator = allocator
        self._strict = strict_equality
        self._last_key: int | None = None
        self.result = ConsolidationResult()

    def consume(self, item: LegacyItemConfig) -> Resolution | None:
        """Classify one item and record the outcome.

        Returns the resolution entry, or None for ``reuse_existing`` items,
        which need no bookkeeping at all.
        """
        if self._last_key is not None and item.interfaceid < self._last_key:
            raise LegacyDataError(
                "Legacy rows are not ordered by interface id: "
                f"{item.interfaceid} after {self._last_key}"
            )
        self._last_key = item.interfaceid

        result = self.result

        if item.uses_interface_port:
            representative = result.resolved.find(item.interfaceid)
            if representative is None:
                entry = Resolution(
                    item=item,
                    interfaceid=item.interfaceid,
                    outcome=Outcome.REPRESENTATIVE,
                    port=item.interface_port,
                )
                result.resolved.append(entry)
                result.outcomes[Outcome.REPRESENTATIVE] += 1
                return entry

            if representative.interfaceid != item.interfaceid:
                raise LegacyDataError(
                    f"Representative for legacy interface {item.interfaceid} carries "
                    f"canonical id {representative.interfaceid}"
                )
            if attributes_and_id_equal(representative, item, strict=self._strict):
                result.outcomes[Outcome.REUSE_EXISTING] += 1
                return None

        sibling = self._find_sibling(item)
        if sibling is not None:
            entry = sibling.shared_by(item)
            result.pending_new.append(entry)
            result.outcomes[Outcome.REUSE_SIBLING] += 1
            return entry

        return self._create_new(item)

    def consume_all(self, items: Iterable[LegacyItemConfig]) -> ConsolidationResult:
        for item in items:
            self.consume(item)
        logger.info(
            "Consolidated legacy SNMP configurations: %s",
            ", ".join(f"{outcome}={self.result.outcomes[outcome]}" for outcome in Outcome),
        )
        return self.result

    def _find_sibling(self, item: LegacyItemConfig) -> Resolution | None:
        for candidate in self.result.pending_new.tail_run(item.interfaceid):
            if not attributes_equal(candidate.item.attributes, item.attributes, strict=self._strict):
                continue
            if not port_compatible(item, candidate.port):
                continue
            return candidate
        return None

    def _create_new(self, item: LegacyItemConfig) -> Resolution:
        interfaceid = self._allocator.next_id(INTERFACE_ENTITY)
        port = item.effective_port
        self.result.interfaces.append(
            InterfaceRecord(
                interfaceid=interfaceid,
                hostid=item.hostid,
                main=0,
                type=item.interface_type,
                useip=item.useip,
                ip=item.ip,
                dns=item.dns,
                port=port,
            )
        )
        entry = Resolution(
            item=item,
            interfaceid=interfaceid,
            outcome=Outcome.CREATE_NEW,
            port=port,
        )
        self.result.pending_new.append(entry)
        self.result.outcomes[Outcome.CREATE_NEW] += 1
        logger.debug(
            "Split legacy interface %s into new interface %s (port=%s)",
            item.interfaceid,
            interfaceid,
            port,
        )
        return entry


def consolidate_items(
    items: Iterable[LegacyItemConfig],
    allocator: IdAllocator,
    *,
    strict_equality: bool = True,
) -> ConsolidationResult:
    """Run the consolidator over *items* and return its result."""
    return Consolidator(allocator, strict_equality=strict_equality).consume_all(items)
