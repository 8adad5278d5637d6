"""Tests for the reuse / split / create decisions of the consolidator."""

from __future__ import annotations

import pytest

from snmpmigrate.consolidation.consolidator import (
    Consolidator,
    OrderedResolutions,
    consolidate_items,
)
from snmpmigrate.consolidation.errors import IdAllocationError, LegacyDataError
from snmpmigrate.consolidation.loader import legacy_item_from_row
from snmpmigrate.consolidation.models import InterfaceRecord, Outcome, Resolution
from snmpmigrate.ids import SequenceAllocator
from tests.conftest import legacy_row

pytestmark = pytest.mark.unit


def _items(*rows):
    return [legacy_item_from_row(row) for row in rows]


@pytest.fixture
def allocator():
    return SequenceAllocator(9001)


# ---------------------------------------------------------------------------
# Documented scenarios
# ---------------------------------------------------------------------------


class TestSharedInterface:
    def test_identical_items_share_the_legacy_interface(self, allocator):
        a, b = _items(legacy_row(10), legacy_row(10))

        result = consolidate_items([a, b], allocator)

        assert [entry.interfaceid for entry in result.resolved] == [10]
        assert len(result.pending_new) == 0
        assert result.interfaces == []
        assert result.outcomes[Outcome.REPRESENTATIVE] == 1
        assert result.outcomes[Outcome.REUSE_EXISTING] == 1

    def test_differing_attributes_split_off_a_new_interface(self, allocator):
        c, d = _items(legacy_row(20, community="public"), legacy_row(20, community="private"))

        result = consolidate_items([c, d], allocator)

        assert [entry.interfaceid for entry in result.resolved] == [20]
        (split,) = list(result.pending_new)
        assert split.interfaceid == 9001
        assert split.outcome is Outcome.CREATE_NEW
        assert split.legacy_interfaceid == 20
        assert not split.skip
        assert result.interfaces == [
            InterfaceRecord(
                interfaceid=9001,
                hostid=100,
                main=0,
                type=2,
                useip=1,
                ip="192.0.2.10",
                dns="",
                port="161",
            )
        ]

    def test_port_override_forces_its_own_interface(self, allocator):
        c, d, e = _items(
            legacy_row(20, community="public"),
            legacy_row(20, community="private"),
            legacy_row(20, community="public", port="1161"),
        )

        result = consolidate_items([c, d, e], allocator)

        ids = [entry.interfaceid for entry in result.pending_new]
        assert ids == [9001, 9002]
        assert [i.port for i in result.interfaces] == ["161", "1161"]

    def test_override_equal_to_interface_port_counts_as_no_override(self, allocator):
        a, b = _items(legacy_row(10, port=""), legacy_row(10, port="161"))

        result = consolidate_items([a, b], allocator)

        assert result.outcomes[Outcome.REUSE_EXISTING] == 1
        assert result.interfaces == []


class TestSiblingReuse:
    def test_same_override_reuses_the_split_interface(self, allocator):
        rows = _items(
            legacy_row(20, community="public"),
            legacy_row(20, community="public", port="1161", item_type=4),
            legacy_row(20, community="public", port="1161", hostid=100, item_type=4),
        )

        result = consolidate_items(rows, allocator)

        first, second = list(result.pending_new)
        assert first.outcome is Outcome.CREATE_NEW
        assert second.outcome is Outcome.REUSE_SIBLING
        assert second.interfaceid == first.interfaceid == 9001
        assert second.skip
        assert len(result.interfaces) == 1

    def test_empty_override_reuses_sibling_on_interface_port(self, allocator):
        rows = _items(
            legacy_row(20, community="public"),
            legacy_row(20, community="private"),
            legacy_row(20, community="private", item_type=4),
        )

        result = consolidate_items(rows, allocator)

        assert [(e.interfaceid, e.outcome) for e in result.pending_new] == [
            (9001, Outcome.CREATE_NEW),
            (9001, Outcome.REUSE_SIBLING),
        ]

    def test_empty_override_does_not_reuse_sibling_on_other_port(self, allocator):
        rows = _items(
            legacy_row(20, community="public"),
            legacy_row(20, community="private", port="1161"),
            legacy_row(20, community="private"),
        )

        result = consolidate_items(rows, allocator)

        assert [e.interfaceid for e in result.pending_new] == [9001, 9002]
        assert [i.port for i in result.interfaces] == ["1161", "161"]

    def test_siblings_do_not_cross_legacy_interfaces(self, allocator):
        rows = _items(
            legacy_row(20, community="public"),
            legacy_row(20, community="private"),
            legacy_row(21, community="public"),
            legacy_row(21, community="private"),
        )

        result = consolidate_items(rows, allocator)

        assert [e.interfaceid for e in result.resolved] == [20, 21]
        assert [e.interfaceid for e in result.pending_new] == [9001, 9002]


# ---------------------------------------------------------------------------
# Equality mode
# ---------------------------------------------------------------------------


class TestEqualityMode:
    def _rows(self):
        # Same community, different protocol version (v2c vs v1).
        return _items(legacy_row(10, item_type=4), legacy_row(10, item_type=1))

    def test_strict_mode_splits_on_version(self, allocator):
        result = consolidate_items(self._rows(), allocator, strict_equality=True)
        assert result.outcomes[Outcome.CREATE_NEW] == 1
        assert result.interfaces[0].interfaceid == 9001

    def test_legacy_mode_merges_across_versions(self, allocator):
        result = consolidate_items(self._rows(), allocator, strict_equality=False)
        assert result.outcomes[Outcome.REUSE_EXISTING] == 1
        assert result.interfaces == []

    def test_legacy_mode_merges_across_bulk(self, allocator):
        rows = _items(legacy_row(10, bulk=1), legacy_row(10, bulk=0))
        result = consolidate_items(rows, allocator, strict_equality=False)
        assert result.outcomes[Outcome.REUSE_EXISTING] == 1


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_out_of_order_input_is_rejected(self, allocator):
        rows = _items(legacy_row(20), legacy_row(10))
        with pytest.raises(LegacyDataError, match="not ordered"):
            consolidate_items(rows, allocator)

    def test_representative_with_foreign_id_is_rejected(self, allocator):
        (item,) = _items(legacy_row(10))
        consolidator = Consolidator(allocator)
        consolidator.result.resolved.append(
            Resolution(item=item, interfaceid=77, outcome=Outcome.REPRESENTATIVE, port="161")
        )
        with pytest.raises(LegacyDataError, match="canonical id 77"):
            consolidator.consume(item)

    def test_allocation_failure_propagates(self):
        rows = _items(
            legacy_row(10, community="a"),
            legacy_row(10, community="b"),
            legacy_row(10, community="c"),
        )
        with pytest.raises(IdAllocationError):
            consolidate_items(rows, SequenceAllocator(5, limit=5))


class TestOrderedResolutions:
    def _entry(self, key: int, interfaceid: int):
        (item,) = _items(legacy_row(key))
        return Resolution(item=item, interfaceid=interfaceid, outcome=Outcome.CREATE_NEW, port="161")

    def test_find_returns_first_entry_for_key(self):
        entries = OrderedResolutions()
        for key, interfaceid in [(1, 101), (3, 103), (3, 104), (7, 107)]:
            entries.append(self._entry(key, interfaceid))
        assert entries.find(3).interfaceid == 103
        assert entries.find(4) is None
        assert entries.find(8) is None

    def test_tail_run_stops_at_other_keys(self):
        entries = OrderedResolutions()
        for key, interfaceid in [(1, 101), (3, 103), (3, 104)]:
            entries.append(self._entry(key, interfaceid))
        assert [e.interfaceid for e in entries.tail_run(3)] == [104, 103]
        assert list(entries.tail_run(1)) == []

    def test_append_rejects_decreasing_keys(self):
        entries = OrderedResolutions()
        entries.append(self._entry(5, 105))
        with pytest.raises(LegacyDataError):
            entries.append(self._entry(4, 104))
