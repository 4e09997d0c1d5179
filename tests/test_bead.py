"""Tests for the record model."""

from datetime import timezone

import pytest
from pydantic import ValidationError

from beadboard.core.bead import Bead, BeadStatus, BeadType, RecordIndex, Snapshot


class TestStatus:
    def test_parse_known_values(self):
        assert BeadStatus.parse("open") == BeadStatus.OPEN
        assert BeadStatus.parse("in_progress") == BeadStatus.IN_PROGRESS
        assert BeadStatus.parse("blocked") == BeadStatus.BLOCKED
        assert BeadStatus.parse("deferred") == BeadStatus.DEFERRED
        assert BeadStatus.parse("closed") == BeadStatus.CLOSED

    def test_parse_aliases_and_unknown(self):
        assert BeadStatus.parse("in-progress") == BeadStatus.IN_PROGRESS
        assert BeadStatus.parse("InProgress") == BeadStatus.IN_PROGRESS
        assert BeadStatus.parse("wontfix") == BeadStatus.OPEN
        assert BeadStatus.parse(None) == BeadStatus.OPEN

    def test_status_cycle(self):
        status = BeadStatus.OPEN
        seen = []
        for _ in range(3):
            status = status.next_in_cycle()
            seen.append(status)
        assert seen == [BeadStatus.IN_PROGRESS, BeadStatus.CLOSED, BeadStatus.OPEN]

    def test_statuses_outside_cycle_go_to_open(self):
        assert BeadStatus.BLOCKED.next_in_cycle() == BeadStatus.OPEN
        assert BeadStatus.DEFERRED.next_in_cycle() == BeadStatus.OPEN


def test_type_parse():
    assert BeadType.parse("bug") == BeadType.BUG
    assert BeadType.parse("EPIC") == BeadType.EPIC
    assert BeadType.parse("mystery") == BeadType.TASK
    assert BeadType.parse(None) == BeadType.TASK


class TestBead:
    def test_defaults(self):
        b = Bead(id="bd-1", title="Something")
        assert b.status == BeadStatus.OPEN
        assert b.bead_type == BeadType.TASK
        assert b.priority == 2
        assert b.labels == frozenset()
        assert b.parent_id is None
        assert b.priority_label == "P2"

    def test_frozen(self):
        b = Bead(id="bd-1", title="Something")
        with pytest.raises(ValidationError):
            b.title = "Other"

    def test_helpers(self, bead):
        assert bead("a", labels=frozenset({"deferred"})).is_deferred
        assert bead("a", status=BeadStatus.DEFERRED).is_deferred
        assert bead("a", blocked_by=("b",)).is_blocked
        assert not bead("a").is_blocked
        assert bead("a", priority=0).sort_key == (0, "a")


class TestRecordIndex:
    def test_children_and_roots_are_ordered(self, bead, snapshot):
        index = RecordIndex.from_snapshot(
            snapshot(
                bead("c", priority=1),
                bead("a", priority=2),
                bead("x2", parent="a", priority=3),
                bead("x1", parent="a", priority=3),
                bead("x0", parent="a", priority=0),
            )
        )
        assert index.roots == ("c", "a")
        assert index.children_of("a") == ("x0", "x1", "x2")
        assert index.children_of("c") == ()
        assert len(index) == 5
        assert "x1" in index

    def test_dangling_parent_is_root(self, bead, snapshot):
        index = RecordIndex.from_snapshot(snapshot(bead("a", parent="gone")))
        assert index.roots == ("a",)

    def test_duplicates_keep_last(self, bead, snapshot):
        index = RecordIndex.from_snapshot(
            snapshot(bead("a", title="first"), bead("b"), bead("a", title="second"))
        )
        assert index.get("a").title == "second"
        assert index.duplicates == ["a"]
        assert len(index) == 2

    def test_get_missing(self):
        index = RecordIndex()
        assert index.get("nope") is None
        assert index.get(None) is None


def test_snapshot_has_timestamp():
    snap = Snapshot()
    assert snap.records == ()
    assert snap.taken_at.tzinfo == timezone.utc
