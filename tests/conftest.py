"""Shared fixtures for beadboard tests."""

import pytest

from beadboard.core.bead import Bead, BeadStatus, Snapshot
from beadboard.core.mutations import Outcome


def make_bead(bead_id, title=None, parent=None, priority=2, status=BeadStatus.OPEN, **kw):
    return Bead(
        id=bead_id,
        title=title if title is not None else f"Bead {bead_id}",
        parent_id=parent,
        priority=priority,
        status=status,
        **kw,
    )


def make_snapshot(*beads):
    return Snapshot(records=tuple(beads))


class FakeExecutor:
    """Records commands and answers with queued outcomes (success by default)."""

    def __init__(self):
        self.commands = []
        self.outcomes = []

    def execute(self, command):
        self.commands.append(command)
        if self.outcomes:
            return self.outcomes.pop(0)
        return Outcome.success()


@pytest.fixture
def bead():
    return make_bead


@pytest.fixture
def snapshot():
    return make_snapshot


@pytest.fixture
def executor():
    return FakeExecutor()
