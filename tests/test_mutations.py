"""Tests for the mutation coordinator."""

from beadboard.core.bead import BeadStatus, RecordIndex
from beadboard.core.mutations import (
    AddCommentCommand,
    CreateBeadCommand,
    MutationCoordinator,
    MutationTicket,
    Outcome,
    Rejected,
    SetLabelsCommand,
    SetStatusCommand,
    TicketState,
    UpdateBeadCommand,
)
from tests.conftest import make_bead as bead
from tests.conftest import make_snapshot as snapshot


def coordinator(*beads):
    index = RecordIndex.from_snapshot(snapshot(*beads))
    return MutationCoordinator(index.get), index


class TestRequests:
    def test_status_cycle_issues_ticket(self):
        coord, _ = coordinator(bead("a"))
        ticket = coord.request_status_cycle("a")
        assert isinstance(ticket, MutationTicket)
        assert ticket.target_id == "a"
        assert ticket.command == SetStatusCommand(bead_id="a", status=BeadStatus.IN_PROGRESS)
        assert ticket.state == TicketState.PENDING
        assert coord.badge("a") == "busy"

    def test_second_request_on_busy_bead_is_rejected(self):
        coord, _ = coordinator(bead("a"))
        first = coord.request_status_cycle("a")
        second = coord.request_status_cycle("a")
        assert isinstance(second, Rejected)
        assert second.busy
        assert coord.pending == [first]

    def test_other_beads_are_independent(self):
        coord, _ = coordinator(bead("a"), bead("b"))
        assert isinstance(coord.request_status_cycle("a"), MutationTicket)
        assert isinstance(coord.request_status_cycle("b"), MutationTicket)
        assert len(coord.pending) == 2

    def test_unknown_bead_rejected(self):
        coord, _ = coordinator(bead("a"))
        result = coord.request_status_cycle("nope")
        assert isinstance(result, Rejected)
        assert not result.busy
        assert coord.pending == []

    def test_sequence_numbers_increase(self):
        coord, _ = coordinator(bead("a"), bead("b"))
        t1 = coord.request_status_cycle("a")
        t2 = coord.request_status_cycle("b")
        assert t2.seq > t1.seq

    def test_create_requires_title(self):
        coord, _ = coordinator()
        assert isinstance(coord.request_create(CreateBeadCommand(title="  ")), Rejected)
        ticket = coord.request_create(CreateBeadCommand(title="New"))
        assert isinstance(ticket, MutationTicket)
        assert ticket.target_id is None

    def test_creations_do_not_block_each_other(self):
        coord, _ = coordinator()
        coord.request_create(CreateBeadCommand(title="one"))
        coord.request_create(CreateBeadCommand(title="two"))
        assert len(coord.pending) == 2


class TestResults:
    def test_success_resolves_ticket(self):
        coord, _ = coordinator(bead("a"))
        ticket = coord.request_status_cycle("a")
        resolved = coord.on_mutation_result(ticket.seq, Outcome.success())
        assert resolved.state == TicketState.SUCCEEDED
        assert coord.badge("a") is None
        assert coord.pending == []

    def test_failure_marks_bead(self):
        coord, _ = coordinator(bead("a"))
        ticket = coord.request_status_cycle("a")
        resolved = coord.on_mutation_result(ticket.seq, Outcome.failure("br exploded"))
        assert resolved.state == TicketState.FAILED
        assert resolved.reason == "br exploded"
        assert coord.badge("a") == "failed"
        assert coord.failure_reason("a") == "br exploded"

    def test_next_request_clears_failure(self):
        coord, _ = coordinator(bead("a"))
        ticket = coord.request_status_cycle("a")
        coord.on_mutation_result(ticket.seq, Outcome.failure("nope"))
        coord.request_status_cycle("a")
        assert coord.badge("a") == "busy"
        assert coord.failure_reason("a") is None

    def test_late_and_unknown_results_are_ignored(self):
        coord, _ = coordinator(bead("a"))
        ticket = coord.request_status_cycle("a")
        assert coord.on_mutation_result(ticket.seq, Outcome.success()) is not None
        assert coord.on_mutation_result(ticket.seq, Outcome.failure("late")) is None
        assert coord.on_mutation_result(999, Outcome.success()) is None
        assert coord.badge("a") is None


class TestReconcile:
    def test_observed_status_resolves_ticket(self):
        coord, _ = coordinator(bead("a"))
        ticket = coord.request_status_cycle("a")
        fresh = RecordIndex.from_snapshot(snapshot(bead("a", status=BeadStatus.IN_PROGRESS)))
        resolved = coord.reconcile(fresh)
        assert [t.seq for t in resolved] == [ticket.seq]
        assert resolved[0].state == TicketState.SUCCEEDED
        assert coord.pending == []
        # The executor's own answer arrives afterwards and is ignored.
        assert coord.on_mutation_result(ticket.seq, Outcome.success()) is None

    def test_unobserved_change_stays_pending(self):
        coord, index = coordinator(bead("a"))
        coord.request_status_cycle("a")
        assert coord.reconcile(index) == []
        assert len(coord.pending) == 1

    def test_labels_and_updates(self):
        coord, _ = coordinator(bead("a"), bead("b"))
        coord.request(SetLabelsCommand(bead_id="a", add=("x",), remove=("y",)))
        coord.request(UpdateBeadCommand(bead_id="b", title="Renamed", priority=0))
        fresh = RecordIndex.from_snapshot(
            snapshot(
                bead("a", labels=frozenset({"x"})),
                bead("b", title="Renamed", priority=1),
            )
        )
        resolved = coord.reconcile(fresh)
        assert [t.target_id for t in resolved] == ["a"]
        assert coord.badge("b") == "busy"

    def test_creations_and_comments_only_resolve_through_results(self):
        coord, _ = coordinator(bead("a"))
        coord.request_create(CreateBeadCommand(title="a"))
        coord.request(AddCommentCommand(bead_id="a", text="hi"))
        fresh = RecordIndex.from_snapshot(snapshot(bead("a"), bead("new", title="a")))
        assert coord.reconcile(fresh) == []
        assert len(coord.pending) == 2


def test_ticket_command_discriminator_round_trip():
    ticket = MutationTicket(seq=1, command=SetStatusCommand(bead_id="a", status=BeadStatus.CLOSED))
    restored = MutationTicket.model_validate(ticket.model_dump())
    assert isinstance(restored.command, SetStatusCommand)
    assert restored.command.status == BeadStatus.CLOSED
