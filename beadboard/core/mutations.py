"""Mutation commands, tickets and the coordinator that serializes them."""

import itertools
import logging
from enum import Enum
from typing import Callable, Literal, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field

from beadboard.core.bead import Bead, BeadStatus, BeadType, RecordIndex

logger = logging.getLogger(__name__)


# ─── Commands ────────────────────────────────────────────────────────────────


class CreateBeadCommand(BaseModel):
    """Create a new bead."""

    kind: Literal["create"] = "create"
    title: str
    bead_type: BeadType = BeadType.TASK
    priority: int = 2
    description: str = ""
    labels: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def target_id(self) -> Optional[str]:
        return None


class SetStatusCommand(BaseModel):
    """Move a bead to a new status, optionally with a close/reopen reason."""

    kind: Literal["set_status"] = "set_status"
    bead_id: str
    status: BeadStatus
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def target_id(self) -> str:
        return self.bead_id


class SetLabelsCommand(BaseModel):
    """Add and remove labels on a bead."""

    kind: Literal["set_labels"] = "set_labels"
    bead_id: str
    add: tuple[str, ...] = ()
    remove: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def target_id(self) -> str:
        return self.bead_id


class UpdateBeadCommand(BaseModel):
    """Change fields of an existing bead. ``None`` means unchanged."""

    kind: Literal["update"] = "update"
    bead_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    bead_type: Optional[BeadType] = None
    priority: Optional[int] = None
    add_labels: tuple[str, ...] = ()
    remove_labels: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def target_id(self) -> str:
        return self.bead_id

    @property
    def is_empty(self) -> bool:
        return (
            self.title is None
            and self.description is None
            and self.bead_type is None
            and self.priority is None
            and not self.add_labels
            and not self.remove_labels
        )


class AddCommentCommand(BaseModel):
    """Append a comment to a bead."""

    kind: Literal["comment"] = "comment"
    bead_id: str
    text: str

    model_config = ConfigDict(frozen=True)

    @property
    def target_id(self) -> str:
        return self.bead_id


Command = Union[
    CreateBeadCommand,
    SetStatusCommand,
    SetLabelsCommand,
    UpdateBeadCommand,
    AddCommentCommand,
]


# ─── Outcomes and tickets ────────────────────────────────────────────────────


class Outcome(BaseModel):
    """Result reported by the executor for one command."""

    ok: bool
    message: str = ""
    created_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def success(cls, created_id: Optional[str] = None) -> "Outcome":
        return cls(ok=True, created_id=created_id)

    @classmethod
    def failure(cls, message: str) -> "Outcome":
        return cls(ok=False, message=message)


class Executor(Protocol):
    """Runs a command against the backing store."""

    def execute(self, command: Command) -> Outcome: ...


class TicketState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MutationTicket(BaseModel):
    """Tracks one in-flight mutation."""

    seq: int
    command: Command = Field(discriminator="kind")
    state: TicketState = TicketState.PENDING
    reason: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def target_id(self) -> Optional[str]:
        return self.command.target_id

    @property
    def pending(self) -> bool:
        return self.state == TicketState.PENDING


class Rejected(BaseModel):
    """A mutation request refused before any ticket was issued."""

    reason: str
    target_id: Optional[str] = None
    busy: bool = False

    model_config = ConfigDict(frozen=True)


# ─── Coordinator ─────────────────────────────────────────────────────────────


def _observed(command: Command, bead: Bead) -> bool:
    """True when ``bead`` already reflects everything ``command`` asks for."""
    if isinstance(command, SetStatusCommand):
        return bead.status == command.status
    if isinstance(command, SetLabelsCommand):
        return set(command.add) <= bead.labels and not (set(command.remove) & bead.labels)
    if isinstance(command, UpdateBeadCommand):
        checks = [
            command.title is None or bead.title == command.title,
            command.description is None or bead.description == command.description,
            command.bead_type is None or bead.bead_type == command.bead_type,
            command.priority is None or bead.priority == command.priority,
            set(command.add_labels) <= bead.labels,
            not (set(command.remove_labels) & bead.labels),
        ]
        return all(checks)
    # Creations and comments cannot be recognised from a snapshot.
    return False


class MutationCoordinator:
    """Issues tickets, enforcing at most one pending ticket per bead.

    The coordinator never mutates beads; a successful ticket only means the
    caller should refresh from the store.
    """

    def __init__(self, lookup: Callable[[str], Optional[Bead]]):
        self._lookup = lookup
        self._seq = itertools.count(1)
        self._pending: dict[int, MutationTicket] = {}
        self._failures: dict[str, str] = {}

    @property
    def pending(self) -> list[MutationTicket]:
        return sorted(self._pending.values(), key=lambda t: t.seq)

    def pending_for(self, bead_id: str) -> Optional[MutationTicket]:
        for ticket in self._pending.values():
            if ticket.target_id == bead_id:
                return ticket
        return None

    def badge(self, bead_id: str) -> Optional[str]:
        """``"busy"``, ``"failed"`` or None, for the list renderer."""
        if self.pending_for(bead_id) is not None:
            return "busy"
        if bead_id in self._failures:
            return "failed"
        return None

    def failure_reason(self, bead_id: str) -> Optional[str]:
        return self._failures.get(bead_id)

    def request(self, command: Command) -> Union[MutationTicket, Rejected]:
        """Issue a ticket for ``command`` unless its bead is already busy."""
        target = command.target_id
        if target is not None:
            if self._lookup(target) is None:
                return Rejected(reason=f"Bead {target} not found", target_id=target)
            if self.pending_for(target) is not None:
                return Rejected(reason=f"{target} is busy", target_id=target, busy=True)
            self._failures.pop(target, None)
        ticket = MutationTicket(seq=next(self._seq), command=command)
        self._pending[ticket.seq] = ticket
        logger.debug("Issued ticket %s for %s", ticket.seq, command.kind)
        return ticket

    def request_status_cycle(self, bead_id: str) -> Union[MutationTicket, Rejected]:
        bead = self._lookup(bead_id)
        if bead is None:
            return Rejected(reason=f"Bead {bead_id} not found", target_id=bead_id)
        return self.request(
            SetStatusCommand(bead_id=bead_id, status=bead.status.next_in_cycle())
        )

    def request_create(self, payload: CreateBeadCommand) -> Union[MutationTicket, Rejected]:
        if not payload.title.strip():
            return Rejected(reason="Title is required")
        return self.request(payload)

    def on_mutation_result(self, seq: int, outcome: Outcome) -> Optional[MutationTicket]:
        """Resolve a pending ticket. Returns None for unknown or already resolved tickets."""
        ticket = self._pending.pop(seq, None)
        if ticket is None:
            logger.debug("Ignoring late result for ticket %s", seq)
            return None
        if outcome.ok:
            resolved = ticket.model_copy(update={"state": TicketState.SUCCEEDED})
        else:
            resolved = ticket.model_copy(
                update={"state": TicketState.FAILED, "reason": outcome.message}
            )
            if ticket.target_id is not None:
                self._failures[ticket.target_id] = outcome.message
            logger.warning("Ticket %s failed: %s", seq, outcome.message)
        return resolved

    def reconcile(self, index: RecordIndex) -> list[MutationTicket]:
        """Mark pending tickets whose change is already visible in ``index``."""
        resolved = []
        for ticket in self.pending:
            bead = index.get(ticket.target_id)
            if bead is not None and _observed(ticket.command, bead):
                del self._pending[ticket.seq]
                resolved.append(ticket.model_copy(update={"state": TicketState.SUCCEEDED}))
                logger.debug("Ticket %s observed in snapshot", ticket.seq)
        return resolved
