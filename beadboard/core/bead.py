"""Bead data models and the per-snapshot record index."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BeadStatus(str, Enum):
    """Status of a bead."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DEFERRED = "deferred"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BeadStatus":
        """Parse a status string from the store, falling back to open."""
        text = (value or "").strip().lower()
        if text in ("in-progress", "inprogress"):
            return cls.IN_PROGRESS
        try:
            return cls(text)
        except ValueError:
            return cls.OPEN

    def next_in_cycle(self) -> "BeadStatus":
        """open -> in_progress -> closed -> open; anything else goes back to open."""
        return STATUS_CYCLE.get(self, BeadStatus.OPEN)


STATUS_CYCLE = {
    BeadStatus.OPEN: BeadStatus.IN_PROGRESS,
    BeadStatus.IN_PROGRESS: BeadStatus.CLOSED,
    BeadStatus.CLOSED: BeadStatus.OPEN,
}


class BeadType(str, Enum):
    """Type of a bead."""

    TASK = "task"
    BUG = "bug"
    FEATURE = "feature"
    EPIC = "epic"
    STORY = "story"
    CHORE = "chore"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BeadType":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.TASK


class Comment(BaseModel):
    """A comment on a bead."""

    author: str = ""
    text: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)


class Bead(BaseModel):
    """One issue as read from the store."""

    id: str
    title: str
    description: str = ""
    bead_type: BeadType = BeadType.TASK
    status: BeadStatus = BeadStatus.OPEN
    priority: int = 2  # 0 = critical, 4 = backlog
    labels: frozenset[str] = frozenset()
    parent_id: Optional[str] = None  # weak reference, tree placement only
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    close_reason: Optional[str] = None
    assignee: Optional[str] = None
    created_by: Optional[str] = None
    blocked_by: tuple[str, ...] = ()
    blocks: tuple[str, ...] = ()
    comments: tuple[Comment, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def priority_label(self) -> str:
        return f"P{self.priority}"

    @property
    def is_deferred(self) -> bool:
        return self.status == BeadStatus.DEFERRED or "deferred" in self.labels

    @property
    def is_blocked(self) -> bool:
        return self.status == BeadStatus.BLOCKED or bool(self.blocked_by)

    @property
    def sort_key(self) -> tuple[int, str]:
        """Sibling order: priority ascending, then id."""
        return (self.priority, self.id)


class Snapshot(BaseModel):
    """One consistent read of every bead in the store."""

    records: tuple[Bead, ...] = ()
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class RecordIndex:
    """Id and parent/child lookups computed once per snapshot.

    Duplicate ids keep the last record seen; the duplicated ids are listed in
    ``duplicates`` so the caller can surface a warning. Records whose parent is
    missing from the snapshot are treated as roots.
    """

    def __init__(self, records=()):
        self.by_id: dict[str, Bead] = {}
        self.duplicates: list[str] = []
        for bead in records:
            if bead.id in self.by_id and bead.id not in self.duplicates:
                self.duplicates.append(bead.id)
            self.by_id[bead.id] = bead

        children: dict[str, list[Bead]] = {}
        roots: list[Bead] = []
        for bead in self.by_id.values():
            if bead.parent_id is not None and bead.parent_id in self.by_id:
                children.setdefault(bead.parent_id, []).append(bead)
            else:
                roots.append(bead)

        self.children: dict[str, tuple[str, ...]] = {
            parent: tuple(b.id for b in sorted(kids, key=lambda b: b.sort_key))
            for parent, kids in children.items()
        }
        self.roots: tuple[str, ...] = tuple(
            b.id for b in sorted(roots, key=lambda b: b.sort_key)
        )

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "RecordIndex":
        return cls(snapshot.records)

    def get(self, bead_id: Optional[str]) -> Optional[Bead]:
        if bead_id is None:
            return None
        return self.by_id.get(bead_id)

    def children_of(self, bead_id: str) -> tuple[str, ...]:
        return self.children.get(bead_id, ())

    def __contains__(self, bead_id) -> bool:
        return bead_id in self.by_id

    def __len__(self) -> int:
        return len(self.by_id)
