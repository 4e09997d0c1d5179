"""Read-only access to the beads SQLite database."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from beadboard.core.bead import Bead, BeadStatus, BeadType, Comment, Snapshot

logger = logging.getLogger(__name__)

ISSUES_QUERY = """
    SELECT id, title, status, priority, issue_type, description, labels,
           created_by, assignee, created_at, updated_at, closed_at, close_reason
    FROM issues
"""

DEPENDENCIES_QUERY = "SELECT issue_id, depends_on_id, type FROM dependencies"

COMMENTS_QUERY = """
    SELECT issue_id, author, text, created_at
    FROM comments
    ORDER BY created_at, rowid
"""


class StoreUnavailable(Exception):
    """The database could not be read."""


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 / RFC 3339 timestamp; unparseable values become None."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_labels(value: Optional[str]) -> frozenset[str]:
    """Labels are stored as a JSON array of strings."""
    if not value:
        return frozenset()
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        return frozenset()
    if not isinstance(data, list):
        return frozenset()
    return frozenset(str(label) for label in data if label)


def parse_priority(value) -> int:
    """Priorities are integers 0-4; anything unreadable falls back to 2."""
    if value is None:
        return 2
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.debug("Unreadable priority %r, using 2", value)
        return 2


class BeadStore:
    """Reads snapshots from a beads database."""

    def __init__(self, db_path: Path):
        """Initialize with database path."""
        self.db_path = Path(db_path)

    def exists(self) -> bool:
        return self.db_path.is_file()

    def _connect(self) -> sqlite3.Connection:
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        return sqlite3.connect(uri, uri=True, check_same_thread=False)

    def read_snapshot(self) -> Snapshot:
        """Read every bead with its dependencies and comments."""
        if not self.exists():
            raise StoreUnavailable(f"Database not found: {self.db_path}")
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open {self.db_path}: {e}") from e
        try:
            issues = conn.execute(ISSUES_QUERY).fetchall()
            deps = conn.execute(DEPENDENCIES_QUERY).fetchall()
            comments = self._read_comments(conn)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot read {self.db_path}: {e}") from e
        except ValidationError as e:
            raise StoreUnavailable(f"Bad comment row in {self.db_path}: {e}") from e
        finally:
            conn.close()

        parents: dict[str, str] = {}
        blocked_by: dict[str, list[str]] = {}
        blocks: dict[str, list[str]] = {}
        for issue_id, depends_on_id, dep_type in deps:
            if dep_type == "parent-child":
                # First parent wins; beads have a single tree position.
                parents.setdefault(issue_id, depends_on_id)
            elif dep_type == "blocks":
                blocked_by.setdefault(issue_id, []).append(depends_on_id)
                blocks.setdefault(depends_on_id, []).append(issue_id)

        records = []
        for row in issues:
            try:
                records.append(self._to_bead(row, parents, blocked_by, blocks, comments))
            except ValidationError as e:
                raise StoreUnavailable(f"Bad issue row {row[0]!r} in {self.db_path}: {e}") from e
        logger.debug("Read %d beads from %s", len(records), self.db_path)
        return Snapshot(records=tuple(records))

    @staticmethod
    def _to_bead(row, parents, blocked_by, blocks, comments) -> Bead:
        (bead_id, title, status, priority, issue_type, description, labels,
         created_by, assignee, created_at, updated_at, closed_at, close_reason) = row
        return Bead(
            id=bead_id,
            title=title or "",
            description=description or "",
            bead_type=BeadType.parse(issue_type),
            status=BeadStatus.parse(status),
            priority=parse_priority(priority),
            labels=parse_labels(labels),
            parent_id=parents.get(bead_id),
            created_at=parse_timestamp(created_at),
            updated_at=parse_timestamp(updated_at),
            closed_at=parse_timestamp(closed_at),
            close_reason=close_reason,
            assignee=assignee,
            created_by=created_by,
            blocked_by=tuple(blocked_by.get(bead_id, ())),
            blocks=tuple(blocks.get(bead_id, ())),
            comments=tuple(comments.get(bead_id, ())),
        )

    def _read_comments(self, conn: sqlite3.Connection) -> dict[str, list[Comment]]:
        """Comments are optional; older databases have no comments table."""
        try:
            rows = conn.execute(COMMENTS_QUERY).fetchall()
        except sqlite3.OperationalError:
            return {}
        comments: dict[str, list[Comment]] = {}
        for issue_id, author, text, created_at in rows:
            comments.setdefault(issue_id, []).append(
                Comment(author=author or "", text=text or "", created_at=parse_timestamp(created_at))
            )
        return comments
