"""Mutation executor wrapping the ``br`` command line tool."""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from beadboard.core.bead import BeadStatus
from beadboard.core.mutations import (
    AddCommentCommand,
    Command,
    CreateBeadCommand,
    Outcome,
    SetLabelsCommand,
    SetStatusCommand,
    UpdateBeadCommand,
)

logger = logging.getLogger(__name__)


def parse_created_id(stdout: str) -> Optional[str]:
    """Find the new bead id in ``br create`` output such as ``Created: bd-abc123``."""
    for line in stdout.splitlines():
        for word in line.split():
            if word.startswith("bd-"):
                return word.rstrip(",:.")
    return None


def _error_text(error: subprocess.CalledProcessError) -> str:
    text = (error.stderr or error.stdout or "").strip()
    return text or f"exit status {error.returncode}"


class BrExecutor:
    """Runs mutation commands through ``br``."""

    def __init__(self, binary: str = "br", cwd: Optional[Path] = None):
        """Initialize with the br binary and the working directory to run it in."""
        self.binary = binary
        self.cwd = Path(cwd) if cwd is not None else None

    def _run_br(self, *args, check: bool = True) -> subprocess.CompletedProcess:
        """Run br command."""
        logger.debug("Running %s %s", self.binary, " ".join(args))
        return subprocess.run(
            [self.binary] + list(args),
            capture_output=True,
            text=True,
            check=check,
            cwd=self.cwd,
        )

    def is_available(self) -> bool:
        """Check if br is installed."""
        try:
            return self._run_br("--version", check=False).returncode == 0
        except OSError:
            return False

    def execute(self, command: Command) -> Outcome:
        """Run one command. Failures are returned, never raised."""
        try:
            if isinstance(command, CreateBeadCommand):
                return Outcome.success(created_id=self._create(command))
            if isinstance(command, SetStatusCommand):
                self._set_status(command)
            elif isinstance(command, SetLabelsCommand):
                self._set_labels(command.bead_id, command.add, command.remove)
            elif isinstance(command, UpdateBeadCommand):
                self._update(command)
            elif isinstance(command, AddCommentCommand):
                self._run_br("comments", "add", command.bead_id, "--", command.text)
            else:
                return Outcome.failure(f"Unsupported command: {command.kind}")
        except FileNotFoundError:
            return Outcome.failure(f"{self.binary} not found on PATH")
        except subprocess.CalledProcessError as e:
            message = f"br {e.cmd[1] if len(e.cmd) > 1 else ''} failed: {_error_text(e)}"
            logger.warning(message)
            return Outcome.failure(message)
        except OSError as e:
            message = f"Could not run {self.binary}: {e}"
            logger.warning(message)
            return Outcome.failure(message)
        return Outcome.success()

    def _create(self, command: CreateBeadCommand) -> Optional[str]:
        args = [
            "create",
            f"--title={command.title}",
            "--type",
            command.bead_type.value,
            "--priority",
            str(command.priority),
        ]
        if command.description:
            args.append(f"--description={command.description}")
        result = self._run_br(*args)
        created_id = parse_created_id(result.stdout)
        if created_id is None:
            logger.warning("Could not find the new bead id in: %s", result.stdout.strip())
            return None
        self._set_labels(created_id, command.labels, ())
        return created_id

    def _set_status(self, command: SetStatusCommand) -> None:
        if command.status == BeadStatus.CLOSED:
            args = ["close", command.bead_id]
            if command.reason:
                args.append(f"--reason={command.reason}")
            self._run_br(*args)
            return
        self._run_br("update", command.bead_id, "--status", command.status.value)
        if command.status == BeadStatus.OPEN and command.reason:
            # The status change already happened; a lost comment is only logged.
            result = self._run_br(
                "comments", "add", command.bead_id, "--", f"Reopened: {command.reason}",
                check=False,
            )
            if result.returncode != 0:
                logger.warning("Could not record reopen reason on %s", command.bead_id)

    def _set_labels(self, bead_id: str, add, remove) -> None:
        for label in add:
            self._run_br("update", bead_id, f"--add-label={label}")
        for label in remove:
            self._run_br("update", bead_id, f"--remove-label={label}")

    def _update(self, command: UpdateBeadCommand) -> None:
        fields = [
            ("title", command.title),
            ("description", command.description),
            ("type", command.bead_type.value if command.bead_type else None),
            ("priority", str(command.priority) if command.priority is not None else None),
        ]
        for name, value in fields:
            if value is not None:
                self._run_br("update", command.bead_id, f"--{name}={value}")
        self._set_labels(command.bead_id, command.add_labels, command.remove_labels)
