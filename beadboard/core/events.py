"""Events delivered to the board and the effects it asks the app to perform."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from beadboard.core.bead import Snapshot
from beadboard.core.mutations import MutationTicket, Outcome
from beadboard.core.navigation import Pane


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)


# ─── Navigation ──────────────────────────────────────────────────────────────


class MoveBy(Event):
    """Up/down one step (keyboard or mouse wheel) in the focused pane."""

    delta: int


class Wheel(Event):
    """Mouse wheel: one row in the list, three lines in the detail pane."""

    delta: int


class MovePage(Event):
    delta: int  # +1 page down, -1 page up


class MoveFirst(Event):
    pass


class MoveLast(Event):
    pass


class ClickRow(Event):
    """Mouse click on a list row, counted from the top of the viewport."""

    row: int


class FocusPane(Event):
    pane: Optional[Pane] = None  # None toggles


class OpenDetail(Event):
    pass


class CloseDetail(Event):
    pass


class ToggleExpand(Event):
    pass


class SetFilter(Event):
    text: str


class ToggleShowClosed(Event):
    pass


class ToggleLabels(Event):
    pass


class CycleTheme(Event):
    pass


class ResizeSplit(Event):
    """Set the list pane width as a percentage, or adjust it by ``delta``."""

    percent: Optional[int] = None
    delta: int = 0


class Viewport(Event):
    """Visible heights reported by the renderer after layout."""

    list_height: int
    detail_lines: Optional[int] = None


# ─── Mutations and forms ─────────────────────────────────────────────────────


class CycleStatus(Event):
    pass


class ToggleDeferred(Event):
    pass


class CloseOrReopen(Event):
    """Close the selected bead, or reopen it if it is closed."""

    reason: str = ""


class AddComment(Event):
    text: str


class OpenCreateForm(Event):
    pass


class OpenEditForm(Event):
    pass


class FormKey(Event):
    key: str
    character: Optional[str] = None


class FormPaste(Event):
    text: str


class SubmitForm(Event):
    pass


class CancelForm(Event):
    pass


# ─── Asynchronous results ────────────────────────────────────────────────────


class RefreshTick(Event):
    """Periodic timer or the explicit refresh key."""

    reason: str = "timer"


class SnapshotLoaded(Event):
    snapshot: Snapshot


class StoreFailed(Event):
    message: str


class MutationFinished(Event):
    seq: int
    outcome: Outcome


# ─── Effects ─────────────────────────────────────────────────────────────────


class Effect(BaseModel):
    model_config = ConfigDict(frozen=True)


class LoadSnapshot(Effect):
    """Read the store in the background and deliver SnapshotLoaded/StoreFailed."""

    reason: str = "timer"


class RunMutation(Effect):
    """Execute the ticket's command in the background and deliver MutationFinished."""

    ticket: MutationTicket


class Notify(Effect):
    message: str
    severity: Literal["information", "warning", "error"] = "information"
