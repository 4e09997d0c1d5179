"""Colour themes for the dashboard. The board only stores an index into THEMES."""

from pydantic import BaseModel, ConfigDict

from beadboard.core.bead import BeadStatus


class Theme(BaseModel):
    """Colours as rich colour names or hex strings."""

    name: str
    fg: str
    muted: str
    accent: str
    border: str
    focused_border: str
    selection_bg: str
    selection_fg: str
    status_open: str
    status_in_progress: str
    status_blocked: str
    status_closed: str
    priority_critical: str
    priority_high: str
    priority_medium: str
    priority_low: str

    model_config = ConfigDict(frozen=True)

    def status_color(self, status: BeadStatus) -> str:
        return {
            BeadStatus.IN_PROGRESS: self.status_in_progress,
            BeadStatus.BLOCKED: self.status_blocked,
            BeadStatus.CLOSED: self.status_closed,
            BeadStatus.DEFERRED: self.muted,
        }.get(status, self.status_open)

    def priority_color(self, priority: int) -> str:
        if priority <= 0:
            return self.priority_critical
        if priority == 1:
            return self.priority_high
        if priority == 2:
            return self.priority_medium
        return self.priority_low


LAZYGIT = Theme(
    name="Lazygit",
    fg="white",
    muted="grey70",
    accent="cyan",
    border="grey37",
    focused_border="green",
    selection_bg="grey27",
    selection_fg="cyan",
    status_open="white",
    status_in_progress="cyan",
    status_blocked="red",
    status_closed="green",
    priority_critical="red",
    priority_high="yellow",
    priority_medium="white",
    priority_low="grey70",
)

TOKYO_NIGHT = Theme(
    name="Tokyo Night",
    fg="#a9b1d6",
    muted="#565f89",
    accent="#7aa2f7",
    border="#3b4261",
    focused_border="#9ece6a",
    selection_bg="#292e42",
    selection_fg="#c0caf5",
    status_open="#a9b1d6",
    status_in_progress="#7dcfff",
    status_blocked="#f7768e",
    status_closed="#9ece6a",
    priority_critical="#f7768e",
    priority_high="#ff9e64",
    priority_medium="#e0af68",
    priority_low="#9ece6a",
)

DRACULA = Theme(
    name="Dracula",
    fg="#f8f8f2",
    muted="#6272a4",
    accent="#bd93f9",
    border="#44475a",
    focused_border="#50fa7b",
    selection_bg="#44475a",
    selection_fg="#f8f8f2",
    status_open="#f8f8f2",
    status_in_progress="#8be9fd",
    status_blocked="#ff5555",
    status_closed="#50fa7b",
    priority_critical="#ff5555",
    priority_high="#ffb86c",
    priority_medium="#f1fa8c",
    priority_low="#50fa7b",
)

NORD = Theme(
    name="Nord",
    fg="#d8dee9",
    muted="#4c566a",
    accent="#88c0d0",
    border="#3b4252",
    focused_border="#a3be8c",
    selection_bg="#434c5e",
    selection_fg="#eceff4",
    status_open="#d8dee9",
    status_in_progress="#88c0d0",
    status_blocked="#bf616a",
    status_closed="#a3be8c",
    priority_critical="#bf616a",
    priority_high="#d08770",
    priority_medium="#ebcb8b",
    priority_low="#a3be8c",
)

THEMES = [LAZYGIT, TOKYO_NIGHT, DRACULA, NORD]


def get_theme(index: int) -> Theme:
    return THEMES[index % len(THEMES)]
