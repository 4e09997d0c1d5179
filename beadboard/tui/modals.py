"""Modal dialogs for the beadboard TUI."""

from rich.markup import escape
from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Input, Static

from beadboard.core.events import FormKey, FormPaste
from beadboard.core.form import FIELD_ORDER, FormField, FormState, TextBuffer

CURSOR = "▏"


# ─── Create/edit form ────────────────────────────────────────────────────────


FIELD_LABELS = {
    FormField.TITLE: "Title",
    FormField.TYPE: "Type",
    FormField.PRIORITY: "Priority",
    FormField.DESCRIPTION: "Description",
    FormField.LABELS: "Labels",
}


def _render_buffer(buf: TextBuffer, focused: bool) -> str:
    if not focused:
        return escape(buf.text) or "[#666666]-[/]"
    before, after = buf.text[: buf.cursor], buf.text[buf.cursor:]
    return f"{escape(before)}[reverse]{CURSOR}[/]{escape(after)}"


def render_form(form: FormState) -> str:
    """Rich markup for the whole form."""
    heading = f"Edit {form.editing_id}" if form.editing_id else "New bead"
    lines = [f"[bold]{heading}[/]", ""]
    for field in FIELD_ORDER:
        focused = field == form.field
        marker = "[bold #FEE100]>[/]" if focused else " "
        label = f"{marker} [bold]{FIELD_LABELS[field]:<12}[/]"
        if field == FormField.TYPE:
            value = f"< {form.bead_type.value} >" if focused else form.bead_type.value
        elif field == FormField.PRIORITY:
            value = f"< P{form.priority} >" if focused else f"P{form.priority}"
        else:
            value = _render_buffer(form.buffers[field], focused)
        if field == FormField.DESCRIPTION and "\n" in value:
            indent = "\n" + " " * 15
            value = indent.join(value.split("\n"))
        lines.append(f"{label}{value}")
    lines.append("")
    if form.error:
        lines.append(f"[bold red]{escape(form.error)}[/]")
    if form.submitting is not None:
        lines.append("[#888888]Saving...[/]")
    lines.append("[#888888]tab next field  ctrl+s save  esc cancel[/]")
    return "\n".join(lines)


class FormBody(Static, can_focus=True):
    """Renders the form and forwards every key to the board."""

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.app.dispatch_board(FormKey(key=event.key, character=event.character))

    def on_paste(self, event: events.Paste) -> None:
        event.stop()
        self.app.dispatch_board(FormPaste(text=event.text))


class FormModal(ModalScreen[None]):
    """Create or edit a bead. The form state itself lives on the board."""

    def compose(self) -> ComposeResult:
        with Vertical(id="form-dialog"):
            yield FormBody(id="form-body")

    def on_mount(self) -> None:
        self.query_one("#form-body", FormBody).focus()
        if self.app.board.form is not None:
            self.update_form(self.app.board.form)

    def update_form(self, form: FormState) -> None:
        self.query_one("#form-body", FormBody).update(render_form(form))


# ─── Single-line prompt ──────────────────────────────────────────────────────


class PromptModal(ModalScreen[str | None]):
    """Ask for one line of text. Dismisses with None when cancelled."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, title: str, placeholder: str = "", **kw):
        super().__init__(**kw)
        self._title = title
        self._placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Vertical(id="prompt-dialog"):
            yield Static(f"[bold]{escape(self._title)}[/]", id="prompt-title")
            yield Input(placeholder=self._placeholder, id="prompt-input")
            yield Static("[#888888]enter confirm  esc cancel[/]", id="prompt-hint")

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ReasonModal(PromptModal):
    """Reason for closing or reopening a bead (may be empty)."""

    def __init__(self, bead_id: str, reopen: bool = False, **kw):
        verb = "Reopen" if reopen else "Close"
        super().__init__(f"{verb} {bead_id}", placeholder="Reason (optional)", **kw)


class CommentModal(PromptModal):
    """Comment text for a bead."""

    def __init__(self, bead_id: str, **kw):
        super().__init__(f"Comment on {bead_id}", placeholder="Comment", **kw)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value.strip() or None)


# ─── Help ────────────────────────────────────────────────────────────────────


HELP_KEYS = [
    ("Navigation", ""),
    ("j / k", "move down / up"),
    ("d / u, pgdn / pgup", "page down / up"),
    ("g / G", "first / last"),
    ("enter / l", "open detail"),
    ("esc / h", "close detail"),
    ("tab", "switch pane"),
    ("space", "expand / collapse"),
    ("< / >", "resize panes"),
    ("Actions", ""),
    ("s", "cycle status"),
    ("x", "close / reopen with reason"),
    ("D", "toggle deferred"),
    ("a", "new bead"),
    ("e", "edit bead"),
    ("m", "add comment"),
    ("View", ""),
    ("/", "filter by title"),
    ("c", "show / hide closed"),
    ("L", "show / hide labels"),
    ("t", "next theme"),
    ("r", "refresh"),
    ("q", "quit"),
]


def render_help() -> str:
    lines = []
    for key, text in HELP_KEYS:
        if not text:
            lines.append(f"\n[bold]{key}[/]")
        else:
            lines.append(f"  [#FEE100]{escape(key):<20}[/] {text}")
    return "\n".join(lines).lstrip("\n")


class HelpModal(ModalScreen[None]):
    """Key reference. Any key closes it."""

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Static(render_help(), id="help-body")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.dismiss(None)

    def on_click(self, event: events.Click) -> None:
        self.dismiss(None)
