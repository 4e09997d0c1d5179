"""beadboard TUI application: tree list, detail pane and status bar."""

import logging
from datetime import datetime
from pathlib import Path

from rich.markup import escape
from textual import events, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.timer import Timer
from textual.widgets import Footer, Input, Static

from beadboard.core.bead import Bead, BeadStatus
from beadboard.core.board import Board
from beadboard.core.br import BrExecutor
from beadboard.core.config import BoardConfig
from beadboard.core.events import (
    AddComment,
    ClickRow,
    CloseDetail,
    CloseOrReopen,
    CycleStatus,
    CycleTheme,
    Effect,
    Event,
    FocusPane,
    LoadSnapshot,
    MoveBy,
    MoveFirst,
    MoveLast,
    MovePage,
    MutationFinished,
    Notify,
    OpenCreateForm,
    OpenDetail,
    OpenEditForm,
    RefreshTick,
    ResizeSplit,
    RunMutation,
    SetFilter,
    SnapshotLoaded,
    StoreFailed,
    ToggleDeferred,
    ToggleExpand,
    ToggleLabels,
    ToggleShowClosed,
    Viewport,
    Wheel,
)
from beadboard.core.mutations import Executor, MutationTicket, Outcome
from beadboard.core.navigation import Pane
from beadboard.core.store import BeadStore, StoreUnavailable
from beadboard.core.tree import TreeNode
from beadboard.tui.modals import CommentModal, FormModal, HelpModal, ReasonModal
from beadboard.tui.theme import THEMES, Theme, get_theme

logger = logging.getLogger(__name__)

STATUS_ICONS = {
    BeadStatus.OPEN: "○",
    BeadStatus.IN_PROGRESS: "◐",
    BeadStatus.BLOCKED: "●",
    BeadStatus.DEFERRED: "◌",
    BeadStatus.CLOSED: "✓",
}

WHEEL_STEP = 1


def _fmt_time(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


# ─── Rendering helpers ────────────────────────────────────────────────────────


def render_row(
    node: TreeNode, selected: bool, badge: str | None, theme: Theme, show_labels: bool
) -> str:
    """One list line: indent, expander, status icon, id, priority, title."""
    bead = node.bead
    indent = "  " * node.depth
    if node.has_children:
        expander = "▼ " if node.expanded else "▶ "
    else:
        expander = "  "
    shown_status = bead.status
    if bead.status != BeadStatus.CLOSED:
        # Blocking dependencies and a "deferred" label override the stored status.
        if bead.is_blocked:
            shown_status = BeadStatus.BLOCKED
        elif bead.is_deferred:
            shown_status = BeadStatus.DEFERRED
    status = theme.status_color(shown_status)
    prio = theme.priority_color(bead.priority)
    title_style = theme.muted if not node.matched else theme.fg
    parts = [
        f"{indent}{expander}",
        f"[{status}]{STATUS_ICONS[shown_status]}[/] ",
        f"[{theme.muted}]{escape(bead.id)}[/] ",
        f"[{prio}]{bead.priority_label}[/] ",
        f"[{title_style}]{escape(bead.title)}[/]",
    ]
    if show_labels and bead.labels:
        labels = " ".join(f"#{label}" for label in sorted(bead.labels))
        parts.append(f" [{theme.accent}]{escape(labels)}[/]")
    if badge == "busy":
        parts.append(f" [{theme.accent}]…[/]")
    elif badge == "failed":
        parts.append(f" [{theme.status_blocked}]![/]")
    line = "".join(parts)
    if selected:
        line = f"[on {theme.selection_bg}]{line}[/]"
    return line


def render_detail(bead: Bead | None, theme: Theme, failure: str | None = None) -> list[str]:
    """Detail pane lines for ``bead``."""
    if bead is None:
        return [f"[{theme.muted}]No bead selected[/]"]
    status = theme.status_color(bead.status)
    prio = theme.priority_color(bead.priority)
    lines = [
        f"[bold {theme.accent}]{escape(bead.id)}[/]  [bold]{escape(bead.title)}[/]",
        "",
        f"Status    [{status}]{bead.status.value}[/]",
        f"Priority  [{prio}]{bead.priority_label}[/]",
        f"Type      {bead.bead_type.value}",
    ]
    if bead.labels:
        lines.append(f"Labels    {escape(', '.join(sorted(bead.labels)))}")
    if bead.parent_id:
        lines.append(f"Parent    {escape(bead.parent_id)}")
    if bead.assignee:
        lines.append(f"Assignee  {escape(bead.assignee)}")
    if bead.created_by:
        lines.append(f"Author    {escape(bead.created_by)}")
    lines.append(f"Created   {_fmt_time(bead.created_at)}")
    lines.append(f"Updated   {_fmt_time(bead.updated_at)}")
    if bead.closed_at:
        lines.append(f"Closed    {_fmt_time(bead.closed_at)}")
    if bead.close_reason:
        lines.append(f"Reason    {escape(bead.close_reason)}")
    if bead.blocked_by:
        lines.append(f"[{theme.status_blocked}]Blocked by[/] {escape(', '.join(bead.blocked_by))}")
    if bead.blocks:
        lines.append(f"Blocks    {escape(', '.join(bead.blocks))}")
    if failure:
        lines.extend(["", f"[bold {theme.status_blocked}]Last change failed:[/] {escape(failure)}"])
    if bead.description:
        lines.extend(["", "[bold]Description[/]"])
        lines.extend(escape(line) for line in bead.description.splitlines())
    if bead.comments:
        lines.extend(["", f"[bold]Comments ({len(bead.comments)})[/]"])
        for comment in bead.comments:
            author = escape(comment.author or "anonymous")
            lines.append(f"[{theme.accent}]{author}[/] [{theme.muted}]{_fmt_time(comment.created_at)}[/]")
            lines.extend(f"  {escape(line)}" for line in comment.text.splitlines())
    return lines


# ─── Widgets ──────────────────────────────────────────────────────────────────


class BoardHeader(Static):
    """Top bar with the database path and bead counts."""


class BeadList(Static, can_focus=True):
    """Tree list of beads. Rows are drawn from the board's viewport window."""

    def on_click(self, event: events.Click) -> None:
        offset = event.get_content_offset(self)
        if offset is not None:
            self.app.dispatch_board(ClickRow(row=offset.y))

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.app.dispatch_board(FocusPane(pane=Pane.LIST))
        self.app.dispatch_board(Wheel(delta=WHEEL_STEP))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.app.dispatch_board(FocusPane(pane=Pane.LIST))
        self.app.dispatch_board(Wheel(delta=-WHEEL_STEP))


class DetailPane(Static):
    """Selected bead's fields, description and comments."""

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.app.dispatch_board(FocusPane(pane=Pane.DETAIL))
        self.app.dispatch_board(Wheel(delta=WHEEL_STEP))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.app.dispatch_board(FocusPane(pane=Pane.DETAIL))
        self.app.dispatch_board(Wheel(delta=-WHEEL_STEP))


class Divider(Static):
    """Draggable bar between the list and the detail pane."""

    def __init__(self, **kw):
        super().__init__("┃", **kw)
        self._dragging = False

    def on_mouse_down(self, event: events.MouseDown) -> None:
        self._dragging = True
        self.add_class("dragging")
        self.capture_mouse()
        event.stop()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if self._dragging:
            self._dragging = False
            self.remove_class("dragging")
            self.release_mouse()
            event.stop()

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self._dragging:
            width = max(1, self.app.size.width)
            self.app.dispatch_board(ResizeSplit(percent=event.screen_x * 100 // width))
            event.stop()


class StatusBar(Static):
    """Bottom line: filter, toggles, banners and pending changes."""


# ─── Main application ────────────────────────────────────────────────────────


class BeadboardApp(App):
    """Terminal dashboard for beads."""

    CSS_PATH = "styles.tcss"
    TITLE = "beadboard"

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        Binding("j,down", "move(1)", "Down", show=False),
        Binding("k,up", "move(-1)", "Up", show=False),
        Binding("d,f,pagedown", "page(1)", "Page down", show=False),
        Binding("u,b,pageup", "page(-1)", "Page up", show=False),
        Binding("g,home", "first", "First", show=False),
        Binding("G,end", "last", "Last", show=False),
        Binding("enter,l,right", "open_detail", "Detail", show=True),
        Binding("escape,h,left", "back", "Back", show=False),
        Binding("tab", "switch_pane", "Switch pane", show=False),
        Binding("space", "toggle_expand", "Expand", show=False),
        Binding("slash", "search", "Filter", show=True),
        Binding("s", "cycle_status", "Status", show=True),
        Binding("x", "close_or_reopen", "Close/reopen", show=True),
        Binding("D", "toggle_deferred", "Defer", show=False),
        Binding("a", "create", "New", show=True),
        Binding("e", "edit", "Edit", show=True),
        Binding("m", "comment", "Comment", show=False),
        Binding("c", "toggle_closed", "Closed", show=True),
        Binding("L", "toggle_labels", "Labels", show=False),
        Binding("t", "cycle_theme", "Theme", show=False),
        Binding("less_than_sign", "resize(-5)", "Narrower", show=False),
        Binding("greater_than_sign", "resize(5)", "Wider", show=False),
        Binding("r", "force_refresh", "Refresh", show=True),
        Binding("question_mark", "help", "Help", show=True),
    ]

    def __init__(
        self,
        config: BoardConfig | None = None,
        store: BeadStore | None = None,
        executor: Executor | None = None,
    ):
        super().__init__()
        self.config = config or BoardConfig()
        self.store = store or BeadStore(self.config.db_path)
        if executor is None:
            executor = BrExecutor(cwd=_project_root(self.config.db_path))
        self.executor = executor
        self.board = Board(self.config, theme_count=len(THEMES))
        self._refresh_timer: Timer | None = None
        self._searching = False
        self._dashboard = None

    def compose(self) -> ComposeResult:
        yield BoardHeader(id="header")
        with Horizontal(id="body"):
            yield BeadList(id="bead-list")
            yield Divider(id="divider")
            yield DetailPane(id="detail")
        yield Input(placeholder="Filter by title", id="filter")
        yield StatusBar(id="status")
        yield Footer()

    def on_mount(self) -> None:
        self._dashboard = self.screen
        self._dashboard.query_one("#filter", Input).display = False
        self._dashboard.query_one("#bead-list", BeadList).focus()
        self.dispatch_board(RefreshTick(reason="startup"))
        if self.config.refresh_interval > 0:
            self._refresh_timer = self.set_interval(
                self.config.refresh_interval, self._on_refresh_timer
            )

    async def action_quit(self) -> None:
        self.board.shutdown()
        self.exit()

    def on_resize(self, event: events.Resize) -> None:
        self.call_after_refresh(self.sync_view)

    def _on_refresh_timer(self) -> None:
        self.dispatch_board(RefreshTick(reason="timer"))

    # ─── Board plumbing ──────────────────────────────────────────────────

    def dispatch_board(self, event: Event) -> None:
        """Feed one event to the board, run its effects and redraw."""
        for effect in self.board.dispatch(event):
            self._apply_effect(effect)
        self.sync_view()

    def _apply_effect(self, effect: Effect) -> None:
        if isinstance(effect, LoadSnapshot):
            self._load_snapshot(effect.reason)
        elif isinstance(effect, RunMutation):
            self._run_mutation(effect.ticket)
        elif isinstance(effect, Notify):
            self.notify(effect.message, severity=effect.severity)

    @work(thread=True, group="snapshot")
    def _load_snapshot(self, reason: str) -> None:
        logger.debug("Loading snapshot (%s)", reason)
        self.call_from_thread(self.dispatch_board, read_snapshot_event(self.store))

    @work(thread=True, group="mutation")
    def _run_mutation(self, ticket: MutationTicket) -> None:
        logger.info("Running ticket %s (%s)", ticket.seq, ticket.command.kind)
        self.call_from_thread(self.dispatch_board, run_ticket_event(self.executor, ticket))

    # ─── Drawing ─────────────────────────────────────────────────────────

    def sync_view(self) -> None:
        """Redraw every widget from the board state."""
        board = self.board
        if board.closed or self._dashboard is None:
            return
        theme = get_theme(board.theme_index)
        bead_list = self._dashboard.query_one("#bead-list", BeadList)
        detail = self._dashboard.query_one("#detail", DetailPane)
        divider = self._dashboard.query_one("#divider", Divider)

        show_detail = board.session.show_detail
        detail.display = show_detail
        divider.display = show_detail
        bead_list.styles.width = f"{board.split_percent}%" if show_detail else "100%"
        bead_list.set_class(board.selection.focus == Pane.LIST, "focused")
        detail.set_class(board.selection.focus == Pane.DETAIL, "focused")

        selected = board.selected_bead
        detail_lines = render_detail(
            selected,
            theme,
            board.coordinator.failure_reason(selected.id) if selected else None,
        )
        detail_height = max(1, detail.content_size.height)
        list_height = max(1, bead_list.content_size.height)
        max_offset = max(0, len(detail_lines) - detail_height)
        if (list_height, max_offset) != (board.list_height, board.detail_lines):
            board.dispatch(Viewport(list_height=list_height, detail_lines=max_offset))

        rows = [
            render_row(node, is_selected, board.badge(node.id), theme, board.session.show_labels)
            for node, is_selected in board.rows()
        ]
        if not rows:
            rows = [f"[{theme.muted}]No beads to show[/]"]
        bead_list.update("\n".join(rows))
        offset = board.selection.detail_offset
        detail.update("\n".join(detail_lines[offset : offset + detail_height]))

        self._draw_header(theme)
        self._draw_status(theme)
        self._sync_form()

    def _draw_header(self, theme: Theme) -> None:
        board = self.board
        total = len(board.index)
        shown = len(board.visible)
        loaded = board.snapshot_at.astimezone().strftime("%H:%M:%S") if board.snapshot_at else "never"
        self._dashboard.query_one("#header", BoardHeader).update(
            f"  [bold {theme.accent}]bu[/] [{theme.muted}]{escape(str(self.config.db_path))}[/]"
            f"  {shown}/{total} beads  [{theme.muted}]loaded {loaded}  {theme.name}[/]"
        )

    def _draw_status(self, theme: Theme) -> None:
        board = self.board
        parts = []
        if board.banner:
            parts.append(f"[bold {theme.status_blocked}]{escape(board.banner)}[/]")
        if board.filter_text:
            parts.append(f"filter: [{theme.accent}]{escape(board.filter_text)}[/]")
        if board.session.show_closed:
            parts.append("showing closed")
        pending = len(board.coordinator.pending)
        if pending:
            parts.append(f"[{theme.accent}]{pending} pending[/]")
        for notice in board.notices:
            parts.append(f"[{theme.priority_high}]{escape(notice.message)}[/]")
        self._dashboard.query_one("#status", StatusBar).update("  ".join(parts) or " ")

    def _sync_form(self) -> None:
        form = self.board.form
        modal = self.screen if isinstance(self.screen, FormModal) else None
        if form is None:
            if modal is not None:
                modal.dismiss(None)
            return
        if modal is None:
            self.push_screen(FormModal())
        elif modal.is_mounted:
            modal.update_form(form)

    # ─── Actions ─────────────────────────────────────────────────────────

    def action_move(self, delta: int) -> None:
        self.dispatch_board(MoveBy(delta=delta))

    def action_page(self, delta: int) -> None:
        self.dispatch_board(MovePage(delta=delta))

    def action_first(self) -> None:
        self.dispatch_board(MoveFirst())

    def action_last(self) -> None:
        self.dispatch_board(MoveLast())

    def action_open_detail(self) -> None:
        self.dispatch_board(OpenDetail())

    def action_back(self) -> None:
        if self._searching:
            self._end_search(clear=True)
            return
        self.dispatch_board(CloseDetail())

    def action_switch_pane(self) -> None:
        self.dispatch_board(FocusPane())

    def action_toggle_expand(self) -> None:
        self.dispatch_board(ToggleExpand())

    def action_search(self) -> None:
        filter_input = self._dashboard.query_one("#filter", Input)
        filter_input.value = self.board.filter_text
        filter_input.display = True
        filter_input.focus()
        self._searching = True

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "filter":
            self.dispatch_board(SetFilter(text=event.value))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "filter":
            self._end_search(clear=False)

    def _end_search(self, clear: bool) -> None:
        filter_input = self._dashboard.query_one("#filter", Input)
        self._searching = False
        if clear:
            filter_input.value = ""
            self.dispatch_board(SetFilter(text=""))
        filter_input.display = bool(self.board.filter_text)
        self._dashboard.query_one("#bead-list", BeadList).focus()

    def action_cycle_status(self) -> None:
        self.dispatch_board(CycleStatus())

    def action_toggle_deferred(self) -> None:
        self.dispatch_board(ToggleDeferred())

    def action_close_or_reopen(self) -> None:
        bead = self.board.selected_bead
        if bead is None:
            self.notify("No bead selected", severity="warning")
            return
        self.push_screen(
            ReasonModal(bead.id, reopen=bead.status == BeadStatus.CLOSED),
            callback=lambda reason: (
                self.dispatch_board(CloseOrReopen(reason=reason)) if reason is not None else None
            ),
        )

    def action_comment(self) -> None:
        bead = self.board.selected_bead
        if bead is None:
            self.notify("No bead selected", severity="warning")
            return
        self.push_screen(
            CommentModal(bead.id),
            callback=lambda text: self.dispatch_board(AddComment(text=text)) if text else None,
        )

    def action_create(self) -> None:
        self.dispatch_board(OpenCreateForm())

    def action_edit(self) -> None:
        self.dispatch_board(OpenEditForm())

    def action_toggle_closed(self) -> None:
        self.dispatch_board(ToggleShowClosed())

    def action_toggle_labels(self) -> None:
        self.dispatch_board(ToggleLabels())

    def action_cycle_theme(self) -> None:
        self.dispatch_board(CycleTheme())

    def action_resize(self, delta: int) -> None:
        self.dispatch_board(ResizeSplit(delta=delta))

    def action_force_refresh(self) -> None:
        self.dispatch_board(RefreshTick(reason="manual"))

    def action_help(self) -> None:
        self.push_screen(HelpModal())


def read_snapshot_event(store: BeadStore) -> SnapshotLoaded | StoreFailed:
    """Read the store and wrap the result for the board. Never raises."""
    try:
        return SnapshotLoaded(snapshot=store.read_snapshot())
    except StoreUnavailable as e:
        return StoreFailed(message=str(e))
    except Exception as e:
        logger.exception("Unexpected error reading the store")
        return StoreFailed(message=f"{type(e).__name__}: {e}")


def run_ticket_event(executor: Executor, ticket: MutationTicket) -> MutationFinished:
    """Execute a ticket's command and wrap the outcome for the board. Never raises."""
    try:
        outcome = executor.execute(ticket.command)
    except Exception as e:
        logger.exception("Unexpected error running ticket %s", ticket.seq)
        outcome = Outcome.failure(f"{type(e).__name__}: {e}")
    return MutationFinished(seq=ticket.seq, outcome=outcome)


def _project_root(db_path: Path) -> Path | None:
    """``br`` runs from the directory holding ``.beads``."""
    db_path = Path(db_path).expanduser().resolve()
    if db_path.parent.name == ".beads":
        return db_path.parent.parent
    return None


def run_tui(config: BoardConfig | None = None) -> None:
    """Entry point for the TUI."""
    app = BeadboardApp(config=config)
    app.run()
