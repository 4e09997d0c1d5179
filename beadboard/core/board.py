"""Application state and the single dispatch point for every event.

The board owns the record index, the visible sequence, the selection and
the session state (filter, collapse map, toggles). It is only ever driven
from one loop: input events, timer ticks and background results all arrive
through ``dispatch`` one at a time, and ``dispatch`` answers with effects
(load a snapshot, run a mutation, show a notification) for the app to carry
out. Nothing here blocks or touches the terminal.
"""

import logging
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel

from beadboard.core import navigation as nav
from beadboard.core.bead import Bead, BeadStatus, RecordIndex, Snapshot
from beadboard.core.config import MAX_SPLIT_PERCENT, MIN_SPLIT_PERCENT, BoardConfig
from beadboard.core.events import (
    AddComment,
    CancelForm,
    ClickRow,
    CloseDetail,
    CloseOrReopen,
    CycleStatus,
    CycleTheme,
    Effect,
    Event,
    FocusPane,
    FormKey,
    FormPaste,
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
    SubmitForm,
    ToggleDeferred,
    ToggleExpand,
    ToggleLabels,
    ToggleShowClosed,
    Viewport,
    Wheel,
)
from beadboard.core.form import FormState
from beadboard.core.mutations import (
    AddCommentCommand,
    CreateBeadCommand,
    MutationCoordinator,
    MutationTicket,
    Rejected,
    SetStatusCommand,
    TicketState,
    UpdateBeadCommand,
)
from beadboard.core.navigation import Pane, Selection
from beadboard.core.tree import Forest, TreeNode, build_forest, build_visible_sequence

logger = logging.getLogger(__name__)

WHEEL_DETAIL_LINES = 3


class Notice(BaseModel):
    """A data problem found while applying a snapshot."""

    kind: Literal["duplicate_identifier", "cyclic_parentage"]
    bead_id: str
    message: str


class SessionState(BaseModel):
    """View settings that belong to the user's session, not to the store."""

    filter_text: str = ""
    collapsed: dict[str, bool] = {}
    show_closed: bool = False
    show_labels: bool = True
    show_detail: bool = False
    theme_index: int = 0
    split_percent: int = 40


class Board:
    """The dashboard's state machine."""

    def __init__(
        self,
        config: Optional[BoardConfig] = None,
        theme_count: int = 1,
    ):
        config = config or BoardConfig()
        self.page_size = config.page_size
        self.theme_count = max(1, theme_count)
        self.session = SessionState(
            show_closed=config.show_closed,
            show_labels=config.show_labels,
            theme_index=config.theme % self.theme_count,
            split_percent=config.split_percent,
        )
        self.index = RecordIndex()
        self.forest: Forest = build_forest(self.index)
        self.visible: tuple[TreeNode, ...] = ()
        self.selection = Selection()
        self.coordinator = MutationCoordinator(self.index_lookup)
        self.form: Optional[FormState] = None
        self.notices: list[Notice] = []
        self.banner: Optional[str] = None
        self.snapshot_at: Optional[datetime] = None
        self.list_height = 20
        self.detail_lines: Optional[int] = None
        self.closed = False
        self._loading = False
        self._reload_after_load = False
        self._select_after_load: Optional[tuple[str, int]] = None
        self._load_seq = 0
        self._notice_keys: set[tuple[str, str]] = set()
        self._handlers = {
            MoveBy: self._on_move_by,
            Wheel: self._on_wheel,
            MovePage: self._on_move_page,
            MoveFirst: self._on_move_first,
            MoveLast: self._on_move_last,
            ClickRow: self._on_click_row,
            FocusPane: self._on_focus_pane,
            OpenDetail: self._on_open_detail,
            CloseDetail: self._on_close_detail,
            ToggleExpand: self._on_toggle_expand,
            SetFilter: self._on_set_filter,
            ToggleShowClosed: self._on_toggle_show_closed,
            ToggleLabels: self._on_toggle_labels,
            CycleTheme: self._on_cycle_theme,
            ResizeSplit: self._on_resize_split,
            Viewport: self._on_viewport,
            CycleStatus: self._on_cycle_status,
            ToggleDeferred: self._on_toggle_deferred,
            CloseOrReopen: self._on_close_or_reopen,
            AddComment: self._on_add_comment,
            OpenCreateForm: self._on_open_create_form,
            OpenEditForm: self._on_open_edit_form,
            FormKey: self._on_form_key,
            FormPaste: self._on_form_paste,
            SubmitForm: self._on_submit_form,
            CancelForm: self._on_cancel_form,
            RefreshTick: self._on_refresh_tick,
            SnapshotLoaded: self._on_snapshot_loaded,
            StoreFailed: self._on_store_failed,
            MutationFinished: self._on_mutation_finished,
        }

    # ─── Queries for the renderer ────────────────────────────────────────

    def index_lookup(self, bead_id: str) -> Optional[Bead]:
        return self.index.get(bead_id)

    @property
    def visible_ids(self) -> list[str]:
        return [node.id for node in self.visible]

    @property
    def selected_index(self) -> Optional[int]:
        return self.selection.index_in(self.visible_ids)

    @property
    def selected_node(self) -> Optional[TreeNode]:
        idx = self.selected_index
        return self.visible[idx] if idx is not None else None

    @property
    def selected_bead(self) -> Optional[Bead]:
        node = self.selected_node
        return node.bead if node is not None else None

    @property
    def filter_text(self) -> str:
        return self.session.filter_text

    @property
    def theme_index(self) -> int:
        return self.session.theme_index

    @property
    def split_percent(self) -> int:
        return self.session.split_percent

    def badge(self, bead_id: str) -> Optional[str]:
        return self.coordinator.badge(bead_id)

    def rows(self, height: Optional[int] = None) -> list[tuple[TreeNode, bool]]:
        """The slice of the visible sequence inside the list viewport."""
        start = self.selection.list_offset
        window = self.visible[start : start + (height or self.list_height)]
        return [(node, node.id == self.selection.selected_id) for node in window]

    # ─── Dispatch ────────────────────────────────────────────────────────

    def dispatch(self, event: Event) -> list[Effect]:
        """Apply one event and return the effects the caller must perform."""
        if self.closed:
            logger.debug("Discarding %s after shutdown", type(event).__name__)
            return []
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unhandled event {type(event).__name__}")
        return handler(event) or []

    def shutdown(self) -> None:
        """Stop accepting events; late background results are dropped."""
        self.closed = True

    # ─── Refresh reconciliation ──────────────────────────────────────────

    def apply_snapshot(self, snapshot: Snapshot) -> list[Effect]:
        """Merge a fresh snapshot into the current view.

        Session state (filter, collapse map, show-closed) is kept, the
        selection is carried over with the fallback rule, and pending tickets
        whose change is already visible are treated as succeeded.
        """
        old_ids = self.visible_ids
        self.index = RecordIndex.from_snapshot(snapshot)
        self.forest = build_forest(self.index)
        self.snapshot_at = snapshot.taken_at
        self.banner = None
        self.session.collapsed = {
            bead_id: flag
            for bead_id, flag in self.session.collapsed.items()
            if bead_id in self.index
        }
        self._rebuild(old_ids)

        if self._select_after_load is not None:
            created_id, after_load = self._select_after_load
            # Only loads issued after the creation finished can contain the new bead.
            if self._load_seq >= after_load:
                if created_id in self.visible_ids:
                    self._set_selection(
                        self.selection.model_copy(update={"selected_id": created_id})
                    )
                self._select_after_load = None

        effects = self._collect_notices()
        for ticket in self.coordinator.reconcile(self.index):
            effects.extend(self._ticket_resolved(ticket, refresh=False))
        return effects

    def _rebuild(self, old_ids: Optional[list[str]] = None) -> None:
        if old_ids is None:
            old_ids = self.visible_ids
        self.visible = build_visible_sequence(
            self.forest,
            filter_text=self.session.filter_text,
            collapsed=self.session.collapsed,
            show_closed=self.session.show_closed,
        )
        self._set_selection(nav.revalidate(old_ids, self.visible_ids, self.selection))

    def _set_selection(self, selection: Selection) -> None:
        self.selection = nav.clamp_offset(self.visible_ids, selection, self.list_height)

    def _collect_notices(self) -> list[Effect]:
        notices = [
            Notice(
                kind="duplicate_identifier",
                bead_id=bead_id,
                message=f"Duplicate id {bead_id}: using the last record",
            )
            for bead_id in self.index.duplicates
        ]
        notices.extend(
            Notice(
                kind="cyclic_parentage",
                bead_id=bead_id,
                message=f"Parent cycle at {bead_id}: shown as a root",
            )
            for bead_id in self.forest.rerooted
        )
        self.notices = notices
        keys = {(n.kind, n.bead_id) for n in notices}
        fresh = [n for n in notices if (n.kind, n.bead_id) not in self._notice_keys]
        self._notice_keys = keys
        for notice in fresh:
            logger.warning(notice.message)
        return [Notify(message=n.message, severity="warning") for n in fresh]

    # ─── Navigation handlers ─────────────────────────────────────────────

    def _on_move_by(self, event: MoveBy) -> None:
        if self.selection.focus == Pane.DETAIL:
            self.selection = nav.scroll_detail(self.selection, event.delta, self.detail_lines)
        else:
            self._set_selection(nav.move_by(self.visible_ids, self.selection, event.delta))

    def _on_wheel(self, event: Wheel) -> None:
        step = 1 if event.delta > 0 else -1
        if self.selection.focus == Pane.DETAIL:
            self.selection = nav.scroll_detail(
                self.selection, step * WHEEL_DETAIL_LINES, self.detail_lines
            )
        else:
            self._set_selection(nav.move_by(self.visible_ids, self.selection, step))

    def _on_move_page(self, event: MovePage) -> None:
        rows = event.delta * self.page_size
        if self.selection.focus == Pane.DETAIL:
            self.selection = nav.scroll_detail(self.selection, rows, self.detail_lines)
        else:
            self._set_selection(nav.move_page(self.visible_ids, self.selection, rows))

    def _on_move_first(self, event: MoveFirst) -> None:
        if self.selection.focus == Pane.DETAIL:
            self.selection = self.selection.model_copy(update={"detail_offset": 0})
        else:
            self._set_selection(nav.move_first(self.visible_ids, self.selection))

    def _on_move_last(self, event: MoveLast) -> None:
        if self.selection.focus == Pane.DETAIL:
            # The renderer clamps when it does not report a line count.
            last = self.detail_lines if self.detail_lines is not None else 10_000
            self.selection = nav.scroll_detail(self.selection, last, self.detail_lines)
        else:
            self._set_selection(nav.move_last(self.visible_ids, self.selection))

    def _on_click_row(self, event: ClickRow) -> None:
        index = self.selection.list_offset + event.row
        if not 0 <= index < len(self.visible):
            return
        self._set_selection(nav.select_index(self.visible_ids, self.selection, index))
        self.session.show_detail = True
        self.selection = nav.switch_focus(self.selection, Pane.DETAIL)

    def _on_focus_pane(self, event: FocusPane) -> None:
        if not self.session.show_detail:
            return
        self.selection = nav.switch_focus(self.selection, event.pane)

    def _on_open_detail(self, event: OpenDetail) -> None:
        self.session.show_detail = True
        self.selection = nav.switch_focus(self.selection, Pane.DETAIL).model_copy(
            update={"detail_offset": 0}
        )

    def _on_close_detail(self, event: CloseDetail) -> None:
        self.session.show_detail = False
        self.selection = nav.switch_focus(self.selection, Pane.LIST)

    def _on_toggle_expand(self, event: ToggleExpand) -> None:
        bead = self.selected_bead
        if bead is None or not self.forest.children_of(bead.id):
            return
        collapsed = dict(self.session.collapsed)
        collapsed[bead.id] = not collapsed.get(bead.id, False)
        self.session.collapsed = collapsed
        self._rebuild()

    def _on_set_filter(self, event: SetFilter) -> None:
        if event.text == self.session.filter_text:
            return
        self.session.filter_text = event.text
        self._rebuild()
        self._set_selection(nav.move_first(self.visible_ids, self.selection))

    def _on_toggle_show_closed(self, event: ToggleShowClosed) -> None:
        self.session.show_closed = not self.session.show_closed
        self._rebuild()

    def _on_toggle_labels(self, event: ToggleLabels) -> None:
        self.session.show_labels = not self.session.show_labels

    def _on_cycle_theme(self, event: CycleTheme) -> None:
        self.session.theme_index = (self.session.theme_index + 1) % self.theme_count

    def _on_resize_split(self, event: ResizeSplit) -> None:
        percent = event.percent if event.percent is not None else self.session.split_percent
        percent += event.delta
        self.session.split_percent = max(MIN_SPLIT_PERCENT, min(MAX_SPLIT_PERCENT, percent))

    def _on_viewport(self, event: Viewport) -> None:
        self.list_height = max(1, event.list_height)
        self.detail_lines = event.detail_lines
        self._set_selection(self.selection)
        if self.detail_lines is not None:
            self.selection = nav.scroll_detail(self.selection, 0, self.detail_lines)

    # ─── Mutation handlers ───────────────────────────────────────────────

    def _issue(self, result: Union[MutationTicket, Rejected]) -> list[Effect]:
        if isinstance(result, Rejected):
            logger.info("Mutation rejected: %s", result.reason)
            return [Notify(message=result.reason, severity="warning")]
        return [RunMutation(ticket=result)]

    def _on_cycle_status(self, event: CycleStatus) -> list[Effect]:
        bead = self.selected_bead
        if bead is None:
            return [Notify(message="No bead selected", severity="warning")]
        return self._issue(self.coordinator.request_status_cycle(bead.id))

    def _on_toggle_deferred(self, event: ToggleDeferred) -> list[Effect]:
        bead = self.selected_bead
        if bead is None:
            return [Notify(message="No bead selected", severity="warning")]
        if bead.status == BeadStatus.OPEN:
            target = BeadStatus.DEFERRED
        elif bead.status == BeadStatus.DEFERRED:
            target = BeadStatus.OPEN
        else:
            return [Notify(message="Only open beads can be deferred", severity="warning")]
        return self._issue(
            self.coordinator.request(SetStatusCommand(bead_id=bead.id, status=target))
        )

    def _on_close_or_reopen(self, event: CloseOrReopen) -> list[Effect]:
        bead = self.selected_bead
        if bead is None:
            return [Notify(message="No bead selected", severity="warning")]
        target = BeadStatus.OPEN if bead.status == BeadStatus.CLOSED else BeadStatus.CLOSED
        reason = event.reason.strip() or None
        return self._issue(
            self.coordinator.request(
                SetStatusCommand(bead_id=bead.id, status=target, reason=reason)
            )
        )

    def _on_add_comment(self, event: AddComment) -> list[Effect]:
        bead = self.selected_bead
        if bead is None or not event.text.strip():
            return []
        return self._issue(
            self.coordinator.request(AddCommentCommand(bead_id=bead.id, text=event.text))
        )

    # ─── Form handlers ───────────────────────────────────────────────────

    def _on_open_create_form(self, event: OpenCreateForm) -> None:
        self.form = FormState()

    def _on_open_edit_form(self, event: OpenEditForm) -> list[Effect]:
        bead = self.selected_bead
        if bead is None:
            return [Notify(message="No bead selected", severity="warning")]
        self.form = FormState(editing=bead)
        return []

    def _on_form_key(self, event: FormKey) -> list[Effect]:
        form = self.form
        if form is None:
            return []
        if event.key == "escape":
            return self._on_cancel_form(CancelForm())
        if form.submitting is not None:
            return []
        if event.key in ("ctrl+s", "ctrl+enter"):
            return self._on_submit_form(SubmitForm())
        if event.key == "tab":
            form.next_field()
        elif event.key == "shift+tab":
            form.prev_field()
        else:
            form.handle_key(event.key, event.character)
        return []

    def _on_form_paste(self, event: FormPaste) -> None:
        if self.form is not None and self.form.submitting is None:
            self.form.paste(event.text)

    def _on_submit_form(self, event: SubmitForm) -> list[Effect]:
        form = self.form
        if form is None or form.submitting is not None:
            return []
        if not form.can_submit():
            form.error = "Title is required"
            return [Notify(message=form.error, severity="warning")]
        payload = form.payload()
        if isinstance(payload, UpdateBeadCommand) and payload.is_empty:
            self.form = None
            return [Notify(message="No changes")]
        if isinstance(payload, CreateBeadCommand):
            result = self.coordinator.request_create(payload)
        else:
            result = self.coordinator.request(payload)
        if isinstance(result, Rejected):
            form.error = result.reason
            return [Notify(message=result.reason, severity="warning")]
        form.error = None
        form.submitting = result.seq
        return [RunMutation(ticket=result)]

    def _on_cancel_form(self, event: CancelForm) -> list[Effect]:
        self.form = None
        return []

    # ─── Background results ──────────────────────────────────────────────

    def _on_refresh_tick(self, event: RefreshTick) -> list[Effect]:
        if self._loading:
            if event.reason != "timer":
                self._reload_after_load = True
            return []
        self._loading = True
        self._load_seq += 1
        return [LoadSnapshot(reason=event.reason)]

    def _on_snapshot_loaded(self, event: SnapshotLoaded) -> list[Effect]:
        self._loading = False
        effects = self.apply_snapshot(event.snapshot)
        if self._reload_after_load:
            self._reload_after_load = False
            effects.extend(self._on_refresh_tick(RefreshTick(reason="follow-up")))
        return effects

    def _on_store_failed(self, event: StoreFailed) -> list[Effect]:
        self._loading = False
        self._reload_after_load = False
        first = self.banner is None
        self.banner = f"Store unavailable: {event.message}"
        logger.warning(self.banner)
        if first:
            return [Notify(message=self.banner, severity="error")]
        return []

    def _on_mutation_finished(self, event: MutationFinished) -> list[Effect]:
        ticket = self.coordinator.on_mutation_result(event.seq, event.outcome)
        if ticket is None:
            return []
        if ticket.state == TicketState.SUCCEEDED and event.outcome.created_id:
            self._select_after_load = (event.outcome.created_id, self._load_seq + 1)
        return self._ticket_resolved(ticket, refresh=True)

    def _ticket_resolved(self, ticket: MutationTicket, refresh: bool) -> list[Effect]:
        effects: list[Effect] = []
        form = self.form
        owns_form = form is not None and form.submitting == ticket.seq
        if ticket.state == TicketState.SUCCEEDED:
            if owns_form:
                self.form = None
            effects.append(Notify(message=f"Done: {_describe(ticket)}"))
            if refresh:
                effects.extend(self._on_refresh_tick(RefreshTick(reason="mutation")))
        else:
            if owns_form:
                form.submitting = None
                form.error = ticket.reason or "Command failed"
            effects.append(
                Notify(message=f"Could not {_describe(ticket)}: {ticket.reason}", severity="error")
            )
        return effects


def _describe(ticket: MutationTicket) -> str:
    command = ticket.command
    if isinstance(command, CreateBeadCommand):
        return f"create '{command.title}'"
    if isinstance(command, SetStatusCommand):
        return f"set {ticket.target_id} to {command.status.value}"
    if isinstance(command, AddCommentCommand):
        return f"comment on {ticket.target_id}"
    return f"update {ticket.target_id}"
