"""Selection and focus over the visible sequence.

Every function here takes the current sequence of ids and a ``Selection`` and
returns a new ``Selection``. Selection is tracked by bead id, not by row, so
it survives reordering; the row is looked up when needed.
"""

from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict


class Pane(str, Enum):
    """Which pane has keyboard focus."""

    LIST = "list"
    DETAIL = "detail"


class Selection(BaseModel):
    """Highlighted bead, focused pane and scroll offsets."""

    selected_id: Optional[str] = None
    focus: Pane = Pane.LIST
    list_offset: int = 0
    detail_offset: int = 0

    model_config = ConfigDict(frozen=True)

    def index_in(self, ids: Sequence[str]) -> Optional[int]:
        if self.selected_id is None:
            return None
        try:
            return list(ids).index(self.selected_id)
        except ValueError:
            return None


def _select(selection: Selection, ids: Sequence[str], index: Optional[int]) -> Selection:
    if not ids or index is None:
        return selection.model_copy(update={"selected_id": None, "list_offset": 0})
    index = max(0, min(index, len(ids) - 1))
    return selection.model_copy(update={"selected_id": ids[index]})


def move_by(ids: Sequence[str], selection: Selection, delta: int) -> Selection:
    """Move one row at a time, wrapping around at either end."""
    if not ids:
        return _select(selection, ids, None)
    current = selection.index_in(ids)
    if current is None:
        return _select(selection, ids, 0)
    return _select(selection, ids, (current + delta) % len(ids))


def move_page(ids: Sequence[str], selection: Selection, delta: int) -> Selection:
    """Move by a page (or any number of rows), stopping at the ends."""
    if not ids:
        return _select(selection, ids, None)
    current = selection.index_in(ids)
    if current is None:
        current = 0
    return _select(selection, ids, current + delta)


def move_first(ids: Sequence[str], selection: Selection) -> Selection:
    return _select(selection, ids, 0 if ids else None)


def move_last(ids: Sequence[str], selection: Selection) -> Selection:
    return _select(selection, ids, len(ids) - 1 if ids else None)


def select_index(ids: Sequence[str], selection: Selection, index: int) -> Selection:
    """Select the row at ``index``; out-of-range clicks leave selection alone."""
    if 0 <= index < len(ids):
        return _select(selection, ids, index)
    return selection


def switch_focus(selection: Selection, pane: Optional[Pane] = None) -> Selection:
    """Focus ``pane``, or toggle between list and detail."""
    if pane is None:
        pane = Pane.DETAIL if selection.focus == Pane.LIST else Pane.LIST
    update = {"focus": pane}
    if pane == Pane.DETAIL and selection.focus != Pane.DETAIL:
        update["detail_offset"] = 0
    return selection.model_copy(update=update)


def scroll_detail(
    selection: Selection, delta: int, max_offset: Optional[int] = None
) -> Selection:
    offset = max(0, selection.detail_offset + delta)
    if max_offset is not None:
        offset = min(offset, max(0, max_offset))
    return selection.model_copy(update={"detail_offset": offset})


def clamp_offset(ids: Sequence[str], selection: Selection, height: int) -> Selection:
    """Adjust the list scroll offset so the selected row is inside the viewport."""
    height = max(1, height)
    offset = max(0, min(selection.list_offset, max(0, len(ids) - height)))
    index = selection.index_in(ids)
    if index is not None:
        if index < offset:
            offset = index
        elif index >= offset + height:
            offset = index - height + 1
    if offset == selection.list_offset:
        return selection
    return selection.model_copy(update={"list_offset": offset})


def revalidate(
    old_ids: Sequence[str], new_ids: Sequence[str], selection: Selection
) -> Selection:
    """Carry the selection across a rebuild.

    Keeps the selected id if it is still visible. Otherwise falls back to the
    nearest preceding id (in the old order) that is still visible, then to the
    first row, then to no selection when the sequence is empty.
    """
    if not new_ids:
        return _select(selection, new_ids, None)
    visible = set(new_ids)
    if selection.selected_id in visible:
        return selection
    old = list(old_ids)
    if selection.selected_id in old:
        for candidate in reversed(old[: old.index(selection.selected_id)]):
            if candidate in visible:
                return selection.model_copy(update={"selected_id": candidate})
    return _select(selection, new_ids, 0)
