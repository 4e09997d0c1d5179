"""Tree building: parent/child records flattened into the visible sequence."""

from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from beadboard.core.bead import Bead, BeadStatus, RecordIndex


class TreeNode(BaseModel):
    """A bead placed in the tree view."""

    bead: Bead
    depth: int = 0
    expanded: bool = True
    has_children: bool = False
    matched: bool = True  # the bead itself passes the filter

    model_config = ConfigDict(frozen=True)

    @property
    def id(self) -> str:
        return self.bead.id


class Forest:
    """Arena of every record with cycle-free parent links.

    Parent chains are walked once with a visited set. When a chain loops, the
    member of the loop with the lowest (priority, id) is re-rooted and listed
    in ``rerooted``.
    """

    def __init__(self, index: RecordIndex):
        self.index = index
        self.parents: dict[str, Optional[str]] = {
            bead_id: (bead.parent_id if bead.parent_id in index.by_id else None)
            for bead_id, bead in index.by_id.items()
        }
        self.rerooted: list[str] = []
        self._break_cycles()

        children: dict[str, list[Bead]] = {}
        roots: list[Bead] = []
        for bead_id, parent in self.parents.items():
            bead = index.by_id[bead_id]
            if parent is None:
                roots.append(bead)
            else:
                children.setdefault(parent, []).append(bead)
        self.children: dict[str, tuple[str, ...]] = {
            parent: tuple(b.id for b in sorted(kids, key=lambda b: b.sort_key))
            for parent, kids in children.items()
        }
        self.roots: tuple[str, ...] = tuple(
            b.id for b in sorted(roots, key=lambda b: b.sort_key)
        )

    def _break_cycles(self) -> None:
        by_id = self.index.by_id
        done: set[str] = set()
        for start in sorted(by_id, key=lambda i: by_id[i].sort_key):
            path: list[str] = []
            on_path: dict[str, int] = {}
            current: Optional[str] = start
            while current is not None and current not in done:
                if current in on_path:
                    loop = path[on_path[current]:]
                    victim = min(loop, key=lambda i: by_id[i].sort_key)
                    self.parents[victim] = None
                    self.rerooted.append(victim)
                    break
                on_path[current] = len(path)
                path.append(current)
                current = self.parents[current]
            done.update(path)

    def children_of(self, bead_id: str) -> tuple[str, ...]:
        return self.children.get(bead_id, ())


def build_forest(index: RecordIndex) -> Forest:
    return Forest(index)


def _title_matches(bead: Bead, needle: str) -> bool:
    return not needle or needle in bead.title.lower()


def build_visible_sequence(
    forest: Forest,
    filter_text: str = "",
    collapsed: Optional[Mapping[str, bool]] = None,
    show_closed: bool = False,
) -> tuple[TreeNode, ...]:
    """Flatten the forest into display order.

    ``collapsed`` maps bead id to True when the node is collapsed; ids not in
    the map are expanded. A bead is shown when it matches (title contains the
    filter text, case-insensitive, and it is not closed unless show_closed is
    set) or when one of its descendants does. While a filter is active the
    path to every match is opened regardless of collapse state.
    """
    collapsed = collapsed or {}
    needle = filter_text.strip().lower()
    by_id = forest.index.by_id

    matched: dict[str, bool] = {}
    shown: dict[str, bool] = {}

    # Post-order pass so each node knows whether its subtree has a match.
    stack: list[tuple[str, bool]] = [(root, False) for root in reversed(forest.roots)]
    visited: set[str] = set()
    while stack:
        bead_id, kids_done = stack.pop()
        if kids_done:
            bead = by_id[bead_id]
            own = _title_matches(bead, needle) and (
                show_closed or bead.status != BeadStatus.CLOSED
            )
            matched[bead_id] = own
            shown[bead_id] = own or any(
                shown.get(kid, False) for kid in forest.children_of(bead_id)
            )
            continue
        if bead_id in visited:
            continue
        visited.add(bead_id)
        stack.append((bead_id, True))
        for kid in reversed(forest.children_of(bead_id)):
            stack.append((kid, False))

    sequence: list[TreeNode] = []
    emitted: set[str] = set()
    walk: list[tuple[str, int]] = [(root, 0) for root in reversed(forest.roots)]
    while walk:
        bead_id, depth = walk.pop()
        if bead_id in emitted or not shown.get(bead_id, False):
            continue
        emitted.add(bead_id)
        kids = forest.children_of(bead_id)
        visible_kids = [kid for kid in kids if shown.get(kid, False)]
        expanded = not collapsed.get(bead_id, False)
        sequence.append(
            TreeNode(
                bead=by_id[bead_id],
                depth=depth,
                expanded=expanded,
                has_children=bool(visible_kids),
                matched=matched[bead_id],
            )
        )
        open_node = expanded or (bool(needle) and bool(visible_kids))
        if open_node:
            for kid in reversed(visible_kids):
                walk.append((kid, depth + 1))
    return tuple(sequence)
