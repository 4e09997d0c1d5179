"""Tests for tree building and the visible sequence."""

from beadboard.core.bead import BeadStatus, RecordIndex
from beadboard.core.tree import build_forest, build_visible_sequence
from tests.conftest import make_bead as bead
from tests.conftest import make_snapshot as snapshot


def visible(*beads, **kw):
    forest = build_forest(RecordIndex.from_snapshot(snapshot(*beads)))
    return build_visible_sequence(forest, **kw)


def ids(nodes):
    return [n.id for n in nodes]


def assert_preorder(nodes):
    """Each node's depth is its parent's + 1 and parents come first."""
    positions = {}
    for i, node in enumerate(nodes):
        parent = node.bead.parent_id
        if node.depth == 0:
            positions[node.id] = i
            continue
        assert parent in positions, f"{node.id} appears before its parent"
        assert nodes[positions[parent]].depth == node.depth - 1
        positions[node.id] = i


class TestVisibleSequence:
    def test_preorder_with_depths(self):
        nodes = visible(
            bead("epic", priority=1),
            bead("t1", parent="epic"),
            bead("t2", parent="epic", priority=0),
            bead("sub", parent="t1"),
            bead("solo", priority=3),
        )
        assert ids(nodes) == ["epic", "t2", "t1", "sub", "solo"]
        assert [n.depth for n in nodes] == [0, 1, 1, 2, 0]
        assert nodes[0].has_children
        assert not nodes[1].has_children
        assert_preorder(nodes)

    def test_empty(self):
        assert visible() == ()

    def test_filter_matches_title_case_insensitive(self):
        nodes = visible(
            bead("a", title="Fix critical crash"),
            bead("b", title="Unrelated task"),
        )
        assert ids(nodes) == ["a", "b"]
        filtered = visible(
            bead("a", title="Fix critical crash"),
            bead("b", title="Unrelated task"),
            filter_text="CRIT",
        )
        assert ids(filtered) == ["a"]

    def test_filter_keeps_ancestors_of_matches(self):
        nodes = visible(
            bead("root", title="Release"),
            bead("mid", title="Backend", parent="root"),
            bead("leaf", title="Fix critical crash", parent="mid"),
            bead("other", title="Docs", parent="root"),
            filter_text="crit",
        )
        assert ids(nodes) == ["root", "mid", "leaf"]
        assert [n.matched for n in nodes] == [False, False, True]
        assert_preorder(nodes)

    def test_every_visible_node_matches_or_has_matching_descendant(self):
        beads = [
            bead("r1", title="alpha"),
            bead("c1", title="beta", parent="r1"),
            bead("c2", title="alpha two", parent="r1"),
            bead("r2", title="gamma"),
            bead("c3", title="delta", parent="r2"),
        ]
        nodes = visible(*beads, filter_text="alpha")
        shown = set(ids(nodes))
        children = {}
        for b in beads:
            children.setdefault(b.parent_id, []).append(b.id)

        def subtree_matches(bead_id):
            node = next(n for n in nodes if n.id == bead_id)
            if node.matched:
                return True
            return any(k in shown and subtree_matches(k) for k in children.get(bead_id, []))

        assert shown == {"r1", "c2"}
        assert all(subtree_matches(i) for i in shown)

    def test_collapsed_node_hides_descendants(self):
        nodes = visible(
            bead("p"),
            bead("c", parent="p"),
            bead("g", parent="c"),
            collapsed={"p": True},
        )
        assert ids(nodes) == ["p"]
        assert nodes[0].expanded is False
        assert nodes[0].has_children

    def test_filter_opens_collapsed_ancestor_of_match(self):
        nodes = visible(
            bead("p", title="Parent"),
            bead("c", title="Fix critical crash", parent="p"),
            collapsed={"p": True},
            filter_text="crit",
        )
        assert ids(nodes) == ["p", "c"]
        # The stored flag is reported unchanged.
        assert nodes[0].expanded is False

    def test_closed_hidden_unless_requested(self):
        beads = [bead("a"), bead("b", status=BeadStatus.CLOSED)]
        assert ids(visible(*beads)) == ["a"]
        assert ids(visible(*beads, show_closed=True)) == ["a", "b"]

    def test_closed_parent_kept_for_open_child(self):
        nodes = visible(
            bead("done", status=BeadStatus.CLOSED),
            bead("open", parent="done"),
        )
        assert ids(nodes) == ["done", "open"]
        assert nodes[0].matched is False


class TestCycles:
    def test_two_cycle_reroots_lowest_priority_member(self):
        index = RecordIndex.from_snapshot(
            snapshot(bead("a", parent="b", priority=2), bead("b", parent="a", priority=1))
        )
        forest = build_forest(index)
        assert forest.rerooted == ["b"]
        assert forest.roots == ("b",)
        nodes = build_visible_sequence(forest)
        assert ids(nodes) == ["b", "a"]
        assert_preorder(nodes)

    def test_self_parent(self):
        forest = build_forest(RecordIndex.from_snapshot(snapshot(bead("a", parent="a"))))
        assert forest.rerooted == ["a"]
        assert ids(build_visible_sequence(forest)) == ["a"]

    def test_cycle_below_a_root(self):
        index = RecordIndex.from_snapshot(
            snapshot(
                bead("x", parent="z"),
                bead("y", parent="x"),
                bead("z", parent="y"),
                bead("tail", parent="x"),
            )
        )
        forest = build_forest(index)
        assert forest.rerooted == ["x"]
        nodes = build_visible_sequence(forest)
        assert sorted(ids(nodes)) == ["tail", "x", "y", "z"]
        assert len(set(ids(nodes))) == 4

