import pytest

from node_models import MAX_STARS, RANK_LIMIT, Node, Tree
from outline_errors import Cycle, InvalidParent, InvalidRoot, NotFound, StructuralError


def build_tree():
    tree = Tree()
    a = tree.create_node(tree.root_id, "A")
    a1 = tree.create_node(a, "A1")
    b = tree.create_node(tree.root_id, "B")
    return tree, a, a1, b


class TestCreateAndDelete:
    def test_ids_are_monotonic_and_children_ordered(self):
        tree, a, a1, b = build_tree()
        assert (a, a1, b) == (1, 2, 3)
        assert tree.children(tree.root_id) == [a, b]
        assert tree.parent_of(a1) == a
        assert tree.modified

    def test_create_at_index(self):
        tree, a, _, b = build_tree()
        middle = tree.create_node(tree.root_id, "M", index=1)
        assert tree.children(tree.root_id) == [a, middle, b]

    def test_create_under_missing_parent_fails(self):
        tree = Tree()
        with pytest.raises(InvalidParent):
            tree.create_node(42)
        assert len(tree) == 1

    def test_delete_removes_whole_subtree(self):
        tree, a, a1, b = build_tree()
        tree.active_id = a1
        removed = tree.delete_subtree(a)
        assert removed == {a, a1}
        assert tree.children(tree.root_id) == [b]
        assert a1 not in tree
        assert tree.active_id == tree.root_id

    def test_root_cannot_be_deleted(self):
        tree, *_ = build_tree()
        before = tree.copy()
        with pytest.raises(InvalidRoot):
            tree.delete_subtree(tree.root_id)
        assert tree == before

    def test_unknown_id(self):
        tree = Tree()
        with pytest.raises(NotFound):
            tree.get(7)
        with pytest.raises(NotFound):
            tree.set_title(7, "x")


class TestReparent:
    def test_moves_node_to_new_parent(self):
        tree, a, a1, b = build_tree()
        tree.reparent(a1, b)
        assert tree.children(a) == []
        assert tree.children(b) == [a1]
        assert tree.parent_of(a1) == b

    def test_cycle_is_rejected_without_change(self):
        """Moving a node under its own descendant fails and leaves the tree intact."""
        tree, a, a1, _ = build_tree()
        before = tree.copy()
        with pytest.raises(Cycle):
            tree.reparent(a, a1)
        with pytest.raises(StructuralError):
            tree.reparent(a, a)
        assert tree == before

    def test_missing_parent(self):
        tree, a, *_ = build_tree()
        with pytest.raises(InvalidParent):
            tree.reparent(a, 99)


class TestSiblingOrder:
    def test_move_sibling_clamps_at_edges(self):
        tree, a, _, b = build_tree()
        assert tree.move_sibling(a, -1) is False
        assert tree.move_sibling(a, 1) is True
        assert tree.children(tree.root_id) == [b, a]

    def test_move_root_is_declined(self):
        tree = Tree()
        with pytest.raises(InvalidRoot):
            tree.move_sibling(tree.root_id, 1)

    def test_sort_is_stable(self):
        tree = Tree()
        ids = [tree.create_node(tree.root_id, title) for title in ["b", "a", "b", "a"]]
        assert tree.sort_children(tree.root_id, key=lambda node: node.title)
        assert tree.children(tree.root_id) == [ids[1], ids[3], ids[0], ids[2]]
        assert tree.sort_children(tree.root_id, key=lambda node: node.title) is False


class TestMarks:
    def test_rank_saturates(self):
        tree, a, *_ = build_tree()
        assert tree.adjust_rank(a, True, -1) is False
        assert tree.adjust_rank(a, False, RANK_LIMIT + 10)
        assert tree.get(a).rank_neg == RANK_LIMIT
        assert tree.adjust_rank(a, False, 1) is False

    def test_stars_saturate(self):
        tree, a, *_ = build_tree()
        for _ in range(MAX_STARS + 2):
            tree.adjust_stars(a, 1)
        assert tree.get(a).stars == MAX_STARS
        assert tree.adjust_stars(a, 1) is False

    def test_root_cannot_be_hidden(self):
        tree = Tree()
        with pytest.raises(InvalidRoot):
            tree.set_hidden(tree.root_id, True)

    def test_collapse_does_not_mark_modified(self):
        tree = Tree()
        tree.set_collapsed(tree.root_id, True)
        assert tree.root.collapsed
        assert not tree.modified

    def test_label(self):
        node = Node(1, "Task", symbol="✓", rank_pos=2, stars=2)
        assert node.label() == "✓ (+2,-0) Task ★★"
        assert Node(2, "Plain").label() == "Plain"


class TestVisibility:
    def test_nearest_visible_climbs_to_expanded_ancestor(self):
        tree, a, a1, b = build_tree()
        tree.set_collapsed(a, True)
        assert not tree.is_visible(a1)
        assert tree.nearest_visible(a1) == a
        tree.set_hidden(b, True)
        assert tree.nearest_visible(b) == tree.root_id
        assert tree.nearest_visible(b, show_hidden=True) == b
        assert tree.visible_children(tree.root_id) == [a]

    def test_nearest_visible_of_missing_node_is_root(self):
        tree = Tree()
        assert tree.nearest_visible(12) == tree.root_id


class TestCopyAndGraft:
    def test_copy_is_independent(self):
        tree, a, *_ = build_tree()
        clone = tree.copy()
        assert clone == tree
        clone.set_title(a, "changed")
        clone.create_node(a, "extra")
        assert tree.get(a).title == "A"
        assert clone != tree

    def test_graft_copies_subtree_with_fresh_ids(self):
        source, a, a1, _ = build_tree()
        source.adjust_stars(a1, 2)
        target = Tree()
        new_id = target.graft(target.root_id, source, a)
        assert new_id == 1
        assert target.get(new_id).title == "A"
        (copied,) = target.children(new_id)
        assert target.get(copied).title == "A1"
        assert target.get(copied).stars == 2
        assert list(target.descendants(target.root_id)) == [new_id, copied]
