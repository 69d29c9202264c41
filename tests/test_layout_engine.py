from layout_engine import LayoutStyle, Segment, compute_layout, connector_cells, wrap_text
from node_models import Tree
from outline_io import parse

STYLE = LayoutStyle()


def three_children():
    tree = Tree()
    ids = [tree.create_node(tree.root_id, title) for title in ("a", "b", "c")]
    return tree, ids


class TestLayoutProperties:
    def test_every_visible_node_has_positive_size(self, sample_tree):
        sample_tree.create_node(sample_tree.root_id, "")
        layout = compute_layout(sample_tree, 80, STYLE)
        assert set(layout.nodes) == set(sample_tree.nodes)
        for render in layout.nodes.values():
            assert render.w > 0
            assert render.h > 0

    def test_siblings_keep_child_order_vertically(self, sample_tree):
        layout = compute_layout(sample_tree, 80, STYLE)
        for node_id in sample_tree.walk():
            children = sample_tree.children(node_id)
            ys = [layout.nodes[child].y for child in children]
            assert ys == sorted(ys)
            assert len(set(ys)) == len(ys)

    def test_layout_is_idempotent(self, sample_tree):
        first = compute_layout(sample_tree, 80, STYLE)
        second = compute_layout(sample_tree, 80, STYLE)
        assert first == second

    def test_layout_does_not_touch_tree(self, sample_tree):
        before = sample_tree.copy()
        compute_layout(sample_tree, 10, LayoutStyle(alignment_mode="center", show_hidden=True))
        assert sample_tree == before


class TestCollapseScenario:
    def test_collapsing_root_leaves_one_node(self):
        """A root with three children collapses to one marked node and expands back to four."""
        tree, _ = three_children()
        tree.set_collapsed(tree.root_id, True)
        layout = compute_layout(tree, 80, STYLE)
        assert list(layout.nodes) == [tree.root_id]
        root = layout.nodes[tree.root_id]
        assert root.collapsed_indicator
        assert root.is_leaf
        assert layout.segments == []

        tree.set_collapsed(tree.root_id, False)
        layout = compute_layout(tree, 80, STYLE)
        assert len(layout.nodes) == 4
        assert not layout.nodes[tree.root_id].collapsed_indicator

    def test_hidden_nodes_are_filtered(self):
        tree, (a, b, c) = three_children()
        tree.set_hidden(b, True)
        assert b not in compute_layout(tree, 80, STYLE)
        assert b in compute_layout(tree, 80, LayoutStyle(show_hidden=True))


class TestPlacement:
    def test_stack_positions(self):
        tree, (a, b, c) = three_children()
        layout = compute_layout(tree, 80, STYLE)
        root = layout.nodes[tree.root_id]
        assert (root.x, root.y, root.w, root.h) == (1, 2, 4, 1)
        assert [(layout.nodes[i].x, layout.nodes[i].y) for i in (a, b, c)] == [(11, 0), (11, 2), (11, 4)]
        assert layout.height == 6
        assert layout.width == 12

    def test_line_spacing_zero_packs_rows(self):
        tree, (a, b, c) = three_children()
        layout = compute_layout(tree, 80, LayoutStyle(line_spacing=0))
        assert [layout.nodes[i].y for i in (a, b, c)] == [0, 1, 2]
        assert layout.nodes[tree.root_id].y == 1

    def test_center_mode_shifts_narrow_map(self):
        tree = Tree()
        tree.create_node(tree.root_id, "a")
        stacked = compute_layout(tree, 40, STYLE)
        centered = compute_layout(tree, 40, LayoutStyle(alignment_mode="center"))
        assert stacked.nodes[tree.root_id].x == 1
        assert centered.nodes[tree.root_id].x == 15

    def test_center_mode_centres_within_column(self):
        tree = parse("root\n\tlong title\n\tx\n")
        layout = compute_layout(tree, 10, LayoutStyle(alignment_mode="center"))
        long_node, short_node = layout.nodes[1], layout.nodes[2]
        assert short_node.x == long_node.x + (long_node.w - 1) // 2

    def test_parent_labels_wrap_past_threshold(self):
        tree = Tree()
        parent = tree.create_node(tree.root_id, "alpha beta gamma")
        leaf = tree.create_node(tree.root_id, "alpha beta gamma")
        tree.create_node(parent, "child")
        layout = compute_layout(tree, 80, LayoutStyle(max_parent_node_width=10))
        assert layout.nodes[parent].lines == ("alpha beta", "gamma")
        assert layout.nodes[parent].h == 2
        assert layout.nodes[leaf].lines == ("alpha beta gamma",)

    def test_label_within_threshold_is_not_wrapped(self):
        tree = Tree()
        parent = tree.create_node(tree.root_id, "twelve chars")
        tree.create_node(parent, "child")
        layout = compute_layout(tree, 80, LayoutStyle(max_parent_node_width=10))
        assert layout.nodes[parent].lines == ("twelve chars",)

    def test_leaf_width_wraps_leaves_once_set(self):
        tree = Tree()
        leaf = tree.create_node(tree.root_id, "alpha beta gamma")
        layout = compute_layout(tree, 80, LayoutStyle(max_parent_node_width=40, max_leaf_node_width=10))
        assert layout.nodes[leaf].lines == ("alpha beta", "gamma")
        assert layout.nodes[tree.root_id].lines == ("root",)


class TestNumbering:
    def test_visible_nodes_get_dotted_numbers(self):
        tree = parse("root\n\tA\n\t\tA1\n\t\tA2\n\tB\n")
        layout = compute_layout(tree, 80, LayoutStyle(show_numbers=True))
        labels = {node_id: render.lines[0] for node_id, render in layout.nodes.items()}
        assert labels == {0: "root", 1: "1. A", 2: "1.1. A1", 3: "1.2. A2", 4: "2. B"}

    def test_hidden_siblings_are_not_counted(self):
        tree, (a, b, c) = three_children()
        tree.set_hidden(b, True)
        layout = compute_layout(tree, 80, LayoutStyle(show_numbers=True))
        assert layout.nodes[c].lines == ("2. c",)

    def test_numbers_off_by_default(self):
        tree, (a, b, c) = three_children()
        assert compute_layout(tree, 80, STYLE).nodes[a].lines == ("a",)


class TestConnectors:
    def test_single_child_on_same_row_gets_one_segment(self):
        tree = Tree()
        child = tree.create_node(tree.root_id, "a")
        layout = compute_layout(tree, 80, STYLE)
        assert layout.segments == [Segment(6, 0, 9, 0, tree.root_id, child)]

    def test_trunk_and_branches(self):
        tree, (a, b, c) = three_children()
        layout = compute_layout(tree, 80, STYLE)
        root = tree.root_id
        assert layout.segments == [
            Segment(6, 2, 8, 2, root),
            Segment(8, 0, 8, 4, root),
            Segment(8, 0, 9, 0, root, a),
            Segment(8, 2, 9, 2, root, b),
            Segment(8, 4, 9, 4, root, c),
        ]

    def test_connector_cells_collect_junctions(self):
        tree, _ = three_children()
        cells = connector_cells(compute_layout(tree, 80, STYLE).segments)
        assert cells[(8, 0)] == {"down", "right"}
        assert cells[(8, 1)] == {"up", "down"}
        assert cells[(8, 2)] == {"up", "down", "left", "right"}
        assert cells[(8, 4)] == {"up", "right"}
        assert cells[(6, 2)] == {"right"}
        assert cells[(9, 0)] == {"left"}


def test_wrap_text_greedy():
    assert wrap_text("one two three", 7) == ["one two", "three"]
    assert wrap_text("enormousword x", 4) == ["enormousword", "x"]
    assert wrap_text("", 5) == [""]
