"""Placement of visible nodes on the character grid.

``compute_layout`` is a pure function of the tree, the viewport width and a
``LayoutStyle``. It runs two passes over the visible subset of the tree:

1. bottom-up, every node's label is wrapped to get its box size, and the
   height of the band each subtree occupies is accumulated;
2. top-down, every subtree receives a band below its previous sibling and the
   node is centred vertically inside it, while the horizontal position comes
   from the depth column it belongs to.

Connector segments are derived from the final boxes. The result carries no
reference to the tree, so callers can keep it around, compare two layouts, or
compute a throwaway layout while evaluating a move.

``Viewport`` is the one stateful piece: the scroll offset the map is shown
at, kept next to the geometry it follows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Optional, Tuple

from rich.cells import cell_len

from node_models import Tree

AlignmentMode = Literal["stack", "center"]
ALIGNMENT_MODES: tuple[str, ...] = ("stack", "center")

# Non-leaf labels are only wrapped once they exceed the max width by 30%.
WRAP_THRESHOLD_RATIO = 1.3
LEFT_PADDING = 1
NODE_CONNECTION_SPACING = 6
TRUNK_OFFSET = 3
COLLAPSED_MARKER = " [+]"
SCROLL_MARGIN = 2


@dataclass(frozen=True)
class LayoutStyle:
    max_parent_node_width: int = 25
    # 0 leaves leaf labels unwrapped.
    max_leaf_node_width: int = 0
    line_spacing: int = 1
    alignment_mode: AlignmentMode = "stack"
    show_hidden: bool = False
    show_numbers: bool = False


@dataclass(frozen=True)
class RenderNode:
    id: int
    x: int
    y: int
    w: int
    h: int
    lines: Tuple[str, ...]
    is_leaf: bool
    collapsed_indicator: bool
    depth: int = 0
    subtree_h: int = 0

    @property
    def middle_y(self) -> int:
        return self.y + (self.h - 1) // 2

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)


@dataclass(frozen=True)
class Segment:
    """Orthogonal connector run between two grid cells (inclusive)."""

    x1: int
    y1: int
    x2: int
    y2: int
    parent: int
    child: Optional[int] = None

    @property
    def horizontal(self) -> bool:
        return self.y1 == self.y2


@dataclass
class MapLayout:
    nodes: Dict[int, RenderNode] = field(default_factory=dict)
    segments: List[Segment] = field(default_factory=list)
    width: int = 0
    height: int = 0

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def get(self, node_id: int) -> Optional[RenderNode]:
        return self.nodes.get(node_id)

    def visible_ids(self) -> list[int]:
        return list(self.nodes)


def wrap_text(text: str, max_width: int) -> list[str]:
    """Greedy word wrap by terminal cell width; long words stay whole."""
    words = text.split()
    if not words:
        return [text]
    lines: list[str] = []
    current = ""
    current_width = 0
    for word in words:
        word_width = cell_len(word)
        if current and current_width + 1 + word_width > max_width:
            lines.append(current)
            current, current_width = word, word_width
        elif current:
            current = f"{current} {word}"
            current_width += 1 + word_width
        else:
            current, current_width = word, word_width
    if current:
        lines.append(current)
    return lines


def _label_lines(label: str, is_leaf: bool, style: LayoutStyle) -> list[str]:
    max_width = style.max_leaf_node_width if is_leaf else style.max_parent_node_width
    if max_width <= 0 or cell_len(label) <= WRAP_THRESHOLD_RATIO * max_width:
        return [label]
    return wrap_text(label, max_width)


def outline_numbers(order: list[int], kids: dict[int, list[int]]) -> dict[int, str]:
    """Dotted position of every visible node among its visible siblings; the root has none."""
    numbers = {order[0]: ""} if order else {}
    for node_id in order:
        for index, child in enumerate(kids[node_id], start=1):
            numbers[child] = f"{numbers[node_id]}{index}."
    return numbers


def _visible_structure(tree: Tree, show_hidden: bool) -> tuple[list[int], dict[int, list[int]], dict[int, int]]:
    order: list[int] = []
    kids: dict[int, list[int]] = {}
    depths: dict[int, int] = {}
    stack = [(tree.root_id, 0)]
    while stack:
        node_id, depth = stack.pop()
        order.append(node_id)
        depths[node_id] = depth
        node = tree.nodes[node_id]
        children = [] if node.collapsed else tree.visible_children(node_id, show_hidden)
        kids[node_id] = children
        stack.extend((child, depth + 1) for child in reversed(children))
    return order, kids, depths


def compute_layout(tree: Tree, viewport_width: int, style: LayoutStyle) -> MapLayout:
    order, kids, depths = _visible_structure(tree, style.show_hidden)
    spacing = max(0, style.line_spacing)

    # Pass 1: box sizes, then subtree bands from the leaves up.
    numbers = outline_numbers(order, kids) if style.show_numbers else {}
    lines: dict[int, list[str]] = {}
    widths: dict[int, int] = {}
    for node_id in order:
        label = tree.nodes[node_id].label()
        if numbers.get(node_id):
            label = f"{numbers[node_id]} {label}"
        wrapped = _label_lines(label, not kids[node_id], style)
        lines[node_id] = wrapped
        widths[node_id] = max(1, max(cell_len(line) for line in wrapped))

    band: dict[int, int] = {}
    for node_id in reversed(order):
        own = len(lines[node_id]) + spacing
        band[node_id] = max(own, sum(band[child] for child in kids[node_id]))

    column_width: dict[int, int] = {}
    for node_id in order:
        depth = depths[node_id]
        column_width[depth] = max(column_width.get(depth, 0), widths[node_id])
    column_x = [LEFT_PADDING]
    for depth in range(1, len(column_width)):
        column_x.append(column_x[-1] + column_width[depth - 1] + NODE_CONNECTION_SPACING)
    last = len(column_width) - 1
    total_width = column_x[last] + column_width[last]

    shift = 0
    if style.alignment_mode == "center" and total_width < viewport_width:
        shift = (viewport_width - total_width) // 2

    # Pass 2: bands top-down, node centred inside its own band.
    top: dict[int, int] = {tree.root_id: 0}
    placed: dict[int, RenderNode] = {}
    for node_id in order:
        depth = depths[node_id]
        h = len(lines[node_id])
        y = top[node_id] + (band[node_id] - (h + spacing)) // 2
        x = column_x[depth]
        if style.alignment_mode == "center":
            x += (column_width[depth] - widths[node_id]) // 2
        node = tree.nodes[node_id]
        placed[node_id] = RenderNode(
            id=node_id,
            x=x + shift,
            y=y,
            w=widths[node_id],
            h=h,
            lines=tuple(lines[node_id]),
            is_leaf=not kids[node_id],
            collapsed_indicator=node.collapsed and bool(node.children),
            depth=depth,
            subtree_h=band[node_id],
        )
        children_total = sum(band[child] for child in kids[node_id])
        cursor = top[node_id] + (band[node_id] - children_total) // 2
        for child in kids[node_id]:
            top[child] = cursor
            cursor += band[child]

    segments: list[Segment] = []
    for node_id in order:
        if kids[node_id]:
            trunk_x = column_x[depths[node_id] + 1] + shift - TRUNK_OFFSET
            segments.extend(_route(placed[node_id], [placed[child] for child in kids[node_id]], trunk_x))

    height = band[tree.root_id]
    width = max(render.x + render.w for render in placed.values())
    return MapLayout(nodes=placed, segments=segments, width=width, height=height)


def _route(parent: RenderNode, children: list[RenderNode], trunk_x: int) -> list[Segment]:
    start_x = parent.x + parent.w + 1
    parent_y = parent.middle_y
    if len(children) == 1 and children[0].middle_y == parent_y:
        child = children[0]
        return [Segment(start_x, parent_y, child.x - 2, parent_y, parent.id, child.id)]

    segments = [Segment(start_x, parent_y, trunk_x, parent_y, parent.id)]
    rows = [parent_y, *(child.middle_y for child in children)]
    if min(rows) < max(rows):
        segments.append(Segment(trunk_x, min(rows), trunk_x, max(rows), parent.id))
    for child in children:
        segments.append(Segment(trunk_x, child.middle_y, child.x - 2, child.middle_y, parent.id, child.id))
    return segments


def connector_cells(segments: Iterable[Segment]) -> dict[tuple[int, int], set[str]]:
    """Fold segments into the set of directions each grid cell connects to.

    Where a branch meets the trunk the cell collects both directions, which
    lets the renderer pick a junction glyph instead of overdrawing lines.
    """
    cells: dict[tuple[int, int], set[str]] = {}
    for segment in segments:
        if segment.horizontal:
            low, high = sorted((segment.x1, segment.x2))
            for x in range(low, high + 1):
                directions = cells.setdefault((x, segment.y1), set())
                if x > low or low == high:
                    directions.add("left")
                if x < high or low == high:
                    directions.add("right")
        else:
            low, high = sorted((segment.y1, segment.y2))
            for y in range(low, high + 1):
                directions = cells.setdefault((segment.x1, y), set())
                if y > low:
                    directions.add("up")
                if y < high:
                    directions.add("down")
    return cells


@dataclass
class Viewport:
    """Scroll offset of the map; follows the active node with a margin.

    ``center_on`` may put the offset below zero so that a node near the map
    edge still lands in the middle of the window. Such a view is kept until
    following has to scroll again.
    """

    left: int = 0
    top: int = 0
    centered: bool = False

    def center_on(self, render: RenderNode, width: int, height: int) -> None:
        center_x, center_y = render.center
        self.left = int(center_x - width / 2)
        self.top = int(center_y - height / 2)
        self.centered = True

    def follow(
        self,
        render: Optional[RenderNode],
        layout: MapLayout,
        width: int,
        height: int,
        *,
        center: bool = False,
    ) -> None:
        if render is not None:
            if center:
                self.center_on(render, width, height)
                return
            before = (self.left, self.top)
            right = render.x + render.w
            bottom = render.y + render.h
            if render.x < self.left + SCROLL_MARGIN:
                self.left = render.x - SCROLL_MARGIN
            elif right > self.left + width - SCROLL_MARGIN:
                self.left = right - width + SCROLL_MARGIN
            if render.y < self.top + SCROLL_MARGIN:
                self.top = render.y - SCROLL_MARGIN
            elif bottom > self.top + height - SCROLL_MARGIN:
                self.top = bottom - height + SCROLL_MARGIN
            if (self.left, self.top) != before:
                self.centered = False
        if self.centered:
            return
        # Never scroll past the map once it fits again.
        self.left = max(0, min(self.left, layout.width + len(COLLAPSED_MARKER) - width))
        self.top = max(0, min(self.top, layout.height - height))
