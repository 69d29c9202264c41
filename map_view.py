"""Paint a ``MapLayout`` onto a character grid and show it in Textual."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from rich.cells import cell_len
from rich.text import Text
from textual import events
from textual.widget import Widget

from command_engine import HelpMode
from layout_engine import COLLAPSED_MARKER, MapLayout, connector_cells
from node_models import Tree

ACTIVE_STYLE = "bold black on yellow"
HIDDEN_STYLE = "bright_black"
CONNECTOR_STYLE = "bright_black"
MARKER_STYLE = "bright_black"
SYMBOL_STYLES = ("green", "red")
HELP_TITLE = "Keys"
HELP_TITLE_STYLE = "bold"

JUNCTIONS: dict[frozenset[str], str] = {
    frozenset({"left"}): "─",
    frozenset({"right"}): "─",
    frozenset({"left", "right"}): "─",
    frozenset({"up"}): "│",
    frozenset({"down"}): "│",
    frozenset({"up", "down"}): "│",
    frozenset({"down", "right"}): "╭",
    frozenset({"up", "right"}): "╰",
    frozenset({"down", "left"}): "╮",
    frozenset({"up", "left"}): "╯",
    frozenset({"left", "right", "down"}): "┬",
    frozenset({"left", "right", "up"}): "┴",
    frozenset({"up", "down", "right"}): "├",
    frozenset({"up", "down", "left"}): "┤",
    frozenset({"up", "down", "left", "right"}): "┼",
}


def junction_glyph(directions: Iterable[str]) -> str:
    return JUNCTIONS.get(frozenset(directions), " ")


class Canvas:
    """Fixed-size cell grid addressed in map coordinates.

    ``left``/``top`` is the map cell shown in the top-left corner; anything
    outside the window is clipped. A double-width character occupies its
    cell plus an empty placeholder cell to its right.
    """

    def __init__(self, width: int, height: int, left: int = 0, top: int = 0) -> None:
        self.width = max(0, width)
        self.height = max(0, height)
        self.left = left
        self.top = top
        self.cells = [[" "] * self.width for _ in range(self.height)]
        self.styles: list[list[Optional[str]]] = [[None] * self.width for _ in range(self.height)]

    def _set(self, column: int, row: int, char: str, style: Optional[str]) -> None:
        self.cells[row][column] = char
        self.styles[row][column] = style

    def put(self, x: int, y: int, text: str, style: Optional[str] = None) -> None:
        row = y - self.top
        if not 0 <= row < self.height:
            return
        column = x - self.left
        for char in text:
            char_width = cell_len(char)
            if char_width == 0:
                continue
            if 0 <= column < self.width:
                if char_width == 2 and column + 1 >= self.width:
                    self._set(column, row, " ", style)
                else:
                    self._set(column, row, char, style)
                    if char_width == 2:
                        self._set(column + 1, row, "", style)
            column += char_width

    def lines(self) -> list[Text]:
        rendered: list[Text] = []
        for cells, styles in zip(self.cells, self.styles):
            line = Text(no_wrap=True, overflow="crop")
            run: list[str] = []
            run_style: Optional[str] = None
            for char, style in zip(cells, styles):
                if style != run_style and run:
                    line.append("".join(run), style=run_style)
                    run = []
                run_style = style
                run.append(char)
            if run:
                line.append("".join(run), style=run_style)
            rendered.append(line)
        return rendered


def node_style(tree: Tree, node_id: int, active_id: int, symbols: Sequence[str]) -> Optional[str]:
    if node_id == active_id:
        return ACTIVE_STYLE
    node = tree.nodes[node_id]
    if node.symbol is not None and node.symbol in symbols:
        return SYMBOL_STYLES[list(symbols).index(node.symbol) % len(SYMBOL_STYLES)]
    if node.hidden:
        return HIDDEN_STYLE
    return None


def paint(
    layout: MapLayout,
    tree: Tree,
    active_id: int,
    width: int,
    height: int,
    *,
    left: int = 0,
    top: int = 0,
    symbols: Sequence[str] = ("✓", "✗"),
) -> list[Text]:
    """Render the visible window of ``layout`` as one ``Text`` per row."""
    canvas = Canvas(width, height, left, top)
    for (x, y), directions in connector_cells(layout.segments).items():
        canvas.put(x, y, junction_glyph(directions), CONNECTOR_STYLE)
    for render in layout.nodes.values():
        style = node_style(tree, render.id, active_id, symbols)
        for offset, line in enumerate(render.lines):
            # Pad to the box width so the highlight covers the whole node.
            canvas.put(render.x, render.y + offset, line + " " * (render.w - cell_len(line)), style)
        if render.collapsed_indicator:
            canvas.put(render.x + render.w, render.middle_y, COLLAPSED_MARKER, MARKER_STYLE)
    return canvas.lines()


def paint_help(rows: Sequence[str], offset: int, width: int, height: int) -> list[Text]:
    """Key binding list shown in place of the map, scrolled to ``offset``."""
    canvas = Canvas(width, height)
    canvas.put(1, 0, HELP_TITLE, HELP_TITLE_STYLE)
    for row, line in enumerate(rows[offset : offset + max(0, height - 2)], start=2):
        canvas.put(1, row, line)
    return canvas.lines()


class MapView(Widget):
    """Widget that draws the engine's current layout and keeps the active node in view."""

    DEFAULT_CSS = """
    MapView {
        width: 1fr;
        height: 1fr;
    }
    """

    def __init__(self, engine, *, id: str | None = None) -> None:  # noqa: A002
        super().__init__(id=id)
        self.engine = engine

    def render(self) -> Text:
        width, height = self.size.width, self.size.height
        if isinstance(self.engine.mode, HelpMode):
            lines = paint_help(self.engine.help_lines(), self.engine.mode.offset, width, height)
            return Text("\n", no_wrap=True).join(lines)
        layout = self.engine.layout()
        viewport = self.engine.scroll_to_active(layout)
        lines = paint(
            layout,
            self.engine.tree,
            self.engine.active_id,
            width,
            height,
            left=viewport.left,
            top=viewport.top,
            symbols=self.engine.settings.symbols,
        )
        return Text("\n", no_wrap=True).join(lines)

    def on_resize(self, event: events.Resize) -> None:
        self.engine.resize(event.size.width, event.size.height)
        self.refresh()
