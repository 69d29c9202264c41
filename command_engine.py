"""Key dispatch, modes and commands of the outliner.

``CommandEngine`` owns the live ``Tree``, its ``History`` and the current
mode. The Textual app feeds it key chords through ``press`` and repaints
from ``layout()``; nothing here touches the terminal, so every command can be
driven directly from tests.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from layout_engine import ALIGNMENT_MODES, MapLayout, Viewport, compute_layout
from line_editor import LineEditor
from node_models import Node, Tree
from outline_errors import (
    ClipboardUnavailable,
    DocumentIOError,
    HistoryExhausted,
    InvalidRoot,
    OutlineError,
    ParseError,
    StructuralError,
)
from outline_io import parse, run_post_export_command, save_file, serialize
from settings import MIN_NODE_WIDTH, Settings
from system_clipboard import Clipboard, MemoryClipboard
from undo_history import History, Snapshot

logger = logging.getLogger(__name__)

TEXT_WIDTH_FACTOR = 1.2
MIN_EDITOR_WIDTH = 10

# Line editor method per key, shared by the title editor and the search prompt.
EDITOR_KEYS: dict[str, str] = {
    "backspace": "delete_before",
    "delete": "delete_after",
    "left": "move_left",
    "right": "move_right",
    "home": "move_home",
    "ctrl+a": "move_home",
    "end": "move_end",
    "ctrl+e": "move_end",
    "ctrl+left": "move_word_left",
    "alt+b": "move_word_left",
    "ctrl+right": "move_word_right",
    "alt+f": "move_word_right",
    "ctrl+w": "delete_word_before",
    "alt+backspace": "delete_word_before",
    "alt+d": "delete_word_after",
    "ctrl+delete": "delete_word_after",
    "ctrl+u": "delete_to_start",
    "ctrl+k": "delete_to_end",
}


@dataclass
class Outcome:
    """Result of one key press or action.

    ``handled`` is False for keys no binding claims, so the caller can let
    them fall through to its own handling.
    """

    ok: bool = True
    message: Optional[str] = None
    quit: bool = False
    handled: bool = True


@dataclass
class NormalMode:
    name = "normal"


@dataclass
class EditingMode:
    node_id: int
    editor: LineEditor
    original_title: str
    # A node created by insert_sibling/insert_child; its creation is already
    # recorded in history and the commit joins that step.
    fresh: bool = False
    name = "editing"


@dataclass
class SearchingMode:
    editor: LineEditor
    origin_id: int
    name = "searching"


@dataclass
class SavingAsMode:
    editor: LineEditor
    name = "saving"


@dataclass
class HelpMode:
    # First help line shown.
    offset: int = 0
    name = "help"


Mode = Union[NormalMode, EditingMode, SearchingMode, SavingAsMode, HelpMode]
PROMPT_MODES = (EditingMode, SearchingMode, SavingAsMode)

# Actions after which focus lock re-applies focus.
NAVIGATION_ACTIONS = frozenset(
    {"go_up", "go_down", "go_left", "go_right", "go_to_root", "go_to_top", "go_to_bottom", "next_search_result", "previous_search_result"}
)


def nearest_in_direction(layout: MapLayout, node_id: int, direction: str) -> Optional[int]:
    """Pick the render node closest to ``node_id`` strictly in ``direction``.

    Candidates are ranked by distance along the axis of movement, then by
    distance across it, then by id, all measured between node centres.
    """
    origin = layout.get(node_id)
    if origin is None:
        return None
    origin_x, origin_y = origin.center
    best: Optional[tuple[float, float, int]] = None
    for other in layout.nodes.values():
        if other.id == node_id:
            continue
        x, y = other.center
        dx, dy = x - origin_x, y - origin_y
        if direction == "up":
            along, across = -dy, abs(dx)
        elif direction == "down":
            along, across = dy, abs(dx)
        elif direction == "left":
            along, across = -dx, abs(dy)
        elif direction == "right":
            along, across = dx, abs(dy)
        else:
            raise ValueError(f"unknown direction: {direction}")
        if along <= 0:
            continue
        key = (along, across, other.id)
        if best is None or key < best:
            best = key
    return best[2] if best else None


def _rank_score(node: Node) -> int:
    return node.rank_pos - node.rank_neg


class CommandEngine:
    def __init__(
        self,
        tree: Tree,
        settings: Optional[Settings] = None,
        clipboard: Optional[Clipboard] = None,
        document_path: Optional[Path] = None,
        viewport: tuple[int, int] = (80, 24),
    ) -> None:
        self.tree = tree
        self.settings = settings or Settings()
        self.clipboard: Clipboard = clipboard if clipboard is not None else MemoryClipboard()
        self.document_path = Path(document_path) if document_path else None
        self.history = History(self.settings.max_undo_steps)
        self.mode: Mode = NormalMode()
        self.viewport_width, self.viewport_height = viewport
        self.viewport = Viewport()
        self.key_map = self.settings.key_map()
        self.search_query = ""
        self._quit_armed = False
        self._saved_text: Optional[str] = None if tree.modified else serialize(tree)
        if self.settings.initial_depth:
            self._collapse_below(self.settings.initial_depth)
        self._revalidate_active()

    # -- queries -------------------------------------------------------------

    @property
    def active_id(self) -> int:
        return self.tree.active_id

    @property
    def active(self) -> Node:
        return self.tree.get(self.tree.active_id)

    def layout(self) -> MapLayout:
        return compute_layout(self.tree, self.viewport_width, self.settings.layout_style())

    def scroll_to_active(self, layout: MapLayout) -> Viewport:
        """Move the viewport so the active node is on screen, centred under center lock."""
        self.viewport.follow(
            layout.get(self.tree.active_id),
            layout,
            self.viewport_width,
            self.viewport_height,
            center=self.settings.center_lock,
        )
        return self.viewport

    def help_lines(self) -> list[str]:
        rows = []
        for action, chords in self.settings.keybindings.items():
            keys = ", ".join(chords)
            rows.append(f"{keys:<16} {action.replace('_', ' ')}")
        return rows

    def resize(self, width: int, height: int) -> None:
        self.viewport_width = max(1, width)
        self.viewport_height = max(1, height)
        if isinstance(self.mode, PROMPT_MODES):
            self.mode.editor.set_width(self._editor_width())

    def _editor_width(self) -> int:
        if isinstance(self.mode, (SearchingMode, SavingAsMode)):
            return max(MIN_EDITOR_WIDTH, self.viewport_width - 2)
        render = self.layout().get(self.tree.active_id)
        left = render.x if render else 0
        return max(MIN_EDITOR_WIDTH, self.viewport_width - left - 4)

    # -- plumbing ------------------------------------------------------------

    def _decline(self, message: str) -> Outcome:
        logger.info("Declined: %s", message)
        return Outcome(ok=False, message=message)

    def _revalidate_active(self) -> None:
        self.tree.active_id = self.tree.nearest_visible(self.tree.active_id, self.settings.show_hidden)

    def _refresh_modified(self) -> None:
        if self._saved_text is not None:
            self.tree.modified = serialize(self.tree) != self._saved_text

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        """Record the pre-mutation state when the body changes any node.

        A body that raises leaves the tree exactly as it was.
        """
        before = Snapshot.capture(self.tree)
        try:
            yield
        except OutlineError:
            self.tree = before.restore()
            raise
        if self.tree.nodes != before.tree.nodes:
            self.history.record(before)

    def press(self, chord: str, character: Optional[str] = None) -> Outcome:
        """Route one key by mode; ``character`` is the printable text, if any."""
        if isinstance(self.mode, EditingMode):
            outcome = self._press_editing(self.mode, chord, character)
        elif isinstance(self.mode, SearchingMode):
            outcome = self._press_searching(self.mode, chord, character)
        elif isinstance(self.mode, SavingAsMode):
            outcome = self._press_saving(self.mode, chord, character)
        elif isinstance(self.mode, HelpMode):
            outcome = self._press_help(self.mode, chord)
        else:
            action = self.key_map.get(chord)
            if action is None:
                return Outcome(handled=False)
            outcome = self.dispatch(action)
        return self._auto_save(outcome)

    def _auto_save(self, outcome: Outcome) -> Outcome:
        """Write the document after a key that leaves unsaved changes, if enabled."""
        if not (self.settings.auto_save and self.tree.modified and self.document_path is not None):
            return outcome
        if outcome.quit or not isinstance(self.mode, NormalMode):
            return outcome
        try:
            self._save_to(self.document_path)
        except DocumentIOError as exc:
            logger.warning("Auto-save failed: %s", exc)
            return Outcome(ok=False, message=str(exc))
        return outcome

    def dispatch(self, action: str) -> Outcome:
        """Run a Normal-mode action by name."""
        if not isinstance(self.mode, NormalMode):
            return self._decline(f"{action} is not available while {self.mode.name}")
        handler = self._handler(action)
        if handler is None:
            return self._decline(f"Unknown action: {action}")
        if action != "quit":
            self._quit_armed = False
        try:
            outcome = handler()
        except StructuralError as exc:
            outcome = self._decline(str(exc))
        except HistoryExhausted as exc:
            outcome = self._decline(str(exc))
        except (ParseError, DocumentIOError, ClipboardUnavailable) as exc:
            logger.warning("%s failed: %s", action, exc)
            outcome = Outcome(ok=False, message=str(exc))
        self._revalidate_active()
        if outcome.ok and action in NAVIGATION_ACTIONS and self.settings.focus_lock:
            self._apply_focus()
        return outcome

    def _handler(self, action: str) -> Optional[Callable[[], Outcome]]:
        prefix = "collapse_to_level_"
        if action.startswith(prefix):
            level = action[len(prefix) :]
            if not level.isdigit() or int(level) < 1:
                return None
            return lambda: self.action_collapse_to_level(int(level))
        if action == "collapse_to_level":
            return None
        return getattr(self, f"action_{action}", None)

    # -- navigation ----------------------------------------------------------

    def _go(self, node_id: Optional[int]) -> Outcome:
        if node_id is None or node_id == self.tree.active_id:
            return self._decline("No node in that direction")
        self.tree.active_id = node_id
        return Outcome()

    def _visible_siblings(self) -> list[int]:
        parent = self.active.parent
        if parent is None:
            return [self.tree.root_id]
        return self.tree.visible_children(parent, self.settings.show_hidden)

    def action_go_up(self) -> Outcome:
        siblings = self._visible_siblings()
        index = siblings.index(self.tree.active_id)
        if index > 0:
            return self._go(siblings[index - 1])
        return self._go(nearest_in_direction(self.layout(), self.tree.active_id, "up"))

    def action_go_down(self) -> Outcome:
        siblings = self._visible_siblings()
        index = siblings.index(self.tree.active_id)
        if index + 1 < len(siblings):
            return self._go(siblings[index + 1])
        return self._go(nearest_in_direction(self.layout(), self.tree.active_id, "down"))

    def action_go_left(self) -> Outcome:
        parent = self.active.parent
        if parent is not None:
            return self._go(parent)
        return self._go(nearest_in_direction(self.layout(), self.tree.active_id, "left"))

    def action_go_right(self) -> Outcome:
        """Enter the child nearest the active row, unfolding a collapsed node."""
        active = self.active
        if active.collapsed and active.children:
            with self._mutation():
                self.tree.set_collapsed(active.id, False)
        layout = self.layout()
        origin = layout.get(active.id)
        children = [layout.nodes[child] for child in self.tree.visible_children(active.id, self.settings.show_hidden) if child in layout]
        if origin is not None and children:
            target = min(children, key=lambda child: (abs(child.middle_y - origin.middle_y), child.id))
            return self._go(target.id)
        return self._go(nearest_in_direction(layout, active.id, "right"))

    def action_go_to_root(self) -> Outcome:
        self.tree.active_id = self.tree.root_id
        return Outcome()

    def action_go_to_top(self) -> Outcome:
        layout = self.layout()
        top = min(layout.nodes.values(), key=lambda render: (render.y, render.x, render.id))
        self.tree.active_id = top.id
        return Outcome()

    def action_go_to_bottom(self) -> Outcome:
        layout = self.layout()
        bottom = min(layout.nodes.values(), key=lambda render: (-(render.y + render.h), render.x, render.id))
        self.tree.active_id = bottom.id
        return Outcome()

    # -- structure -----------------------------------------------------------

    def _begin_edit(self, node_id: int, text: str, *, fresh: bool = False) -> None:
        self.tree.active_id = node_id
        original = self.tree.get(node_id).title
        self.mode = EditingMode(node_id, LineEditor(text, width=40), original, fresh)
        self.mode.editor.set_width(self._editor_width())

    def action_insert_sibling(self) -> Outcome:
        active = self.active
        if active.parent is None:
            raise InvalidRoot("The root node cannot have siblings")
        with self._mutation():
            index = self.tree.index_in_parent(active.id) + 1
            node_id = self.tree.create_node(active.parent, "", index)
        self._begin_edit(node_id, "", fresh=True)
        return Outcome()

    def action_insert_child(self) -> Outcome:
        active = self.active
        with self._mutation():
            self.tree.set_collapsed(active.id, False)
            node_id = self.tree.create_node(active.id, "")
        self._begin_edit(node_id, "", fresh=True)
        return Outcome()

    def _best_effort_copy(self, text: str) -> None:
        try:
            self.clipboard.set_text(text)
        except ClipboardUnavailable as exc:
            logger.warning("Deleted subtree was not copied: %s", exc)

    def action_delete_node(self) -> Outcome:
        """Delete the active subtree and keep it on the clipboard."""
        active = self.active
        if active.parent is None:
            raise InvalidRoot("Cannot delete the root node")
        siblings = self._visible_siblings()
        index = siblings.index(active.id)
        if index > 0:
            successor = siblings[index - 1]
        elif index + 1 < len(siblings):
            successor = siblings[index + 1]
        else:
            successor = active.parent
        self._best_effort_copy(serialize(self.tree, active.id))
        with self._mutation():
            removed = self.tree.delete_subtree(active.id)
        self.tree.active_id = successor
        return Outcome(message=f"Deleted {len(removed)} node(s)")

    def action_delete_children(self) -> Outcome:
        active = self.active
        if not active.children:
            return self._decline("Node has no children")
        with self._mutation():
            removed = set()
            for child in list(active.children):
                removed |= self.tree.delete_subtree(child)
        self.tree.active_id = active.id
        return Outcome(message=f"Deleted {len(removed)} node(s)")

    def _move(self, offset: int) -> Outcome:
        with self._mutation():
            moved = self.tree.move_sibling(self.tree.active_id, offset)
        if not moved:
            return self._decline("Node is already first" if offset < 0 else "Node is already last")
        return Outcome()

    def action_move_node_up(self) -> Outcome:
        return self._move(-1)

    def action_move_node_down(self) -> Outcome:
        return self._move(1)

    # -- editing entry -------------------------------------------------------

    def action_edit_append(self) -> Outcome:
        self._begin_edit(self.tree.active_id, self.active.title)
        return Outcome()

    def action_edit_replace(self) -> Outcome:
        self._begin_edit(self.tree.active_id, "")
        return Outcome()

    def _press_editing(self, mode: EditingMode, chord: str, character: Optional[str]) -> Outcome:
        if chord == "enter":
            return self._commit_edit(mode)
        if chord == "escape":
            return self._cancel_edit(mode)
        return self._edit_buffer(mode.editor, chord, character)

    def _edit_buffer(self, editor: LineEditor, chord: str, character: Optional[str]) -> Outcome:
        if chord == "ctrl+v":
            try:
                text = self.clipboard.get_text()
            except ClipboardUnavailable as exc:
                logger.warning("Paste into editor failed: %s", exc)
                return Outcome(ok=False, message=str(exc))
            if text:
                editor.paste(text)
            return Outcome()
        method = EDITOR_KEYS.get(chord)
        if method is not None:
            getattr(editor, method)()
            return Outcome()
        if character and len(character) == 1 and character.isprintable():
            editor.insert(character)
        # Other keys are swallowed while the editor is open.
        return Outcome()

    def _commit_edit(self, mode: EditingMode) -> Outcome:
        text = mode.editor.text.strip()
        self.mode = NormalMode()
        if mode.fresh:
            if not text:
                # Untitled nodes are not kept; a top-level one would not survive a reload.
                self.tree = self.history.pop().restore()
                self._revalidate_active()
                return Outcome(message="Empty node discarded")
            # Creation was recorded already; the title joins that undo step.
            self.tree.set_title(mode.node_id, text)
            return Outcome()
        title = text or mode.original_title
        if title == mode.original_title:
            return Outcome()
        with self._mutation():
            self.tree.set_title(mode.node_id, title)
        return Outcome()

    def _cancel_edit(self, mode: EditingMode) -> Outcome:
        self.mode = NormalMode()
        if mode.fresh:
            self.tree = self.history.pop().restore()
            self._revalidate_active()
            return Outcome(message="Insert cancelled")
        return Outcome(message="Edit cancelled")

    # -- collapse and visibility ---------------------------------------------

    def _set_collapsed_where(self, predicate: Callable[[int], bool]) -> None:
        for node_id in list(self.tree.walk()):
            if self.tree.nodes[node_id].children:
                self.tree.set_collapsed(node_id, predicate(node_id))

    def _collapse_below(self, level: int) -> None:
        self._set_collapsed_where(lambda node_id: self.tree.depth(node_id) >= level)

    def action_toggle_collapse(self) -> Outcome:
        active = self.active
        if not active.children:
            return self._decline("Node has no children")
        with self._mutation():
            self.tree.set_collapsed(active.id, not active.collapsed)
        return Outcome()

    def action_collapse_all(self) -> Outcome:
        with self._mutation():
            self._set_collapsed_where(lambda node_id: True)
        return Outcome()

    def action_expand_all(self) -> Outcome:
        with self._mutation():
            self._set_collapsed_where(lambda node_id: False)
        return Outcome()

    def action_collapse_children(self) -> Outcome:
        active = self.active
        with self._mutation():
            for child in active.children:
                if self.tree.nodes[child].children:
                    self.tree.set_collapsed(child, True)
        return Outcome()

    def action_collapse_other_branches(self) -> Outcome:
        """Fold everything except the path from the root to the active node."""
        path = {self.tree.active_id, *self.tree.ancestors(self.tree.active_id)}
        with self._mutation():
            self._set_collapsed_where(lambda node_id: node_id not in path)
        return Outcome()

    def action_collapse_to_level(self, level: int) -> Outcome:
        with self._mutation():
            self._collapse_below(level)
        return Outcome(message=f"Showing {level} level(s)")

    def action_toggle_hide(self) -> Outcome:
        active = self.active
        with self._mutation():
            self.tree.set_hidden(active.id, not active.hidden)
        return Outcome(message="Node hidden" if active.hidden else "Node unhidden")

    # -- view settings (not part of history) ---------------------------------

    def action_toggle_show_hidden(self) -> Outcome:
        self.settings.show_hidden = not self.settings.show_hidden
        return Outcome(message=f"Show hidden: {'on' if self.settings.show_hidden else 'off'}")

    def action_toggle_align(self) -> Outcome:
        modes = ALIGNMENT_MODES
        self.settings.alignment_mode = modes[(modes.index(self.settings.alignment_mode) + 1) % len(modes)]
        return Outcome(message=f"Alignment: {self.settings.alignment_mode}")

    def action_increase_text_width(self) -> Outcome:
        self.settings.max_parent_node_width = int(self.settings.max_parent_node_width * TEXT_WIDTH_FACTOR)
        if self.settings.max_leaf_node_width:
            self.settings.max_leaf_node_width = int(self.settings.max_leaf_node_width * TEXT_WIDTH_FACTOR)
        return Outcome(message=f"Text width: {self.settings.max_parent_node_width}")

    def action_decrease_text_width(self) -> Outcome:
        width = max(MIN_NODE_WIDTH, int(self.settings.max_parent_node_width / TEXT_WIDTH_FACTOR))
        leaf_width = self.settings.max_leaf_node_width
        if leaf_width:
            leaf_width = max(MIN_NODE_WIDTH, int(leaf_width / TEXT_WIDTH_FACTOR))
        if width == self.settings.max_parent_node_width and leaf_width == self.settings.max_leaf_node_width:
            return self._decline(f"Text width is already at the minimum of {width}")
        self.settings.max_parent_node_width = width
        self.settings.max_leaf_node_width = leaf_width
        return Outcome(message=f"Text width: {width}")

    def action_toggle_numbers(self) -> Outcome:
        self.settings.show_numbers = not self.settings.show_numbers
        return Outcome(message=f"Numbers: {'on' if self.settings.show_numbers else 'off'}")

    def action_center_active_node(self) -> Outcome:
        render = self.layout().get(self.tree.active_id)
        if render is None:
            return self._decline("Active node is not on the map")
        self.viewport.center_on(render, self.viewport_width, self.viewport_height)
        return Outcome()

    def action_toggle_center_lock(self) -> Outcome:
        self.settings.center_lock = not self.settings.center_lock
        return Outcome(message=f"Center lock: {'on' if self.settings.center_lock else 'off'}")

    def _apply_focus(self) -> None:
        """Fold every sibling along the path to the root and unfold the active subtree."""
        node_id = self.tree.active_id
        for ancestor in self.tree.ancestors(node_id):
            for sibling in self.tree.nodes[ancestor].children:
                if sibling != node_id and self.tree.nodes[sibling].children:
                    self.tree.set_collapsed(sibling, True)
            node_id = ancestor
        for descendant in (self.tree.active_id, *self.tree.descendants(self.tree.active_id)):
            if self.tree.nodes[descendant].children:
                self.tree.set_collapsed(descendant, False)

    def action_focus(self) -> Outcome:
        with self._mutation():
            self._apply_focus()
        return Outcome(message="Focus applied")

    def action_toggle_focus_lock(self) -> Outcome:
        self.settings.focus_lock = not self.settings.focus_lock
        if self.settings.focus_lock:
            with self._mutation():
                self._apply_focus()
        return Outcome(message=f"Focus lock: {'on' if self.settings.focus_lock else 'off'}")

    def action_increase_line_spacing(self) -> Outcome:
        self.settings.line_spacing += 1
        return Outcome(message=f"Line spacing: {self.settings.line_spacing}")

    def action_decrease_line_spacing(self) -> Outcome:
        if self.settings.line_spacing == 0:
            return self._decline("Line spacing is already 0")
        self.settings.line_spacing -= 1
        return Outcome(message=f"Line spacing: {self.settings.line_spacing}")

    # -- marks ---------------------------------------------------------------

    def action_toggle_symbol(self) -> Outcome:
        """Cycle the check mark: first symbol, second symbol, none."""
        active = self.active
        cycle: list[Optional[str]] = [None, self.settings.symbol1, self.settings.symbol2]
        index = cycle.index(active.symbol) if active.symbol in cycle else 0
        with self._mutation():
            self.tree.set_symbol(active.id, cycle[(index + 1) % len(cycle)])
        return Outcome()

    def _adjust_rank(self, positive: bool, delta: int) -> Outcome:
        with self._mutation():
            changed = self.tree.adjust_rank(self.tree.active_id, positive, delta)
        if not changed:
            return self._decline("Rank is already at its limit")
        return Outcome()

    def action_increase_positive_rank(self) -> Outcome:
        return self._adjust_rank(True, 1)

    def action_decrease_positive_rank(self) -> Outcome:
        return self._adjust_rank(True, -1)

    def action_increase_negative_rank(self) -> Outcome:
        return self._adjust_rank(False, 1)

    def action_decrease_negative_rank(self) -> Outcome:
        return self._adjust_rank(False, -1)

    def _adjust_stars(self, delta: int) -> Outcome:
        with self._mutation():
            changed = self.tree.adjust_stars(self.tree.active_id, delta)
        if not changed:
            return self._decline("Stars are already at their limit")
        return Outcome()

    def action_add_star(self) -> Outcome:
        return self._adjust_stars(1)

    def action_remove_star(self) -> Outcome:
        return self._adjust_stars(-1)

    # -- sorting -------------------------------------------------------------

    def _sort_siblings(self, key: Callable[[Node], object]) -> Outcome:
        parent = self.active.parent
        if parent is None:
            raise InvalidRoot("The root node has no siblings")
        with self._mutation():
            changed = self.tree.sort_children(parent, key)
        return Outcome(message="Siblings sorted" if changed else "Siblings already sorted")

    def action_sort_siblings(self) -> Outcome:
        return self._sort_siblings(lambda node: node.title.casefold())

    def action_sort_siblings_by_rank(self) -> Outcome:
        return self._sort_siblings(lambda node: -_rank_score(node))

    # -- search --------------------------------------------------------------

    def _matches(self, query: str) -> list[int]:
        needle = query.casefold()
        return [node_id for node_id in self.layout().visible_ids() if needle in self.tree.nodes[node_id].title.casefold()]

    def action_search(self) -> Outcome:
        self.mode = SearchingMode(LineEditor("", width=40), self.tree.active_id)
        self.mode.editor.set_width(self._editor_width())
        return Outcome()

    def _press_searching(self, mode: SearchingMode, chord: str, character: Optional[str]) -> Outcome:
        if chord == "enter":
            self.mode = NormalMode()
            self.search_query = mode.editor.text
            if not self.search_query:
                self.tree.active_id = mode.origin_id
                return Outcome()
            count = len(self._matches(self.search_query))
            if not count:
                return self._decline(f"No results for {self.search_query!r}")
            return Outcome(message=f"{count} result(s)")
        if chord == "escape":
            self.mode = NormalMode()
            self.tree.active_id = mode.origin_id
            self._revalidate_active()
            return Outcome(message="Search cancelled")
        before = mode.editor.text
        outcome = self._edit_buffer(mode.editor, chord, character)
        if mode.editor.text != before:
            matches = self._matches(mode.editor.text) if mode.editor.text else []
            self.tree.active_id = matches[0] if matches else mode.origin_id
        return outcome

    def _step_search(self, step: int) -> Outcome:
        if not self.search_query:
            return self._decline("No search to repeat")
        matches = self._matches(self.search_query)
        if not matches:
            return self._decline(f"No results for {self.search_query!r}")
        order = self.layout().visible_ids()
        position = order.index(self.tree.active_id)
        ranked = sorted(matches, key=order.index)
        if step > 0:
            following = [node_id for node_id in ranked if order.index(node_id) > position]
            target = following[0] if following else ranked[0]
        else:
            preceding = [node_id for node_id in ranked if order.index(node_id) < position]
            target = preceding[-1] if preceding else ranked[-1]
        self.tree.active_id = target
        return Outcome(message=f"Result {ranked.index(target) + 1}/{len(ranked)}")

    def action_next_search_result(self) -> Outcome:
        return self._step_search(1)

    def action_previous_search_result(self) -> Outcome:
        return self._step_search(-1)

    # -- clipboard -----------------------------------------------------------

    def action_yank_node(self) -> Outcome:
        self.clipboard.set_text(serialize(self.tree, self.tree.active_id))
        return Outcome(message="Node yanked")

    def action_yank_children(self) -> Outcome:
        if not self.active.children:
            return self._decline("Node has no children")
        self.clipboard.set_text(serialize(self.tree, self.tree.active_id, include_root=False))
        return Outcome(message="Children yanked")

    def _clipboard_outline(self) -> Optional[tuple[Tree, list[int]]]:
        text = self.clipboard.get_text()
        if not text or not text.strip():
            return None
        pasted = parse(text, self.settings.symbols)
        roots = pasted.children(pasted.root_id) if pasted.synthetic_root else [pasted.root_id]
        return pasted, roots

    def action_paste_as_children(self) -> Outcome:
        outline = self._clipboard_outline()
        if outline is None:
            return self._decline("Clipboard is empty")
        pasted, roots = outline
        active = self.active
        with self._mutation():
            self.tree.set_collapsed(active.id, False)
            for source_id in roots:
                self.tree.graft(active.id, pasted, source_id)
        return Outcome(message=f"Pasted {len(roots)} node(s) as children")

    def action_paste_as_siblings(self) -> Outcome:
        active = self.active
        if active.parent is None:
            raise InvalidRoot("Cannot paste siblings of the root node")
        outline = self._clipboard_outline()
        if outline is None:
            return self._decline("Clipboard is empty")
        pasted, roots = outline
        with self._mutation():
            index = self.tree.index_in_parent(active.id) + 1
            for offset, source_id in enumerate(roots):
                self.tree.graft(active.parent, pasted, source_id, index + offset)
        return Outcome(message=f"Pasted {len(roots)} node(s) as siblings")

    def _export(self, node_id: Optional[int], done: str) -> Outcome:
        self.clipboard.set_text(serialize(self.tree, node_id, expanded_only=True))
        command = self.settings.post_export_command
        if command:
            status = run_post_export_command(command)
            if status != 0:
                return Outcome(ok=False, message=f"Exported; post-export command exited with {status}")
        return Outcome(message=done)

    def action_export_text(self) -> Outcome:
        """Copy the expanded outline to the clipboard, then run the export hook."""
        return self._export(None, "Exported the map to the clipboard")

    def action_export_text_node(self) -> Outcome:
        """Same as ``export_text`` for the active subtree only."""
        return self._export(self.tree.active_id, "Exported the node to the clipboard")

    # -- history -------------------------------------------------------------

    def action_undo(self) -> Outcome:
        snapshot = self.history.undo(Snapshot.capture(self.tree))
        self.tree = snapshot.restore()
        self._refresh_modified()
        return Outcome()

    def action_redo(self) -> Outcome:
        snapshot = self.history.redo()
        self.tree = snapshot.restore()
        self._refresh_modified()
        return Outcome()

    # -- file and quit -------------------------------------------------------

    def _save_to(self, path: Path) -> Outcome:
        target = save_file(self.tree, path)
        self.document_path = path
        self.tree.modified = False
        self._saved_text = serialize(self.tree)
        return Outcome(message=f"Saved {target}")

    def action_save(self) -> Outcome:
        if self.document_path is None:
            self.action_save_as()
            return Outcome(message="No file name set")
        return self._save_to(self.document_path)

    def action_save_as(self) -> Outcome:
        """Prompt for a file name, prefilled with the current one."""
        self.mode = SavingAsMode(LineEditor(str(self.document_path or ""), width=40))
        self.mode.editor.set_width(self._editor_width())
        return Outcome()

    def _press_saving(self, mode: SavingAsMode, chord: str, character: Optional[str]) -> Outcome:
        if chord == "escape":
            self.mode = NormalMode()
            return Outcome(message="Save cancelled")
        if chord != "enter":
            return self._edit_buffer(mode.editor, chord, character)
        self.mode = NormalMode()
        name = mode.editor.text.strip()
        if not name:
            return self._decline("No file name given")
        try:
            return self._save_to(Path(name).expanduser())
        except DocumentIOError as exc:
            logger.warning("save_as failed: %s", exc)
            return Outcome(ok=False, message=str(exc))

    # -- help ----------------------------------------------------------------

    def action_show_help(self) -> Outcome:
        self.mode = HelpMode()
        return Outcome()

    def action_close_help(self) -> Outcome:
        self.mode = NormalMode()
        return Outcome()

    def _press_help(self, mode: HelpMode, chord: str) -> Outcome:
        """Movement keys scroll the list; the closing keys leave help."""
        action = self.key_map.get(chord)
        if chord == "escape" or action in ("close_help", "show_help", "quit"):
            return self.action_close_help()
        if action == "force_quit":
            return Outcome(quit=True)
        last = max(0, len(self.help_lines()) - 1)
        if action == "go_down":
            mode.offset = min(last, mode.offset + 1)
        elif action == "go_up":
            mode.offset = max(0, mode.offset - 1)
        elif action == "go_to_top":
            mode.offset = 0
        elif action == "go_to_bottom":
            mode.offset = last
        return Outcome()

    def action_quit(self) -> Outcome:
        if self.tree.modified and not self._quit_armed:
            self._quit_armed = True
            return self._decline("Unsaved changes: press q again to quit, or s to save")
        return Outcome(quit=True)

    def action_force_quit(self) -> Outcome:
        return Outcome(quit=True)
