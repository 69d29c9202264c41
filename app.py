from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from platformdirs import user_log_dir
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Header, Static

from command_engine import PROMPT_MODES, CommandEngine, EditingMode, HelpMode, Outcome, SavingAsMode, SearchingMode
from layout_engine import ALIGNMENT_MODES
from line_editor import LineEditor
from map_view import MapView
from node_models import Tree
from outline_errors import DocumentIOError, ParseError
from outline_io import load_file
from settings import APP_NAME, CLIPBOARD_MODES, Settings, apply_overrides, load_settings
from system_clipboard import Clipboard, MemoryClipboard, SystemClipboard

logger = logging.getLogger(__name__)

CARET = "▌"
LOG_FILENAME = "mindline.log"


def _key_name_and_modifiers(key_value: str) -> tuple[str, set[str]]:
    parts = key_value.split("+")
    key_name = parts[-1].lower()
    modifiers = {part.lower() for part in parts[:-1] if part}
    return key_name, modifiers


def chord_for(event: events.Key) -> str:
    """Name a key the way keybindings spell it.

    Printable keys without ctrl/alt are named by the character they type, so
    ``G``, ``+`` and ``|`` bind as written; everything else keeps Textual's
    key name (``enter``, ``ctrl+z``, ``alt+up``).
    """
    if event.key == "space":
        return "space"
    _, modifiers = _key_name_and_modifiers(event.key)
    character = event.character
    if event.is_printable and character and len(character) == 1 and not modifiers & {"ctrl", "alt", "meta"}:
        return character
    return event.key


class MindlineApp(App[None]):
    """Textual user interface for the keyboard-driven outliner."""

    TITLE = APP_NAME

    CSS = """
    #map {
        width: 1fr;
        height: 1fr;
    }
    #status-line {
        height: 1;
        padding: 0 1;
        background: $panel;
    }
    #status-line.-error {
        background: $error;
        color: $text;
    }
    """

    def __init__(self, engine: CommandEngine, notice: Optional[str] = None) -> None:
        super().__init__()
        self.engine = engine
        self._map_view: Optional[MapView] = None
        self._status_line: Optional[Static] = None
        self._message = notice
        self._message_is_error = notice is not None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        map_view = MapView(self.engine, id="map")
        self._map_view = map_view
        yield map_view
        status_line = Static("", id="status-line")
        self._status_line = status_line
        yield status_line

    def on_mount(self) -> None:
        self.show_status()

    def require_map(self) -> MapView:
        if self._map_view is None:
            raise RuntimeError("Map view not initialised")
        return self._map_view

    def require_status_line(self) -> Static:
        if self._status_line is None:
            raise RuntimeError("Status line not initialised")
        return self._status_line

    @staticmethod
    def _prompt(label: str, editor: LineEditor) -> Text:
        visible = editor.visible_text()
        column = editor.cursor_column
        prompt = Text(label, style="bold")
        prompt.append(visible[:column])
        prompt.append(CARET)
        prompt.append(visible[column:])
        return prompt

    def _document_label(self) -> str:
        path = self.engine.document_path
        name = path.name if path else "[no file]"
        return f"{name} *" if self.engine.tree.modified else name

    def show_status(self, message: str | None = None, *, error: bool = False) -> None:
        if message is not None:
            self._message = message
            self._message_is_error = error
        mode = self.engine.mode
        self.sub_title = f"{self._document_label()} · {mode.name}"
        status_line = self.require_status_line()
        if isinstance(mode, EditingMode):
            status_line.update(self._prompt("Edit: ", mode.editor))
        elif isinstance(mode, SearchingMode):
            status_line.update(self._prompt("Search: ", mode.editor))
        elif isinstance(mode, SavingAsMode):
            status_line.update(self._prompt("Save as: ", mode.editor))
        elif isinstance(mode, HelpMode):
            status_line.update(Text("Help: j/k scroll, q or Esc closes", style="dim"))
        elif self._message:
            status_line.update(Text(self._message))
        else:
            status_line.update(Text(f"{len(self.engine.tree)} nodes", style="dim"))
        status_line.set_class(self._message_is_error and not isinstance(mode, (*PROMPT_MODES, HelpMode)), "-error")

    def apply_outcome(self, outcome: Outcome) -> None:
        if outcome.quit:
            self.exit()
            return
        if not outcome.ok:
            self.bell()
        # A fresh key clears the previous notice unless it brought its own.
        self._message = None
        self._message_is_error = False
        self.show_status(outcome.message, error=not outcome.ok)
        self.require_map().refresh()

    async def on_event(self, event: events.Event) -> None:  # noqa: D401
        if isinstance(event, events.Key):
            outcome = self.engine.press(chord_for(event), event.character)
            if outcome.handled:
                event.stop()
                event.prevent_default()
                self.apply_outcome(outcome)
                return
        await super().on_event(event)


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _non_negative_int(value: str) -> int:
    """argparse type for integer values >= 0."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keyboard-driven mind map outliner for the terminal.")
    parser.add_argument("path", nargs="?", default=None, help="Tab-indented outline to open or create.")
    parser.add_argument("--config", type=Path, default=None, help="Settings file (default: user config directory).")
    parser.add_argument("--max-parent-node-width", type=_positive_int, default=None, help="Wrap width for parent nodes.")
    parser.add_argument(
        "--max-leaf-node-width",
        type=_non_negative_int,
        default=None,
        help="Wrap width for leaf nodes (0 never wraps them).",
    )
    parser.add_argument("--line-spacing", type=_non_negative_int, default=None, help="Blank rows between sibling nodes.")
    parser.add_argument("--alignment-mode", choices=ALIGNMENT_MODES, default=None, help="Horizontal node alignment.")
    parser.add_argument("--show-hidden", action="store_true", default=None, help="Show nodes marked hidden.")
    parser.add_argument("--show-numbers", action="store_true", default=None, help="Prefix nodes with their outline number.")
    parser.add_argument("--center-lock", action="store_true", default=None, help="Keep the active node centred.")
    parser.add_argument("--focus-lock", action="store_true", default=None, help="Refocus the map after every move.")
    parser.add_argument("--auto-save", action="store_true", default=None, help="Save after every change.")
    parser.add_argument("--max-undo-steps", type=_positive_int, default=None, help="Number of undo steps kept.")
    parser.add_argument(
        "--initial-depth",
        type=_non_negative_int,
        default=None,
        help="Levels shown after loading (0 expands everything).",
    )
    parser.add_argument("--clipboard", choices=CLIPBOARD_MODES, default=None, help="Use the OS clipboard or an internal one.")
    parser.add_argument("--log-file", type=Path, default=None, help="Write the log here instead of the user log directory.")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level.")
    return parser


def configure_logging(log_file: Optional[Path], debug: bool) -> Path:
    """Send logging to a file; the terminal belongs to the UI."""
    target = log_file or Path(user_log_dir(APP_NAME, appauthor=False)) / LOG_FILENAME
    target = target.expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    except OSError as exc:
        raise SystemExit(f"Cannot write log file {target}: {exc}") from exc
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    return target


def load_document(path: Optional[Path], settings: Settings) -> tuple[Tree, Optional[str]]:
    """Open ``path``, or start an empty outline when it is missing or unreadable.

    The second item is a notice for the status line when loading failed.
    """
    if path is None or not path.exists():
        return Tree(), None
    try:
        return load_file(path, settings.symbols), None
    except (ParseError, DocumentIOError) as exc:
        logger.warning("Could not open %s: %s", path, exc)
        return Tree(), f"Could not open {path}: {exc}"


def make_clipboard(settings: Settings) -> Clipboard:
    if settings.clipboard == "internal":
        return MemoryClipboard()
    return SystemClipboard()


def main(argv: Sequence[str] | None = None) -> None:
    """Parse CLI arguments and run the outliner."""
    parser = build_parser()
    args = parser.parse_args(argv)
    log_path = configure_logging(args.log_file, args.debug)

    settings = load_settings(args.config)
    try:
        settings = apply_overrides(
            settings,
            max_parent_node_width=args.max_parent_node_width,
            max_leaf_node_width=args.max_leaf_node_width,
            line_spacing=args.line_spacing,
            alignment_mode=args.alignment_mode,
            show_hidden=args.show_hidden,
            show_numbers=args.show_numbers,
            center_lock=args.center_lock,
            focus_lock=args.focus_lock,
            auto_save=args.auto_save,
            max_undo_steps=args.max_undo_steps,
            initial_depth=args.initial_depth,
            clipboard=args.clipboard,
        )
    except ValueError as exc:
        parser.error(str(exc))

    path = Path(args.path).expanduser() if args.path else None
    tree, notice = load_document(path, settings)
    # Saving over a document that failed to load would destroy it.
    document_path = path if notice is None else None
    logger.info("Starting with %s (log: %s)", path or "a new outline", log_path)
    engine = CommandEngine(tree, settings, make_clipboard(settings), document_path)
    MindlineApp(engine, notice).run()


if __name__ == "__main__":
    main()
