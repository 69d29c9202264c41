"""User settings: defaults, JSON config file and command-line overrides.

The config file lives in the platform config directory. A file that cannot
be read falls back to the defaults, and a field of the wrong type falls back
to its default value; both are reported in the log.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

from platformdirs import user_config_dir

from layout_engine import ALIGNMENT_MODES, LayoutStyle

logger = logging.getLogger(__name__)

APP_NAME = "mindline"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME

CLIPBOARD_MODES = ("os", "internal")
MIN_NODE_WIDTH = 15

DEFAULT_KEYBINDINGS: dict[str, tuple[str, ...]] = {
    "go_up": ("k", "up"),
    "go_down": ("j", "down"),
    "go_left": ("h", "left"),
    "go_right": ("l", "right"),
    "go_to_root": ("m", "~"),
    "go_to_top": ("g",),
    "go_to_bottom": ("G",),
    "insert_sibling": ("o", "enter"),
    "insert_child": ("O", "tab"),
    "delete_node": ("d", "delete"),
    "delete_children": ("D",),
    "move_node_up": ("K",),
    "move_node_down": ("J",),
    "edit_append": ("e", "a", "i"),
    "edit_replace": ("E", "A", "I"),
    "toggle_collapse": ("space",),
    "collapse_all": ("v",),
    "expand_all": ("b",),
    "collapse_children": ("V",),
    "collapse_other_branches": ("r",),
    **{f"collapse_to_level_{level}": (str(level),) for level in range(1, 10)},
    "toggle_hide": ("H",),
    "toggle_show_hidden": ("ctrl+h", "."),
    "toggle_align": ("|",),
    "toggle_numbers": ("#",),
    "center_active_node": ("c",),
    "toggle_center_lock": ("C",),
    "focus": ("f",),
    "toggle_focus_lock": ("F",),
    "increase_text_width": ("w",),
    "decrease_text_width": ("W",),
    "increase_line_spacing": ("Z",),
    "decrease_line_spacing": ("z",),
    "toggle_symbol": ("t",),
    "increase_positive_rank": ("=",),
    "decrease_positive_rank": ("+",),
    "increase_negative_rank": ("-",),
    "decrease_negative_rank": ("_",),
    "add_star": ("alt+up",),
    "remove_star": ("alt+down",),
    "sort_siblings": ("T",),
    "sort_siblings_by_rank": ("R",),
    "search": ("/", "ctrl+f"),
    "next_search_result": ("n",),
    "previous_search_result": ("N",),
    "yank_node": ("y",),
    "yank_children": ("Y",),
    "paste_as_children": ("p",),
    "paste_as_siblings": ("P",),
    "export_text": ("X",),
    "export_text_node": ("x",),
    "undo": ("u", "ctrl+z"),
    "redo": ("ctrl+r", "ctrl+y"),
    "save": ("s",),
    "save_as": ("S",),
    "quit": ("q",),
    "force_quit": ("Q",),
    "show_help": ("?",),
    "close_help": ("escape",),
}


def default_keybindings() -> dict[str, tuple[str, ...]]:
    return dict(DEFAULT_KEYBINDINGS)


@dataclass
class Settings:
    max_parent_node_width: int = 25
    # 0 never wraps leaf labels.
    max_leaf_node_width: int = 0
    line_spacing: int = 1
    alignment_mode: str = "stack"
    show_hidden: bool = False
    show_numbers: bool = False
    center_lock: bool = False
    focus_lock: bool = False
    auto_save: bool = False
    max_undo_steps: int = 24
    keybindings: dict[str, tuple[str, ...]] = field(default_factory=default_keybindings)
    symbol1: str = "✓"
    symbol2: str = "✗"
    post_export_command: str = ""
    # Depth shown on load; 0 leaves every node expanded.
    initial_depth: int = 0
    clipboard: str = "os"

    def layout_style(self) -> LayoutStyle:
        return LayoutStyle(
            max_parent_node_width=self.max_parent_node_width,
            max_leaf_node_width=self.max_leaf_node_width,
            line_spacing=self.line_spacing,
            alignment_mode=self.alignment_mode,  # type: ignore[arg-type]
            show_hidden=self.show_hidden,
            show_numbers=self.show_numbers,
        )

    def key_map(self) -> dict[str, str]:
        """Invert the action -> chords table into chord -> action."""
        mapping: dict[str, str] = {}
        for action, chords in self.keybindings.items():
            for chord in chords:
                if chord in mapping and mapping[chord] != action:
                    logger.warning("Key %r bound to both %s and %s; keeping %s", chord, mapping[chord], action, action)
                mapping[chord] = action
        return mapping

    @property
    def symbols(self) -> tuple[str, str]:
        return (self.symbol1, self.symbol2)


def _valid_int(value: Any, minimum: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= minimum


_VALIDATORS = {
    "max_parent_node_width": lambda value: _valid_int(value, MIN_NODE_WIDTH),
    "max_leaf_node_width": lambda value: _valid_int(value, 0) and (value == 0 or value >= MIN_NODE_WIDTH),
    "line_spacing": lambda value: _valid_int(value, 0),
    "alignment_mode": lambda value: value in ALIGNMENT_MODES,
    "show_hidden": lambda value: isinstance(value, bool),
    "show_numbers": lambda value: isinstance(value, bool),
    "center_lock": lambda value: isinstance(value, bool),
    "focus_lock": lambda value: isinstance(value, bool),
    "auto_save": lambda value: isinstance(value, bool),
    "max_undo_steps": lambda value: _valid_int(value, 1),
    "symbol1": lambda value: isinstance(value, str) and bool(value.strip()),
    "symbol2": lambda value: isinstance(value, str) and bool(value.strip()),
    "post_export_command": lambda value: isinstance(value, str),
    "initial_depth": lambda value: _valid_int(value, 0),
    "clipboard": lambda value: value in CLIPBOARD_MODES,
}


def _merge_keybindings(raw: Any) -> dict[str, tuple[str, ...]]:
    bindings = default_keybindings()
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring keybindings: expected an object, got %s", type(raw).__name__)
        return bindings
    for action, chords in raw.items():
        if action not in DEFAULT_KEYBINDINGS:
            logger.warning("Ignoring keybinding for unknown action %r", action)
            continue
        if isinstance(chords, str):
            chords = [chords]
        if not isinstance(chords, list) or not all(isinstance(chord, str) and chord for chord in chords):
            logger.warning("Ignoring keybinding for %s: expected a key or a list of keys", action)
            continue
        bindings[action] = tuple(chords)
    return bindings


def settings_from_mapping(data: Mapping[str, Any]) -> Settings:
    values: dict[str, Any] = {}
    known = {item.name for item in fields(Settings)}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown setting %r", key)
            continue
        if key == "keybindings":
            values[key] = _merge_keybindings(value)
            continue
        if not _VALIDATORS[key](value):
            logger.warning("Ignoring invalid value for %s: %r", key, value)
            continue
        values[key] = value
    return Settings(**values)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from ``path`` (default: the user config file)."""
    config_path = path or CONFIG_PATH
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Settings()
    except (OSError, ValueError) as exc:
        logger.warning("Could not read settings from %s: %s", config_path, exc)
        return Settings()
    if not isinstance(data, dict):
        logger.warning("Settings file %s does not contain a JSON object", config_path)
        return Settings()
    return settings_from_mapping(data)


def apply_overrides(settings: Settings, **overrides: Any) -> Settings:
    """Return a copy of ``settings`` with every non-None override applied."""
    changes = {key: value for key, value in overrides.items() if value is not None}
    for key, value in changes.items():
        validator = _VALIDATORS.get(key)
        if validator is None or not validator(value):
            raise ValueError(f"invalid value for {key}: {value!r}")
    return replace(settings, **changes)
