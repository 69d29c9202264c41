import logging
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from node_models import MAX_STARS, Node, Tree
from outline_errors import DocumentIOError, ParseError

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS: Tuple[str, ...] = ("✓", "✗")
HIDDEN_PREFIX = "[HIDDEN] "

_RANK_PATTERN = re.compile(r"^\(\+(\d+),-(\d+)\) (.*)$")
_STARS_PATTERN = re.compile(r"^(.*?) (★+)$")


def _encode_title(node: Node) -> str:
    line = node.label()
    if node.hidden:
        line = HIDDEN_PREFIX + line
    return line


def _decode_title(node: Node, raw: str, symbols: Sequence[str]) -> None:
    """Split hidden marker, symbol, rank badge and stars off a stored title."""
    text = raw
    if text.startswith(HIDDEN_PREFIX):
        node.hidden = True
        text = text[len(HIDDEN_PREFIX) :]
    for symbol in symbols:
        if symbol and text.startswith(f"{symbol} "):
            node.symbol = symbol
            text = text[len(symbol) + 1 :]
            break
    rank_match = _RANK_PATTERN.match(text)
    if rank_match:
        node.rank_pos = int(rank_match.group(1))
        node.rank_neg = int(rank_match.group(2))
        text = rank_match.group(3)
    stars_match = _STARS_PATTERN.match(text)
    if stars_match and len(stars_match.group(2)) <= MAX_STARS:
        node.stars = len(stars_match.group(2))
        text = stars_match.group(1)
    node.title = text


def _read_entries(text: str) -> List[Tuple[int, int, str]]:
    entries: List[Tuple[int, int, str]] = []
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        if "\x00" in raw_line:
            raise ParseError("binary data is not an outline", line_no)
        body = raw_line.lstrip("\t")
        depth = len(raw_line) - len(body)
        title = body.strip()
        # Tab-only lines are nodes with an empty title; fully blank lines are skipped.
        if not title and depth == 0:
            continue
        entries.append((line_no, depth, title))
    return entries


def parse(text: str, symbols: Sequence[str] = DEFAULT_SYMBOLS) -> Tree:
    """Parse a tab-indented outline into a tree.

    One title per line; the number of leading tabs is the depth, relative to
    the shallowest line. A document with several top-level lines is wrapped in
    a synthetic root which ``serialize`` leaves out again.
    """
    entries = _read_entries(text)
    tree = Tree()
    if not entries:
        return tree

    base = min(depth for _, depth, _ in entries)
    top_level = sum(1 for _, depth, _ in entries if depth == base)
    synthetic = top_level != 1 or entries[0][1] != base

    if synthetic:
        stack: List[Tuple[int, int]] = [(base - 1, tree.root_id)]
        pending = entries
    else:
        _decode_title(tree.root, entries[0][2], symbols)
        tree.root.hidden = False
        stack = [(base, tree.root_id)]
        pending = entries[1:]

    for line_no, depth, title in pending:
        while stack[-1][0] >= depth:
            stack.pop()
        parent_depth, parent_id = stack[-1]
        if depth > parent_depth + 1:
            raise ParseError(f"indented {depth - parent_depth} levels below its parent", line_no)
        node_id = tree.create_node(parent_id)
        _decode_title(tree.nodes[node_id], title, symbols)
        stack.append((depth, node_id))

    tree.synthetic_root = synthetic
    tree.modified = False
    tree.active_id = tree.root_id
    return tree


def serialize(
    tree: Tree,
    node_id: Optional[int] = None,
    *,
    include_root: bool = True,
    expanded_only: bool = False,
) -> str:
    """Write the subtree at ``node_id`` (default: the whole tree) as tab-indented text."""
    start = tree.root_id if node_id is None else node_id
    tree.get(start)
    if start == tree.root_id and tree.synthetic_root:
        include_root = False

    if include_root:
        stack = [(start, 0)]
    elif expanded_only and tree.nodes[start].collapsed:
        stack = []
    else:
        stack = [(child, 0) for child in reversed(tree.nodes[start].children)]

    lines: List[str] = []
    while stack:
        current, depth = stack.pop()
        node = tree.nodes[current]
        lines.append("\t" * depth + _encode_title(node))
        if expanded_only and node.collapsed:
            continue
        stack.extend((child, depth + 1) for child in reversed(node.children))
    return "\n".join(lines) + "\n" if lines else ""


def load_file(path: Path, symbols: Sequence[str] = DEFAULT_SYMBOLS) -> Tree:
    target = Path(path).expanduser()
    try:
        text = target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentIOError(f"Failed to read {target}: {exc}") from exc
    tree = parse(text, symbols)
    logger.info("Loaded %s (%d nodes)", target, len(tree))
    return tree


def save_file(tree: Tree, path: Path) -> Path:
    target = Path(path).expanduser()
    text = serialize(tree)
    try:
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise DocumentIOError(f"Failed to write {target}: {exc}") from exc
    logger.info("Saved %s (%d nodes)", target, len(tree))
    return target


def run_post_export_command(command: str) -> int:
    """Run the user's post-export shell command and return its exit status."""
    logger.info("Running post-export command: %s", command)
    try:
        completed = subprocess.run(command, shell=True, check=False)
    except OSError as exc:
        raise DocumentIOError(f"Post-export command failed: {exc}") from exc
    if completed.returncode != 0:
        logger.warning("Post-export command exited with %d", completed.returncode)
    return completed.returncode
