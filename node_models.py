from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterator, List, Optional, Set

from outline_errors import Cycle, InvalidParent, InvalidRoot, NotFound

logger = logging.getLogger(__name__)

MAX_STARS = 5
RANK_LIMIT = 999
DEFAULT_ROOT_TITLE = "root"


@dataclass
class Node:
    id: int
    title: str
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    collapsed: bool = False
    hidden: bool = False
    rank_pos: int = 0
    rank_neg: int = 0
    stars: int = 0
    # Optional check mark shown before the title, e.g. "✓" or "✗".
    symbol: Optional[str] = None

    def copy(self) -> "Node":
        return replace(self, children=list(self.children))

    def label(self) -> str:
        """Title decorated with the node's symbol, rank badge and stars."""
        parts: list[str] = []
        if self.symbol:
            parts.append(self.symbol)
        if self.rank_pos or self.rank_neg:
            parts.append(f"(+{self.rank_pos},-{self.rank_neg})")
        parts.append(self.title)
        label = " ".join(parts)
        if self.stars:
            label = f"{label} {'★' * self.stars}"
        return label


class Tree:
    """Arena of nodes addressed by stable integer ids.

    The tree owns every node. Parents are referenced by id only and children
    are explicit ordered id lists, so structural checks walk ids rather than
    object references. Failed operations raise a ``StructuralError`` subclass
    before anything is changed.
    """

    def __init__(self, root_title: str = DEFAULT_ROOT_TITLE) -> None:
        self.root_id = 0
        self.nodes: dict[int, Node] = {self.root_id: Node(self.root_id, root_title)}
        self.next_id = self.root_id + 1
        self.active_id = self.root_id
        self.modified = False
        self.synthetic_root = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tree):
            return NotImplemented
        return (
            self.root_id == other.root_id
            and self.nodes == other.nodes
            and self.next_id == other.next_id
            and self.active_id == other.active_id
            and self.modified == other.modified
            and self.synthetic_root == other.synthetic_root
        )

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __repr__(self) -> str:
        return f"Tree(nodes={len(self.nodes)}, root={self.root_id}, active={self.active_id})"

    def copy(self) -> "Tree":
        clone = Tree.__new__(Tree)
        clone.root_id = self.root_id
        clone.nodes = {node_id: node.copy() for node_id, node in self.nodes.items()}
        clone.next_id = self.next_id
        clone.active_id = self.active_id
        clone.modified = self.modified
        clone.synthetic_root = self.synthetic_root
        return clone

    # -- lookups -----------------------------------------------------------

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def get(self, node_id: int) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NotFound(node_id) from None

    def children(self, node_id: int) -> list[int]:
        return list(self.get(node_id).children)

    def parent_of(self, node_id: int) -> Optional[int]:
        return self.get(node_id).parent

    def ancestors(self, node_id: int) -> Iterator[int]:
        """Yield the parent chain of ``node_id`` from nearest to the root."""
        parent = self.get(node_id).parent
        while parent is not None:
            yield parent
            parent = self.nodes[parent].parent

    def descendants(self, node_id: int) -> Iterator[int]:
        """Yield every descendant of ``node_id`` in pre-order."""
        stack = list(reversed(self.get(node_id).children))
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self.nodes[current].children))

    def walk(self) -> Iterator[int]:
        yield self.root_id
        yield from self.descendants(self.root_id)

    def depth(self, node_id: int) -> int:
        return sum(1 for _ in self.ancestors(node_id))

    def index_in_parent(self, node_id: int) -> int:
        parent = self.get(node_id).parent
        if parent is None:
            return 0
        return self.nodes[parent].children.index(node_id)

    def is_ancestor(self, candidate: int, node_id: int) -> bool:
        return candidate in self.ancestors(node_id)

    def visible_children(self, node_id: int, show_hidden: bool = False) -> list[int]:
        node = self.get(node_id)
        if show_hidden:
            return list(node.children)
        return [child for child in node.children if not self.nodes[child].hidden]

    def is_visible(self, node_id: int, show_hidden: bool = False) -> bool:
        """Return True when no filter hides ``node_id`` from the layout."""
        node = self.get(node_id)
        if node_id == self.root_id:
            return True
        if node.hidden and not show_hidden:
            return False
        for ancestor in self.ancestors(node_id):
            ancestor_node = self.nodes[ancestor]
            if ancestor_node.collapsed:
                return False
            if ancestor_node.hidden and not show_hidden and ancestor != self.root_id:
                return False
        return True

    def nearest_visible(self, node_id: int, show_hidden: bool = False) -> int:
        if node_id not in self.nodes:
            return self.root_id
        if self.is_visible(node_id, show_hidden):
            return node_id
        for ancestor in self.ancestors(node_id):
            if self.is_visible(ancestor, show_hidden):
                return ancestor
        return self.root_id

    # -- structural mutation -------------------------------------------------

    def _allocate_id(self) -> int:
        node_id = self.next_id
        self.next_id += 1
        return node_id

    def create_node(self, parent_id: int, title: str = "", index: Optional[int] = None) -> int:
        parent = self.nodes.get(parent_id)
        if parent is None:
            raise InvalidParent(parent_id)
        node_id = self._allocate_id()
        self.nodes[node_id] = Node(node_id, title, parent=parent_id)
        if index is None or index >= len(parent.children):
            parent.children.append(node_id)
        else:
            parent.children.insert(max(0, index), node_id)
        self.modified = True
        return node_id

    def delete_subtree(self, node_id: int) -> Set[int]:
        if node_id == self.root_id:
            raise InvalidRoot("Cannot delete the root node")
        node = self.get(node_id)
        removed = {node_id, *self.descendants(node_id)}
        if node.parent is not None:
            self.nodes[node.parent].children.remove(node_id)
        for removed_id in removed:
            del self.nodes[removed_id]
        if self.active_id in removed:
            self.active_id = node.parent if node.parent is not None else self.root_id
        self.modified = True
        return removed

    def reparent(self, node_id: int, new_parent: int, index: Optional[int] = None) -> None:
        node = self.get(node_id)
        if new_parent not in self.nodes:
            raise InvalidParent(new_parent)
        if new_parent == node_id or self.is_ancestor(node_id, new_parent):
            raise Cycle(node_id, new_parent)
        if node.parent is not None:
            self.nodes[node.parent].children.remove(node_id)
        siblings = self.nodes[new_parent].children
        if index is None or index >= len(siblings):
            siblings.append(node_id)
        else:
            siblings.insert(max(0, index), node_id)
        node.parent = new_parent
        self.modified = True

    def move_sibling(self, node_id: int, offset: int) -> bool:
        """Shift ``node_id`` among its siblings; False when already at the edge."""
        node = self.get(node_id)
        if node.parent is None:
            raise InvalidRoot("The root node has no siblings")
        siblings = self.nodes[node.parent].children
        current = siblings.index(node_id)
        target = max(0, min(len(siblings) - 1, current + offset))
        if target == current:
            return False
        siblings.pop(current)
        siblings.insert(target, node_id)
        self.modified = True
        return True

    def sort_children(self, node_id: int, key: Callable[[Node], object], reverse: bool = False) -> bool:
        node = self.get(node_id)
        ordered = sorted(node.children, key=lambda child: key(self.nodes[child]), reverse=reverse)
        if ordered == node.children:
            return False
        node.children = ordered
        self.modified = True
        return True

    def graft(
        self,
        parent_id: int,
        source: "Tree",
        source_id: int,
        index: Optional[int] = None,
    ) -> int:
        """Copy the subtree at ``source_id`` of ``source`` under ``parent_id``.

        Returns the id of the copied subtree root. Copied nodes get fresh ids.
        """
        if parent_id not in self.nodes:
            raise InvalidParent(parent_id)
        source_node = source.get(source_id)
        new_id = self.create_node(parent_id, source_node.title, index)
        self._copy_marks(source_node, self.nodes[new_id])
        pending = [(source_id, new_id)]
        while pending:
            from_id, to_id = pending.pop()
            for child in source.nodes[from_id].children:
                child_node = source.nodes[child]
                copied = self.create_node(to_id, child_node.title)
                self._copy_marks(child_node, self.nodes[copied])
                pending.append((child, copied))
        return new_id

    @staticmethod
    def _copy_marks(source: Node, target: Node) -> None:
        target.collapsed = source.collapsed
        target.hidden = source.hidden
        target.rank_pos = source.rank_pos
        target.rank_neg = source.rank_neg
        target.stars = source.stars
        target.symbol = source.symbol

    # -- field setters -------------------------------------------------------

    def set_title(self, node_id: int, title: str) -> None:
        node = self.get(node_id)
        if node.title != title:
            node.title = title
            self.modified = True

    def set_collapsed(self, node_id: int, collapsed: bool) -> None:
        # Fold state is view state; it does not make the document dirty.
        self.get(node_id).collapsed = collapsed

    def set_hidden(self, node_id: int, hidden: bool) -> None:
        node = self.get(node_id)
        if hidden and node_id == self.root_id:
            raise InvalidRoot("The root node cannot be hidden")
        if node.hidden != hidden:
            node.hidden = hidden
            self.modified = True

    def set_symbol(self, node_id: int, symbol: Optional[str]) -> None:
        node = self.get(node_id)
        if node.symbol != symbol:
            node.symbol = symbol
            self.modified = True

    def adjust_rank(self, node_id: int, positive: bool, delta: int) -> bool:
        node = self.get(node_id)
        attribute = "rank_pos" if positive else "rank_neg"
        current = getattr(node, attribute)
        updated = max(0, min(RANK_LIMIT, current + delta))
        if updated == current:
            return False
        setattr(node, attribute, updated)
        self.modified = True
        return True

    def adjust_stars(self, node_id: int, delta: int) -> bool:
        node = self.get(node_id)
        updated = max(0, min(MAX_STARS, node.stars + delta))
        if updated == node.stars:
            return False
        node.stars = updated
        self.modified = True
        return True
