from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from node_models import Tree
from outline_errors import HistoryExhausted

logger = logging.getLogger(__name__)

DEFAULT_MAX_UNDO_STEPS = 24


@dataclass(frozen=True)
class Snapshot:
    tree: Tree
    active_id: int

    @classmethod
    def capture(cls, tree: Tree) -> "Snapshot":
        return cls(tree.copy(), tree.active_id)

    def restore(self) -> Tree:
        """Return a fresh live tree so the stored copy is never aliased."""
        tree = self.tree.copy()
        tree.active_id = self.active_id
        return tree


class History:
    """Bounded list of snapshots with a read/write cursor.

    ``record`` is called with the state *before* a mutation. Snapshots below
    the cursor are undo targets; snapshots at or above it are redo targets.
    The first undo from the live end stores the live state too, so it can be
    redone afterwards. While that entry is held the list is one longer than
    ``max_steps``; it is a redo target only, so at most ``max_steps`` undos
    are ever available. The next ``record`` drops it with the rest of the
    redo tail.
    """

    def __init__(self, max_steps: int = DEFAULT_MAX_UNDO_STEPS) -> None:
        self.max_steps = max(1, max_steps)
        self._snapshots: List[Snapshot] = []
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor + 1 < len(self._snapshots)

    def clear(self) -> None:
        self._snapshots.clear()
        self._cursor = 0

    def record(self, snapshot: Snapshot) -> None:
        del self._snapshots[self._cursor :]
        self._snapshots.append(snapshot)
        overflow = len(self._snapshots) - self.max_steps
        if overflow > 0:
            del self._snapshots[:overflow]
            logger.debug("Dropped %d oldest undo step(s)", overflow)
        self._cursor = len(self._snapshots)

    def undo(self, current: Snapshot) -> Snapshot:
        if not self.can_undo:
            raise HistoryExhausted("Nothing to undo")
        if self._cursor == len(self._snapshots):
            self._snapshots.append(current)
        self._cursor -= 1
        return self._snapshots[self._cursor]

    def redo(self) -> Snapshot:
        if not self.can_redo:
            raise HistoryExhausted("Nothing to redo")
        self._cursor += 1
        return self._snapshots[self._cursor]

    def pop(self) -> Snapshot:
        """Withdraw the most recent record; only valid at the live end."""
        if not self._snapshots or self._cursor != len(self._snapshots):
            raise HistoryExhausted("Nothing to withdraw")
        self._cursor -= 1
        return self._snapshots.pop()
