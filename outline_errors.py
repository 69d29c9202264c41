"""Exception taxonomy shared by the tree store, the collaborators and the engine."""

from typing import Optional


class OutlineError(Exception):
    """Base class for every failure the outliner reports to the user."""


class StructuralError(OutlineError):
    """A tree operation was declined; nothing was mutated."""


class InvalidParent(StructuralError):
    def __init__(self, parent_id: object) -> None:
        super().__init__(f"Parent node {parent_id} does not exist")
        self.parent_id = parent_id


class Cycle(StructuralError):
    def __init__(self, node_id: int, new_parent: int) -> None:
        super().__init__(f"Cannot move node {node_id} under its own descendant {new_parent}")
        self.node_id = node_id
        self.new_parent = new_parent


class NotFound(StructuralError):
    def __init__(self, node_id: object) -> None:
        super().__init__(f"Node {node_id} not found")
        self.node_id = node_id


class InvalidRoot(StructuralError):
    def __init__(self, reason: str = "Operation not allowed on the root node") -> None:
        super().__init__(reason)


class ParseError(OutlineError):
    def __init__(self, message: str, line: Optional[int] = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class DocumentIOError(OutlineError):
    """Reading or writing a document failed; in-memory state is untouched."""


class ClipboardUnavailable(OutlineError):
    def __init__(self, message: str = "Clipboard is not available") -> None:
        super().__init__(message)


class HistoryExhausted(OutlineError):
    pass
