"""
Errors raised by the mind-map engine.

All errors are contract violations raised synchronously before any state is
replaced, so the caller's previous state stays authoritative.
"""


class MindMapError(ValueError):
    """Base class for engine errors."""


class NotFound(MindMapError):
    """A referenced node (or the root) does not exist."""

    def __init__(self, node_id: str, what: str = "Node"):
        self.node_id = node_id
        super().__init__(f"{what} not found: {node_id}")


class CycleError(MindMapError):
    """Moving a node under itself or one of its descendants."""

    def __init__(self, node_id: str, new_parent_id: str):
        self.node_id = node_id
        self.new_parent_id = new_parent_id
        super().__init__(
            f"Cannot move {node_id} under {new_parent_id}: operation would create a cycle"
        )


class RootViolation(MindMapError):
    """Delete, move or sibling insertion attempted on the root."""

    def __init__(self, action: str, root_id: str):
        self.action = action
        self.root_id = root_id
        super().__init__(f"Cannot {action} the root node ({root_id})")


class TreeIntegrityError(MindMapError):
    """A node set or persisted tree breaks the tree invariants."""


class EditStateError(MindMapError):
    """Label edit call made in the wrong edit state."""
