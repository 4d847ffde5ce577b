"""
Bounded linear undo/redo history.

The history is a list of immutable snapshots plus a pointer to the current
one. Saving while the pointer is not at the end discards the redo branch;
once the capacity is exceeded the oldest snapshot is evicted.
"""

from typing import Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_CAPACITY = 50


class HistoryManager(Generic[T]):
    """
    Snapshot history with a movable pointer.

    Undo and redo only move the pointer; they never record new snapshots,
    so alternating them cannot grow the history.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._capacity = capacity
        self._snapshots: list[T] = []
        self._index = -1

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> Optional[T]:
        """The snapshot under the pointer."""
        if self._index < 0:
            return None
        return self._snapshots[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def reset(self, initial: Optional[T] = None) -> None:
        """Forget everything, optionally starting from one snapshot."""
        self._snapshots = [] if initial is None else [initial]
        self._index = len(self._snapshots) - 1

    def save_snapshot(self, snapshot: T) -> None:
        """Record a snapshot after a committed mutation."""
        # A new action invalidates the redo branch
        del self._snapshots[self._index + 1:]
        self._snapshots.append(snapshot)

        if len(self._snapshots) > self._capacity:
            self._snapshots.pop(0)
        self._index = len(self._snapshots) - 1

    def undo(self) -> Optional[T]:
        """Step back; None when there is nothing to undo."""
        if not self.can_undo:
            return None
        self._index -= 1
        return self._snapshots[self._index]

    def redo(self) -> Optional[T]:
        """Step forward; None when there is nothing to redo."""
        if not self.can_redo:
            return None
        self._index += 1
        return self._snapshots[self._index]
