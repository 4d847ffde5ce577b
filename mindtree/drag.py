"""
Drag-and-drop classification.

While a node is dragged, the pointer is matched to the nearest other node and
classified as a sibling drop (`above`/`below`) or a child drop (`over`). On
release the classification becomes a `DropIntent` that the caller applies
with `MutationEngine.move_node`, which re-checks the cycle constraint.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .config import DEFAULT_DRAG, DragConfig
from .models import DropPosition, MindMapNode, MindMapState
from .mutations import would_create_cycle

Point = tuple[float, float]


@dataclass(frozen=True)
class DropTarget:
    """Current drop indicator: which node, and where relative to it."""
    target_id: str
    position: DropPosition


@dataclass(frozen=True)
class DropIntent:
    """A resolved drop, ready for `move_node`."""
    node_id: str
    new_parent_id: str
    insert_index: Optional[int] = None


def find_nearest_node(
    nodes: Iterable[MindMapNode],
    position: Point,
    exclude_id: Optional[str] = None,
) -> Optional[str]:
    """Euclidean nearest node to `position`, skipping `exclude_id`."""
    closest_id = None
    closest_distance = math.inf
    px, py = position
    for node in nodes:
        if node.id == exclude_id:
            continue
        distance = math.hypot(node.x - px, node.y - py)
        if distance < closest_distance:
            closest_distance = distance
            closest_id = node.id
    return closest_id


def classify_drop_position(
    state: MindMapState,
    position: Point,
    target_id: str,
    threshold: float = DEFAULT_DRAG.drop_threshold,
) -> DropPosition:
    """
    Classify a pointer position against a target node.

    The cross-axis offset from the target center (y for LR/RL, x for TB/BT)
    beyond the threshold means a sibling drop; within it means a child drop.
    The root can only receive children.
    """
    target = state.get_node(target_id)
    if target is None or target_id == state.root_id:
        return DropPosition.OVER

    if state.direction.is_vertical:
        offset = position[0] - target.x
    else:
        offset = position[1] - target.y

    if offset < -threshold:
        return DropPosition.ABOVE
    if offset > threshold:
        return DropPosition.BELOW
    return DropPosition.OVER


def sibling_insert_index(
    state: MindMapState,
    node_id: str,
    target_id: str,
    position: DropPosition,
) -> Optional[int]:
    """
    Sequence index that places `node_id` directly before (`above`) or after
    (`below`) the target among the target's siblings.

    The index is counted after `node_id` is removed from the sequence, which
    is how `move_node` applies it.
    """
    target = state.get_node(target_id)
    if target is None or target.parent_id is None:
        return None

    siblings = [n for n in state.nodes if n.parent_id == target.parent_id and n.id != node_id]
    target_pos = next((i for i, n in enumerate(siblings) if n.id == target_id), -1)
    if target_pos == -1:
        return None

    desired = target_pos + 1 if position == DropPosition.BELOW else target_pos
    if desired >= len(siblings):
        insert_index = state.index_of(siblings[-1].id) + 1
    else:
        insert_index = state.index_of(siblings[desired].id)

    dragged_index = state.index_of(node_id)
    if dragged_index != -1 and dragged_index < insert_index:
        insert_index -= 1
    return insert_index


def resolve_drop(
    state: MindMapState,
    node_id: str,
    target_id: str,
    position: DropPosition,
) -> Optional[DropIntent]:
    """
    Turn a classified drop into a move, or None when the drop is a no-op.

    `above`/`below` on a parented target reinserts the node as the target's
    sibling; anything else makes it a child of the target.
    """
    if node_id == state.root_id or not target_id or target_id == node_id:
        return None

    target = state.get_node(target_id)
    if target is None:
        return None

    if position in (DropPosition.ABOVE, DropPosition.BELOW) and target.parent_id is not None:
        index = sibling_insert_index(state, node_id, target_id, position)
        if index is not None:
            return DropIntent(node_id, target.parent_id, index)

    dragged = state.get_node(node_id)
    if dragged is not None and dragged.parent_id == target_id:
        return None
    return DropIntent(node_id, target_id)


class DragClassifier:
    """
    One interactive drag gesture.

    Classification starts only after the node has moved more than the
    minimum drag distance (a click is not a drag) and is recomputed at most
    once per update interval.
    """

    def __init__(self, config: DragConfig = DEFAULT_DRAG, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock
        self._reset()

    def _reset(self) -> None:
        self.dragged_id: Optional[str] = None
        self.target: Optional[DropTarget] = None
        self.has_dragged_significantly = False
        self._start: Optional[Point] = None
        self._last_update = -math.inf

    @property
    def active(self) -> bool:
        return self.dragged_id is not None

    def start(self, state: MindMapState, node_id: str) -> bool:
        """Begin dragging a node; the root cannot be dragged."""
        node = state.get_node(node_id)
        if node is None or node_id == state.root_id:
            return False
        self._reset()
        self.dragged_id = node_id
        self._start = node.center()
        return True

    def update(
        self,
        state: MindMapState,
        node_position: Point,
        pointer: Optional[Point] = None,
    ) -> Optional[DropTarget]:
        """
        Feed the dragged node's current position (and pointer, when known).

        Returns the current drop target, or None when there is none.
        """
        if not self.active or self._start is None:
            return None

        distance = math.hypot(node_position[0] - self._start[0], node_position[1] - self._start[1])
        if distance <= self.config.min_drag_distance:
            return self.target
        self.has_dragged_significantly = True

        now = self._clock()
        if now - self._last_update < self.config.update_interval:
            return self.target
        self._last_update = now

        point = pointer or node_position
        nearest = find_nearest_node(state.nodes, point, self.dragged_id)
        if nearest is None or would_create_cycle(state.nodes, self.dragged_id, nearest):
            self.target = None
        else:
            position = classify_drop_position(state, point, nearest, self.config.drop_threshold)
            self.target = DropTarget(nearest, position)
        return self.target

    def release(self, state: MindMapState) -> Optional[DropIntent]:
        """End the gesture and return the move to apply, if any."""
        intent = None
        if self.active and self.has_dragged_significantly and self.target is not None:
            intent = resolve_drop(state, self.dragged_id, self.target.target_id, self.target.position)
        self._reset()
        return intent

    def cancel(self) -> None:
        """Abandon the gesture without moving anything."""
        self._reset()
