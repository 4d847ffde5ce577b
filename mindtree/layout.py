"""
Layout engine for mind-map trees.

Positions every visible node of a rooted tree:
- Cross axis: each node gets a slot band proportional to its subtree size,
  children are stacked in node-sequence order and the parent sits at the
  center of its band
- Along axis: depth grows away from the root, pushed further out when a
  parent's label is wider than one level spacing
- Direction picks which screen axis is along/cross and its sign

Nodes hidden under a collapsed ancestor keep their last position. All
functions return new node objects; inputs are never modified.
"""

import logging
from collections import defaultdict
from typing import Iterable, Optional

from .config import DEFAULT_LAYOUT, LayoutConfig
from .errors import NotFound
from .models import Direction, Edge, MindMapNode
from .sizing import MeasureWidth, estimate_label_width, node_width

logger = logging.getLogger(__name__)


def hidden_node_ids(nodes: Iterable[MindMapNode], edges: Iterable[Edge]) -> set[str]:
    """
    Find every node that descends from a collapsed node.

    Args:
        nodes: All nodes
        edges: Parent -> child edges

    Returns:
        IDs of nodes hidden behind a collapsed ancestor
    """
    edges = list(edges)
    targets_by_source: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        targets_by_source[edge.source].append(edge.target)

    hidden: set[str] = set()
    stack = [n.id for n in nodes if n.collapsed]
    while stack:
        current = stack.pop()
        for target in targets_by_source.get(current, []):
            if target not in hidden:
                hidden.add(target)
                stack.append(target)
    return hidden


def visible_edges(nodes: Iterable[MindMapNode], edges: Iterable[Edge]) -> list[Edge]:
    """Edges whose target is not hidden behind a collapsed node."""
    edges = list(edges)
    hidden = hidden_node_ids(nodes, edges)
    return [e for e in edges if e.target not in hidden]


def build_children(nodes: list[MindMapNode], edges: Iterable[Edge]) -> dict[str, list[str]]:
    """
    Build the parent -> children adjacency from visible edges.

    Sibling order follows the node sequence, never edge order.
    """
    order = {n.id: i for i, n in enumerate(nodes)}
    children: dict[str, list[str]] = defaultdict(list)
    for edge in visible_edges(nodes, edges):
        if edge.source in order and edge.target in order:
            children[edge.source].append(edge.target)
    for child_list in children.values():
        child_list.sort(key=lambda node_id: order[node_id])
    return children


def subtree_sizes(children: dict[str, list[str]], root_id: str) -> dict[str, int]:
    """
    Compute the layout weight of every node reachable from the root.

    A node's size is the sum of its children's sizes, and at least 1.
    """
    sizes: dict[str, int] = {}
    # Iterative post-order: a node is finished once all children are sized
    stack: list[tuple[str, bool]] = [(root_id, False)]
    while stack:
        node_id, expanded = stack.pop()
        kids = children.get(node_id, [])
        if expanded:
            sizes[node_id] = max(1, sum(sizes[k] for k in kids))
            continue
        stack.append((node_id, True))
        for kid in kids:
            stack.append((kid, False))
    return sizes


def cross_spacing(direction: Direction, config: LayoutConfig = DEFAULT_LAYOUT) -> float:
    """Cross-axis slot size for a direction."""
    if direction.is_vertical:
        return config.vertical_node_spacing
    return config.horizontal_node_spacing


def tree_layout(
    nodes: list[MindMapNode],
    edges: Iterable[Edge],
    root_id: str,
    direction: Direction = Direction.LR,
    config: LayoutConfig = DEFAULT_LAYOUT,
) -> dict[str, tuple[float, float]]:
    """
    Compute screen positions for the visible part of a tree.

    Node `width`/`height` are used as the measured size; missing values fall
    back to the configured defaults.

    Args:
        nodes: All nodes, in sequence order
        edges: Parent -> child edges
        root_id: ID of the root node
        direction: Layout direction
        config: Layout geometry

    Returns:
        Mapping of node ID -> (x, y) for every visible node
    """
    by_id = {n.id: n for n in nodes}
    if root_id not in by_id:
        raise NotFound(root_id, "Root node")

    children = build_children(nodes, edges)
    sizes = subtree_sizes(children, root_id)
    unit = cross_spacing(direction, config)

    def along_extent(node: MindMapNode) -> float:
        if direction.is_vertical:
            return node.height or config.default_height
        return node.width or config.default_width

    cross: dict[str, float] = {}
    along: dict[str, float] = {root_id: 0.0}

    # Pre-order: (node, start of its cross-axis band)
    stack: list[tuple[str, float]] = [(root_id, 0.0)]
    while stack:
        node_id, start = stack.pop()
        cross[node_id] = start + sizes[node_id] * unit / 2

        parent_along = along[node_id]
        child_along = max(
            parent_along + along_extent(by_id[node_id]) + config.parent_gap,
            parent_along + config.level_spacing,
        )

        offset = start
        placements = []
        for child_id in children.get(node_id, []):
            along[child_id] = child_along
            placements.append((child_id, offset))
            offset += sizes[child_id] * unit
        # Reverse so the first child is processed first
        stack.extend(reversed(placements))

    half_extent = sizes[root_id] * unit / 2
    positions: dict[str, tuple[float, float]] = {}
    for node_id, c in cross.items():
        c -= half_extent
        a = along[node_id]
        if direction == Direction.LR:
            positions[node_id] = (config.origin_x + a, config.origin_y + c)
        elif direction == Direction.RL:
            positions[node_id] = (config.origin_x - a, config.origin_y + c)
        elif direction == Direction.TB:
            positions[node_id] = (config.origin_x + c, config.origin_y + a)
        else:  # BT
            positions[node_id] = (config.origin_x + c, config.origin_y - a)
    return positions


class LayoutEngine:
    """
    Measures labels and positions nodes.

    `measure_width` is the host's width-measurement capability; when it is
    missing or fails, the configured default width is used instead.
    """

    def __init__(
        self,
        config: LayoutConfig = DEFAULT_LAYOUT,
        measure_width: Optional[MeasureWidth] = estimate_label_width,
    ):
        self.config = config
        self.measure_width = measure_width

    def measure(self, node: MindMapNode) -> float:
        """Width of a node's label, or the default width when unavailable."""
        if self.measure_width is None:
            return self.config.default_width
        try:
            return node_width(node.label, self.measure_width, node.has_icons)
        except Exception as e:
            logger.warning("Width measurement failed for node %s: %s", node.id, e)
            return self.config.default_width

    def arrange(
        self,
        nodes: Iterable[MindMapNode],
        edges: Iterable[Edge],
        root_id: str,
        direction: Direction = Direction.LR,
    ) -> tuple[MindMapNode, ...]:
        """
        Measure and position every visible node.

        Returns:
            New node sequence (same order); hidden nodes are returned as-is
        """
        nodes = list(nodes)
        edges = list(edges)
        hidden = hidden_node_ids(nodes, edges)

        measured = [
            n if n.id in hidden else n.model_copy(update={
                "width": self.measure(n),
                "height": n.height or self.config.default_height,
            })
            for n in nodes
        ]

        positions = tree_layout(measured, edges, root_id, direction, self.config)
        logger.debug("Laid out %d of %d nodes (%s)", len(positions), len(nodes), direction.value)

        return tuple(
            n.model_copy(update={"x": positions[n.id][0], "y": positions[n.id][1]})
            if n.id in positions else n
            for n in measured
        )
