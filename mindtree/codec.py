"""
Tree codec - conversion between the persisted nested tree and the working
node/edge set.

The working set is a flat node sequence whose order is the declaration order
of the persisted tree (depth-first, pre-order). Sibling layout order is taken
from that sequence, so every conversion here preserves it.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from .errors import NotFound, TreeIntegrityError
from .models import (
    DEFAULT_ROOT_LABEL,
    DIRECTION_TO_TAG,
    TAG_TO_DIRECTION,
    Direction,
    Edge,
    MindMapNode,
    MindMapState,
    PersistedMindMap,
    PersistedRoot,
    PersistedTree,
    Side,
    generate_node_id,
)


# Handle pair per direction: (parent side, child side)
EDGE_SIDES: dict[Direction, tuple[Side, Side]] = {
    Direction.LR: (Side.RIGHT, Side.LEFT),
    Direction.RL: (Side.LEFT, Side.RIGHT),
    Direction.TB: (Side.BOTTOM, Side.TOP),
    Direction.BT: (Side.TOP, Side.BOTTOM),
}


@dataclass(frozen=True)
class DecodedTree:
    """Result of decoding a persisted mind map."""
    nodes: tuple[MindMapNode, ...]
    root_id: str
    direction: Direction


def decode(document: PersistedMindMap | dict) -> DecodedTree:
    """
    Flatten a persisted tree into a node sequence.

    Walks depth-first, assigning `depth` and `has_children`, and keeps
    declaration order.

    Raises:
        TreeIntegrityError: if an id appears more than once
    """
    if isinstance(document, dict):
        document = PersistedMindMap.from_json_dict(document)

    root = document.root
    direction = TAG_TO_DIRECTION.get(root.layout, Direction.LR)
    nodes: list[MindMapNode] = []
    seen: set[str] = set()

    def walk(entry: PersistedTree, parent_id: str | None, depth: int) -> None:
        if entry.id in seen:
            raise TreeIntegrityError(f"Duplicate node id in tree: {entry.id}")
        seen.add(entry.id)
        children = entry.children or []
        nodes.append(MindMapNode(
            id=entry.id,
            label=entry.text,
            parent_id=parent_id,
            depth=depth,
            has_children=len(children) > 0,
            collapsed=bool(entry.collapsed),
            custom_style=entry.custom_style,
            chat_id=entry.chat_id,
            notes=entry.notes,
            sources=list(entry.sources or []),
        ))
        for child in children:
            walk(child, entry.id, depth + 1)

    walk(root, None, 0)
    return DecodedTree(nodes=tuple(nodes), root_id=root.id, direction=direction)


def encode(
    nodes: Iterable[MindMapNode],
    root_id: str,
    direction: Direction,
) -> PersistedMindMap:
    """
    Rebuild the nested tree from a node sequence.

    Children are collected by `parent_id` in sequence order.

    Raises:
        NotFound: if the root id is not in the node set
    """
    nodes = list(nodes)
    by_id = {n.id: n for n in nodes}
    if root_id not in by_id:
        raise NotFound(root_id, "Root node")

    children: dict[str, list[MindMapNode]] = defaultdict(list)
    for node in nodes:
        if node.parent_id is not None:
            children[node.parent_id].append(node)

    def fields(node: MindMapNode) -> dict:
        kids = [build(child) for child in children.get(node.id, [])]
        return {
            "id": node.id,
            "text": node.label,
            "notes": node.notes or None,
            "sources": list(node.sources) or None,
            "chat_id": node.chat_id or None,
            "collapsed": True if node.collapsed else None,
            "custom_style": node.custom_style or None,
            "children": kids or None,
        }

    def build(node: MindMapNode) -> PersistedTree:
        return PersistedTree(**fields(node))

    root = PersistedRoot(**fields(by_id[root_id]), layout=DIRECTION_TO_TAG[direction].value)
    return PersistedMindMap(root=root)


def encode_state(state: MindMapState) -> PersistedMindMap:
    """Encode a working state."""
    return encode(state.nodes, state.root_id, state.direction)


def generate_edges(nodes: Iterable[MindMapNode], direction: Direction) -> tuple[Edge, ...]:
    """Emit one edge per parented node, carrying the direction's handle pair."""
    source_side, target_side = EDGE_SIDES[direction]
    return tuple(
        Edge(
            id=f"edge-{node.parent_id}-{node.id}",
            source=node.parent_id,
            target=node.id,
            source_side=source_side,
            target_side=target_side,
        )
        for node in nodes
        if node.parent_id is not None
    )


def assign_depths(nodes: Iterable[MindMapNode], root_id: str) -> tuple[MindMapNode, ...]:
    """
    Recompute `depth` and `has_children` from the parent links.

    Nodes are copied only when a derived field changes.
    """
    nodes = list(nodes)
    children: dict[str, list[str]] = defaultdict(list)
    for node in nodes:
        if node.parent_id is not None:
            children[node.parent_id].append(node.id)

    depths: dict[str, int] = {root_id: 0}
    queue = [root_id]
    while queue:
        current = queue.pop(0)
        for child_id in children.get(current, []):
            if child_id not in depths:
                depths[child_id] = depths[current] + 1
                queue.append(child_id)

    result = []
    for node in nodes:
        depth = depths.get(node.id, node.depth)
        has_children = bool(children.get(node.id))
        if depth != node.depth or has_children != node.has_children:
            node = node.model_copy(update={"depth": depth, "has_children": has_children})
        result.append(node)
    return tuple(result)


def new_document(label: str = DEFAULT_ROOT_LABEL, direction: Direction = Direction.LR) -> PersistedMindMap:
    """Create a document holding only a root node."""
    root = PersistedRoot(id=generate_node_id(), text=label, layout=DIRECTION_TO_TAG[direction].value)
    return PersistedMindMap(root=root)
