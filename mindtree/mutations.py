"""
Structural mutations on mind-map states.

Every operation is copy-on-write: it reads a `MindMapState` and returns a new
one, so a raised error leaves the caller's state untouched. Topology changes
regenerate edges from the parent links, recompute depths and run a full
layout before the new state is returned.
"""

import logging
from collections import defaultdict
from typing import Any, Iterable, Optional

from .codec import assign_depths, generate_edges
from .errors import CycleError, NotFound, RootViolation, TreeIntegrityError
from .layout import LayoutEngine
from .models import (
    DEFAULT_NODE_LABEL,
    ChangeAction,
    Direction,
    MindMapNode,
    MindMapState,
    NodeChange,
    generate_node_id,
    generate_source_id,
)
from .validation import ensure_valid

logger = logging.getLogger(__name__)


def descendant_ids(nodes: Iterable[MindMapNode], node_id: str) -> set[str]:
    """All descendants of a node (the node itself excluded)."""
    children: dict[str, list[str]] = defaultdict(list)
    for node in nodes:
        if node.parent_id is not None:
            children[node.parent_id].append(node.id)

    found: set[str] = set()
    stack = [node_id]
    while stack:
        for child_id in children.get(stack.pop(), []):
            if child_id not in found:
                found.add(child_id)
                stack.append(child_id)
    return found


def would_create_cycle(nodes: Iterable[MindMapNode], node_id: str, new_parent_id: str) -> bool:
    """True if `new_parent_id` is the node itself or one of its descendants."""
    return new_parent_id == node_id or new_parent_id in descendant_ids(nodes, node_id)


def normalize_source(source: dict[str, Any]) -> dict[str, Any]:
    """Fill in the fields a source citation is expected to carry."""
    return {
        **source,
        "id": source.get("id") or generate_source_id(),
        "name": source.get("name") or source.get("title") or "Untitled Source",
        "directory": source.get("directory") or source.get("description") or "",
        "type": source.get("type") or "reference",
    }


class MutationEngine:
    """
    Add/delete/move/relabel/collapse/recolor operations.

    Holds only the layout engine and an id factory; all document state is
    passed in and returned.
    """

    def __init__(self, layout: Optional[LayoutEngine] = None, id_factory=generate_node_id):
        self.layout = layout or LayoutEngine()
        self._new_id = id_factory

    # --- Helpers ---

    def require_node(self, state: MindMapState, node_id: str) -> MindMapNode:
        node = state.get_node(node_id)
        if node is None:
            raise NotFound(node_id)
        return node

    def _commit(
        self,
        state: MindMapState,
        nodes: Iterable[MindMapNode],
        direction: Optional[Direction] = None,
        selected_id: Any = ...,
    ) -> MindMapState:
        """Recompute derived fields, regenerate edges and lay out."""
        direction = direction or state.direction
        nodes = assign_depths(nodes, state.root_id)
        edges = generate_edges(nodes, direction)
        nodes = self.layout.arrange(nodes, edges, state.root_id, direction)
        return state.model_copy(update={
            "nodes": nodes,
            "edges": edges,
            "direction": direction,
            "selected_id": state.selected_id if selected_id is ... else selected_id,
        })

    def _patch(self, state: MindMapState, node_id: str, **changes) -> MindMapState:
        """Replace one node's fields without touching layout."""
        self.require_node(state, node_id)
        nodes = tuple(
            n.model_copy(update=changes) if n.id == node_id else n
            for n in state.nodes
        )
        return state.model_copy(update={"nodes": nodes})

    # --- Structure ---

    def initialize(self, nodes: Iterable[MindMapNode], root_id: str, direction: Direction) -> MindMapState:
        """
        Build a laid-out state from a decoded node sequence.

        Raises:
            TreeIntegrityError: if the nodes do not form a single rooted tree
        """
        nodes = assign_depths(nodes, root_id)
        draft = MindMapState(nodes=nodes, edges=generate_edges(nodes, direction),
                             root_id=root_id, direction=direction)
        ensure_valid(draft)
        return self._commit(draft, nodes)

    def add_child(
        self,
        state: MindMapState,
        parent_id: str,
        label: str = DEFAULT_NODE_LABEL,
    ) -> tuple[MindMapState, str]:
        """Append a new child under `parent_id`; the new node becomes selected."""
        parent = self.require_node(state, parent_id)
        new_id = self._new_id()
        node = MindMapNode(
            id=new_id,
            label=label,
            parent_id=parent.id,
            depth=parent.depth + 1,
            x=parent.x,
            y=parent.y,
        )
        logger.debug("add_child %s -> %s", parent_id, new_id)
        return self._commit(state, state.nodes + (node,), selected_id=new_id), new_id

    def add_sibling(
        self,
        state: MindMapState,
        sibling_id: str,
        label: str = DEFAULT_NODE_LABEL,
    ) -> tuple[MindMapState, str]:
        """Insert a new node right after `sibling_id` under the same parent."""
        sibling = self.require_node(state, sibling_id)
        if sibling.parent_id is None:
            raise RootViolation("add a sibling to", sibling_id)

        new_id = self._new_id()
        node = MindMapNode(
            id=new_id,
            label=label,
            parent_id=sibling.parent_id,
            depth=sibling.depth,
            x=sibling.x,
            y=sibling.y,
        )
        index = state.index_of(sibling_id)
        nodes = state.nodes[:index + 1] + (node,) + state.nodes[index + 1:]
        logger.debug("add_sibling %s -> %s", sibling_id, new_id)
        return self._commit(state, nodes, selected_id=new_id), new_id

    def delete_subtree(self, state: MindMapState, node_id: str) -> MindMapState:
        """Remove a node and all of its descendants as one set."""
        if node_id == state.root_id:
            raise RootViolation("delete", node_id)
        self.require_node(state, node_id)

        doomed = descendant_ids(state.nodes, node_id) | {node_id}
        remaining = tuple(n for n in state.nodes if n.id not in doomed)
        if not remaining or not any(n.id == state.root_id for n in remaining):
            raise RootViolation("delete", state.root_id)

        selected = None if state.selected_id in doomed else state.selected_id
        logger.debug("delete_subtree %s (%d nodes)", node_id, len(doomed))
        return self._commit(state, remaining, selected_id=selected)

    def move_node(
        self,
        state: MindMapState,
        node_id: str,
        new_parent_id: str,
        insert_index: Optional[int] = None,
    ) -> MindMapState:
        """
        Reparent a node, optionally reinserting it at `insert_index` in the
        node sequence (index counted after the node is removed).
        """
        if node_id == state.root_id:
            raise RootViolation("move", node_id)
        self.require_node(state, node_id)
        self.require_node(state, new_parent_id)
        if would_create_cycle(state.nodes, node_id, new_parent_id):
            raise CycleError(node_id, new_parent_id)

        nodes = [
            n.model_copy(update={"parent_id": new_parent_id}) if n.id == node_id else n
            for n in state.nodes
        ]
        if insert_index is not None:
            index = next(i for i, n in enumerate(nodes) if n.id == node_id)
            moved = nodes.pop(index)
            nodes.insert(max(0, min(insert_index, len(nodes))), moved)

        logger.debug("move_node %s -> %s (index=%s)", node_id, new_parent_id, insert_index)
        return self._commit(state, nodes)

    def toggle_collapse(self, state: MindMapState, node_id: str) -> MindMapState:
        """Flip the collapsed flag; descendants are hidden, never removed."""
        node = self.require_node(state, node_id)
        patched = self._patch(state, node_id, collapsed=not node.collapsed)
        return self._commit(patched, patched.nodes)

    # --- Content patches ---

    def update_label(
        self,
        state: MindMapState,
        node_id: str,
        label: str,
        relayout: bool = True,
    ) -> MindMapState:
        """
        Change a node's label.

        With `relayout=False` (during an edit gesture) positions are left
        alone until the edit commits.
        """
        patched = self._patch(state, node_id, label=label)
        if not relayout:
            return patched
        return self._commit(patched, patched.nodes)

    def update_notes(self, state: MindMapState, node_id: str, notes: Optional[str]) -> MindMapState:
        return self._patch(state, node_id, notes=notes)

    def update_sources(self, state: MindMapState, node_id: str, sources: list[dict[str, Any]]) -> MindMapState:
        return self._patch(state, node_id, sources=list(sources))

    def update_custom_style(
        self,
        state: MindMapState,
        node_id: str,
        custom_style: Optional[dict[str, Any]],
    ) -> MindMapState:
        """Set the node's style tag; None clears it."""
        return self._patch(state, node_id, custom_style=custom_style)

    def update_chat_id(self, state: MindMapState, node_id: str, chat_id: Optional[str]) -> MindMapState:
        return self._patch(state, node_id, chat_id=chat_id)

    # --- Layout ---

    def change_direction(self, state: MindMapState, direction: Direction) -> MindMapState:
        """Regenerate edge handles and reflow every node."""
        return self._commit(state, state.nodes, direction=Direction(direction))

    def reset_layout(self, state: MindMapState) -> MindMapState:
        """Re-run layout without structural changes."""
        return self._commit(state, state.nodes)

    def select(self, state: MindMapState, node_id: Optional[str]) -> MindMapState:
        if node_id is not None:
            self.require_node(state, node_id)
        return state.model_copy(update={"selected_id": node_id})

    # --- Agent batches ---

    def apply_changes(self, state: MindMapState, changes: Iterable[NodeChange | dict]) -> MindMapState:
        """
        Apply an ordered batch of create/update/delete changes.

        The batch is all-or-nothing: any failing change rejects the whole
        batch. Layout runs once at the end.
        """
        nodes = list(state.nodes)

        def find(node_id: str) -> int:
            for i, n in enumerate(nodes):
                if n.id == node_id:
                    return i
            raise NotFound(node_id)

        for change in changes:
            if isinstance(change, dict):
                change = NodeChange.model_validate(change)

            if change.action == ChangeAction.CREATE:
                if any(n.id == change.node_id for n in nodes):
                    raise TreeIntegrityError(f"Node already exists: {change.node_id}")
                if change.parent_id is None:
                    raise TreeIntegrityError(f"Created node {change.node_id} needs a parent")
                find(change.parent_id)
                nodes.append(MindMapNode(
                    id=change.node_id,
                    label=change.text or DEFAULT_NODE_LABEL,
                    parent_id=change.parent_id,
                    notes=change.notes,
                    sources=[normalize_source(s) for s in change.sources or []],
                ))

            elif change.action == ChangeAction.UPDATE:
                index = find(change.node_id)
                updates: dict[str, Any] = {}
                if change.text is not None:
                    updates["label"] = change.text
                if change.notes is not None:
                    updates["notes"] = change.notes
                if change.sources is not None:
                    updates["sources"] = [normalize_source(s) for s in change.sources]
                nodes[index] = nodes[index].model_copy(update=updates)

            elif change.action == ChangeAction.DELETE:
                if change.node_id == state.root_id:
                    raise RootViolation("delete", change.node_id)
                find(change.node_id)
                doomed = descendant_ids(nodes, change.node_id) | {change.node_id}
                nodes = [n for n in nodes if n.id not in doomed]

        selected = state.selected_id if any(n.id == state.selected_id for n in nodes) else None
        result = self._commit(state, nodes, selected_id=selected)
        ensure_valid(result)
        return result
