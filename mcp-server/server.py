#!/usr/bin/env python3
"""
mindtree MCP Server

Provides MCP tools for AI agents to read and edit mind maps.
All changes go through the backend API, so open editors are updated via
WebSocket notifications.
"""

import json
import logging
import os
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

logger = logging.getLogger(__name__)

# Backend API URL
API_BASE = os.environ.get("MINDTREE_API_URL", "http://127.0.0.1:8765/api")

# Create MCP server
mcp = FastMCP("mindtree")


class APIError(Exception):
    """The backend rejected a request."""

    def __init__(self, status_code: int, error: str, message: str):
        self.status_code = status_code
        self.error = error
        super().__init__(f"API error ({status_code} {error}): {message}")


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the mindtree backend."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        response = client.request(method, url, json=kwargs.get("json"), params=kwargs.get("params"))

    if response.status_code >= 400:
        try:
            body = response.json()
        except ValueError:
            body = {}
        logger.warning("%s %s failed with %d", method, endpoint, response.status_code)
        raise APIError(
            response.status_code,
            body.get("error", "unknown"),
            body.get("message") or body.get("detail") or response.text,
        )

    return response.json()


def _dump(result: dict) -> str:
    return json.dumps(result, indent=2)


def render_outline(tree: dict, indent: int = 0) -> list[str]:
    """Render a persisted tree entry as indented outline lines."""
    badges = []
    if tree.get("notes"):
        badges.append("notes")
    if tree.get("sources"):
        badges.append(f"{len(tree['sources'])} sources")
    if tree.get("collapsed"):
        badges.append("collapsed")
    suffix = f" ({', '.join(badges)})" if badges else ""

    lines = [f"{'  ' * indent}- {tree.get('text', '')} [{tree['id']}]{suffix}"]
    for child in tree.get("children") or []:
        lines.extend(render_outline(child, indent + 1))
    return lines


# ============================================================================
# DOCUMENT TOOLS
# ============================================================================

@mcp.tool()
def mindmap_list() -> str:
    """
    List stored mind maps.

    Returns each mind map's id, title, timestamps and whether it is open.
    """
    return _dump(api_request("GET", "/mindmaps"))


@mcp.tool()
def mindmap_create(title: str = "Untitled Mind Map", root_label: str = "Central Idea", direction: str = "LR") -> str:
    """
    Create a new mind map containing only a root node.

    Args:
        title: Title shown in the mind map list
        root_label: Text of the root node
        direction: Layout direction (LR, RL, TB, BT)

    Returns the new mind map id and its state.
    """
    return _dump(api_request("POST", "/mindmaps", json={
        "title": title,
        "root_label": root_label,
        "direction": direction,
    }))


@mcp.tool()
def mindmap_get(mindmap_id: str) -> str:
    """
    Get the full working state of a mind map.

    Includes every node with its position, the derived edges, the root id,
    the layout direction and undo/redo availability.
    """
    return _dump(api_request("GET", f"/mindmaps/{mindmap_id}"))


@mcp.tool()
def mindmap_outline(mindmap_id: str) -> str:
    """
    Get a mind map as an indented outline.

    Each line shows a node's text and id; use the ids with the editing tools.
    This is the cheapest way to understand the structure before editing.
    """
    tree = api_request("GET", f"/mindmaps/{mindmap_id}/tree")
    return "\n".join(render_outline(tree["root"]))


@mcp.tool()
def mindmap_export(mindmap_id: str) -> str:
    """
    Export the persisted nested tree (`{"root": {...}}`) of a mind map.
    """
    return _dump(api_request("GET", f"/mindmaps/{mindmap_id}/tree"))


# ============================================================================
# NODE TOOLS
# ============================================================================

@mcp.tool()
def mindmap_add_child(mindmap_id: str, parent_id: str, label: str = "New Idea") -> str:
    """
    Add a new node as the last child of a node.

    Args:
        mindmap_id: Mind map to edit
        parent_id: ID of the parent node
        label: Text of the new node

    Returns the new node's id and the updated state.
    """
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/nodes/{parent_id}/children", json={"label": label}))


@mcp.tool()
def mindmap_add_sibling(mindmap_id: str, sibling_id: str, label: str = "New Idea") -> str:
    """
    Add a new node directly after a node, under the same parent.

    The root has no siblings; use mindmap_add_child for it.
    """
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/nodes/{sibling_id}/siblings", json={"label": label}))


@mcp.tool()
def mindmap_update_node(
    mindmap_id: str,
    node_id: str,
    label: Optional[str] = None,
    notes: Optional[str] = None,
    sources: Optional[list[dict]] = None,
) -> str:
    """
    Modify an existing node's text, notes or sources.

    Args:
        mindmap_id: Mind map to edit
        node_id: ID of the node to update
        label: New text (optional)
        notes: New notes (optional)
        sources: New source citations, replacing existing ones (optional)

    Only provided fields are updated; others remain unchanged.
    """
    updates = {}
    if label is not None:
        updates["label"] = label
    if notes is not None:
        updates["notes"] = notes
    if sources is not None:
        updates["sources"] = sources

    return _dump(api_request("PATCH", f"/mindmaps/{mindmap_id}/nodes/{node_id}", json=updates))


@mcp.tool()
def mindmap_delete_node(mindmap_id: str, node_id: str) -> str:
    """
    Remove a node together with its whole subtree.

    The root cannot be deleted.
    """
    return _dump(api_request("DELETE", f"/mindmaps/{mindmap_id}/nodes/{node_id}"))


@mcp.tool()
def mindmap_move_node(mindmap_id: str, node_id: str, new_parent_id: str) -> str:
    """
    Move a node (and its subtree) under a different parent.

    Moving a node under itself or one of its own descendants is rejected.
    """
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/nodes/{node_id}/move", json={
        "new_parent_id": new_parent_id,
    }))


@mcp.tool()
def mindmap_toggle_collapse(mindmap_id: str, node_id: str) -> str:
    """
    Collapse or expand a node. Collapsed subtrees are hidden, not removed.
    """
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/nodes/{node_id}/collapse"))


@mcp.tool()
def mindmap_apply_changes(mindmap_id: str, changes: list[dict]) -> str:
    """
    Apply a batch of node changes in one undoable step.

    Args:
        mindmap_id: Mind map to edit
        changes: Ordered list of changes, each one of:
            {"action": "create", "nodeId": "...", "parentId": "...", "text": "...", "notes": "...", "sources": [...]}
            {"action": "update", "nodeId": "...", "text": "...", "notes": "...", "sources": [...]}
            {"action": "delete", "nodeId": "..."}

    The batch is all-or-nothing: if any change fails, nothing is applied.
    Choose your own ids for created nodes so later changes can refer to them.
    """
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/changes", json={"changes": changes}))


# ============================================================================
# LAYOUT / HISTORY
# ============================================================================

@mcp.tool()
def mindmap_set_direction(mindmap_id: str, direction: str) -> str:
    """
    Change the layout direction.

    Args:
        direction: LR (left to right), RL, TB (top to bottom) or BT
    """
    return _dump(api_request("PUT", f"/mindmaps/{mindmap_id}/direction", json={"direction": direction}))


@mcp.tool()
def mindmap_undo(mindmap_id: str) -> str:
    """Undo the last change to a mind map."""
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/undo"))


@mcp.tool()
def mindmap_redo(mindmap_id: str) -> str:
    """Redo the last undone change to a mind map."""
    return _dump(api_request("POST", f"/mindmaps/{mindmap_id}/redo"))


@mcp.tool()
def mindmap_validate(mindmap_id: str) -> str:
    """
    Check a mind map for structural issues.

    Returns the issues found (errors and warnings) and a summary.
    """
    return _dump(api_request("GET", f"/mindmaps/{mindmap_id}/validate"))


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    mcp.run()
