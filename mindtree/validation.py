"""
Mind-map validation - Check node sets for tree invariant violations.

Provides validation that can be used by the engine, the backend and the
tests to ensure tree integrity.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .errors import TreeIntegrityError

if TYPE_CHECKING:
    from .models import MindMapState


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invariant broken, state must not be committed
    WARNING = "warning"  # Suspicious but structurally valid
    INFO = "info"        # Informational


@dataclass
class ValidationIssue:
    """A single validation issue found in a mind map."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_mindmap(state: "MindMapState") -> list[ValidationIssue]:
    """
    Validate a mind-map state and return a list of issues.

    Checks for:
    - Duplicate ids - ERROR
    - Zero or several parentless nodes, or a root id that is not the root - ERROR
    - Parent references to missing nodes - ERROR
    - Nodes that are their own ancestor - ERROR
    - Depth not equal to parent depth + 1 - ERROR
    - Edges that do not match the parent links - ERROR
    - Empty labels - WARNING

    Args:
        state: The state to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    nodes = state.nodes

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Mind map has no nodes"
        ))
        return issues

    # Duplicate ids
    by_id = {}
    for node in nodes:
        if node.id in by_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        by_id[node.id] = node

    # Exactly one root, and it is the declared one
    roots = [n for n in nodes if n.parent_id is None]
    if len(roots) != 1:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Expected exactly one root, found {len(roots)}"
        ))
    root = by_id.get(state.root_id)
    if root is None:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Root node not found: {state.root_id}",
            node_id=state.root_id
        ))
    elif root.parent_id is not None:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Root node has a parent",
            node_id=root.id
        ))

    # Dangling parent references
    for node in nodes:
        if node.parent_id is not None and node.parent_id not in by_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Parent not found: {node.parent_id}",
                node_id=node.id
            ))

    # Cycles: walk up from every node
    cyclic: set[str] = set()
    for node in nodes:
        seen = {node.id}
        current = node
        while current.parent_id is not None and current.parent_id in by_id:
            if current.parent_id in seen:
                cyclic.add(node.id)
                break
            seen.add(current.parent_id)
            current = by_id[current.parent_id]
    for node_id in sorted(cyclic):
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Node is its own ancestor",
            node_id=node_id
        ))

    # Depth consistency (skip nodes already reported as cyclic)
    for node in nodes:
        if node.id in cyclic:
            continue
        if node.parent_id is None:
            expected = 0
        elif node.parent_id in by_id:
            expected = by_id[node.parent_id].depth + 1
        else:
            continue
        if node.depth != expected:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Depth {node.depth} should be {expected}",
                node_id=node.id
            ))

    # Edges must mirror parent links one-to-one
    expected_pairs = {(n.parent_id, n.id) for n in nodes if n.parent_id is not None}
    actual_pairs = set()
    for edge in state.edges:
        pair = (edge.source, edge.target)
        actual_pairs.add(pair)
        if pair not in expected_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge does not match a parent link: {edge.source} -> {edge.target}",
                edge_id=edge.id
            ))
    for parent_id, child_id in sorted(expected_pairs - actual_pairs):
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Missing edge {parent_id} -> {child_id}",
            node_id=child_id
        ))

    for node in nodes:
        if not node.label.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Node has an empty label",
                node_id=node.id
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }


def ensure_valid(state: "MindMapState") -> None:
    """Raise TreeIntegrityError on the first ERROR-level issue."""
    for issue in validate_mindmap(state):
        if issue.severity == IssueSeverity.ERROR:
            raise TreeIntegrityError(issue.message)
