import pytest

from mindtree.codec import generate_edges
from mindtree.errors import TreeIntegrityError
from mindtree.models import Direction, MindMapNode, MindMapState
from mindtree.validation import IssueSeverity, ensure_valid, validate_mindmap, validation_summary


def make_state(nodes, root_id="r", edges=None):
    if edges is None:
        edges = generate_edges(nodes, Direction.LR)
    return MindMapState(nodes=tuple(nodes), edges=tuple(edges), root_id=root_id)


def errors(state):
    return [i.message for i in validate_mindmap(state) if i.severity == IssueSeverity.ERROR]


def test_valid_state_has_no_issues(state):
    assert validate_mindmap(state) == []
    ensure_valid(state)


def test_empty_state():
    assert errors(make_state([], root_id="r")) == ["Mind map has no nodes"]


def test_two_roots():
    state = make_state([MindMapNode(id="r", label="R"), MindMapNode(id="s", label="S")])
    assert "Expected exactly one root, found 2" in errors(state)


def test_root_id_must_exist():
    state = make_state([MindMapNode(id="r", label="R")], root_id="x")
    assert "Root node not found: x" in errors(state)


def test_dangling_parent():
    state = make_state([
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="ghost", depth=1),
    ])
    assert "Parent not found: ghost" in errors(state)


def test_cycle_is_reported():
    state = make_state([
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="b", depth=1),
        MindMapNode(id="b", label="B", parent_id="a", depth=1),
    ])
    assert errors(state).count("Node is its own ancestor") == 2


def test_duplicate_ids():
    state = make_state([
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="r", depth=1),
        MindMapNode(id="a", label="A again", parent_id="r", depth=1),
    ])
    assert "Duplicate node id: a" in errors(state)


def test_wrong_depth():
    state = make_state([
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="r", depth=3),
    ])
    assert "Depth 3 should be 1" in errors(state)


def test_edges_must_mirror_parent_links():
    nodes = [
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="r", depth=1),
        MindMapNode(id="b", label="B", parent_id="r", depth=1),
    ]
    edges = generate_edges(nodes, Direction.LR)
    bogus = edges[0].model_copy(update={"id": "edge-a-b", "source": "a", "target": "b"})
    state = make_state(nodes, edges=(edges[0], bogus))

    found = errors(state)
    assert "Edge does not match a parent link: a -> b" in found
    assert "Missing edge r -> b" in found


def test_empty_label_is_a_warning():
    state = make_state([MindMapNode(id="r", label="  ")])
    issues = validate_mindmap(state)

    assert [i.severity for i in issues] == [IssueSeverity.WARNING]
    assert validation_summary(issues) == {"total": 1, "errors": 0, "warnings": 1, "info": 0, "valid": True}
    assert issues[0].to_dict() == {"type": "warning", "message": "Node has an empty label", "node_id": "r"}


def test_ensure_valid_raises_on_errors():
    state = make_state([MindMapNode(id="r", label="R"), MindMapNode(id="s", label="S")])
    with pytest.raises(TreeIntegrityError):
        ensure_valid(state)
