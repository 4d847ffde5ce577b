import pytest

from mindtree.codec import assign_depths, decode, encode, encode_state, generate_edges, new_document
from mindtree.errors import NotFound, TreeIntegrityError
from mindtree.models import Direction, MindMapNode, PersistedMindMap


def test_decode_keeps_declaration_order(sample_document):
    decoded = decode(sample_document)

    assert [n.id for n in decoded.nodes] == ["root", "a", "a1", "a2", "b", "c"]
    assert decoded.root_id == "root"
    assert decoded.direction == Direction.LR


def test_decode_assigns_tree_fields(sample_document):
    nodes = {n.id: n for n in decode(sample_document).nodes}

    assert nodes["root"].parent_id is None
    assert nodes["root"].depth == 0
    assert nodes["a"].parent_id == "root"
    assert nodes["a1"].parent_id == "a"
    assert nodes["a1"].depth == 2
    assert nodes["a"].has_children is True
    assert nodes["b"].has_children is False
    assert nodes["c"].notes == "remember this"


def test_round_trip_reproduces_the_document(sample_document):
    decoded = decode(sample_document)
    encoded = encode(decoded.nodes, decoded.root_id, decoded.direction)

    assert encoded.to_json_dict() == sample_document


def test_round_trip_preserves_payload_fields():
    document = {
        "root": {
            "id": "root",
            "text": "Root",
            "layout": "graph-bottom",
            "chatId": "chat-1",
            "children": [
                {
                    "id": "x",
                    "text": "X",
                    "collapsed": True,
                    "customStyle": {"backgroundClass": "bg-red", "foregroundClass": "fg-white"},
                    "sources": [{"id": "src-1", "name": "Paper", "directory": "/docs", "type": "pdf"}],
                    "children": [{"id": "y", "text": "Y"}],
                }
            ],
        }
    }

    decoded = decode(document)
    assert decoded.direction == Direction.TB

    assert encode(decoded.nodes, decoded.root_id, decoded.direction).to_json_dict() == document


def test_legacy_keys_are_converted():
    document = {
        "root": {
            "id": "root",
            "text": "Root",
            "children": [
                {"id": "x", "text": "X", "isCollapsed": True, "customColors": {"backgroundClass": "bg-blue"}},
            ],
        }
    }

    x = decode(document).nodes[1]

    assert x.collapsed is True
    assert x.custom_style == {"backgroundClass": "bg-blue"}


def test_unknown_layout_tag_falls_back_to_left_to_right():
    decoded = decode({"root": {"id": "root", "text": "Root", "layout": "radial"}})
    assert decoded.direction == Direction.LR


def test_duplicate_ids_are_rejected():
    document = {
        "root": {
            "id": "root",
            "text": "Root",
            "children": [{"id": "dup", "text": "One"}, {"id": "dup", "text": "Two"}],
        }
    }

    with pytest.raises(TreeIntegrityError):
        decode(document)


def test_decode_accepts_a_model_instance(sample_document):
    document = PersistedMindMap.from_json_dict(sample_document)
    assert len(decode(document).nodes) == 6


def test_encode_requires_the_root():
    with pytest.raises(NotFound):
        encode([MindMapNode(id="a", label="A")], "missing", Direction.LR)


def test_encode_follows_sequence_order_for_siblings(state):
    nodes = list(state.nodes)
    # Move "c" ahead of "a" in the sequence
    c = nodes.pop(5)
    nodes.insert(1, c)

    tree = encode(nodes, "root", Direction.LR).to_json_dict()

    assert [child["id"] for child in tree["root"]["children"]] == ["c", "a", "b"]


def test_encode_state_omits_layout_only_fields(state):
    tree = encode_state(state).to_json_dict()

    assert "x" not in tree["root"]
    assert "width" not in tree["root"]
    assert tree["root"]["layout"] == "graph-right"


def test_generate_edges_uses_direction_handles(state):
    edges = generate_edges(state.nodes, Direction.TB)

    assert len(edges) == len(state.nodes) - 1
    edge = next(e for e in edges if e.target == "a1")
    assert edge.id == "edge-a-a1"
    assert edge.source == "a"
    assert edge.source_handle == "bottom-source"
    assert edge.target_handle == "top"


def test_generate_edges_left_to_right_handles(state):
    edge = generate_edges(state.nodes, Direction.LR)[0]
    assert edge.source_handle == "right-source"
    assert edge.target_handle == "left"


def test_assign_depths_recomputes_derived_fields():
    nodes = [
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="r", depth=7),
        MindMapNode(id="b", label="B", parent_id="a", has_children=True),
    ]

    result = {n.id: n for n in assign_depths(nodes, "r")}

    assert result["a"].depth == 1
    assert result["b"].depth == 2
    assert result["r"].has_children is True
    assert result["b"].has_children is False


def test_new_document_holds_only_a_root():
    document = new_document("Topic", Direction.BT)

    assert document.root.text == "Topic"
    assert document.root.layout == "graph-top"
    assert document.root.children is None
