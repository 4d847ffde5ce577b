import importlib.util
import json
from pathlib import Path

import httpx
import pytest

SERVER_PATH = Path(__file__).resolve().parents[2] / "mcp-server" / "server.py"


@pytest.fixture(scope="module")
def server():
    spec = importlib.util.spec_from_file_location("mindtree_mcp_server", SERVER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def calls(server, monkeypatch):
    recorded = []

    def fake_request(method, endpoint, **kwargs):
        recorded.append((method, endpoint, kwargs.get("json")))
        return {"success": True}

    monkeypatch.setattr(server, "api_request", fake_request)
    return recorded


def test_render_outline(server):
    tree = {
        "id": "root",
        "text": "Root",
        "children": [
            {"id": "a", "text": "A", "notes": "x", "children": [{"id": "a1", "text": "A1"}]},
            {"id": "b", "text": "B", "collapsed": True, "sources": [{"id": "s"}]},
        ],
    }

    assert server.render_outline(tree) == [
        "- Root [root]",
        "  - A [a] (notes)",
        "    - A1 [a1]",
        "  - B [b] (1 sources, collapsed)",
    ]


def test_update_node_sends_only_given_fields(server, calls):
    result = server.mindmap_update_node("m1", "n1", label="New")

    assert json.loads(result) == {"success": True}
    assert calls == [("PATCH", "/mindmaps/m1/nodes/n1", {"label": "New"})]


def test_tools_target_the_mindmap_routes(server, calls):
    server.mindmap_add_child("m1", "root", "Idea")
    server.mindmap_move_node("m1", "n1", "n2")
    server.mindmap_apply_changes("m1", [{"action": "delete", "nodeId": "n1"}])
    server.mindmap_set_direction("m1", "TB")

    assert [(method, endpoint) for method, endpoint, _ in calls] == [
        ("POST", "/mindmaps/m1/nodes/root/children"),
        ("POST", "/mindmaps/m1/nodes/n1/move"),
        ("POST", "/mindmaps/m1/changes"),
        ("PUT", "/mindmaps/m1/direction"),
    ]
    assert calls[2][2] == {"changes": [{"action": "delete", "nodeId": "n1"}]}


def test_api_errors_carry_the_backend_message(server, monkeypatch):
    def handler(request):
        return httpx.Response(409, json={"error": "cycle", "message": "would create a cycle", "detail": None})

    real_client = httpx.Client
    monkeypatch.setattr(server.httpx, "Client", lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw))

    with pytest.raises(server.APIError) as excinfo:
        server.api_request("POST", "/mindmaps/m1/nodes/a/move", json={"new_parent_id": "b"})

    assert excinfo.value.status_code == 409
    assert excinfo.value.error == "cycle"
    assert "would create a cycle" in str(excinfo.value)
