import pytest

from mindtree.errors import CycleError, NotFound, RootViolation, TreeIntegrityError
from mindtree.models import Direction, MindMapNode, Side
from mindtree.mutations import descendant_ids, normalize_source, would_create_cycle
from mindtree.validation import IssueSeverity, validate_mindmap


def ids(state):
    return [n.id for n in state.nodes]


def children_of(state, parent_id):
    return [n.id for n in state.nodes if n.parent_id == parent_id]


def assert_tree(state):
    errors = [i for i in validate_mindmap(state) if i.severity == IssueSeverity.ERROR]
    assert errors == []


# --- add ---

def test_add_child_appends_and_selects(mutations, state):
    new_state, new_id = mutations.add_child(state, "b", "Child of B")

    node = new_state.get_node(new_id)
    assert node.parent_id == "b"
    assert node.depth == 2
    assert node.label == "Child of B"
    assert new_state.get_node("b").has_children is True
    assert new_state.selected_id == new_id
    assert any(e.source == "b" and e.target == new_id for e in new_state.edges)
    assert_tree(new_state)


def test_add_child_to_missing_parent(mutations, state):
    with pytest.raises(NotFound):
        mutations.add_child(state, "nope")


def test_add_sibling_inserts_after_the_sibling(mutations, flat_state):
    new_state, new_id = mutations.add_sibling(flat_state, "a")

    assert children_of(new_state, "root") == ["a", new_id, "b", "c"]
    assert new_state.get_node(new_id).parent_id == "root"

    a, n, b = (new_state.get_node(i) for i in ("a", new_id, "b"))
    assert a.y < n.y < b.y
    assert n.x == a.x


def test_add_sibling_to_root_is_rejected(mutations, state):
    with pytest.raises(RootViolation):
        mutations.add_sibling(state, "root")


# --- delete ---

def test_delete_removes_exactly_the_subtree(mutations, state):
    new_state = mutations.delete_subtree(state, "a")

    assert ids(new_state) == ["root", "b", "c"]
    assert all(e.source != "a" and e.target != "a" for e in new_state.edges)
    assert_tree(new_state)


def test_delete_root_is_rejected(mutations, state):
    with pytest.raises(RootViolation):
        mutations.delete_subtree(state, "root")


def test_delete_missing_node(mutations, state):
    with pytest.raises(NotFound):
        mutations.delete_subtree(state, "ghost")


def test_delete_clears_a_deleted_selection(mutations, state):
    selected = mutations.select(state, "a1")
    assert mutations.delete_subtree(selected, "a").selected_id is None
    assert mutations.delete_subtree(mutations.select(state, "b"), "a").selected_id == "b"


# --- move ---

def test_move_reparents_the_whole_subtree(mutations, state):
    new_state = mutations.move_node(state, "a", "b")

    assert new_state.get_node("a").parent_id == "b"
    assert new_state.get_node("a").depth == 2
    assert new_state.get_node("a1").depth == 3
    assert new_state.get_node("b").has_children is True
    assert_tree(new_state)


@pytest.mark.parametrize("target", ["a", "a1", "a2"])
def test_move_under_self_or_descendant_is_a_cycle(mutations, state, target):
    with pytest.raises(CycleError):
        mutations.move_node(state, "a", target)


def test_move_root_is_rejected(mutations, state):
    with pytest.raises(RootViolation):
        mutations.move_node(state, "root", "b")


def test_move_to_missing_parent(mutations, state):
    with pytest.raises(NotFound):
        mutations.move_node(state, "b", "ghost")


def test_move_with_insert_index_reorders_siblings(mutations, flat_state):
    # Sequence without "c" is [root, a, b]; index 1 puts it before "a"
    new_state = mutations.move_node(flat_state, "c", "root", insert_index=1)

    assert children_of(new_state, "root") == ["c", "a", "b"]


def test_move_insert_index_is_clamped(mutations, flat_state):
    new_state = mutations.move_node(flat_state, "a", "root", insert_index=99)
    assert ids(new_state)[-1] == "a"


def test_failed_move_leaves_state_untouched(mutations, state):
    before = state.model_copy()
    with pytest.raises(CycleError):
        mutations.move_node(state, "a", "a2")
    assert state == before


def test_would_create_cycle_matches_descendants(state):
    assert descendant_ids(state.nodes, "a") == {"a1", "a2"}
    for candidate in ("root", "a", "a1", "a2", "b", "c"):
        expected = candidate == "a" or candidate in {"a1", "a2"}
        assert would_create_cycle(state.nodes, "a", candidate) is expected


# --- collapse / content ---

def test_toggle_collapse_keeps_hidden_positions(mutations, state):
    a1_before = state.get_node("a1")
    collapsed = mutations.toggle_collapse(state, "a")

    assert collapsed.get_node("a").collapsed is True
    a1 = collapsed.get_node("a1")
    assert (a1.x, a1.y) == (a1_before.x, a1_before.y)
    assert collapsed.get_node("c").y != state.get_node("c").y

    expanded = mutations.toggle_collapse(collapsed, "a")
    assert expanded.get_node("a").collapsed is False
    assert expanded.get_node("c").y == state.get_node("c").y


def test_update_label_without_relayout_keeps_geometry(mutations, state):
    before = state.get_node("b")
    edited = mutations.update_label(state, "b", "Bee", relayout=False)

    after = edited.get_node("b")
    assert after.label == "Bee"
    assert (after.x, after.y, after.width) == (before.x, before.y, before.width)


def test_payload_patches(mutations, state):
    sources = [{"id": "s1", "name": "Doc", "directory": "/", "type": "pdf"}]
    patched = mutations.update_notes(state, "b", "Some notes")
    patched = mutations.update_sources(patched, "b", sources)
    patched = mutations.update_chat_id(patched, "b", "chat-9")
    patched = mutations.update_custom_style(patched, "b", {"backgroundClass": "bg-green"})

    b = patched.get_node("b")
    assert b.notes == "Some notes"
    assert b.sources == sources
    assert b.chat_id == "chat-9"
    assert b.custom_style == {"backgroundClass": "bg-green"}
    assert mutations.update_custom_style(patched, "b", None).get_node("b").custom_style is None


def test_select_unknown_node(mutations, state):
    with pytest.raises(NotFound):
        mutations.select(state, "ghost")
    assert mutations.select(state, None).selected_id is None


# --- direction ---

def test_change_direction_preserves_structure(mutations, state):
    vertical = mutations.change_direction(state, Direction.TB)

    assert vertical.direction == Direction.TB
    assert [(n.id, n.parent_id) for n in vertical.nodes] == [(n.id, n.parent_id) for n in state.nodes]
    for edge in vertical.edges:
        assert edge.source_side == Side.BOTTOM
        assert edge.target_side == Side.TOP
        parent, child = vertical.get_node(edge.source), vertical.get_node(edge.target)
        assert child.y > parent.y

    first_level = [vertical.get_node(i) for i in ("a", "b", "c")]
    assert len({n.y for n in first_level}) == 1
    assert first_level[0].x < first_level[1].x < first_level[2].x


def test_reset_layout_is_idempotent(mutations, state):
    assert mutations.reset_layout(state) == state


# --- initialize ---

def test_initialize_rejects_two_roots(mutations):
    nodes = [MindMapNode(id="r", label="R"), MindMapNode(id="s", label="S")]
    with pytest.raises(TreeIntegrityError):
        mutations.initialize(nodes, "r", Direction.LR)


def test_initialize_rejects_a_cycle(mutations):
    nodes = [
        MindMapNode(id="r", label="R"),
        MindMapNode(id="a", label="A", parent_id="b"),
        MindMapNode(id="b", label="B", parent_id="a"),
    ]
    with pytest.raises(TreeIntegrityError):
        mutations.initialize(nodes, "r", Direction.LR)


# --- agent batches ---

def test_apply_changes_create_update_delete(mutations, state):
    new_state = mutations.apply_changes(state, [
        {"action": "create", "nodeId": "x", "parentId": "b", "text": "X", "sources": [{"title": "Web page"}]},
        {"action": "create", "nodeId": "y", "parentId": "x"},
        {"action": "update", "nodeId": "c", "text": "Sea", "notes": "updated"},
        {"action": "delete", "nodeId": "a"},
    ])

    assert ids(new_state) == ["root", "b", "c", "x", "y"]
    assert new_state.get_node("y").depth == 3
    assert new_state.get_node("y").label == "New Idea"
    assert new_state.get_node("c").label == "Sea"
    assert new_state.get_node("c").notes == "updated"
    source = new_state.get_node("x").sources[0]
    assert source["name"] == "Web page"
    assert source["id"].startswith("src-")
    assert_tree(new_state)


def test_apply_changes_is_all_or_nothing(mutations, state):
    before = state.model_copy()
    with pytest.raises(NotFound):
        mutations.apply_changes(state, [
            {"action": "create", "nodeId": "x", "parentId": "b", "text": "X"},
            {"action": "update", "nodeId": "ghost", "text": "?"},
        ])
    assert state == before
    assert state.get_node("x") is None


def test_apply_changes_rejects_duplicates_and_root_delete(mutations, state):
    with pytest.raises(TreeIntegrityError):
        mutations.apply_changes(state, [{"action": "create", "nodeId": "b", "parentId": "root"}])
    with pytest.raises(TreeIntegrityError):
        mutations.apply_changes(state, [{"action": "create", "nodeId": "z"}])
    with pytest.raises(RootViolation):
        mutations.apply_changes(state, [{"action": "delete", "nodeId": "root"}])


def test_normalize_source_fills_defaults():
    source = normalize_source({"title": "Article", "description": "notes"})

    assert source["name"] == "Article"
    assert source["directory"] == "notes"
    assert source["type"] == "reference"
    assert source["id"].startswith("src-")


def test_every_mutation_keeps_a_single_acyclic_tree(mutations, state):
    current, first = mutations.add_child(state, "a2")
    current, second = mutations.add_sibling(current, first)
    current = mutations.move_node(current, "b", first)
    current = mutations.toggle_collapse(current, "a")
    current = mutations.move_node(current, "c", "root", insert_index=1)
    current = mutations.delete_subtree(current, second)
    current = mutations.change_direction(current, Direction.RL)

    assert_tree(current)
    assert [n.id for n in current.nodes if n.parent_id is None] == ["root"]
