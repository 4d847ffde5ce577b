"""
Mind-map engine - one instance per open document.

This module implements:
- Ownership of the current immutable state (nodes, edges, root, direction, selection)
- Committed mutations delegated to MutationEngine
- Linear undo/redo via HistoryManager snapshots
- The label edit gesture (no layout while editing)
- Change listeners and the fire-and-forget save collaborator

The engine holds no lock; callers serialize calls against one instance.
"""

import asyncio
import inspect
import logging
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from .codec import decode, encode_state, new_document
from .drag import resolve_drop
from .errors import EditStateError, RootViolation
from .history import DEFAULT_CAPACITY, HistoryManager
from .models import (
    DEFAULT_NODE_LABEL,
    Direction,
    DropPosition,
    MindMapNode,
    MindMapState,
    NodeChange,
    PersistedMindMap,
)
from .mutations import MutationEngine
from .validation import ValidationIssue, validate_mindmap

logger = logging.getLogger(__name__)

SaveCallback = Callable[[PersistedMindMap], Union[None, Awaitable[None]]]
ChangeCallback = Callable[[MindMapState], None]


class EditState(str, Enum):
    """Label edit gesture states."""
    IDLE = "idle"
    EDITING = "editing"


class MindMapEngine:
    """
    Owns one mind map's state and history.

    Every committed mutation replaces the state, records a history snapshot,
    notifies listeners and hands the encoded tree to the save collaborator.
    Undo/redo restore snapshots without recording new ones.
    """

    def __init__(
        self,
        document: Optional[Union[PersistedMindMap, dict]] = None,
        save: Optional[SaveCallback] = None,
        mutations: Optional[MutationEngine] = None,
        history_size: int = DEFAULT_CAPACITY,
    ):
        self.mutations = mutations or MutationEngine()
        self._save = save
        self._history: HistoryManager[MindMapState] = HistoryManager(history_size)
        self._on_change_callbacks: list[ChangeCallback] = []
        self._pending_saves: set[asyncio.Task] = set()

        self._edit_state = EditState.IDLE
        self._edit_node_id: Optional[str] = None
        self._edit_original_label: Optional[str] = None

        decoded = decode(document if document is not None else new_document())
        self._state = self.mutations.initialize(decoded.nodes, decoded.root_id, decoded.direction)
        self._history.reset(self._state)

    # --- Properties ---

    @property
    def state(self) -> MindMapState:
        return self._state

    @property
    def nodes(self) -> tuple[MindMapNode, ...]:
        return self._state.nodes

    @property
    def root_id(self) -> str:
        return self._state.root_id

    @property
    def direction(self) -> Direction:
        return self._state.direction

    @property
    def selected_id(self) -> Optional[str]:
        return self._state.selected_id

    @property
    def history(self) -> HistoryManager[MindMapState]:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def edit_state(self) -> EditState:
        return self._edit_state

    @property
    def editing_node_id(self) -> Optional[str]:
        return self._edit_node_id

    def get_node(self, node_id: str) -> Optional[MindMapNode]:
        return self._state.get_node(node_id)

    # --- Change Callbacks ---

    def on_change(self, callback: ChangeCallback):
        """Register a callback receiving every new state."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback(self._state)

    # --- Persistence ---

    def to_persisted(self) -> PersistedMindMap:
        return encode_state(self._state)

    def _persist(self):
        """Hand the current tree to the save collaborator without waiting."""
        if self._save is None:
            return
        try:
            result = self._save(self.to_persisted())
        except Exception:
            logger.exception("Failed to save mind map")
            return
        if inspect.isawaitable(result):
            self._schedule(result)

    def _schedule(self, awaitable: Awaitable[None]):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to hand the save to: give it one on a worker thread
            threading.Thread(
                target=asyncio.run, args=(_await_save(awaitable),), name="mindtree-save", daemon=True
            ).start()
            return
        task = loop.create_task(_await_save(awaitable))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    # --- Commit plumbing ---

    def _commit(self, state: MindMapState, snapshot: bool = True) -> MindMapState:
        self._state = state
        if snapshot:
            self._history.save_snapshot(state)
        self._notify_change()
        self._persist()
        return state

    def _settle_edit(self):
        """Commit a pending label edit before another mutation runs."""
        if self._edit_state == EditState.EDITING:
            self.commit_label_edit()

    # --- Structure ---

    def add_child(self, parent_id: str, label: str = DEFAULT_NODE_LABEL) -> str:
        self._settle_edit()
        state, new_id = self.mutations.add_child(self._state, parent_id, label)
        self._commit(state)
        return new_id

    def add_sibling(self, sibling_id: str, label: str = DEFAULT_NODE_LABEL) -> str:
        self._settle_edit()
        state, new_id = self.mutations.add_sibling(self._state, sibling_id, label)
        self._commit(state)
        return new_id

    def delete_node(self, node_id: str) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.delete_subtree(self._state, node_id))

    def move_node(self, node_id: str, new_parent_id: str, insert_index: Optional[int] = None) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.move_node(self._state, node_id, new_parent_id, insert_index))

    def drop_node(self, node_id: str, target_id: str, position: DropPosition) -> bool:
        """
        Apply a classified drop. Returns False when the drop is a no-op.

        Raises:
            CycleError: if the drop would place the node under itself
            RootViolation: if the dragged node is the root
        """
        if node_id == self._state.root_id:
            raise RootViolation("move", node_id)
        intent = resolve_drop(self._state, node_id, target_id, DropPosition(position))
        if intent is None:
            return False
        self.move_node(intent.node_id, intent.new_parent_id, intent.insert_index)
        return True

    def toggle_collapse(self, node_id: str) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.toggle_collapse(self._state, node_id))

    # --- Content ---

    def update_label(self, node_id: str, label: str) -> MindMapState:
        """Replace a label outside an edit gesture (lays out immediately)."""
        self._settle_edit()
        return self._commit(self.mutations.update_label(self._state, node_id, label))

    def update_notes(self, node_id: str, notes: Optional[str]) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.update_notes(self._state, node_id, notes))

    def update_sources(self, node_id: str, sources: list[dict[str, Any]]) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.update_sources(self._state, node_id, sources))

    def update_custom_style(self, node_id: str, custom_style: Optional[dict[str, Any]]) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.update_custom_style(self._state, node_id, custom_style))

    def clear_custom_style(self, node_id: str) -> MindMapState:
        return self.update_custom_style(node_id, None)

    def update_chat_id(self, node_id: str, chat_id: Optional[str]) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.update_chat_id(self._state, node_id, chat_id))

    def update_node(
        self,
        node_id: str,
        label: Optional[str] = None,
        notes: Optional[str] = None,
        sources: Optional[list[dict[str, Any]]] = None,
        chat_id: Optional[str] = None,
        custom_style: Optional[dict[str, Any]] = None,
        clear_custom_style: bool = False,
    ) -> MindMapState:
        """Patch several fields as one undoable action (None leaves a field alone)."""
        self._settle_edit()
        m = self.mutations
        state = self._state
        m.require_node(state, node_id)

        if label is not None:
            state = m.update_label(state, node_id, label, relayout=False)
        if notes is not None:
            state = m.update_notes(state, node_id, notes)
        if sources is not None:
            state = m.update_sources(state, node_id, sources)
        if chat_id is not None:
            state = m.update_chat_id(state, node_id, chat_id)
        if clear_custom_style:
            state = m.update_custom_style(state, node_id, None)
        elif custom_style is not None:
            state = m.update_custom_style(state, node_id, custom_style)

        if state is self._state:
            return self._state
        # Labels and payload badges both change the measured width
        return self._commit(m.reset_layout(state))

    def apply_changes(self, changes: Iterable[Union[NodeChange, dict]]) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.apply_changes(self._state, changes))

    # --- Label edit gesture ---

    def begin_label_edit(self, node_id: str):
        """Idle -> Editing. A pending edit on another node is committed first."""
        if self._edit_state == EditState.EDITING:
            if self._edit_node_id == node_id:
                return
            self.commit_label_edit()
        node = self.mutations.require_node(self._state, node_id)
        self._edit_state = EditState.EDITING
        self._edit_node_id = node_id
        self._edit_original_label = node.label

    def edit_label(self, text: str) -> MindMapState:
        """Keystroke update: patches the label, no layout and no snapshot."""
        if self._edit_state != EditState.EDITING:
            raise EditStateError("No label edit in progress")
        self._state = self.mutations.update_label(self._state, self._edit_node_id, text, relayout=False)
        self._notify_change()
        return self._state

    def commit_label_edit(self) -> MindMapState:
        """Editing -> Idle, laying out once with the final label."""
        if self._edit_state != EditState.EDITING:
            raise EditStateError("No label edit in progress")
        node_id, original = self._edit_node_id, self._edit_original_label
        self._end_edit()

        node = self._state.get_node(node_id)
        if node.label == original:
            return self._state
        state = self.mutations.update_label(self._state, node_id, node.label)
        return self._commit(state)

    def cancel_label_edit(self) -> MindMapState:
        """Editing -> Idle, restoring the original label without layout."""
        if self._edit_state != EditState.EDITING:
            raise EditStateError("No label edit in progress")
        node_id, original = self._edit_node_id, self._edit_original_label
        self._end_edit()

        self._state = self.mutations.update_label(self._state, node_id, original, relayout=False)
        self._notify_change()
        return self._state

    def _end_edit(self):
        self._edit_state = EditState.IDLE
        self._edit_node_id = None
        self._edit_original_label = None

    # --- Layout and selection ---

    def change_direction(self, direction: Direction) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.change_direction(self._state, direction))

    def reset_layout(self) -> MindMapState:
        self._settle_edit()
        return self._commit(self.mutations.reset_layout(self._state))

    def select(self, node_id: Optional[str]) -> MindMapState:
        """Change the selection; not an undoable action."""
        self._state = self.mutations.select(self._state, node_id)
        self._notify_change()
        return self._state

    # --- Undo/Redo ---

    def undo(self) -> Optional[MindMapState]:
        """Restore the previous snapshot; None at the oldest one."""
        if self._edit_state == EditState.EDITING:
            self.cancel_label_edit()
        snapshot = self._history.undo()
        if snapshot is None:
            return None
        return self._commit(snapshot, snapshot=False)

    def redo(self) -> Optional[MindMapState]:
        """Re-apply the next snapshot; None at the newest one."""
        if self._edit_state == EditState.EDITING:
            self.cancel_label_edit()
        snapshot = self._history.redo()
        if snapshot is None:
            return None
        return self._commit(snapshot, snapshot=False)

    # --- Inspection ---

    def validate(self) -> list[ValidationIssue]:
        return validate_mindmap(self._state)

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            **self._state.to_json_dict(),
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "edit_state": self._edit_state.value,
            "editing_node_id": self._edit_node_id,
        }

    def dispose(self):
        """Detach listeners; in-flight saves are left to finish."""
        self._on_change_callbacks.clear()
        self._save = None


async def _await_save(awaitable: Awaitable[None]):
    try:
        await awaitable
    except Exception:
        logger.exception("Failed to save mind map")
