"""
mindtree core - Tree model, codec, layout, mutations, history and drag logic.

This package is shared by the backend service and the tests, so every tree
rule lives in exactly one place.
"""

from .models import (
    # Enums
    Direction,
    LayoutTag,
    Side,
    DropPosition,
    ChangeAction,
    # Core models
    MindMapNode,
    Edge,
    MindMapState,
    PersistedTree,
    PersistedRoot,
    PersistedMindMap,
    NodeChange,
    generate_node_id,
)

from .errors import (
    MindMapError,
    NotFound,
    CycleError,
    RootViolation,
    TreeIntegrityError,
    EditStateError,
)
from .config import LayoutConfig, DragConfig
from .codec import decode, encode, encode_state, generate_edges, new_document
from .layout import LayoutEngine, tree_layout
from .mutations import MutationEngine, descendant_ids, would_create_cycle
from .history import HistoryManager
from .drag import DragClassifier, DropIntent, DropTarget, classify_drop_position, find_nearest_node, resolve_drop
from .validation import validate_mindmap, ValidationIssue, IssueSeverity
from .engine import MindMapEngine, EditState

__all__ = [
    # Enums
    "Direction",
    "LayoutTag",
    "Side",
    "DropPosition",
    "ChangeAction",
    # Models
    "MindMapNode",
    "Edge",
    "MindMapState",
    "PersistedTree",
    "PersistedRoot",
    "PersistedMindMap",
    "NodeChange",
    "generate_node_id",
    # Errors
    "MindMapError",
    "NotFound",
    "CycleError",
    "RootViolation",
    "TreeIntegrityError",
    "EditStateError",
    # Config
    "LayoutConfig",
    "DragConfig",
    # Codec
    "decode",
    "encode",
    "encode_state",
    "generate_edges",
    "new_document",
    # Layout
    "LayoutEngine",
    "tree_layout",
    # Mutations
    "MutationEngine",
    "descendant_ids",
    "would_create_cycle",
    # History
    "HistoryManager",
    # Drag
    "DragClassifier",
    "DropIntent",
    "DropTarget",
    "classify_drop_position",
    "find_nearest_node",
    "resolve_drop",
    # Validation
    "validate_mindmap",
    "ValidationIssue",
    "IssueSeverity",
    # Engine
    "MindMapEngine",
    "EditState",
]
