"""
Core data models for mind maps.

These models define the canonical schema used by the engine:
- Nodes carrying the label, tree links and opaque payload fields
- Edges derived from parent links, with connector side metadata
- The persisted nested tree that gets saved to/loaded from JSON

Field Naming Convention:
- Working models use snake_case (`parent_id`, `custom_style`)
- Persisted JSON uses the document's camelCase keys (`chatId`, `customStyle`)
- Legacy keys (`isCollapsed`, `customColors`) are accepted on input and converted
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, model_validator
import uuid


DEFAULT_ROOT_LABEL = "Central Idea"
DEFAULT_NODE_LABEL = "New Idea"


class Direction(str, Enum):
    """Layout directions: depth grows along the named axis."""
    LR = "LR"   # left to right
    RL = "RL"   # right to left
    TB = "TB"   # top to bottom
    BT = "BT"   # bottom to top

    @property
    def is_vertical(self) -> bool:
        return self in (Direction.TB, Direction.BT)


class LayoutTag(str, Enum):
    """Direction tags used in persisted documents."""
    GRAPH_RIGHT = "graph-right"
    GRAPH_LEFT = "graph-left"
    GRAPH_BOTTOM = "graph-bottom"
    GRAPH_TOP = "graph-top"


DIRECTION_TO_TAG: dict[Direction, LayoutTag] = {
    Direction.LR: LayoutTag.GRAPH_RIGHT,
    Direction.RL: LayoutTag.GRAPH_LEFT,
    Direction.TB: LayoutTag.GRAPH_BOTTOM,
    Direction.BT: LayoutTag.GRAPH_TOP,
}
TAG_TO_DIRECTION: dict[str, Direction] = {tag.value: d for d, tag in DIRECTION_TO_TAG.items()}


class Side(str, Enum):
    """Node sides an edge can attach to."""
    TOP = "top"
    RIGHT = "right"
    BOTTOM = "bottom"
    LEFT = "left"


class DropPosition(str, Enum):
    """Where a dragged node lands relative to the target."""
    ABOVE = "above"   # sibling, before the target
    BELOW = "below"   # sibling, after the target
    OVER = "over"     # child of the target


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"node-{uuid.uuid4().hex[:12]}"


def generate_source_id() -> str:
    """Generate an ID for a source citation that arrived without one."""
    return f"src-{uuid.uuid4().hex[:9]}"


class MindMapNode(BaseModel):
    """A node in the working (non-persisted) representation."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_node_id)
    label: str = DEFAULT_NODE_LABEL
    parent_id: Optional[str] = None  # None only for the root
    depth: int = 0
    has_children: bool = False
    collapsed: bool = False
    custom_style: Optional[dict[str, Any]] = None
    # Opaque payload, carried but never interpreted
    chat_id: Optional[str] = None
    notes: Optional[str] = None
    sources: list[dict[str, Any]] = Field(default_factory=list)
    # Geometry (x/y is the node center)
    x: float = 0
    y: float = 0
    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def center(self) -> tuple[float, float]:
        """Get the center point of the node."""
        return (self.x, self.y)

    @property
    def has_icons(self) -> bool:
        """True when the node shows payload badges next to its label."""
        return bool(self.chat_id or (self.notes and self.notes.strip()) or self.sources)


class Edge(BaseModel):
    """
    A parent -> child connector.

    Edges are never authoritative: they are regenerated from `parent_id`
    whenever the topology or the layout direction changes.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source: str  # Parent node ID
    target: str  # Child node ID
    source_side: Side
    target_side: Side

    @property
    def source_handle(self) -> str:
        return f"{self.source_side.value}-source"

    @property
    def target_handle(self) -> str:
        return self.target_side.value

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "source_handle": self.source_handle,
            "target_handle": self.target_handle,
        }


class MindMapState(BaseModel):
    """
    One immutable state of a mind map.

    Node order is significant: siblings are laid out in sequence order.
    History snapshots are states.
    """
    model_config = ConfigDict(frozen=True)

    nodes: tuple[MindMapNode, ...]
    edges: tuple[Edge, ...] = ()
    root_id: str
    direction: Direction = Direction.LR
    selected_id: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[MindMapNode]:
        """Get a node by ID (O(n))."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def index_of(self, node_id: str) -> int:
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                return i
        return -1

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            "root_id": self.root_id,
            "direction": self.direction.value,
            "selected_id": self.selected_id,
            "nodes": [n.model_dump() for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
        }


# --- Persisted format ---

def _convert_legacy_keys(data: Any) -> Any:
    if isinstance(data, dict):
        data = dict(data)
        if "isCollapsed" in data and "collapsed" not in data:
            data["collapsed"] = data.pop("isCollapsed")
        if "customColors" in data and "customStyle" not in data:
            data["customStyle"] = data.pop("customColors")
    return data


class PersistedTree(BaseModel):
    """One entry of the nested on-disk / over-the-wire tree."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    notes: Optional[str] = None
    sources: Optional[list[dict[str, Any]]] = None
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    collapsed: Optional[bool] = None
    custom_style: Optional[dict[str, Any]] = Field(default=None, alias="customStyle")
    children: Optional[list["PersistedTree"]] = None

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'isCollapsed'/'customColors' keys."""
        return _convert_legacy_keys(data)


class PersistedRoot(PersistedTree):
    """The root entry additionally carries the layout direction tag."""
    layout: str = LayoutTag.GRAPH_RIGHT.value


class PersistedMindMap(BaseModel):
    """
    The complete persisted mind map.
    This is what gets saved to/loaded from JSON files.
    """
    root: PersistedRoot

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with the document's key names."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "PersistedMindMap":
        """Create a document from a JSON dict (handles legacy keys)."""
        return cls.model_validate(data)


# --- API Request Models ---

class CreateMindMapRequest(BaseModel):
    """Request to create a new mind map document."""
    title: str = "Untitled Mind Map"
    root_label: str = DEFAULT_ROOT_LABEL
    direction: Direction = Direction.LR


class AddNodeRequest(BaseModel):
    """Request to add a child or sibling node."""
    label: str = DEFAULT_NODE_LABEL


class UpdateNodeRequest(BaseModel):
    """Request to patch node fields (partial update)."""
    label: Optional[str] = None
    notes: Optional[str] = None
    sources: Optional[list[dict[str, Any]]] = None
    chat_id: Optional[str] = None
    custom_style: Optional[dict[str, Any]] = None
    clear_custom_style: bool = False


class MoveNodeRequest(BaseModel):
    """Request to reparent a node."""
    new_parent_id: str
    insert_index: Optional[int] = None


class DropNodeRequest(BaseModel):
    """Request to apply a classified drag drop."""
    target_id: str
    position: DropPosition


class EditLabelRequest(BaseModel):
    """Keystroke-level label update during an edit gesture."""
    text: str


class DirectionRequest(BaseModel):
    """Request to change the layout direction."""
    direction: Direction


class SelectRequest(BaseModel):
    """Request to change the selected node."""
    node_id: Optional[str] = None


class ChangeAction(str, Enum):
    """Actions in an agent change batch."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class NodeChange(BaseModel):
    """One change produced by an AI agent."""
    model_config = ConfigDict(populate_by_name=True)

    action: ChangeAction
    node_id: str = Field(alias="nodeId")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    text: Optional[str] = None
    notes: Optional[str] = None
    sources: Optional[list[dict[str, Any]]] = None


class ApplyChangesRequest(BaseModel):
    """A batch of agent changes."""
    changes: list[NodeChange]
