"""Layout and drag tuning parameters."""

from pydantic import BaseModel, ConfigDict, Field


class LayoutConfig(BaseModel):
    """Geometry used by the layout engine (all values in pixels)."""

    model_config = ConfigDict(frozen=True)

    level_spacing: float = Field(default=250, description="Minimum along-axis distance between levels")
    parent_gap: float = Field(default=60, description="Gap after a wide parent label")
    horizontal_node_spacing: float = Field(default=120, description="Cross-axis slot size for LR/RL")
    vertical_node_spacing: float = Field(default=220, description="Cross-axis slot size for TB/BT")
    default_width: float = Field(default=120, description="Width used when a label cannot be measured")
    default_height: float = 40
    origin_x: float = 600
    origin_y: float = 400


class DragConfig(BaseModel):
    """Thresholds for interactive drag classification."""

    model_config = ConfigDict(frozen=True)

    drop_threshold: float = Field(default=30, description="Cross-axis offset separating sibling from child drops")
    min_drag_distance: float = Field(default=5, description="Displacement before a press becomes a drag")
    update_interval: float = Field(default=1 / 60, description="Seconds between classifier updates")


DEFAULT_LAYOUT = LayoutConfig()
DEFAULT_DRAG = DragConfig()
