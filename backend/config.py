"""Service configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mindtree.history import DEFAULT_CAPACITY

DEFAULT_DATA_DIR = Path.home() / ".mindtree" / "mindmaps"
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173")


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    data_dir: Path = Field(..., description="Directory holding one JSON file per mind map")
    save_debounce_ms: int = Field(
        default=500,
        ge=0,
        description="Delay before a changed mind map is written; 0 writes immediately",
    )
    history_size: int = Field(default=DEFAULT_CAPACITY, ge=1, description="Undo snapshots kept per mind map")
    host: str = "127.0.0.1"
    port: int = 8765
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @field_validator("data_dir", mode="before")
    @classmethod
    def _normalize_data_dir(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("MINDTREE_DATA_DIR cannot be empty")
        return Path(value).expanduser().resolve()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return tuple(origin.strip() for origin in value.split(",") if origin.strip())
        return value


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    return AppConfig(
        data_dir=_read_env("MINDTREE_DATA_DIR", str(DEFAULT_DATA_DIR)),
        save_debounce_ms=_read_env("MINDTREE_SAVE_DEBOUNCE_MS", "500"),
        history_size=_read_env("MINDTREE_HISTORY_SIZE", str(DEFAULT_CAPACITY)),
        host=_read_env("MINDTREE_HOST", "127.0.0.1"),
        port=_read_env("MINDTREE_PORT", "8765"),
        cors_origins=_read_env("MINDTREE_CORS_ORIGINS", ",".join(DEFAULT_CORS_ORIGINS)),
    )


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = ["AppConfig", "get_config", "reload_config", "DEFAULT_DATA_DIR"]
