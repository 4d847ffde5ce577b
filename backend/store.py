"""
Mind Map Store - JSON file persistence, one file per mind map.

Each file is a persisted tree document (`{"root": {...}}`) with a few
metadata keys alongside it, so the file can be opened by anything that reads
the tree format.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from mindtree.errors import NotFound
from mindtree.models import PersistedMindMap

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class MindMapStore:
    """Reads and writes mind-map documents under a data directory."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def path_for(self, mindmap_id: str) -> Path:
        """File path for a mind map; rejects ids that could escape the data dir."""
        if not _ID_PATTERN.match(mindmap_id):
            raise ValueError(f"Invalid mind map id: {mindmap_id!r}")
        return self.data_dir / f"{mindmap_id}.json"

    def exists(self, mindmap_id: str) -> bool:
        return self.path_for(mindmap_id).exists()

    def _read(self, mindmap_id: str) -> dict:
        path = self.path_for(mindmap_id)
        if not path.exists():
            raise NotFound(mindmap_id, what="Mind map")
        with open(path, 'r') as f:
            return json.load(f)

    def load(self, mindmap_id: str) -> tuple[str, PersistedMindMap]:
        """Load a mind map, returning `(title, document)`."""
        data = self._read(mindmap_id)
        document = PersistedMindMap.from_json_dict(data)
        return data.get("title") or document.root.text, document

    def save(self, mindmap_id: str, document: PersistedMindMap, title: Optional[str] = None) -> Path:
        """
        Write a mind map, keeping the stored title unless a new one is given.
        """
        path = self.path_for(mindmap_id)
        now = datetime.now(timezone.utc).isoformat()
        created_at = now
        if path.exists():
            try:
                existing = self._read(mindmap_id)
            except (OSError, ValueError):
                logger.warning("Overwriting unreadable mind map file %s", path)
                existing = {}
            title = title or existing.get("title")
            created_at = existing.get("created_at", now)

        payload = {
            "id": mindmap_id,
            "title": title or document.root.text,
            "created_at": created_at,
            "updated_at": now,
            **document.to_json_dict(),
        }

        # Ensure data directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        # Write then rename, readers never see a partial file
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, 'w') as f:
            json.dump(payload, f, indent=2)
        tmp_path.replace(path)

        logger.debug("Saved mind map %s to %s", mindmap_id, path)
        return path

    def delete(self, mindmap_id: str) -> None:
        path = self.path_for(mindmap_id)
        if not path.exists():
            raise NotFound(mindmap_id, what="Mind map")
        path.unlink()
        logger.info("Deleted mind map %s", mindmap_id)

    def list(self) -> list[dict]:
        """Summaries of every stored mind map, most recently updated first."""
        if not self.data_dir.exists():
            return []

        mindmaps = []
        for f in self.data_dir.glob("*.json"):
            try:
                with open(f) as file:
                    data = json.load(file)
            except (OSError, ValueError):
                logger.warning("Skipping unreadable mind map file %s", f)
                continue
            mindmaps.append({
                "id": f.stem,
                "title": data.get("title", f.stem),
                "created_at": data.get("created_at"),
                "updated_at": data.get("updated_at"),
            })

        mindmaps.sort(key=lambda m: m["updated_at"] or "", reverse=True)
        return mindmaps
