"""
Mind Map Manager - Open documents, persistence wiring and change fan-out.

This module implements:
- One MindMapEngine per open mind map, keyed by mind map id
- Lazy loading from the JSON store on first access
- Saves routed through the DebouncedSaver
- Change callbacks carrying the id of the mind map that changed
"""

import logging
import uuid
from typing import Callable, Optional

from mindtree.codec import new_document
from mindtree.engine import MindMapEngine
from mindtree.history import DEFAULT_CAPACITY
from mindtree.models import DEFAULT_ROOT_LABEL, Direction, PersistedMindMap

from .saver import DebouncedSaver
from .store import MindMapStore

logger = logging.getLogger(__name__)


def generate_mindmap_id() -> str:
    """Generate a unique mind map ID."""
    return f"mindmap-{uuid.uuid4().hex[:12]}"


class MindMapManager:
    """
    Manages the open mind maps of one service process.

    Engines are created on demand and stay open until closed or deleted;
    every committed change is saved through the debounced saver and
    reported to the registered change callbacks.
    """

    def __init__(
        self,
        store: MindMapStore,
        saver: Optional[DebouncedSaver] = None,
        history_size: int = DEFAULT_CAPACITY,
    ):
        self.store = store
        self.saver = saver or DebouncedSaver(store, delay_ms=0)
        self.history_size = history_size
        self._engines: dict[str, MindMapEngine] = {}
        self._on_change_callbacks: list[Callable[[str], None]] = []

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[str], None]):
        """Register a callback receiving the id of every changed mind map."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self, mindmap_id: str):
        for callback in self._on_change_callbacks:
            callback(mindmap_id)

    # --- Engines ---

    @property
    def open_ids(self) -> list[str]:
        return list(self._engines)

    def _attach(self, mindmap_id: str, document: PersistedMindMap) -> MindMapEngine:
        engine = MindMapEngine(
            document,
            save=lambda tree: self.saver.schedule(mindmap_id, tree),
            history_size=self.history_size,
        )
        engine.on_change(lambda _state: self._notify_change(mindmap_id))
        self._engines[mindmap_id] = engine
        return engine

    def get(self, mindmap_id: str) -> MindMapEngine:
        """
        Get the engine for a mind map, loading it from disk if needed.

        Raises:
            NotFound: if no such mind map is stored
        """
        engine = self._engines.get(mindmap_id)
        if engine is not None:
            return engine

        _title, document = self.store.load(mindmap_id)
        engine = self._attach(mindmap_id, document)
        logger.info("Opened mind map %s (%d nodes)", mindmap_id, len(engine.nodes))
        return engine

    # --- File Operations ---

    def create(
        self,
        title: str = "Untitled Mind Map",
        root_label: str = DEFAULT_ROOT_LABEL,
        direction: Direction = Direction.LR,
    ) -> tuple[str, MindMapEngine]:
        """Create, save and open a new one-node mind map."""
        mindmap_id = generate_mindmap_id()
        document = new_document(root_label, Direction(direction))
        self.store.save(mindmap_id, document, title=title)
        engine = self._attach(mindmap_id, document)
        logger.info("Created mind map %s (%s)", mindmap_id, title)
        self._notify_change(mindmap_id)
        return mindmap_id, engine

    def list_mindmaps(self) -> list[dict]:
        """Stored mind maps, flagged with whether they are currently open."""
        return [
            {**info, "open": info["id"] in self._engines}
            for info in self.store.list()
        ]

    def title_of(self, mindmap_id: str) -> str:
        title, _document = self.store.load(mindmap_id)
        return title

    def close(self, mindmap_id: str) -> bool:
        """Flush pending saves and drop the engine. False if it was not open."""
        engine = self._engines.pop(mindmap_id, None)
        if engine is None:
            return False
        self.saver.flush(mindmap_id)
        engine.dispose()
        logger.info("Closed mind map %s", mindmap_id)
        return True

    def delete(self, mindmap_id: str):
        """
        Close and remove a mind map from disk.

        Raises:
            NotFound: if no such mind map is stored
        """
        engine = self._engines.pop(mindmap_id, None)
        if engine is not None:
            engine.dispose()
        self.saver.discard(mindmap_id)
        self.store.delete(mindmap_id)

    def shutdown(self):
        """Write every pending save and close all engines."""
        self.saver.flush()
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()
