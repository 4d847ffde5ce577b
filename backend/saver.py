"""
Debounced Saver - Coalesces rapid mind-map saves into one write.

Engines hand every committed tree to `schedule()`. Within the debounce window
only the latest tree per mind map is kept; when the window closes it is
written to the store. Write failures are logged and never propagate back
into the engine.
"""

import asyncio
import logging

from mindtree.models import PersistedMindMap

from .store import MindMapStore

logger = logging.getLogger(__name__)


class DebouncedSaver:
    """Per-mind-map trailing debounce in front of a `MindMapStore`."""

    def __init__(self, store: MindMapStore, delay_ms: int = 500):
        self.store = store
        self.delay = delay_ms / 1000
        self._pending: dict[str, PersistedMindMap] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def pending_ids(self) -> set[str]:
        return set(self._pending)

    def schedule(self, mindmap_id: str, document: PersistedMindMap):
        """Queue a write; an earlier queued tree for the same mind map is replaced."""
        if self.delay <= 0:
            self._write(mindmap_id, document)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (scripts, sync tests): write straight away
            self._write(mindmap_id, document)
            return

        self._pending[mindmap_id] = document
        task = self._tasks.get(mindmap_id)
        if task is not None and not task.done():
            task.cancel()
        self._tasks[mindmap_id] = loop.create_task(self._write_later(mindmap_id))

    async def _write_later(self, mindmap_id: str):
        await asyncio.sleep(self.delay)
        self._tasks.pop(mindmap_id, None)
        self.flush(mindmap_id)

    def flush(self, mindmap_id: str | None = None):
        """Write pending trees now (one mind map, or all of them)."""
        ids = [mindmap_id] if mindmap_id is not None else list(self._pending)
        for pending_id in ids:
            task = self._tasks.pop(pending_id, None)
            if task is not None and not task.done():
                task.cancel()
            document = self._pending.pop(pending_id, None)
            if document is not None:
                self._write(pending_id, document)

    def discard(self, mindmap_id: str):
        """Drop a pending write without saving it (the mind map was deleted)."""
        task = self._tasks.pop(mindmap_id, None)
        if task is not None and not task.done():
            task.cancel()
        self._pending.pop(mindmap_id, None)

    def _write(self, mindmap_id: str, document: PersistedMindMap):
        try:
            self.store.save(mindmap_id, document)
        except (OSError, ValueError):
            logger.exception("Failed to save mind map %s", mindmap_id)
