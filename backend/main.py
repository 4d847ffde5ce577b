"""
mindtree Backend - FastAPI Application

This is the main entry point for the mind-map service.
It provides:
- REST API for mind-map documents and tree operations (add, delete, move,
  drop, relabel, collapse, direction, undo/redo, agent change batches)
- WebSocket endpoint broadcasting change notifications
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mindtree.engine import MindMapEngine
from mindtree.errors import CycleError, EditStateError, NotFound, RootViolation, TreeIntegrityError
from mindtree.models import (
    AddNodeRequest,
    ApplyChangesRequest,
    CreateMindMapRequest,
    DirectionRequest,
    DropNodeRequest,
    EditLabelRequest,
    MoveNodeRequest,
    SelectRequest,
    UpdateNodeRequest,
)
from mindtree.validation import validation_summary

from .config import get_config
from .mindmap_manager import MindMapManager
from .saver import DebouncedSaver
from .store import MindMapStore
from .websocket_manager import ws_manager

logger = logging.getLogger(__name__)


# --- Async change notification ---
# Bridge between sync engine callbacks and async WebSocket broadcasts

async def change_broadcaster(changed: set[str], change_event: asyncio.Event):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await change_event.wait()
        change_event.clear()

        mindmap_ids = sorted(changed)
        changed.clear()
        for mindmap_id in mindmap_ids:
            await ws_manager.notify_mindmap_updated(mindmap_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    config = get_config()
    store = MindMapStore(config.data_dir)
    manager = MindMapManager(
        store,
        DebouncedSaver(store, delay_ms=config.save_debounce_ms),
        history_size=config.history_size,
    )

    changed: set[str] = set()
    change_event = asyncio.Event()

    def on_mindmap_change(mindmap_id: str):
        """Callback for mind-map changes - sets event for async handler."""
        changed.add(mindmap_id)
        change_event.set()

    manager.on_change(on_mindmap_change)
    app.state.manager = manager
    logger.info("Serving mind maps from %s", config.data_dir)

    # Start background broadcaster
    broadcaster_task = asyncio.create_task(change_broadcaster(changed, change_event))

    yield

    # Cleanup
    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass
    manager.shutdown()


# --- FastAPI App ---

app = FastAPI(
    title="mindtree API",
    description="Backend API for the mind-map tree engine",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_config().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handling ---

ERROR_RESPONSES = (
    (NotFound, 404, "not_found"),
    (CycleError, 409, "cycle"),
    (RootViolation, 400, "root_violation"),
    (TreeIntegrityError, 422, "invalid_tree"),
    (EditStateError, 409, "edit_state"),
)


@app.exception_handler(ValueError)
async def mindmap_error_handler(request: Request, exc: ValueError):
    """Map engine errors to HTTP responses; other ValueErrors are bad requests."""
    status_code, error = 400, "invalid_request"
    for exc_type, code, name in ERROR_RESPONSES:
        if isinstance(exc, exc_type):
            status_code, error = code, name
            break

    detail = {
        key: value for key, value in vars(exc).items()
        if key in ("node_id", "new_parent_id", "root_id", "action")
    }
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": str(exc), "detail": detail or None},
    )


# --- Dependencies ---

def get_manager(request: Request) -> MindMapManager:
    return request.app.state.manager


def get_engine(mindmap_id: str, manager: MindMapManager = Depends(get_manager)) -> MindMapEngine:
    return manager.get(mindmap_id)


def state_response(engine: MindMapEngine, **extra) -> dict:
    return {"success": True, **extra, "state": engine.get_state()}


# --- Health Check ---

@app.get("/api/health")
async def health_check(manager: MindMapManager = Depends(get_manager)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "connections": ws_manager.connection_count,
        "open_mindmaps": len(manager.open_ids),
    }


# --- Documents ---

@app.get("/api/mindmaps")
async def list_mindmaps(manager: MindMapManager = Depends(get_manager)):
    """List stored mind maps."""
    return {"success": True, "mindmaps": manager.list_mindmaps()}


@app.post("/api/mindmaps")
async def create_mindmap(request: CreateMindMapRequest, manager: MindMapManager = Depends(get_manager)):
    """Create a new one-node mind map."""
    mindmap_id, engine = manager.create(
        title=request.title,
        root_label=request.root_label,
        direction=request.direction,
    )
    return state_response(engine, mindmap_id=mindmap_id, title=request.title)


@app.get("/api/mindmaps/{mindmap_id}")
async def get_mindmap(
    mindmap_id: str,
    engine: MindMapEngine = Depends(get_engine),
    manager: MindMapManager = Depends(get_manager),
):
    """Get the current state of a mind map (opening it if needed)."""
    return state_response(engine, mindmap_id=mindmap_id, title=manager.title_of(mindmap_id))


@app.post("/api/mindmaps/{mindmap_id}/close")
async def close_mindmap(mindmap_id: str, manager: MindMapManager = Depends(get_manager)):
    """Flush pending saves and release the engine."""
    closed = manager.close(mindmap_id)
    if closed:
        await ws_manager.notify_mindmap_closed(mindmap_id)
    return {"success": True, "closed": closed}


@app.delete("/api/mindmaps/{mindmap_id}")
async def delete_mindmap(mindmap_id: str, manager: MindMapManager = Depends(get_manager)):
    """Delete a mind map from disk."""
    manager.delete(mindmap_id)
    await ws_manager.notify_mindmap_closed(mindmap_id)
    return {"success": True}


@app.get("/api/mindmaps/{mindmap_id}/tree")
async def export_tree(engine: MindMapEngine = Depends(get_engine)):
    """Export the persisted nested tree."""
    return engine.to_persisted().to_json_dict()


@app.get("/api/mindmaps/{mindmap_id}/validate")
async def validate_mindmap(engine: MindMapEngine = Depends(get_engine)):
    """
    Validate the mind map for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = engine.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- Undo/Redo ---

@app.post("/api/mindmaps/{mindmap_id}/undo")
async def undo(engine: MindMapEngine = Depends(get_engine)):
    """Undo the last action."""
    if engine.undo() is None:
        return {"success": False, "message": "Nothing to undo", "state": engine.get_state()}
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/redo")
async def redo(engine: MindMapEngine = Depends(get_engine)):
    """Redo the last undone action."""
    if engine.redo() is None:
        return {"success": False, "message": "Nothing to redo", "state": engine.get_state()}
    return state_response(engine)


# --- Node Operations ---

@app.get("/api/mindmaps/{mindmap_id}/nodes/{node_id}")
async def get_node(node_id: str, engine: MindMapEngine = Depends(get_engine)):
    """Get a specific node."""
    node = engine.get_node(node_id)
    if node is None:
        raise NotFound(node_id)
    return {"success": True, "node": node.model_dump()}


@app.post("/api/mindmaps/{mindmap_id}/nodes/{node_id}/children")
async def add_child(node_id: str, request: AddNodeRequest, engine: MindMapEngine = Depends(get_engine)):
    """Append a child under a node."""
    new_id = engine.add_child(node_id, request.label)
    return state_response(engine, node_id=new_id)


@app.post("/api/mindmaps/{mindmap_id}/nodes/{node_id}/siblings")
async def add_sibling(node_id: str, request: AddNodeRequest, engine: MindMapEngine = Depends(get_engine)):
    """Insert a sibling right after a node."""
    new_id = engine.add_sibling(node_id, request.label)
    return state_response(engine, node_id=new_id)


@app.patch("/api/mindmaps/{mindmap_id}/nodes/{node_id}")
async def update_node(node_id: str, request: UpdateNodeRequest, engine: MindMapEngine = Depends(get_engine)):
    """Update node fields as one undoable action."""
    engine.update_node(
        node_id,
        label=request.label,
        notes=request.notes,
        sources=request.sources,
        chat_id=request.chat_id,
        custom_style=request.custom_style,
        clear_custom_style=request.clear_custom_style,
    )
    return state_response(engine)


@app.delete("/api/mindmaps/{mindmap_id}/nodes/{node_id}")
async def delete_node(node_id: str, engine: MindMapEngine = Depends(get_engine)):
    """Delete a node and its whole subtree."""
    engine.delete_node(node_id)
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/nodes/{node_id}/move")
async def move_node(node_id: str, request: MoveNodeRequest, engine: MindMapEngine = Depends(get_engine)):
    """Reparent a node."""
    engine.move_node(node_id, request.new_parent_id, request.insert_index)
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/nodes/{node_id}/drop")
async def drop_node(node_id: str, request: DropNodeRequest, engine: MindMapEngine = Depends(get_engine)):
    """Apply a classified drag drop (above/below = sibling, over = child)."""
    moved = engine.drop_node(node_id, request.target_id, request.position)
    return state_response(engine, moved=moved)


@app.post("/api/mindmaps/{mindmap_id}/nodes/{node_id}/collapse")
async def toggle_collapse(node_id: str, engine: MindMapEngine = Depends(get_engine)):
    """Collapse or expand a node's subtree."""
    engine.toggle_collapse(node_id)
    return state_response(engine)


# --- Label edit gesture ---

@app.post("/api/mindmaps/{mindmap_id}/nodes/{node_id}/edit")
async def begin_label_edit(node_id: str, engine: MindMapEngine = Depends(get_engine)):
    """Start editing a node's label."""
    engine.begin_label_edit(node_id)
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/edit")
async def edit_label(request: EditLabelRequest, engine: MindMapEngine = Depends(get_engine)):
    """Keystroke update of the label being edited (no layout)."""
    engine.edit_label(request.text)
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/edit/commit")
async def commit_label_edit(engine: MindMapEngine = Depends(get_engine)):
    """Finish the edit and lay out once."""
    engine.commit_label_edit()
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/edit/cancel")
async def cancel_label_edit(engine: MindMapEngine = Depends(get_engine)):
    """Abandon the edit and restore the original label."""
    engine.cancel_label_edit()
    return state_response(engine)


# --- Layout and selection ---

@app.put("/api/mindmaps/{mindmap_id}/direction")
async def change_direction(request: DirectionRequest, engine: MindMapEngine = Depends(get_engine)):
    """Change the layout direction and reflow."""
    engine.change_direction(request.direction)
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/layout/reset")
async def reset_layout(engine: MindMapEngine = Depends(get_engine)):
    """Re-run layout without structural changes."""
    engine.reset_layout()
    return state_response(engine)


@app.post("/api/mindmaps/{mindmap_id}/select")
async def select_node(request: SelectRequest, engine: MindMapEngine = Depends(get_engine)):
    """Change the selected node (null clears it)."""
    engine.select(request.node_id)
    return state_response(engine)


# --- Agent change batches ---

@app.post("/api/mindmaps/{mindmap_id}/changes")
async def apply_changes(request: ApplyChangesRequest, engine: MindMapEngine = Depends(get_engine)):
    """Apply an all-or-nothing batch of create/update/delete changes."""
    engine.apply_changes(request.changes)
    return state_response(engine, applied=len(request.changes))


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive mindmap_updated events.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            await ws_manager.handle_message(websocket, await websocket.receive_text())
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception:
        logger.exception("WebSocket connection failed")
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

def run(host: Optional[str] = None, port: Optional[int] = None):
    """Start the service with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = get_config()
    uvicorn.run(app, host=host or config.host, port=port or config.port)


if __name__ == "__main__":
    run()
