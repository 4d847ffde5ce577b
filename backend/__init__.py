"""mindtree service: document store, debounced saves, FastAPI routes and WebSocket updates."""
