"""FastAPI application for the Corral dashboard."""

from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from . import __version__
from .config import STATIC_DIR
from .routes import (
    actions_router,
    history_router,
    logs_router,
    sessions_router,
    usage_router,
)

app = FastAPI(title="Corral", version=__version__)

# CORS for local dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(sessions_router)
app.include_router(history_router)
app.include_router(usage_router)
app.include_router(actions_router)
app.include_router(logs_router)


@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


def _static_file(filename: str) -> Path:
    """Resolve a path inside STATIC_DIR, refusing anything outside it."""
    root = STATIC_DIR.resolve()
    file_path = (root / filename).resolve()
    if not file_path.is_relative_to(root) or not file_path.is_file():
        raise HTTPException(404, "Not found")
    return file_path


@app.get("/")
def serve_index():
    return FileResponse(_static_file("index.html"))


@app.get("/{filename:path}")
def serve_static(filename: str):
    return FileResponse(_static_file(filename))
