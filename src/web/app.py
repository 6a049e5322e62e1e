"""
FastAPI application factory for the Object Detector viewer.

Routes:
- /api/* -> REST API (status, settings, predictions, history, exports, live stream)
- /assets/*, / -> optional built frontend (frontend/dist)
"""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .routes import api


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes/static assets."""
    app = FastAPI(
        title="Object Detector",
        version="0.1.0",
        description="Real-time object detection viewer with first-sighting history",
    )

    # CORS for development (Vite dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    dist_path = Path("frontend/dist")
    assets_path = dist_path / "assets"
    if assets_path.exists():
        app.mount("/assets", StaticFiles(directory=str(assets_path)), name="assets")

    @app.get("/", include_in_schema=False)
    def index():
        index_file = dist_path / "index.html"
        if index_file.exists():
            return FileResponse(index_file)
        return JSONResponse(
            {"detail": "Frontend not built. The API is available under /api (see /docs)."},
            status_code=503,
        )

    return app
