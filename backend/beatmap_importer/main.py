"""
Beatmap importer service — operator control surface.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .pipeline.engine import IngestionPipeline
from .routes import control, health


def create_app(pipeline: IngestionPipeline) -> FastAPI:
    """
    Build the control API around an existing pipeline.

    The caller owns the pipeline lifecycle (start/stop).
    """
    app = FastAPI(title="Beatmap Importer", version="0.1.0")

    # Local UI dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.pipeline = pipeline

    app.include_router(health.router)
    app.include_router(control.router)
    return app
