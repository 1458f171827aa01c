"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoint. The module-level ``app`` instance
allows ``uvicorn livenote.api.app:app --reload``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livenote.api import websocket
from livenote.api.middleware.error_handler import register_error_handlers
from livenote.api.routes import chat, document, playback, recording
from livenote.core.config import get_settings
from livenote.core.logging import configure_logging
from livenote.core.models import HealthResponse
from livenote.services.notebook import close_notebook
from livenote.services.storage.database import close_db, init_db


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: create database tables. Shutdown: stop capture and playback, dispose the engine."""
    await init_db()
    yield
    await close_notebook()
    await close_db()


def create_app() -> FastAPI:
    """Build and return a fully configured FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="LiveNote",
        description="Note taking with live speech capture, background "
        "transcription and synchronized playback.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(document.router, prefix="/api/v1")
    app.include_router(recording.router, prefix="/api/v1")
    app.include_router(playback.router, prefix="/api/v1")
    app.include_router(chat.router, prefix="/api/v1")

    # -- WebSocket --
    app.include_router(websocket.router)

    return app


app = create_app()
