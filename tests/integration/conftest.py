"""Integration test fixtures for LiveNote.

Provides an async HTTP client and a sync TestClient (for WebSocket) that use
an in-memory SQLite database and a notebook with mocked providers installed
as the active notebook.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from livenote.api.app import create_app
from livenote.services import notebook as notebook_module
from livenote.services.audio.capture import PushAudioSource
from livenote.services.notebook import Notebook, close_notebook, open_notebook
from livenote.services.storage import database


@pytest.fixture
def app():
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture
async def async_client(app, db_engine, notebook):
    """AsyncClient backed by the in-memory test engine.

    Injects the test engine into the database module so that all routes
    use the same in-memory SQLite with tables already created. Segments are
    only cut when a test calls ``notebook.recorder.tick()`` or stops the
    recording.
    """
    database._engine = db_engine
    database._session_factory = None
    open_notebook(notebook)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await close_notebook()
    database.reset_engine()


@pytest.fixture
def live_notebook(test_settings, mock_stt, fake_player):
    """Notebook that cuts a segment every 0.2 s, for WebSocket streaming."""
    settings = test_settings.model_copy(update={"segment_duration_seconds": 0.2})
    return Notebook(
        source=PushAudioSource(),
        stt=mock_stt,
        player=fake_player,
        settings=settings,
    )


@pytest.fixture
def test_client(app, db_engine, live_notebook):
    """Synchronous TestClient for WebSocket tests.

    Uses the same DB injection pattern as async_client. The app lifespan
    closes the notebook on exit.
    """
    database._engine = db_engine
    database._session_factory = None
    open_notebook(live_notebook)
    with TestClient(app) as c:
        yield c
    notebook_module._notebook = None
    database.reset_engine()
