"""
Recording REST endpoints.

Start and stop live capture of the open document. Audio arrives from the
configured capture source (or over ``/ws/audio``); transcripts are pushed
over ``/ws/events``.
"""

from fastapi import APIRouter

from livenote.core.models import RecordingResult, RecordingStatusResponse
from livenote.services.notebook import get_notebook

router = APIRouter(prefix="/recording", tags=["recording"])


@router.get("", response_model=RecordingStatusResponse)
async def recording_status():
    return get_notebook().recording_status()


@router.post("/start", response_model=RecordingStatusResponse)
async def start_recording():
    """Start a recording session on the open document."""
    notebook = get_notebook()
    await notebook.start_recording()
    return notebook.recording_status()


@router.post("/stop", response_model=RecordingResult)
async def stop_recording():
    """Stop the recording and wait until its last segment is transcribed."""
    return await get_notebook().stop_recording()
