"""
Playback REST endpoints.

Sequential playback of recorded segments; the block being played is
highlighted in the document.
"""

from fastapi import APIRouter

from livenote.core.exceptions import LiveNoteError
from livenote.core.models import PlaybackRequest, PlaybackState
from livenote.services.notebook import get_notebook

router = APIRouter(prefix="/playback", tags=["playback"])


@router.get("", response_model=PlaybackState)
async def playback_state():
    return get_notebook().playback.state


@router.post("/start", response_model=PlaybackState)
async def start_playback(body: PlaybackRequest | None = None):
    """Play the requested segments in order (all recorded segments by default)."""
    notebook = get_notebook()
    indexes = body.segment_indexes if body else None
    try:
        segments = notebook.select_segments(indexes)
    except IndexError as exc:
        raise LiveNoteError(detail=str(exc), code="INVALID_SEGMENT", status_code=422) from exc
    return await notebook.play_recording(segments)


@router.post("/pause", response_model=PlaybackState)
async def pause_playback():
    return await get_notebook().pause_playback()


@router.post("/resume", response_model=PlaybackState)
async def resume_playback():
    return await get_notebook().resume_playback()


@router.post("/stop", response_model=PlaybackState)
async def stop_playback():
    return await get_notebook().stop_playback()
