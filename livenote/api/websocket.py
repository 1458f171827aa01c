"""WebSocket endpoints for live sessions.

``/ws/events``  server -> client stream of transcript progress and playback
                status for the open document.
``/ws/audio``   client -> server stream of raw PCM (16-bit, mono, at the
                configured sample rate) feeding the active recording when the
                capture source is ``push``.

Both send JSON ``WebSocketMessage`` objects.
"""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from livenote.core.exceptions import LiveNoteError
from livenote.core.models import (
    PlaybackState,
    TranscriptionUpdate,
    WebSocketMessage,
    WebSocketMessageType,
)
from livenote.services.notebook import Notebook, get_notebook

logger = logging.getLogger(__name__)

router = APIRouter()


def _message(kind: WebSocketMessageType, data: dict) -> dict:
    return WebSocketMessage(type=kind, data=data).model_dump(mode="json")


def _status_data(notebook: Notebook) -> dict:
    return {
        "recording": notebook.recording_status().model_dump(mode="json"),
        "playback": notebook.playback.state.model_dump(mode="json"),
    }


class _Relay:
    """Forwards notebook events to one WebSocket through a queue.

    Listeners only enqueue, so a slow client never blocks the pipeline or
    the playback engine.
    """

    def __init__(self, websocket: WebSocket, notebook: Notebook) -> None:
        self._websocket = websocket
        self._queue: asyncio.Queue[dict] = asyncio.Queue()
        self._removers = []
        self._notebook = notebook
        self._task: asyncio.Task | None = None

    def _on_transcript(self, update: TranscriptionUpdate) -> None:
        self._queue.put_nowait(
            _message(WebSocketMessageType.transcript, update.model_dump(mode="json"))
        )

    def _on_playback(self, state: PlaybackState) -> None:
        self._queue.put_nowait(
            _message(WebSocketMessageType.playback, state.model_dump(mode="json"))
        )

    def start(self, transcripts: bool = True, playback: bool = True) -> None:
        if transcripts:
            self._removers.append(self._notebook.on_transcription_update(self._on_transcript))
        if playback:
            self._removers.append(self._notebook.on_playback_status(self._on_playback))
        self._task = asyncio.create_task(self._pump())

    async def _pump(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._websocket.send_json(message)
            except Exception:
                logger.debug("Dropping event for closed WebSocket")
                return

    async def close(self) -> None:
        for remove in self._removers:
            remove()
        self._removers = []
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


@router.websocket("/ws/events")
async def events_ws(websocket: WebSocket) -> None:
    """Push transcript and playback events until the client disconnects.

    Protocol:
        - Server sends ``connected`` with a status snapshot, then
          ``transcript`` and ``playback`` messages as they happen.
        - Client may send any text; ``"status"`` asks for a fresh snapshot.
    """
    await websocket.accept()
    notebook = get_notebook()
    await websocket.send_json(_message(WebSocketMessageType.connected, _status_data(notebook)))

    relay = _Relay(websocket, notebook)
    relay.start()
    try:
        while True:
            text = await websocket.receive_text()
            if text.strip() == "status":
                await websocket.send_json(
                    _message(WebSocketMessageType.status, _status_data(notebook))
                )
    except WebSocketDisconnect:
        logger.info("Events WebSocket disconnected")
    finally:
        await relay.close()


@router.websocket("/ws/audio")
async def audio_ws(
    websocket: WebSocket,
    autostart: bool = Query(True),
) -> None:
    """Stream PCM audio into the active recording.

    Query params:
        autostart: Start a recording when none is running and stop it again
            when the client disconnects.

    Protocol:
        - Client sends: raw PCM bytes.
        - Server sends: ``connected``, then ``transcript`` updates; ``error``
          when audio cannot be accepted.
    """
    await websocket.accept()
    notebook = get_notebook()

    owns_recording = False
    if not notebook.is_recording and autostart:
        try:
            await notebook.start_recording()
            owns_recording = True
        except LiveNoteError as exc:
            await websocket.send_json(
                _message(WebSocketMessageType.error, {"detail": exc.detail, "code": exc.code})
            )
            await websocket.close()
            return

    await websocket.send_json(
        _message(
            WebSocketMessageType.connected,
            {"session": notebook.recording_status().session.model_dump(mode="json")},
        )
    )
    logger.info("Audio WebSocket connected (autostarted=%s)", owns_recording)

    relay = _Relay(websocket, notebook)
    relay.start(playback=False)
    try:
        while True:
            data = await websocket.receive_bytes()
            try:
                notebook.push_audio(data)
            except LiveNoteError as exc:
                await websocket.send_json(
                    _message(WebSocketMessageType.error, {"detail": exc.detail, "code": exc.code})
                )
    except WebSocketDisconnect:
        logger.info("Audio WebSocket disconnected")
    finally:
        await relay.close()
        if owns_recording:
            try:
                await notebook.stop_recording()
            except Exception:
                logger.exception("Failed to stop recording after audio WebSocket closed")
