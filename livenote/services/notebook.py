"""Notebook: the consumer-facing API of the live capture pipeline.

Owns one document together with the recorder, transcription pipeline,
session manager and playback engine, and wires them::

    SegmentedRecorder -> TranscriptionPipeline -> TranscriptionSessionManager -> Document
    PlaybackEngine -> Document (highlight)

A module-level singleton serves the API layer.

Usage::

    from livenote.services.notebook import get_notebook

    notebook = get_notebook()
    await notebook.start_recording()
    ...
    await notebook.stop_recording()
    print(notebook.export_as_text())
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from livenote.core.config import Settings, get_settings
from livenote.core.exceptions import (
    BlockNotFoundError,
    DeviceBusyError,
    InvalidNoteError,
    LiveNoteError,
)
from livenote.core.models import (
    DEFAULT_DOCUMENT_TITLE,
    AudioSegmentRef,
    Document,
    DocumentSummary,
    NoteBlock,
    PlaybackState,
    RecordingResult,
    RecordingStatusResponse,
    SummaryResult,
    TranscriptionBlock,
    TranscriptionUpdate,
)
from livenote.core.utils import maybe_await, utcnow
from livenote.services.audio.capture import BaseAudioSource, PushAudioSource, create_audio_source
from livenote.services.audio.player import BaseAudioPlayer, SoundDevicePlayer
from livenote.services.audio.recorder import SegmentedRecorder
from livenote.services.chat import ChatLog
from livenote.services.playback import PlaybackEngine
from livenote.services.session import TranscriptionSessionManager
from livenote.services.storage import export
from livenote.services.storage.database import get_session
from livenote.services.storage.repository import DocumentRepository
from livenote.services.summarization.base import BaseSummarizer
from livenote.services.transcription import create_stt
from livenote.services.transcription.base import BaseSTT
from livenote.services.transcription.pipeline import TranscriptionPipeline

logger = logging.getLogger(__name__)

TranscriptionListener = Callable[[TranscriptionUpdate], Awaitable[None] | None]
PlaybackListener = Callable[[PlaybackState], Awaitable[None] | None]


class Notebook:
    """One document plus the services that capture, transcribe and replay it.

    Every collaborator can be injected; missing ones are built from settings
    on first use.

    Args:
        document: Document to edit (a fresh one by default).
        source: Live audio source; defaults to ``settings.capture_source``.
        stt: Transcription provider; defaults to ``settings.stt_provider``.
        player: Playback backend; defaults to sounddevice.
        summarizer: Document summarizer; defaults to ``settings.llm_provider``.
        auto_tick: Cut segments on a timer. Tests disable it and drive
            ``recorder.tick()`` by hand.
        skip_silence: Skip the provider call for silent segments.
    """

    def __init__(
        self,
        document: Document | None = None,
        source: BaseAudioSource | None = None,
        stt: BaseSTT | None = None,
        player: BaseAudioPlayer | None = None,
        summarizer: BaseSummarizer | None = None,
        settings: Settings | None = None,
        auto_tick: bool = True,
        skip_silence: bool = False,
    ) -> None:
        self._settings = settings or get_settings()
        self._document = document or Document()
        self._sessions = TranscriptionSessionManager(self._document)
        self._source = source or self._build_source()
        self._recorder = SegmentedRecorder(
            source=self._source,
            output_dir=self._settings.recordings_dir,
            segment_duration=self._settings.segment_duration_seconds,
            sample_rate=self._settings.sample_rate,
            channels=self._settings.channels,
            auto_tick=auto_tick,
        )
        self._stt = stt
        self._summarizer = summarizer
        self._skip_silence = skip_silence
        self._pipeline: TranscriptionPipeline | None = None
        self._session_segments: list[AudioSegmentRef] = []
        self._last_update: TranscriptionUpdate | None = None
        self._transcription_listeners: list[TranscriptionListener] = []
        # Held from start until capture runs and from stop until the drain ends.
        self._lifecycle = asyncio.Lock()
        self._playback = PlaybackEngine(
            player or SoundDevicePlayer(), on_highlight=self._apply_highlight
        )
        self.chat = ChatLog()

    def _build_source(self) -> BaseAudioSource:
        if self._settings.capture_source == "microphone":
            return create_audio_source(
                "microphone",
                sample_rate=self._settings.sample_rate,
                channels=self._settings.channels,
                device_name=self._settings.input_device or None,
            )
        return create_audio_source(self._settings.capture_source)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def document(self) -> Document:
        return self._document

    @property
    def recorder(self) -> SegmentedRecorder:
        return self._recorder

    @property
    def playback(self) -> PlaybackEngine:
        return self._playback

    @property
    def is_recording(self) -> bool:
        return self._recorder.is_recording

    @property
    def last_update(self) -> TranscriptionUpdate | None:
        return self._last_update

    def recording_status(self) -> RecordingStatusResponse:
        return RecordingStatusResponse(
            is_recording=self.is_recording,
            session=self._sessions.session,
            segments=list(self._document.metadata.audio_segments),
            last_update=self._last_update,
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def start_recording(self) -> int:
        """Start capturing and transcribing into the document.

        Returns:
            The session token of the new recording session.

        Raises:
            DeviceBusyError: If a recording is already running or the
                previous one is still being transcribed.
            PermissionDeniedError: If the capture source refuses access.
        """
        if self._recorder.is_recording:
            raise DeviceBusyError()
        if self._lifecycle.locked():
            raise DeviceBusyError("The previous recording is still being transcribed")

        async with self._lifecycle:
            if self._stt is None:
                self._stt = create_stt(self._settings.stt_provider)

            pipeline = TranscriptionPipeline(
                self._stt,
                on_update=self._on_pipeline_update,
                language=self._settings.transcription_language,
                initial_text=self._sessions.continuation_text(),
                skip_silence=self._skip_silence,
            )
            self._recorder.set_segment_callback(self._on_segment)
            await self._recorder.start(
                first_index=len(self._document.metadata.audio_segments)
            )

            pipeline.session_token = self._sessions.on_segment_recorder_start()
            self._pipeline = pipeline
            self._session_segments = []
            self._last_update = None
        logger.info("Notebook recording started (session %s)", pipeline.session_token)
        return pipeline.session_token

    async def stop_recording(self) -> RecordingResult:
        """Stop capturing, flush the last segment and wait for its transcript.

        Idempotent: returns an empty result when nothing is recording or
        another stop is already in progress. A new recording cannot start
        until this returns.
        """
        if not self._recorder.is_recording or self._lifecycle.locked():
            return RecordingResult()

        async with self._lifecycle:
            pipeline, document = self._pipeline, self._document
            result = await self._recorder.stop()
            self._sessions.on_segment_recorder_stop()
            if pipeline is not None:
                await pipeline.drain()

            metadata = document.metadata
            if result.master_audio_uri:
                metadata.master_audio_uri = result.master_audio_uri
            metadata.total_duration += result.total_duration_seconds
            document.touch()
        logger.info(
            "Notebook recording stopped: %.2fs, %s segments",
            result.total_duration_seconds,
            len(result.segments),
        )
        return result

    def push_audio(self, data: bytes) -> None:
        """Feed PCM bytes into the active recording (push capture source only).

        Raises:
            RecordingNotActiveError: If no recording is running.
        """
        if not isinstance(self._source, PushAudioSource):
            raise LiveNoteError(
                detail="The capture source does not accept pushed audio",
                code="PUSH_NOT_SUPPORTED",
                status_code=409,
            )
        self._source.push(data)

    def on_transcription_update(self, callback: TranscriptionListener) -> Callable[[], None]:
        """Register a transcription listener; returns a function that removes it."""
        self._transcription_listeners.append(callback)

        def _remove() -> None:
            if callback in self._transcription_listeners:
                self._transcription_listeners.remove(callback)

        return _remove

    async def _on_segment(self, segment: AudioSegmentRef) -> None:
        metadata = self._document.metadata
        metadata.audio_segments = [*metadata.audio_segments, segment]
        self._session_segments.append(segment)
        if self._pipeline is not None:
            self._pipeline.enqueue(segment)

    async def _on_pipeline_update(self, update: TranscriptionUpdate) -> None:
        if update.session_token != self._sessions.session_token:
            logger.debug("Ignoring update from stale session %s", update.session_token)
            return

        block_id = self._sessions.on_pipeline_update(
            update.text, update.progress, session_token=update.session_token
        )
        if block_id is not None:
            for segment in self._session_segments:
                if segment.block_id is None and (
                    update.is_final
                    or update.segment_index is None
                    or segment.index <= update.segment_index
                ):
                    segment.block_id = block_id

        self._last_update = update
        for listener in list(self._transcription_listeners):
            try:
                await maybe_await(listener(update))
            except Exception:
                logger.exception("Transcription listener failed")

    # ------------------------------------------------------------------
    # Document editing
    # ------------------------------------------------------------------

    def add_note(
        self,
        text: str,
        after_block_id: str | None = None,
        referenced_block_id: str | None = None,
        referenced_text: str | None = None,
    ) -> str:
        """Insert a user note and return its block id.

        The note goes right after ``after_block_id`` or, by default, at the
        end of the document. When it quotes a block and no excerpt is given,
        the quoted block's current content is used.

        Raises:
            InvalidNoteError: If ``text`` is blank.
            BlockNotFoundError: If ``after_block_id`` or ``referenced_block_id``
                does not exist.
        """
        if not text or not text.strip():
            raise InvalidNoteError()

        blocks = self._document.blocks
        if after_block_id is not None:
            position = self._document.index_of(after_block_id)
            if position < 0:
                raise BlockNotFoundError(after_block_id)
            position += 1
        else:
            position = len(blocks)
            after_block_id = blocks[-1].id if blocks else None

        if referenced_block_id is not None:
            target = self._document.find_block(referenced_block_id)
            if target is None:
                raise BlockNotFoundError(referenced_block_id)
            referenced_text = referenced_text or target.content

        note = NoteBlock(
            content=text.strip(),
            referenced_block_id=referenced_block_id,
            referenced_text=referenced_text,
        )
        self._document.insert_block(position, note)
        self._sessions.on_user_note_inserted(after_block_id)
        return note.id

    def delete_block(self, block_id: str) -> None:
        """Remove a block.

        Raises:
            BlockNotFoundError: If the block does not exist.
        """
        if not self._document.remove_block(block_id):
            raise BlockNotFoundError(block_id)
        self._sessions.on_block_deleted(block_id)

    def update_block(self, block_id: str, content: str) -> TranscriptionBlock | NoteBlock:
        """Replace a block's content with user-edited text.

        Editing the block the running session writes into keeps the edit:
        later transcript updates continue from the edited text instead of
        overwriting it.

        Raises:
            InvalidNoteError: If ``content`` is blank.
            BlockNotFoundError: If the block does not exist.
        """
        if not content or not content.strip():
            raise InvalidNoteError("Block content must not be empty")
        block = self._document.find_block(block_id)
        if block is None:
            raise BlockNotFoundError(block_id)

        content = content.strip()
        updated = block.model_copy(update={"content": content, "updated_at": utcnow()})
        self._document.replace_block(updated)
        if block_id == self._sessions.active_block_id and self._pipeline is not None:
            self._pipeline.rebase(content)
        return updated

    def set_title(self, title: str) -> None:
        self._document.title = title.strip() or DEFAULT_DOCUMENT_TITLE
        self._document.touch()

    def export_as_text(self) -> str:
        return export.export_as_text(self._document)

    def export_as_markdown(self) -> str:
        return export.export_as_markdown(self._document)

    async def summarize(self) -> SummaryResult:
        """Summarize the document; an empty document yields an empty summary.

        Raises:
            SummarizationError: If the LLM call fails or its answer is unusable.
        """
        if not any(block.content.strip() for block in self._document.blocks):
            return SummaryResult()
        if self._summarizer is None:
            from livenote.services.llm import create_llm
            from livenote.services.summarization import DocumentSummarizer

            self._summarizer = DocumentSummarizer(create_llm(self._settings.llm_provider))
        return await self._summarizer.summarize(
            self.export_as_text(), title=self._document.title
        )

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def select_segments(self, indexes: list[int] | None = None) -> list[AudioSegmentRef]:
        """Resolve segment indexes against the document (all segments when None).

        Raises:
            IndexError: If an index does not name a recorded segment.
        """
        segments = self._document.metadata.audio_segments
        if indexes is None:
            return list(segments)
        by_index = {segment.index: segment for segment in segments}
        missing = [i for i in indexes if i not in by_index]
        if missing:
            raise IndexError(f"Unknown segment indexes: {missing}")
        return [by_index[i] for i in indexes]

    async def play_recording(
        self, segments: list[AudioSegmentRef] | None = None
    ) -> PlaybackState:
        """Play ``segments`` in order (every recorded segment by default)."""
        if segments is None:
            segments = self.select_segments()
        return await self._playback.start(segments)

    async def pause_playback(self) -> PlaybackState:
        return await self._playback.pause()

    async def resume_playback(self) -> PlaybackState:
        return await self._playback.resume()

    async def stop_playback(self) -> PlaybackState:
        return await self._playback.stop()

    def on_playback_status(self, callback: PlaybackListener) -> Callable[[], None]:
        """Register a playback status listener; returns a function that removes it."""
        return self._playback.add_listener(callback)

    def _apply_highlight(self, block_id: str | None) -> None:
        self._document.set_highlight(block_id)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> DocumentSummary:
        async with get_session() as session:
            await DocumentRepository(session).save(self._document)
        logger.info("Document %s saved", self._document.id)
        return DocumentSummary(
            id=self._document.id,
            title=self._document.title,
            created_at=self._document.metadata.created_at,
            updated_at=self._document.metadata.last_modified,
        )

    async def load(self, document_id: str) -> Document:
        """Replace the open document with a stored one.

        Raises:
            DeviceBusyError: If a recording is running.
            DocumentNotFoundError: If no such document is stored.
        """
        if self._recorder.is_recording or self._lifecycle.locked():
            raise DeviceBusyError("Stop the recording before loading another document")
        async with get_session() as session:
            document = await DocumentRepository(session).load(document_id)
        await self._playback.stop()
        document.set_highlight(None)
        self._document = document
        self._sessions.attach_document(document)
        self._session_segments = []
        self._last_update = None
        logger.info("Document %s loaded (%s blocks)", document.id, len(document.blocks))
        return document

    async def close(self) -> None:
        """Stop recording and playback (called on shutdown)."""
        try:
            await self.stop_recording()
        except Exception:
            logger.exception("Failed to stop recording during shutdown")
        await self._playback.close()


# ---------------------------------------------------------------------------
# Module-level singleton management
# ---------------------------------------------------------------------------

_notebook: Notebook | None = None


def open_notebook(notebook: Notebook | None = None, **kwargs) -> Notebook:
    """Install ``notebook`` (or a new one built from ``kwargs``) as the active notebook."""
    global _notebook
    _notebook = notebook or Notebook(**kwargs)
    return _notebook


def get_notebook() -> Notebook:
    """Return the active notebook, creating a default one on first use."""
    if _notebook is None:
        return open_notebook()
    return _notebook


async def close_notebook() -> None:
    """Shut down and forget the active notebook (called during app shutdown)."""
    global _notebook
    if _notebook is None:
        return
    notebook = _notebook
    _notebook = None
    await notebook.close()
