"""Binding between live transcription output and document blocks.

The manager is the only writer of transcription-derived content. Each
recording session writes its cumulative transcript into one transcription
block. A session resumes the previous block unless a note was written after
it or the block was deleted.
"""

import logging

from livenote.core.models import Document, NoteBlock, RecordingSession, TranscriptionBlock
from livenote.core.utils import utcnow

logger = logging.getLogger(__name__)


class TranscriptionSessionManager:
    """Decides whether an update continues the active block or opens a new one.

    Never rejects input: an update whose target block is gone degrades to
    creating a fresh block.
    """

    def __init__(self, document: Document | None = None) -> None:
        self._document = document or Document()
        self._session = RecordingSession()

    @property
    def document(self) -> Document:
        return self._document

    @property
    def session(self) -> RecordingSession:
        return self._session.model_copy()

    @property
    def session_token(self) -> int:
        return self._session.session_token

    @property
    def active_block_id(self) -> str | None:
        return self._session.active_block_id

    def attach_document(self, document: Document) -> None:
        """Switch to another document; the active block does not carry over."""
        self._document = document
        self._session.active_block_id = None

    # ------------------------------------------------------------------
    # Recorder lifecycle
    # ------------------------------------------------------------------

    def on_segment_recorder_start(self) -> int:
        """Open a new session and return its token.

        The active block is resolved lazily on the first update.
        """
        self._session.session_token += 1
        self._session.active = True
        self._session.started_at = utcnow()
        logger.info("Transcription session %s started", self._session.session_token)
        return self._session.session_token

    def on_segment_recorder_stop(self) -> None:
        """Mark the session inactive.

        ``active_block_id`` is kept so the terminal update from ``drain()``
        still lands on the same block.
        """
        self._session.active = False
        logger.info("Transcription session %s stopped", self._session.session_token)

    def continuation_text(self) -> str:
        """Content the next update would replace, or "" when a new block would open."""
        block = self._resolve_active_block()
        return block.content if block is not None else ""

    # ------------------------------------------------------------------
    # Pipeline output
    # ------------------------------------------------------------------

    def on_pipeline_update(
        self, text: str, progress: float, session_token: int | None = None
    ) -> str | None:
        """Apply cumulative ``text`` to the document.

        Returns:
            The id of the block holding the text, or None when the update was
            stale or empty.
        """
        if session_token is not None and session_token != self._session.session_token:
            logger.debug(
                "Discarding stale update from session %s (current %s)",
                session_token,
                self._session.session_token,
            )
            return None

        text = (text or "").strip()
        if not text:
            return None

        block = self._resolve_active_block()
        if block is None:
            block = TranscriptionBlock(content=text)
            self._document.append_block(block)
            self._session.active_block_id = block.id
            logger.debug("Opened transcription block %s (progress=%.2f)", block.id, progress)
            return block.id

        if block.content != text:
            updated = block.model_copy(update={"content": text, "updated_at": utcnow()})
            self._document.replace_block(updated)
        return block.id

    def _resolve_active_block(self) -> TranscriptionBlock | None:
        """Return the active block if the next update may continue it."""
        index = self._document.index_of(self._session.active_block_id)
        if index < 0:
            return None
        block = self._document.blocks[index]
        if not isinstance(block, TranscriptionBlock):
            return None
        if any(isinstance(b, NoteBlock) for b in self._document.blocks[index + 1 :]):
            return None
        return block

    # ------------------------------------------------------------------
    # User edits
    # ------------------------------------------------------------------

    def on_user_note_inserted(self, after_block_id: str | None) -> None:
        if after_block_id is not None and after_block_id == self._session.active_block_id:
            self._session.active_block_id = None

    def on_block_deleted(self, block_id: str) -> None:
        if block_id == self._session.active_block_id:
            self._session.active_block_id = None
