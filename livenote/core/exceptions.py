"""
LiveNote exception hierarchy.

All application-specific exceptions inherit from LiveNoteError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class LiveNoteError(Exception):
    """Base exception for all LiveNote errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "LIVENOTE_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class PermissionDeniedError(LiveNoteError):
    """Raised when the capture device refuses microphone access."""

    def __init__(self, detail: str = "Microphone permission denied") -> None:
        super().__init__(
            detail=detail,
            code="PERMISSION_DENIED",
            status_code=403,
        )


class DeviceBusyError(LiveNoteError):
    """Raised when trying to start a capture while one is already active."""

    def __init__(self, detail: str = "A recording is already active") -> None:
        super().__init__(
            detail=detail,
            code="DEVICE_BUSY",
            status_code=409,
        )


class RecordingNotActiveError(LiveNoteError):
    """Raised when live audio arrives while no recording is running."""

    def __init__(self) -> None:
        super().__init__(
            detail="No recording is active",
            code="RECORDING_NOT_ACTIVE",
            status_code=409,
        )


class TranscriptionError(LiveNoteError):
    """Raised when STT processing fails."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(
            detail=detail,
            code="TRANSCRIPTION_ERROR",
            status_code=500,
        )


class SummarizationError(LiveNoteError):
    """Raised when LLM summarization fails."""

    def __init__(self, detail: str = "Summarization failed") -> None:
        super().__init__(
            detail=detail,
            code="SUMMARIZATION_ERROR",
            status_code=500,
        )


class PlaybackLoadError(LiveNoteError):
    """Raised by audio players when a segment cannot be loaded."""

    def __init__(self, uri: str, reason: str = "") -> None:
        detail = f"Could not load audio: {uri}"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(detail=detail, code="PLAYBACK_LOAD_ERROR", status_code=500)


class BlockNotFoundError(LiveNoteError):
    """Raised when a block ID does not exist in the document."""

    def __init__(self, block_id: str) -> None:
        super().__init__(
            detail=f"Block not found: {block_id}",
            code="BLOCK_NOT_FOUND",
            status_code=404,
        )


class DocumentNotFoundError(LiveNoteError):
    """Raised when a document ID does not exist in the store."""

    def __init__(self, document_id: str) -> None:
        super().__init__(
            detail=f"Document not found: {document_id}",
            code="DOCUMENT_NOT_FOUND",
            status_code=404,
        )


class InvalidNoteError(LiveNoteError):
    """Raised when a note has no content."""

    def __init__(self, detail: str = "Note text must not be empty") -> None:
        super().__init__(detail=detail, code="INVALID_NOTE", status_code=422)


class ChatMessageNotFoundError(LiveNoteError):
    """Raised when a chat message ID does not exist."""

    def __init__(self, message_id: str) -> None:
        super().__init__(
            detail=f"Chat message not found: {message_id}",
            code="CHAT_MESSAGE_NOT_FOUND",
            status_code=404,
        )
