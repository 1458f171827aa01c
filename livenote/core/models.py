"""
Pydantic v2 models shared by the services and the API layer.

Document / Block: the note document and its tagged block union
Recording: segments, sessions, transcription progress
Playback: playback state snapshots
Chat: tagged chat-message union
API: request / response envelopes
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, computed_field

from livenote.core.utils import new_id, utcnow

DEFAULT_DOCUMENT_TITLE = "Untitled transcript"

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class SegmentStatus(StrEnum):
    """Transcription state of a captured audio segment."""

    pending = "pending"
    done = "done"
    failed = "failed"


class AudioSegmentRef(BaseModel):
    """One fixed-duration slice of a recording, stored as its own WAV file."""

    index: int
    uri: str
    start_offset_seconds: float
    end_offset_seconds: float
    transcribed_text: str | None = None
    status: SegmentStatus = SegmentStatus.pending
    block_id: str | None = None
    # Master recording this segment was cut from.
    master_audio_uri: str | None = None

    @property
    def duration_seconds(self) -> float:
        return self.end_offset_seconds - self.start_offset_seconds


class RecordingSession(BaseModel):
    """Binding between the live recording and the block it writes into."""

    active: bool = False
    active_block_id: str | None = None
    session_token: int = 0
    started_at: datetime | None = None


class RecordingResult(BaseModel):
    """Returned by ``SegmentedRecorder.stop()``."""

    master_audio_uri: str | None = None
    total_duration_seconds: float = 0.0
    segments: list[AudioSegmentRef] = Field(default_factory=list)


class TranscriptionUpdate(BaseModel):
    """Progress report emitted by the pipeline after each resolved segment.

    ``text`` is always the full cumulative transcript of the session,
    never a delta.
    """

    text: str = ""
    progress: float = 0.0
    processed_segments: int = 0
    total_segments: int = 0
    transcribed_seconds: float = 0.0
    total_seconds: float = 0.0
    segment_index: int | None = None
    session_token: int = 0
    is_final: bool = False


class RecordingStatusResponse(BaseModel):
    """GET /recording response."""

    is_recording: bool
    session: RecordingSession
    segments: list[AudioSegmentRef] = Field(default_factory=list)
    last_update: TranscriptionUpdate | None = None


# ---------------------------------------------------------------------------
# Document / Block
# ---------------------------------------------------------------------------


class TranscriptionBlock(BaseModel):
    """Block whose content mirrors a recording session's transcript."""

    type: Literal["transcription"] = "transcription"
    id: str = Field(default_factory=new_id)
    content: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    speaker_label: str | None = None
    is_highlighted: bool = False


class NoteBlock(BaseModel):
    """User-authored note, optionally quoting another block."""

    type: Literal["note"] = "note"
    id: str = Field(default_factory=new_id)
    content: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    referenced_text: str | None = None
    referenced_block_id: str | None = None


Block = Annotated[TranscriptionBlock | NoteBlock, Field(discriminator="type")]


class DocumentMetadata(BaseModel):
    """Timestamps and audio bookkeeping for a document.

    ``master_audio_uri`` names the most recent recording. Every segment keeps
    the master it was cut from, so earlier recordings stay reachable.
    """

    created_at: datetime = Field(default_factory=utcnow)
    last_modified: datetime = Field(default_factory=utcnow)
    master_audio_uri: str | None = None
    audio_segments: list[AudioSegmentRef] = Field(default_factory=list)
    total_duration: float = 0.0


class Document(BaseModel):
    """A note document: an ordered sequence of blocks plus metadata.

    ``blocks`` order is the canonical reading order. Mutating helpers
    replace the ``blocks`` list in a single assignment so concurrent
    readers never see a half-applied change.
    """

    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_DOCUMENT_TITLE
    blocks: list[Block] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    def index_of(self, block_id: str | None) -> int:
        """Return the position of ``block_id`` in ``blocks`` or -1."""
        if block_id is None:
            return -1
        for index, block in enumerate(self.blocks):
            if block.id == block_id:
                return index
        return -1

    def find_block(self, block_id: str | None) -> TranscriptionBlock | NoteBlock | None:
        index = self.index_of(block_id)
        return self.blocks[index] if index >= 0 else None

    def touch(self) -> None:
        self.metadata.last_modified = datetime.now(UTC)

    def append_block(self, block: TranscriptionBlock | NoteBlock) -> None:
        self.blocks = [*self.blocks, block]
        self.touch()

    def insert_block(self, position: int, block: TranscriptionBlock | NoteBlock) -> None:
        blocks = list(self.blocks)
        blocks.insert(position, block)
        self.blocks = blocks
        self.touch()

    def replace_block(self, block: TranscriptionBlock | NoteBlock) -> None:
        self.blocks = [block if b.id == block.id else b for b in self.blocks]
        self.touch()

    def remove_block(self, block_id: str) -> bool:
        """Drop a block; returns False when it did not exist."""
        remaining = [b for b in self.blocks if b.id != block_id]
        if len(remaining) == len(self.blocks):
            return False
        self.blocks = remaining
        self.touch()
        return True

    def set_highlight(self, block_id: str | None) -> None:
        """Mark exactly one transcription block (or none) as highlighted."""
        blocks = []
        for block in self.blocks:
            if isinstance(block, TranscriptionBlock):
                wanted = block.id == block_id
                if block.is_highlighted != wanted:
                    block = block.model_copy(update={"is_highlighted": wanted})
            blocks.append(block)
        self.blocks = blocks

    @property
    def highlighted_block_ids(self) -> list[str]:
        return [
            b.id
            for b in self.blocks
            if isinstance(b, TranscriptionBlock) and b.is_highlighted
        ]


class NoteCreate(BaseModel):
    """POST /document/notes request body."""

    text: str = Field(max_length=20_000)
    after_block_id: str | None = None
    referenced_block_id: str | None = None
    referenced_text: str | None = None


class NoteCreateResponse(BaseModel):
    """POST /document/notes response."""

    block_id: str


class BlockUpdate(BaseModel):
    """PATCH /document/blocks/{block_id} request body."""

    content: str = Field(max_length=20_000)


class DocumentUpdate(BaseModel):
    """PATCH /document request body."""

    title: str = Field(min_length=1, max_length=255)


class DocumentSummary(BaseModel):
    """Row in GET /documents."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ExportFormat(StrEnum):
    """Supported document export formats."""

    text = "text"
    markdown = "markdown"


class ExportResponse(BaseModel):
    """GET /document/export response."""

    format: ExportFormat
    content: str


class SummaryResult(BaseModel):
    """Structured summary returned by the summarization service."""

    summary: str = ""
    key_points: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------


class PlaybackStatus(StrEnum):
    """States of the sequential playback machine."""

    idle = "idle"
    loading = "loading"
    playing = "playing"
    paused = "paused"


class PlaybackState(BaseModel):
    """Snapshot of the playback engine, emitted on every transition."""

    status: PlaybackStatus = PlaybackStatus.idle
    current_index: int | None = None
    position_millis: int = 0
    generation: int = 0
    highlighted_block_id: str | None = None
    error: str | None = None

    @computed_field
    @property
    def is_playing(self) -> bool:
        return self.status == PlaybackStatus.playing


class PlaybackRequest(BaseModel):
    """POST /playback/start request body.

    When ``segment_indexes`` is omitted every segment of the document is played.
    """

    segment_indexes: list[int] | None = None


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TextMessage(BaseModel):
    type: Literal["text"] = "text"
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    text: str
    edited: bool = False
    is_combined: bool = False
    is_user_typed: bool = True


class ImageMessage(BaseModel):
    type: Literal["image"] = "image"
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    uri: str


class AudioMessage(BaseModel):
    type: Literal["audio"] = "audio"
    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utcnow)
    uri: str
    duration_seconds: float = 0.0


ChatMessage = Annotated[
    TextMessage | ImageMessage | AudioMessage, Field(discriminator="type")
]


class ChatTextRequest(BaseModel):
    """POST /chat/messages and PATCH /chat/messages/{id} request body."""

    text: str = Field(max_length=20_000)


class ChatCombineRequest(BaseModel):
    """POST /chat/combine request body."""

    message_ids: list[str] = Field(min_length=2)


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class WebSocketMessageType(StrEnum):
    """Discriminator for messages sent over the events WebSocket."""

    connected = "connected"
    transcript = "transcript"
    playback = "playback"
    status = "status"
    error = "error"


class WebSocketMessage(BaseModel):
    """JSON message sent from server to client over WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    detail: str
    code: str
    timestamp: str
