"""Shared pytest fixtures for the LiveNote test suite.

Provides mock LLM/STT providers, PCM audio samples, a fake playback
backend, an in-memory database engine and a fully wired notebook.
"""

import asyncio
import json
import math
import struct
import wave
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from livenote.core.config import Settings
from livenote.core.exceptions import PlaybackLoadError
from livenote.services.audio.capture import PushAudioSource
from livenote.services.audio.player import BaseAudioPlayer, LoadedAudio
from livenote.services.notebook import Notebook
from livenote.services.storage import database
from livenote.services.storage.database import Base

SAMPLE_RATE = 16000
BYTES_PER_SECOND = SAMPLE_RATE * 2


def make_tone(seconds: float, frequency: float = 440.0, amplitude: int = 16000) -> bytes:
    """16-bit mono PCM sine tone at 16 kHz."""
    count = int(SAMPLE_RATE * seconds)
    return b"".join(
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * frequency * i / SAMPLE_RATE)))
        for i in range(count)
    )


# ---------------------------------------------------------------------------
# LLM Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_llm():
    """Mock LLM whose summarize() answers with a valid summary JSON."""
    from livenote.services.llm.base import BaseLLM

    llm = AsyncMock(spec=BaseLLM)
    llm.summarize.return_value = json.dumps(
        {
            "summary": "Weekly sync about the release.",
            "key_points": ["Release moves to Friday"],
            "action_items": ["Update the changelog"],
        }
    )
    return llm


# ---------------------------------------------------------------------------
# STT Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_stt():
    """Mock STT provider returning the same sentence for every segment."""
    from livenote.services.transcription.base import BaseSTT

    stt = AsyncMock(spec=BaseSTT)
    stt.transcribe.return_value = {
        "text": "This is a test transcription.",
        "language": "en",
        "confidence": 0.95,
    }
    return stt


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono)."""
    return make_tone(1.0)


@pytest.fixture
def tone():
    """Factory for sine-tone PCM of a given length in seconds."""
    return make_tone


@pytest.fixture
def silent_pcm_bytes():
    """1 second of silence as PCM audio (16kHz, 16-bit, mono)."""
    return b"\x00\x00" * SAMPLE_RATE


@pytest.fixture
def sample_audio_path(tmp_path, sample_pcm_bytes):
    """A temporary WAV file holding ``sample_pcm_bytes``."""
    wav_path = tmp_path / "test_audio.wav"
    with wave.open(str(wav_path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(sample_pcm_bytes)
    return str(wav_path)


# ---------------------------------------------------------------------------
# Playback Fixtures
# ---------------------------------------------------------------------------


class FakeAudio(LoadedAudio):
    """Loaded resource that finishes only when the test says so."""

    def __init__(self, player: "FakePlayer", uri: str, on_finished) -> None:
        self.player = player
        self.uri = uri
        self.on_finished = on_finished
        self.calls: list[str] = []
        self.unloaded = False

    async def play(self) -> None:
        self.calls.append("play")

    async def pause(self) -> None:
        self.calls.append("pause")

    async def resume(self) -> None:
        self.calls.append("resume")

    async def unload(self) -> None:
        self.calls.append("unload")
        if self.uri in self.player.fail_unload:
            raise RuntimeError("device went away")
        self.unloaded = True
        self.player.active -= 1

    @property
    def position_millis(self) -> int:
        return 250

    def finish(self) -> None:
        """Simulate natural end of playback."""
        self.on_finished()


class FakePlayer(BaseAudioPlayer):
    """Playback backend that records every load and tracks live resources.

    ``gate`` (when set) blocks every load until the event is set, which lets
    tests act while a load is in flight.
    """

    def __init__(self) -> None:
        self.loaded: list[FakeAudio] = []
        self.active = 0
        self.max_active = 0
        self.fail_load: set[str] = set()
        self.fail_unload: set[str] = set()
        self.gate: asyncio.Event | None = None

    async def load(self, uri: str, on_finished) -> LoadedAudio:
        if self.gate is not None:
            await self.gate.wait()
        if uri in self.fail_load:
            raise PlaybackLoadError(uri, "corrupt file")
        audio = FakeAudio(self, uri, on_finished)
        self.loaded.append(audio)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return audio

    @property
    def current(self) -> FakeAudio:
        return self.loaded[-1]


@pytest.fixture
def fake_player():
    return FakePlayer()


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    from livenote.services.storage import models_db  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session_factory(db_engine):
    """Point the database module at the test engine for the duration of a test."""
    database._engine = db_engine
    database._session_factory = None
    yield database.get_session_factory()
    database.reset_engine()


# ---------------------------------------------------------------------------
# Notebook Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        capture_source="push",
        recordings_dir=str(tmp_path / "recordings"),
        database_url="sqlite+aiosqlite:///:memory:",
        segment_duration_seconds=3.0,
        stt_provider="openai",
        llm_provider="claude",
    )


@pytest.fixture
def notebook(test_settings, mock_stt, fake_player, mock_llm):
    """Notebook on a push source with segments cut by hand (``recorder.tick()``)."""
    from livenote.services.summarization import DocumentSummarizer

    return Notebook(
        source=PushAudioSource(),
        stt=mock_stt,
        player=fake_player,
        summarizer=DocumentSummarizer(mock_llm),
        settings=test_settings,
        auto_tick=False,
    )
