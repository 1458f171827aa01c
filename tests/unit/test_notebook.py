"""Tests for Notebook, the consumer-facing API wiring recorder, pipeline,
session manager, playback engine and document together.

The ``notebook`` fixture uses a push capture source and manual segment
ticks, so a test controls exactly which audio lands in which segment.
"""

import asyncio
from pathlib import Path

import pytest

from livenote.core.exceptions import (
    BlockNotFoundError,
    DeviceBusyError,
    DocumentNotFoundError,
    InvalidNoteError,
    LiveNoteError,
    RecordingNotActiveError,
)
from livenote.core.models import (
    DEFAULT_DOCUMENT_TITLE,
    Document,
    NoteBlock,
    PlaybackStatus,
    TranscriptionBlock,
)
from livenote.services import notebook as notebook_module
from livenote.services.audio.capture import MicrophoneSource
from livenote.services.notebook import Notebook, close_notebook, get_notebook, open_notebook


@pytest.fixture
def numbered_stt(mock_stt):
    """STT answering ``word<N>`` for ``segment-<N>.wav``."""

    async def transcribe(audio_path, **kwargs):
        index = int(Path(audio_path).stem.split("-")[1])
        return {"text": f"word{index}", "language": "en"}

    mock_stt.transcribe.side_effect = transcribe
    return mock_stt


async def _record(notebook: Notebook, tone, *durations: float):
    """Run one recording with one segment per duration."""
    await notebook.start_recording()
    for seconds in durations[:-1]:
        notebook.push_audio(tone(seconds))
        await notebook.recorder.tick()
    notebook.push_audio(tone(durations[-1]))
    return await notebook.stop_recording()


def _layout(document: Document) -> list[tuple[str, str]]:
    return [(b.type, b.content) for b in document.blocks]


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class TestRecording:
    async def test_recording_fills_one_block(self, notebook, numbered_stt, tone):
        result = await _record(notebook, tone, 3.0, 3.0, 1.0)

        assert len(result.segments) == 3
        assert _layout(notebook.document) == [("transcription", "word0 word1 word2")]
        metadata = notebook.document.metadata
        assert metadata.total_duration == pytest.approx(7.0)
        assert metadata.master_audio_uri == result.master_audio_uri
        assert notebook.is_recording is False

    async def test_segments_link_to_their_block(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 3.0, 1.0)

        block_id = notebook.document.blocks[0].id
        segments = notebook.document.metadata.audio_segments
        assert [s.block_id for s in segments] == [block_id, block_id]
        assert all(s.transcribed_text for s in segments)

    async def test_note_splits_recordings(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 3.0, 1.0)
        notebook.add_note("remember this")
        await _record(notebook, tone, 2.0)

        assert _layout(notebook.document) == [
            ("transcription", "word0 word1"),
            ("note", "remember this"),
            ("transcription", "word2"),
        ]
        indexes = [s.index for s in notebook.document.metadata.audio_segments]
        assert indexes == [0, 1, 2]

    async def test_recording_continues_block_without_note(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 1.0)
        await _record(notebook, tone, 1.0)

        assert _layout(notebook.document) == [("transcription", "word0 word1")]

    async def test_silent_recording_creates_no_block(self, notebook, mock_stt, tone):
        mock_stt.transcribe.return_value = {"text": ""}
        await _record(notebook, tone, 1.0)
        assert notebook.document.blocks == []

    async def test_listeners_receive_updates(self, notebook, numbered_stt, tone):
        updates = []
        remove = notebook.on_transcription_update(updates.append)

        await _record(notebook, tone, 3.0, 1.0)
        remove()
        await _record(notebook, tone, 1.0)

        assert [u.text for u in updates] == ["word0", "word0 word1", "word0 word1"]
        assert updates[-1].is_final is True
        assert updates[-1].progress == 1.0
        assert notebook.last_update.text == "word0 word1 word2"

    async def test_start_twice_raises(self, notebook):
        await notebook.start_recording()
        with pytest.raises(DeviceBusyError):
            await notebook.start_recording()
        await notebook.stop_recording()

    async def test_start_refused_while_previous_stop_transcribes(
        self, notebook, numbered_stt, tone
    ):
        """A start while the last stop is still transcribing is refused."""
        gate = asyncio.Event()
        transcribe = numbered_stt.transcribe.side_effect

        async def gated(audio_path, **kwargs):
            await gate.wait()
            return await transcribe(audio_path, **kwargs)

        numbered_stt.transcribe.side_effect = gated
        await notebook.start_recording()
        notebook.push_audio(tone(2.0))
        await notebook.recorder.tick()
        notebook.push_audio(tone(2.0))

        stopping = asyncio.create_task(notebook.stop_recording())
        await asyncio.sleep(0.05)
        with pytest.raises(DeviceBusyError):
            await notebook.start_recording()
        concurrent = await notebook.stop_recording()
        assert concurrent.segments == []

        gate.set()
        result = await stopping
        assert len(result.segments) == 2
        assert _layout(notebook.document) == [("transcription", "word0 word1")]

        await _record(notebook, tone, 1.0)
        assert _layout(notebook.document) == [("transcription", "word0 word1 word2")]

    async def test_start_during_flush_keeps_first_recording(self, notebook, numbered_stt, tone):
        await notebook.start_recording()
        notebook.push_audio(tone(3.0))
        await notebook.recorder.tick()
        notebook.push_audio(tone(1.0))

        stopping = asyncio.create_task(notebook.stop_recording())
        await asyncio.sleep(0)
        assert notebook.is_recording is False
        with pytest.raises(DeviceBusyError):
            await notebook.start_recording()
        result = await stopping

        assert [s.index for s in result.segments] == [0, 1]
        assert result.total_duration_seconds == pytest.approx(4.0)
        assert notebook.document.metadata.master_audio_uri == result.master_audio_uri
        assert _layout(notebook.document) == [("transcription", "word0 word1")]

    async def test_each_segment_keeps_its_master(self, notebook, numbered_stt, tone):
        first = await _record(notebook, tone, 1.0)
        second = await _record(notebook, tone, 1.0)

        segments = notebook.document.metadata.audio_segments
        assert [s.master_audio_uri for s in segments] == [
            first.master_audio_uri,
            second.master_audio_uri,
        ]
        assert first.master_audio_uri != second.master_audio_uri
        assert notebook.document.metadata.master_audio_uri == second.master_audio_uri

    async def test_stop_when_idle_is_noop(self, notebook):
        result = await notebook.stop_recording()
        assert result.segments == []

    async def test_push_without_recording(self, notebook, tone):
        with pytest.raises(RecordingNotActiveError):
            notebook.push_audio(tone(0.1))

    async def test_push_requires_push_source(self, test_settings, mock_stt, fake_player, tone):
        notebook = Notebook(
            source=MicrophoneSource(), stt=mock_stt, player=fake_player, settings=test_settings
        )
        with pytest.raises(LiveNoteError) as exc_info:
            notebook.push_audio(tone(0.1))
        assert exc_info.value.code == "PUSH_NOT_SUPPORTED"

    async def test_recording_status(self, notebook, numbered_stt, tone):
        token = await notebook.start_recording()
        status = notebook.recording_status()
        assert status.is_recording is True
        assert status.session.active is True
        assert status.session.session_token == token
        await notebook.stop_recording()


# ---------------------------------------------------------------------------
# Document editing
# ---------------------------------------------------------------------------


class TestAddNote:
    async def test_blank_note_rejected(self, notebook):
        with pytest.raises(InvalidNoteError):
            notebook.add_note("   ")
        assert notebook.document.blocks == []

    async def test_insert_after_block(self, notebook, numbered_stt, tone):
        first = notebook.add_note("first")
        last = notebook.add_note("last")
        middle = notebook.add_note("middle", after_block_id=first)

        assert [b.id for b in notebook.document.blocks] == [first, middle, last]

    async def test_unknown_after_block(self, notebook):
        with pytest.raises(BlockNotFoundError):
            notebook.add_note("x", after_block_id="missing")

    async def test_reference_copies_block_text(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 1.0)
        target = notebook.document.blocks[0].id

        note_id = notebook.add_note("follow up", referenced_block_id=target)

        note = notebook.document.find_block(note_id)
        assert isinstance(note, NoteBlock)
        assert note.referenced_text == "word0"
        assert note.referenced_block_id == target

    async def test_explicit_excerpt_kept(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 1.0)
        target = notebook.document.blocks[0].id
        note_id = notebook.add_note("x", referenced_block_id=target, referenced_text="wor")
        assert notebook.document.find_block(note_id).referenced_text == "wor"

    async def test_unknown_reference(self, notebook):
        with pytest.raises(BlockNotFoundError):
            notebook.add_note("x", referenced_block_id="missing")


class TestEditing:
    async def test_delete_block(self, notebook):
        note_id = notebook.add_note("bye")
        notebook.delete_block(note_id)
        assert notebook.document.blocks == []

    async def test_delete_unknown_block(self, notebook):
        with pytest.raises(BlockNotFoundError):
            notebook.delete_block("missing")

    async def test_update_block_content(self, notebook):
        note_id = notebook.add_note("draft")
        before = notebook.document.blocks[0].updated_at

        updated = notebook.update_block(note_id, "  final  ")

        assert updated.content == "final"
        assert notebook.document.blocks[0].content == "final"
        assert notebook.document.blocks[0].updated_at >= before

    async def test_update_block_validation(self, notebook):
        note_id = notebook.add_note("draft")
        with pytest.raises(InvalidNoteError):
            notebook.update_block(note_id, "   ")
        with pytest.raises(BlockNotFoundError):
            notebook.update_block("missing", "text")

    async def test_edited_block_is_continued_by_next_recording(
        self, notebook, numbered_stt, tone
    ):
        await _record(notebook, tone, 1.0)
        notebook.update_block(notebook.document.blocks[0].id, "Hello")
        await _record(notebook, tone, 1.0)

        assert _layout(notebook.document) == [("transcription", "Hello word1")]

    async def test_edit_during_recording_is_kept(self, notebook, numbered_stt, tone):
        updates = asyncio.Queue()
        notebook.on_transcription_update(updates.put_nowait)

        await notebook.start_recording()
        notebook.push_audio(tone(2.0))
        await notebook.recorder.tick()
        first = await asyncio.wait_for(updates.get(), timeout=1.0)
        assert first.text == "word0"

        notebook.update_block(notebook.document.blocks[0].id, "Word zero,")
        notebook.push_audio(tone(1.0))
        await notebook.stop_recording()

        assert _layout(notebook.document) == [("transcription", "Word zero, word1")]

    async def test_deleting_active_block_starts_new_one(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 1.0)
        notebook.delete_block(notebook.document.blocks[0].id)
        await _record(notebook, tone, 1.0)

        assert _layout(notebook.document) == [("transcription", "word1")]

    async def test_set_title(self, notebook):
        notebook.set_title("  Planning  ")
        assert notebook.document.title == "Planning"
        notebook.set_title("   ")
        assert notebook.document.title == DEFAULT_DOCUMENT_TITLE

    async def test_exports(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 1.0)
        notebook.add_note("n")
        assert "[Transcription] word0" in notebook.export_as_text()
        assert "**Note:** n" in notebook.export_as_markdown()

    async def test_chat_log_available(self, notebook):
        notebook.chat.send_text("hello")
        assert len(notebook.chat.messages) == 1


class TestSummarize:
    async def test_empty_document(self, notebook, mock_llm):
        result = await notebook.summarize()
        assert result.summary == ""
        mock_llm.summarize.assert_not_awaited()

    async def test_summarizes_text_export(self, notebook, numbered_stt, mock_llm, tone):
        notebook.set_title("Weekly")
        await _record(notebook, tone, 1.0)

        result = await notebook.summarize()

        assert result.key_points == ["Release moves to Friday"]
        args, kwargs = mock_llm.summarize.call_args
        assert "[Transcription] word0" in args[0]
        assert kwargs["title"] == "Weekly"


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------


class TestPlayback:
    async def test_play_highlights_segment_block(self, notebook, numbered_stt, fake_player, tone):
        await _record(notebook, tone, 1.0)
        notebook.add_note("split")
        await _record(notebook, tone, 1.0)
        first_block, _, second_block = notebook.document.blocks

        state = await notebook.play_recording()
        assert state.status == PlaybackStatus.playing
        assert notebook.document.highlighted_block_ids == [first_block.id]

        fake_player.current.finish()
        await notebook.playback.settle()
        assert notebook.document.highlighted_block_ids == [second_block.id]

        await notebook.stop_playback()
        assert notebook.document.highlighted_block_ids == []

    async def test_play_selected_segments(self, notebook, numbered_stt, fake_player, tone):
        await _record(notebook, tone, 1.0, 1.0, 1.0)

        await notebook.play_recording(notebook.select_segments([2]))
        assert fake_player.current.uri.endswith("segment-0002.wav")

    async def test_unknown_segment_index(self, notebook):
        with pytest.raises(IndexError):
            notebook.select_segments([5])

    async def test_pause_resume(self, notebook, numbered_stt, tone):
        await _record(notebook, tone, 1.0)
        await notebook.play_recording()

        assert (await notebook.pause_playback()).status == PlaybackStatus.paused
        assert (await notebook.resume_playback()).status == PlaybackStatus.playing

    async def test_playback_listener(self, notebook, numbered_stt, tone):
        states = []
        notebook.on_playback_status(states.append)
        await _record(notebook, tone, 1.0)
        await notebook.play_recording()
        assert states[-1].status == PlaybackStatus.playing


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    async def test_save_and_load(self, notebook, numbered_stt, db_session_factory, tone):
        await _record(notebook, tone, 1.0)
        notebook.add_note("keep me")
        saved = await notebook.save()
        original = notebook.document

        notebook._document = Document()
        loaded = await notebook.load(saved.id)

        assert loaded.id == original.id
        assert _layout(notebook.document) == _layout(original)
        assert notebook.document is loaded

    async def test_load_clears_highlight(self, notebook, numbered_stt, db_session_factory, tone):
        await _record(notebook, tone, 1.0)
        notebook.document.set_highlight(notebook.document.blocks[0].id)
        await notebook.save()

        loaded = await notebook.load(notebook.document.id)
        assert loaded.highlighted_block_ids == []

    async def test_loaded_document_gets_new_block(
        self, notebook, numbered_stt, db_session_factory, tone
    ):
        await _record(notebook, tone, 1.0)
        await notebook.save()
        await notebook.load(notebook.document.id)

        await _record(notebook, tone, 1.0)
        blocks = notebook.document.blocks
        assert len(blocks) == 2
        assert all(isinstance(b, TranscriptionBlock) for b in blocks)

    async def test_load_missing(self, notebook, db_session_factory):
        with pytest.raises(DocumentNotFoundError):
            await notebook.load("missing")

    async def test_load_while_recording(self, notebook, db_session_factory):
        await notebook.start_recording()
        with pytest.raises(DeviceBusyError):
            await notebook.load("anything")
        await notebook.stop_recording()


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------


class TestSingleton:
    async def test_open_get_close(self, notebook):
        assert open_notebook(notebook) is notebook
        assert get_notebook() is notebook

        await notebook.start_recording()
        await close_notebook()

        assert notebook.is_recording is False
        assert notebook_module._notebook is None

    async def test_close_without_notebook(self):
        notebook_module._notebook = None
        await close_notebook()
