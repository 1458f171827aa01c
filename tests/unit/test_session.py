"""Tests for TranscriptionSessionManager (transcript-to-block binding)."""

import pytest

from livenote.core.models import Document, NoteBlock, TranscriptionBlock
from livenote.services.session import TranscriptionSessionManager


@pytest.fixture
def manager():
    return TranscriptionSessionManager(Document())


def _contents(doc: Document) -> list[tuple[str, str]]:
    return [(b.type, b.content) for b in doc.blocks]


class TestSingleSession:
    def test_first_update_opens_block(self, manager):
        token = manager.on_segment_recorder_start()
        block_id = manager.on_pipeline_update("hello", 0.5, session_token=token)

        assert block_id == manager.active_block_id
        assert _contents(manager.document) == [("transcription", "hello")]

    def test_updates_replace_content(self, manager):
        token = manager.on_segment_recorder_start()
        first = manager.on_pipeline_update("hello", 0.3, token)
        second = manager.on_pipeline_update("hello world", 0.6, token)

        assert first == second
        assert _contents(manager.document) == [("transcription", "hello world")]

    def test_empty_text_creates_nothing(self, manager):
        token = manager.on_segment_recorder_start()
        assert manager.on_pipeline_update("   ", 0.5, token) is None
        assert manager.document.blocks == []

    def test_stale_token_is_discarded(self, manager):
        old = manager.on_segment_recorder_start()
        manager.on_segment_recorder_stop()
        new = manager.on_segment_recorder_start()

        assert manager.on_pipeline_update("late", 1.0, session_token=old) is None
        assert manager.document.blocks == []
        assert new == old + 1

    def test_final_update_after_stop_lands_on_same_block(self, manager):
        token = manager.on_segment_recorder_start()
        block_id = manager.on_pipeline_update("draft", 0.5, token)
        manager.on_segment_recorder_stop()

        assert manager.on_pipeline_update("draft final", 1.0, token) == block_id
        assert manager.session.active is False


class TestBlockBoundaries:
    def test_note_after_active_block_opens_new_block(self, manager):
        """Transcript, note, transcript: the note splits the two sessions."""
        doc = manager.document
        token = manager.on_segment_recorder_start()
        first = manager.on_pipeline_update("A", 1.0, token)
        manager.on_segment_recorder_stop()

        doc.append_block(NoteBlock(content="my note"))
        manager.on_user_note_inserted(first)

        token = manager.on_segment_recorder_start()
        second = manager.on_pipeline_update("B", 1.0, token)

        assert second != first
        assert _contents(doc) == [
            ("transcription", "A"),
            ("note", "my note"),
            ("transcription", "B"),
        ]

    def test_note_elsewhere_still_breaks_continuation(self, manager):
        doc = manager.document
        token = manager.on_segment_recorder_start()
        first = manager.on_pipeline_update("A", 1.0, token)
        manager.on_segment_recorder_stop()

        # Appended at the end without naming the active block.
        doc.append_block(NoteBlock(content="tail"))
        manager.on_user_note_inserted(None)

        token = manager.on_segment_recorder_start()
        assert manager.on_pipeline_update("B", 1.0, token) != first

    def test_new_session_continues_block_without_note(self, manager):
        token = manager.on_segment_recorder_start()
        first = manager.on_pipeline_update("A", 1.0, token)
        manager.on_segment_recorder_stop()

        assert manager.continuation_text() == "A"
        token = manager.on_segment_recorder_start()
        assert manager.on_pipeline_update("A B", 1.0, token) == first
        assert _contents(manager.document) == [("transcription", "A B")]

    def test_deleted_active_block_degrades_to_new_block(self, manager):
        token = manager.on_segment_recorder_start()
        first = manager.on_pipeline_update("A", 0.5, token)

        manager.document.remove_block(first)
        manager.on_block_deleted(first)
        second = manager.on_pipeline_update("A B", 0.8, token)

        assert second != first
        assert _contents(manager.document) == [("transcription", "A B")]

    def test_missing_block_without_notification_degrades(self, manager):
        token = manager.on_segment_recorder_start()
        first = manager.on_pipeline_update("A", 0.5, token)
        manager.document.remove_block(first)

        assert manager.on_pipeline_update("A B", 0.8, token) not in (None, first)

    def test_continuation_text_empty_after_note(self, manager):
        token = manager.on_segment_recorder_start()
        block_id = manager.on_pipeline_update("A", 1.0, token)
        manager.document.append_block(NoteBlock(content="n"))
        manager.on_user_note_inserted(block_id)
        assert manager.continuation_text() == ""


class TestAttachDocument:
    def test_attach_resets_active_block(self, manager):
        token = manager.on_segment_recorder_start()
        manager.on_pipeline_update("A", 1.0, token)

        other = Document(title="Other", blocks=[TranscriptionBlock(content="old")])
        manager.attach_document(other)

        assert manager.document is other
        assert manager.active_block_id is None
        assert manager.continuation_text() == ""

    def test_session_snapshot_is_a_copy(self, manager):
        snapshot = manager.session
        snapshot.session_token = 99
        assert manager.session_token == 0
