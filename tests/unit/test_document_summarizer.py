"""Tests for DocumentSummarizer (LLM JSON parsing and error handling)."""

import json

import pytest
from tenacity import wait_none

from livenote.core.exceptions import SummarizationError
from livenote.services.summarization import DocumentSummarizer


@pytest.fixture
def summarizer(mock_llm):
    return DocumentSummarizer(mock_llm)


class TestSummarize:
    async def test_parses_summary_json(self, summarizer, mock_llm):
        result = await summarizer.summarize("transcript text", title="Weekly")

        assert result.summary == "Weekly sync about the release."
        assert result.key_points == ["Release moves to Friday"]
        assert result.action_items == ["Update the changelog"]
        mock_llm.summarize.assert_awaited_once_with("transcript text", title="Weekly")

    async def test_strips_code_fences(self, summarizer, mock_llm):
        mock_llm.summarize.return_value = '```json\n{"summary": "fenced"}\n```'
        result = await summarizer.summarize("text")
        assert result.summary == "fenced"
        assert result.key_points == []

    async def test_normalizes_list_fields(self, summarizer, mock_llm):
        mock_llm.summarize.return_value = json.dumps(
            {"summary": " s ", "key_points": "single point", "action_items": ["a", " ", 3]}
        )
        result = await summarizer.summarize("text")
        assert result.summary == "s"
        assert result.key_points == ["single point"]
        assert result.action_items == ["a", "3"]

    async def test_empty_text_skips_llm(self, summarizer, mock_llm):
        result = await summarizer.summarize("   ")
        assert result.summary == ""
        mock_llm.summarize.assert_not_awaited()


class TestErrors:
    async def test_invalid_json(self, summarizer, mock_llm):
        mock_llm.summarize.return_value = "Sure! Here is your summary."
        with pytest.raises(SummarizationError, match="Invalid JSON"):
            await summarizer.summarize("text")

    async def test_non_object_json(self, summarizer, mock_llm):
        mock_llm.summarize.return_value = '["not", "an", "object"]'
        with pytest.raises(SummarizationError, match="not a JSON object"):
            await summarizer.summarize("text")

    async def test_llm_failure_is_wrapped(self, summarizer, mock_llm, monkeypatch):
        monkeypatch.setattr(DocumentSummarizer._call_llm.retry, "wait", wait_none())
        mock_llm.summarize.side_effect = ConnectionError("offline")

        with pytest.raises(SummarizationError, match="offline"):
            await summarizer.summarize("text")
        assert mock_llm.summarize.await_count == 2
