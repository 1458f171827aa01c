"""
Document summarization service.

Sends the plain-text export of a document to the configured LLM and parses
the structured JSON answer into a :class:`SummaryResult`.
"""

import json
import logging

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from livenote.core.exceptions import SummarizationError
from livenote.core.models import SummaryResult
from livenote.core.utils import strip_code_fences
from livenote.services.llm.base import BaseLLM
from livenote.services.summarization.base import BaseSummarizer

logger = logging.getLogger(__name__)


def _as_string_list(value) -> list[str]:
    """Coerce a JSON field into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class DocumentSummarizer(BaseSummarizer):
    """Summarizes whole documents using an LLM provider."""

    def __init__(self, llm: BaseLLM) -> None:
        self._llm = llm

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        reraise=True,
    )
    async def _call_llm(self, text: str, title: str | None) -> str:
        """Call LLM with retry for transient failures."""
        return await self._llm.summarize(text, title=title)

    async def summarize(self, text: str, title: str | None = None) -> SummaryResult:
        """Summarize a document.

        Raises:
            SummarizationError: If the LLM fails or returns invalid JSON.
        """
        if not text or not text.strip():
            return SummaryResult()

        try:
            raw_response = await self._call_llm(text, title)
        except Exception as exc:
            raise SummarizationError(detail=f"LLM call failed: {exc}") from exc

        cleaned = strip_code_fences(raw_response or "")
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise SummarizationError(
                detail=f"Invalid JSON from LLM: {cleaned[:200]}"
            ) from exc
        if not isinstance(data, dict):
            raise SummarizationError(detail="LLM summary is not a JSON object")

        result = SummaryResult(
            summary=str(data.get("summary") or "").strip(),
            key_points=_as_string_list(data.get("key_points")),
            action_items=_as_string_list(data.get("action_items")),
        )
        logger.info(
            "Document summarized: %s key points, %s action items",
            len(result.key_points),
            len(result.action_items),
        )
        return result
