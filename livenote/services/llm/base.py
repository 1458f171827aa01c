"""
Abstract base class for LLM providers.

Providers back the document summarizer. The summary prompt lives here so
every provider asks for the same JSON shape.
"""

from abc import ABC, abstractmethod

SUMMARY_SYSTEM_PROMPT = (
    "You are an assistant that summarizes meetings and notes. "
    "Analyze the document and output ONLY valid JSON, no markdown fences or extra text.\n"
    'Format: {"summary": "...", "key_points": [...], "action_items": [...]}\n'
    "- summary: a short paragraph capturing the content.\n"
    "- key_points: the important points, one short sentence each.\n"
    "- action_items: concrete follow-up tasks; empty list if there are none.\n"
    "- Preserve the original language of the document."
)


def build_summary_prompt(text: str, title: str | None = None) -> str:
    """User prompt for a document summary: title first, then the content."""
    return f"Title: {title or ''}\n\nContent:\n{text}"


class BaseLLM(ABC):
    """Interface that every LLM provider must implement."""

    @abstractmethod
    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate a free-form text response.

        Args:
            prompt: The user prompt to send to the model.
            **kwargs: Provider options (system, temperature, max_tokens).

        Returns:
            The model's text response.
        """

    @abstractmethod
    async def summarize(self, text: str, **kwargs) -> str:
        """Summarize a document.

        Args:
            text: Plain-text export of the document.
            **kwargs: ``title`` plus provider options.

        Returns:
            JSON string with ``summary``, ``key_points`` and ``action_items``.
        """
