"""
Abstract base class for summarization providers.
"""

from abc import ABC, abstractmethod

from livenote.core.models import SummaryResult


class BaseSummarizer(ABC):
    """Interface that every summarizer must implement."""

    @abstractmethod
    async def summarize(self, text: str, title: str | None = None) -> SummaryResult:
        """Summarize the plain-text export of a document.

        Args:
            text: Document content, blocks in reading order.
            title: Optional document title, given to the model as context.

        Returns:
            A SummaryResult with summary, key points and action items.
        """
