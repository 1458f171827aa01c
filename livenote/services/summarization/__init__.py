"""
Summarization module - Document summaries via the configured LLM.
"""

from .base import BaseSummarizer
from .document_summarizer import DocumentSummarizer

__all__ = ["BaseSummarizer", "DocumentSummarizer"]
