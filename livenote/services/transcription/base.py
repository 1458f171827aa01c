"""
Abstract base class for Speech-to-Text providers.

All STT implementations (OpenAI-compatible HTTP API, local Whisper, etc.) must
implement this interface, enabling provider-agnostic transcription in the
pipeline.
"""

from abc import ABC, abstractmethod


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @abstractmethod
    async def transcribe(self, audio_path: str, **kwargs) -> dict:
        """Transcribe an audio file to text.

        Args:
            audio_path: Path to the audio file (WAV, 16kHz, mono).
            **kwargs: Provider-specific options (language, etc.).

        Returns:
            Dict with at least a ``text`` key; empty text means silence.

        Raises:
            TranscriptionError: If the provider fails.
        """
