"""
Transcription module - Speech-to-text abstraction layer and segment pipeline.

Factory function for creating STT instances based on provider configuration.
"""

from .base import BaseSTT
from .pipeline import TranscriptionPipeline

__all__ = ["BaseSTT", "TranscriptionPipeline", "create_stt"]


def create_stt(provider: str, **kwargs) -> BaseSTT:
    """
    Factory function to create STT instance based on provider.

    Args:
        provider: STT provider name ("openai", "local"/"whisper")
        **kwargs: Provider-specific configuration

    Returns:
        BaseSTT implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "openai":
        from .openai_api import OpenAITranscriptionSTT
        return OpenAITranscriptionSTT(**kwargs)
    elif provider == "whisper" or provider == "local":
        from .whisper import WhisperSTT
        return WhisperSTT(**kwargs)
    else:
        raise ValueError(f"Unknown STT provider: {provider}")
