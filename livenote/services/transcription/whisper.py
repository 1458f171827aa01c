"""Whisper STT implementation using faster-whisper.

Offline alternative to the HTTP transcription service. The WhisperModel is
loaded lazily and cached at module level to avoid repeated initialization
overhead.
"""

import asyncio
import logging
import math

from faster_whisper import WhisperModel

from livenote.core.config import get_settings
from livenote.core.exceptions import TranscriptionError
from livenote.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

_model_cache: WhisperModel | None = None


class WhisperSTT(BaseSTT):
    """Speech-to-text provider using faster-whisper (CTranslate2).

    Args:
        model_size: Whisper model size (tiny, base, small, medium, large-v3).
        device: Computation device ("cpu" or "cuda").
        compute_type: CTranslate2 compute type ("int8", "float16", etc.).
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        model_size: str | None = None,
        device: str = "cpu",
        compute_type: str = "int8",
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model_size = model_size or self._settings.whisper_model
        self._device = device
        self._compute_type = compute_type

    def _get_model(self) -> WhisperModel:
        """Return the cached WhisperModel, loading it on first use."""
        global _model_cache  # noqa: PLW0603
        if _model_cache is None:
            logger.info(
                "Loading Whisper model: %s (device=%s, compute=%s)",
                self._model_size,
                self._device,
                self._compute_type,
            )
            _model_cache = WhisperModel(
                self._model_size,
                device=self._device,
                compute_type=self._compute_type,
            )
        return _model_cache

    def _run_transcription(
        self,
        audio_path: str,
        language: str | None = None,
        beam_size: int = 5,
        vad_filter: bool = True,
    ) -> tuple:
        """Run synchronous transcription (CPU-bound).

        Must be called via asyncio.to_thread(). The segment iterator is
        materialized into a list inside this function to avoid CTranslate2
        thread-safety issues.
        """
        model = self._get_model()
        segments_iter, info = model.transcribe(
            audio_path,
            language=language,
            beam_size=beam_size,
            vad_filter=vad_filter,
        )
        segments = list(segments_iter)
        return segments, info

    @staticmethod
    def _logprob_to_confidence(avg_logprob: float) -> float:
        """Convert average log probability to a 0-1 confidence score."""
        return max(0.0, min(1.0, math.exp(avg_logprob)))

    async def transcribe(self, audio_path: str, **kwargs) -> dict:
        """Transcribe a segment WAV file.

        Args:
            audio_path: Path to WAV file (16kHz, mono).
            **kwargs: Optional keys: language, beam_size, vad_filter.

        Returns:
            Dict with text, language, confidence.
        """
        try:
            segments, info = await asyncio.to_thread(
                self._run_transcription,
                audio_path,
                language=kwargs.get("language") or None,
                beam_size=kwargs.get("beam_size", 5),
                vad_filter=kwargs.get("vad_filter", True),
            )
        except Exception as exc:
            raise TranscriptionError(detail=f"Whisper transcription failed: {exc}") from exc

        texts = [seg.text.strip() for seg in segments if seg.text.strip()]
        confidence = 0.0
        if segments:
            avg_logprob = sum(s.avg_logprob for s in segments) / len(segments)
            confidence = self._logprob_to_confidence(avg_logprob)

        return {
            "text": " ".join(texts),
            "language": info.language or "unknown",
            "confidence": confidence,
        }
