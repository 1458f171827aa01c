"""
HTTP transcription provider for OpenAI-compatible ``/audio/transcriptions``.

Uploads each segment WAV as multipart form data with ``httpx.AsyncClient``.
Transient connection failures and timeouts are retried; anything else is
reported as :class:`TranscriptionError` so the pipeline can mark the
segment failed and move on.
"""

import logging
from pathlib import Path

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from livenote.core.config import get_settings
from livenote.core.exceptions import TranscriptionError
from livenote.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


class OpenAITranscriptionSTT(BaseSTT):
    """Remote STT provider speaking the OpenAI audio transcription API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key or settings.stt_api_key
        self._model = model or settings.stt_model
        self._client = client or httpx.AsyncClient(
            base_url=(base_url or settings.stt_base_url).rstrip("/"),
            timeout=timeout or settings.stt_timeout_seconds,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        reraise=True,
    )
    async def _call_api(self, audio: bytes, filename: str, language: str | None) -> dict:
        """POST one audio file and return the decoded JSON body.

        httpx exceptions are translated to ``ConnectionError`` /
        ``TimeoutError`` so the retry policy can recognize transient failures.
        """
        data = {"model": self._model, "response_format": "json"}
        if language:
            data["language"] = language
        try:
            response = await self._client.post(
                "/audio/transcriptions",
                headers={"Authorization": f"Bearer {self._api_key}"},
                files={"file": (filename, audio, "audio/wav")},
                data=data,
            )
        except httpx.TimeoutException as exc:
            logger.warning("Transcription API timeout: %s", exc)
            raise TimeoutError(f"Transcription request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            logger.warning("Transcription API connection error: %s", exc)
            raise ConnectionError(f"Failed to reach transcription API: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise ConnectionError(
                f"Transcription API unavailable ({response.status_code})"
            )
        if response.status_code >= 400:
            raise TranscriptionError(
                detail=f"Transcription API error ({response.status_code}): {response.text}"
            )
        return response.json()

    async def transcribe(self, audio_path: str, **kwargs) -> dict:
        """Transcribe one segment file.

        Args:
            audio_path: Path to the segment WAV.
            **kwargs: Optional key: language (ISO 639-1 hint).

        Returns:
            Dict with ``text`` (possibly empty) and ``language``.
        """
        path = Path(audio_path)
        try:
            audio = path.read_bytes()
        except OSError as exc:
            raise TranscriptionError(detail=f"Cannot read segment {audio_path}: {exc}") from exc
        if not audio:
            return {"text": "", "language": kwargs.get("language") or "unknown"}

        language = kwargs.get("language") or None
        try:
            payload = await self._call_api(audio, path.name, language)
        except TranscriptionError:
            raise
        except Exception as exc:
            raise TranscriptionError(detail=f"Transcription request failed: {exc}") from exc

        return {
            "text": (payload.get("text") or "").strip(),
            "language": payload.get("language") or language or "unknown",
        }

    async def aclose(self) -> None:
        await self._client.aclose()
