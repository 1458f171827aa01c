"""Live audio capture sources feeding the segmented recorder.

``MicrophoneSource`` records through sounddevice (PortAudio); its callback
runs on the PortAudio thread. ``PushAudioSource`` accepts PCM bytes that a
client streams over the ``/ws/audio`` WebSocket.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from livenote.core.exceptions import DeviceBusyError, PermissionDeniedError, RecordingNotActiveError

logger = logging.getLogger(__name__)

AudioCallback = Callable[[bytes], None]

_PERMISSION_MARKERS = ("permission", "denied", "not authorized", "not permitted")


class BaseAudioSource(ABC):
    """Interface that every capture source must implement."""

    @abstractmethod
    def start(self, on_audio: AudioCallback) -> None:
        """Begin delivering 16-bit PCM bytes to ``on_audio``.

        Raises:
            PermissionDeniedError: The OS refused microphone access.
            DeviceBusyError: The device is missing or already in use.
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering audio. Must be safe to call when not started."""


def list_input_devices() -> list[dict[str, Any]]:
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise DeviceBusyError(f"sounddevice is unavailable: {exc}") from exc

    return [dict(d) for d in sd.query_devices() if d.get("max_input_channels", 0) > 0]


def select_input_device(
    candidates: list[dict[str, Any]],
    prefer_name: str | None = None,
) -> dict[str, Any]:
    """Pick the device whose name contains ``prefer_name``, else the first one."""
    if not candidates:
        raise DeviceBusyError("No input devices found")
    if prefer_name:
        preferred = [
            d for d in candidates if prefer_name.lower() in d.get("name", "").lower()
        ]
        if preferred:
            return preferred[0]
        logger.warning("Input device %r not found, using %r", prefer_name, candidates[0].get("name"))
    return candidates[0]


def _translate_portaudio_error(exc: Exception) -> Exception:
    message = str(exc)
    if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
        return PermissionDeniedError(f"Microphone permission denied: {message}")
    return DeviceBusyError(f"Could not open input device: {message}")


class MicrophoneSource(BaseAudioSource):
    """Capture from a local input device with a sounddevice raw input stream.

    Args:
        sample_rate: Capture rate in Hz.
        channels: Number of input channels.
        device_name: Optional substring of the preferred device name.
        blocksize: Frames per PortAudio callback.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        device_name: str | None = None,
        blocksize: int = 1024,
    ) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._device_name = device_name or None
        self._blocksize = blocksize
        self._stream = None

    def start(self, on_audio: AudioCallback) -> None:
        if self._stream is not None:
            raise DeviceBusyError()
        try:
            import sounddevice as sd
        except Exception as exc:  # pragma: no cover - environment-dependent
            raise DeviceBusyError(f"sounddevice is unavailable: {exc}") from exc

        device = select_input_device(list_input_devices(), prefer_name=self._device_name)

        def _callback(indata, _frames, _time, status):
            if status:
                logger.debug("Input stream status: %s", status)
            on_audio(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype="int16",
                device=device.get("index"),
                blocksize=self._blocksize,
                callback=_callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise _translate_portaudio_error(exc) from exc

        self._stream = stream
        logger.info("Microphone capture started on %r", device.get("name"))

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception:
            logger.warning("Error while closing input stream", exc_info=True)
        logger.info("Microphone capture stopped")


class PushAudioSource(BaseAudioSource):
    """Capture source fed externally, one PCM chunk at a time."""

    def __init__(self) -> None:
        self._on_audio: AudioCallback | None = None

    @property
    def is_started(self) -> bool:
        return self._on_audio is not None

    def start(self, on_audio: AudioCallback) -> None:
        if self._on_audio is not None:
            raise DeviceBusyError()
        self._on_audio = on_audio

    def stop(self) -> None:
        self._on_audio = None

    def push(self, data: bytes) -> None:
        """Forward PCM bytes to the recorder.

        Raises:
            RecordingNotActiveError: If the source has not been started.
        """
        if self._on_audio is None:
            raise RecordingNotActiveError()
        self._on_audio(data)


def create_audio_source(provider: str, **kwargs) -> BaseAudioSource:
    """Factory function to create a capture source by name.

    Raises:
        ValueError: If the provider is unknown.
    """
    if provider == "microphone":
        return MicrophoneSource(**kwargs)
    if provider == "push":
        return PushAudioSource()
    raise ValueError(f"Unknown capture source: {provider}")
