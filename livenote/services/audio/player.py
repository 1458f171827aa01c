"""Audio players used by the playback engine.

A player turns a segment URI into a loaded, playable resource. Loaded
resources report natural completion through the ``on_finished`` callback
given at load time; the callback may fire on an audio thread.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from livenote.core.exceptions import PlaybackLoadError

logger = logging.getLogger(__name__)


class LoadedAudio(ABC):
    """A single loaded audio resource."""

    @abstractmethod
    async def play(self) -> None: ...

    @abstractmethod
    async def pause(self) -> None: ...

    @abstractmethod
    async def resume(self) -> None: ...

    @abstractmethod
    async def unload(self) -> None:
        """Release the resource. Must not trigger ``on_finished``."""

    @property
    @abstractmethod
    def position_millis(self) -> int: ...


class BaseAudioPlayer(ABC):
    """Interface that every playback backend must implement."""

    @abstractmethod
    async def load(self, uri: str, on_finished: Callable[[], None]) -> LoadedAudio:
        """Load ``uri`` without starting playback.

        Raises:
            PlaybackLoadError: If the file cannot be opened or decoded.
        """


class SoundDeviceAudio(LoadedAudio):
    """Plays a decoded int16 buffer through a sounddevice output stream.

    Args:
        data: Frames as an int16 array shaped (frames, channels).
        sample_rate: Sample rate of ``data``.
        on_finished: Called on the event loop when playback reaches the end.
        sd: sounddevice module to use; imported on demand when omitted.
    """

    def __init__(
        self, data, sample_rate: int, on_finished: Callable[[], None], sd=None
    ) -> None:
        if sd is None:
            import sounddevice as sd

        self._sd = sd
        self._data = data
        self._sample_rate = sample_rate
        self._on_finished = on_finished
        self._frame = 0
        self._unloaded = False
        self._loop = asyncio.get_running_loop()
        self._stream = sd.OutputStream(
            samplerate=sample_rate,
            channels=data.shape[1],
            dtype="int16",
            callback=self._callback,
            finished_callback=self._finished,
        )

    def _callback(self, outdata, frames, _time, status) -> None:
        if status:
            logger.debug("Output stream status: %s", status)
        chunk = self._data[self._frame : self._frame + frames]
        outdata[: len(chunk)] = chunk
        if len(chunk) < frames:
            outdata[len(chunk) :] = 0
            self._frame += len(chunk)
            raise self._sd.CallbackStop
        self._frame += frames

    def _finished(self) -> None:
        # Also fires on pause() and unload(); only natural end counts.
        if self._unloaded or self._frame < len(self._data):
            return
        self._loop.call_soon_threadsafe(self._on_finished)

    # PortAudio start/stop/close block until the device settles.

    async def play(self) -> None:
        await asyncio.to_thread(self._stream.start)

    async def pause(self) -> None:
        await asyncio.to_thread(self._stream.stop)

    async def resume(self) -> None:
        await asyncio.to_thread(self._stream.start)

    async def unload(self) -> None:
        self._unloaded = True
        await asyncio.to_thread(self._stream.abort)
        await asyncio.to_thread(self._stream.close)

    @property
    def position_millis(self) -> int:
        return int(self._frame * 1000 / self._sample_rate)


class SoundDevicePlayer(BaseAudioPlayer):
    """Decodes files with soundfile and plays them with sounddevice."""

    def __init__(self, sd=None) -> None:
        self._sd = sd

    async def load(self, uri: str, on_finished: Callable[[], None]) -> LoadedAudio:
        try:
            import soundfile as sf

            data, sample_rate = await asyncio.to_thread(
                sf.read, uri, dtype="int16", always_2d=True
            )
            return SoundDeviceAudio(data, sample_rate, on_finished, sd=self._sd)
        except PlaybackLoadError:
            raise
        except Exception as exc:
            raise PlaybackLoadError(uri, str(exc)) from exc
