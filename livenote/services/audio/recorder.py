"""Segmented recording for background transcription.

Writes one continuous master WAV while slicing the audio captured since the
previous tick into independent, fixed-duration segment files. Capture is
never paused to cut a segment.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

from livenote.core.exceptions import DeviceBusyError
from livenote.core.models import AudioSegmentRef, RecordingResult
from livenote.core.utils import maybe_await, new_id
from livenote.services.audio.capture import BaseAudioSource
from livenote.services.audio.processor import AudioProcessor

logger = logging.getLogger(__name__)

SegmentCallback = Callable[[AudioSegmentRef], Awaitable[None] | None]


class SegmentedRecorder:
    """Owns one live capture and emits ordered segments while it runs.

    Args:
        source: Capture source delivering 16-bit PCM bytes.
        output_dir: Directory under which each recording gets its own folder.
        segment_duration: Seconds between segment cuts.
        on_segment: Called with every new segment (sync or async).
        auto_tick: Arm the periodic tick task on ``start()``. Disable to drive
            ``tick()`` by hand.
    """

    def __init__(
        self,
        source: BaseAudioSource,
        output_dir: str | Path,
        segment_duration: float = 3.0,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
        on_segment: SegmentCallback | None = None,
        auto_tick: bool = True,
    ) -> None:
        if segment_duration <= 0:
            raise ValueError("segment_duration must be > 0")
        self._source = source
        self._output_dir = Path(output_dir)
        self._segment_duration = segment_duration
        self._processor = AudioProcessor(sample_rate, sample_width, channels)
        self._on_segment = on_segment
        self._auto_tick = auto_tick

        # Guarded by _lock: touched from the capture thread through feed().
        self._lock = threading.Lock()
        self._recording = False
        self._pending = bytearray()
        self._master = None
        self._captured_bytes = 0

        # Set while stop() flushes the trailing segment and closes the master.
        self._stopping = False

        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._tick_task: asyncio.Task | None = None
        self._session_dir: Path | None = None
        self._master_path: Path | None = None
        self._emitted_bytes = 0
        self._segments: list[AudioSegmentRef] = []
        self._first_index = 0

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def segments(self) -> list[AudioSegmentRef]:
        """Segments emitted so far by the current (or last) recording."""
        return list(self._segments)

    @property
    def captured_seconds(self) -> float:
        """Audio time captured into the master recording so far."""
        return self._processor.bytes_to_seconds(self._captured_bytes)

    def set_segment_callback(self, on_segment: SegmentCallback | None) -> None:
        self._on_segment = on_segment

    async def start(self, first_index: int = 0) -> None:
        """Begin the master recording and arm the segment tick.

        Args:
            first_index: Index given to the first segment, so segments of
                several recordings in one document stay unique.

        Raises:
            DeviceBusyError: If a capture is already active or the previous
                one is still being flushed.
            PermissionDeniedError: If the source refuses access.
        """
        if self._recording or self._stopping:
            raise DeviceBusyError()

        stamp = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
        session_dir = self._output_dir / f"recording-{stamp}-{new_id()[:8]}"
        master_path = session_dir / "master.wav"
        master = self._processor.open_wav_writer(master_path)

        with self._lock:
            self._pending = bytearray()
            self._captured_bytes = 0
            self._master = master
            self._recording = True
        self._session_dir = session_dir
        self._master_path = master_path
        self._emitted_bytes = 0
        self._segments = []
        self._first_index = first_index

        try:
            self._source.start(self.feed)
        except Exception:
            with self._lock:
                self._recording = False
                self._master = None
            master.close()
            master_path.unlink(missing_ok=True)
            try:
                session_dir.rmdir()
            except OSError:
                pass
            self._session_dir = None
            self._master_path = None
            raise

        self._stop_event = asyncio.Event()
        if self._auto_tick:
            self._tick_task = asyncio.create_task(self._tick_loop())
        logger.info(
            "Recording started: %s (segment=%.1fs)", session_dir, self._segment_duration
        )

    def feed(self, data: bytes) -> None:
        """Append captured PCM bytes. Safe to call from the capture thread."""
        if not data:
            return
        with self._lock:
            if not self._recording or self._master is None:
                return
            self._master.writeframes(data)
            self._captured_bytes += len(data)
            self._pending.extend(data)

    async def tick(self) -> AudioSegmentRef | None:
        """Cut the audio captured since the last tick into a segment file.

        Returns:
            The new segment, or None if nothing was captured since the last cut.
        """
        async with self._tick_lock:
            frame_size = self._processor.frame_size
            with self._lock:
                usable = len(self._pending) - (len(self._pending) % frame_size)
                if usable == 0:
                    return None
                chunk = bytes(self._pending[:usable])
                del self._pending[:usable]

            index = self._first_index + len(self._segments)
            start = self._processor.bytes_to_seconds(self._emitted_bytes)
            self._emitted_bytes += len(chunk)
            end = self._processor.bytes_to_seconds(self._emitted_bytes)
            path = self._session_dir / f"segment-{index:04d}.wav"
            try:
                uri = await asyncio.to_thread(self._processor.save_wav, chunk, path)
            except Exception:
                logger.exception("Failed to write segment %s (%.2f-%.2fs)", index, start, end)
                # Put the audio back so the next tick retries it.
                with self._lock:
                    self._pending[:0] = chunk
                self._emitted_bytes -= len(chunk)
                return None

            segment = AudioSegmentRef(
                index=index,
                uri=uri,
                start_offset_seconds=start,
                end_offset_seconds=end,
                master_audio_uri=str(self._master_path.resolve()),
            )
            self._segments.append(segment)
            logger.debug("Segment %s cut: %.2f-%.2fs", index, start, end)

            if self._on_segment is not None:
                try:
                    await maybe_await(self._on_segment(segment))
                except Exception:
                    logger.exception("Segment callback failed for segment %s", index)
            return segment

    async def stop(self) -> RecordingResult:
        """Stop capture, flush the trailing partial segment, close the master.

        Idempotent: returns an empty result when no recording is active.
        """
        if not self._recording:
            return RecordingResult()

        self._stopping = True
        try:
            return await self._finish()
        finally:
            self._stopping = False

    async def _finish(self) -> RecordingResult:
        try:
            self._source.stop()
        except Exception:
            logger.warning("Capture source failed to stop cleanly", exc_info=True)

        with self._lock:
            self._recording = False
            master, self._master = self._master, None

        self._stop_event.set()
        if self._tick_task is not None:
            await self._tick_task
            self._tick_task = None

        # Final, possibly shorter segment.
        await self.tick()

        if master is not None:
            await asyncio.to_thread(master.close)

        total = self._processor.bytes_to_seconds(self._captured_bytes)
        logger.info(
            "Recording stopped: %.2fs captured, %s segments", total, len(self._segments)
        )
        return RecordingResult(
            master_audio_uri=str(self._master_path.resolve()) if self._master_path else None,
            total_duration_seconds=total,
            segments=list(self._segments),
        )

    async def _tick_loop(self) -> None:
        """Background loop: cut a segment every period until stopped."""
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self._segment_duration
                    )
                except TimeoutError:
                    await self.tick()
        except Exception:
            logger.exception("Segment tick loop crashed")
