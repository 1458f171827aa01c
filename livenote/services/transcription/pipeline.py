"""Background transcription of recorded segments.

Segments are transcribed strictly in capture order with a single request in
flight, so the cumulative transcript never depends on network completion
timing. After every resolved segment an update carrying the full session
transcript and a progress estimate is handed to ``on_update``.

Usage::

    pipeline = TranscriptionPipeline(stt, on_update=manager_callback, session_token=3)
    recorder.set_segment_callback(pipeline.enqueue)
    ...
    await pipeline.drain()
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from livenote.core.models import AudioSegmentRef, SegmentStatus, TranscriptionUpdate
from livenote.core.utils import maybe_await
from livenote.services.audio.processor import AudioProcessor
from livenote.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[TranscriptionUpdate], Awaitable[None] | None]


class TranscriptionPipeline:
    """FIFO of segments drained by one worker task.

    Args:
        stt: Provider used for every segment.
        on_update: Receives a :class:`TranscriptionUpdate` per resolved segment
            and once more when :meth:`drain` finishes.
        session_token: Recording session this pipeline belongs to; copied
            into every update.
        language: Optional language hint passed to the provider.
        initial_text: Transcript already present when a session continues an
            existing block; new text is appended after it.
        skip_silence: Detect silent segments locally and skip the provider call.
        processor: Audio helper used for silence detection.
    """

    def __init__(
        self,
        stt: BaseSTT,
        on_update: UpdateCallback | None = None,
        session_token: int = 0,
        language: str | None = None,
        initial_text: str = "",
        skip_silence: bool = False,
        processor: AudioProcessor | None = None,
    ) -> None:
        self._stt = stt
        self._on_update = on_update
        self.session_token = session_token
        self._language = language or None
        self._skip_silence = skip_silence
        self._processor = processor or AudioProcessor()

        self._queue: deque[AudioSegmentRef] = deque()
        self._worker: asyncio.Task | None = None
        self._texts: list[str] = [initial_text.strip()] if initial_text.strip() else []
        self._enqueued = 0
        self._processed = 0
        self._failed = 0
        self._total_seconds = 0.0
        self._transcribed_seconds = 0.0
        self._progress = 0.0
        self._draining = False
        self._finalized = False
        self._last_update: TranscriptionUpdate | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        """Cumulative transcript: non-empty segment texts joined by spaces."""
        return " ".join(self._texts)

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def enqueued_count(self) -> int:
        return self._enqueued

    @property
    def processed_count(self) -> int:
        return self._processed

    @property
    def failed_count(self) -> int:
        return self._failed

    @property
    def is_busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def last_update(self) -> TranscriptionUpdate | None:
        return self._last_update

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def enqueue(self, segment: AudioSegmentRef) -> None:
        """Queue a segment and make sure a worker is draining (non-blocking)."""
        self._queue.append(segment)
        self._enqueued += 1
        self._total_seconds += segment.duration_seconds
        logger.debug(
            "Segment %s queued (%s pending)", segment.index, len(self._queue)
        )
        self._ensure_worker()

    def rebase(self, text: str) -> None:
        """Replace the transcript so far with ``text`` (a user edit of the block).

        Segments resolved later are appended after it.
        """
        text = (text or "").strip()
        self._texts = [text] if text else []

    async def drain(self) -> TranscriptionUpdate:
        """Wait until every queued segment is resolved, then emit the final update.

        The terminal update is emitted once; later calls return it again
        without notifying.
        """
        self._draining = True
        while self._queue or self.is_busy:
            self._ensure_worker()
            await asyncio.shield(self._worker)

        if self._finalized:
            return self._last_update
        self._finalized = True
        self._progress = 1.0
        update = self._build_update(segment_index=None, is_final=True)
        logger.info(
            "Transcription drained: %s segments (%s failed), %s chars",
            self._processed,
            self._failed,
            len(update.text),
        )
        await self._emit(update)
        return update

    async def cancel(self) -> None:
        """Drop pending segments and stop the worker without a final update."""
        self._queue.clear()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._finalized = True

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        """Pop segments one at a time until the queue is empty."""
        while self._queue:
            segment = self._queue.popleft()
            try:
                await self._process_one(segment)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unexpected failure processing segment %s", segment.index)

    async def _process_one(self, segment: AudioSegmentRef) -> None:
        text = ""
        try:
            if self._skip_silence and await asyncio.to_thread(
                self._processor.is_silent_file, segment.uri
            ):
                logger.debug("Segment %s is silent, skipping provider", segment.index)
            else:
                kwargs = {"language": self._language} if self._language else {}
                result = await self._stt.transcribe(segment.uri, **kwargs)
                text = (result.get("text") or "").strip()
            segment.transcribed_text = text
            segment.status = SegmentStatus.done
        except Exception as exc:
            self._failed += 1
            segment.status = SegmentStatus.failed
            logger.warning("Transcription failed for segment %s: %s", segment.index, exc)

        if text:
            self._texts.append(text)
        self._processed += 1
        self._transcribed_seconds += segment.duration_seconds
        self._progress = max(self._progress, self._estimate_progress())

        await self._emit(self._build_update(segment_index=segment.index, is_final=False))

    def _estimate_progress(self) -> float:
        # While capturing, the segment being recorded counts toward the total.
        total = self._enqueued if self._draining else self._enqueued + 1
        if total <= 0:
            return 1.0
        return min(1.0, max(0.0, self._processed / total))

    def _build_update(self, segment_index: int | None, is_final: bool) -> TranscriptionUpdate:
        return TranscriptionUpdate(
            text=self.text,
            progress=self._progress,
            processed_segments=self._processed,
            total_segments=self._enqueued,
            transcribed_seconds=self._transcribed_seconds,
            total_seconds=self._total_seconds,
            segment_index=segment_index,
            session_token=self.session_token,
            is_final=is_final,
        )

    async def _emit(self, update: TranscriptionUpdate) -> None:
        self._last_update = update
        if self._on_update is None:
            return
        try:
            await maybe_await(self._on_update(update))
        except Exception:
            logger.exception(
                "Transcription update callback failed (non-fatal, segment=%s)",
                update.segment_index,
            )
