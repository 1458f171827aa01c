"""Sequential playback of recorded segments with transcript highlighting.

State machine::

    idle -> loading(i) -> playing(i) <-> paused(i) -> loading(i+1) -> ... -> idle

Natural-completion notices from the audio backend are posted onto a
single-consumer ``asyncio.Queue``. Every notice carries the generation and
index of the resource that produced it, and the consumer drops any notice
that no longer matches the engine's current state. ``generation`` advances on
every ``start()`` and ``stop()``, which is what keeps a late completion from
resurrecting a stopped sequence.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from livenote.core.models import AudioSegmentRef, PlaybackState, PlaybackStatus
from livenote.core.utils import maybe_await
from livenote.services.audio.player import BaseAudioPlayer, LoadedAudio

logger = logging.getLogger(__name__)

StatusListener = Callable[[PlaybackState], Awaitable[None] | None]
HighlightCallback = Callable[[str | None], None]


@dataclass(frozen=True)
class PlayerEvent:
    """A "finished" notice from one loaded resource."""

    generation: int
    index: int


class PlaybackEngine:
    """Plays an ordered list of segments one after another.

    Args:
        player: Backend that loads segment URIs into playable resources.
        on_highlight: Called with the block id of the segment being played,
            or None when nothing is playing.
    """

    def __init__(
        self,
        player: BaseAudioPlayer,
        on_highlight: HighlightCallback | None = None,
    ) -> None:
        self._player = player
        self._on_highlight = on_highlight
        self._state = PlaybackState()
        self._segments: list[AudioSegmentRef] = []
        self._resource: LoadedAudio | None = None
        self._events: asyncio.Queue[PlayerEvent] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._listeners: list[StatusListener] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        """Snapshot of the current state, including the live position."""
        snapshot = self._state.model_copy()
        if self._resource is not None:
            try:
                snapshot.position_millis = self._resource.position_millis
            except Exception:
                logger.debug("Could not read playback position", exc_info=True)
        return snapshot

    @property
    def is_loaded(self) -> bool:
        return self._resource is not None

    def add_listener(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, segments: list[AudioSegmentRef]) -> PlaybackState:
        """Play ``segments`` from the first one, stopping any current sequence."""
        if self._state.status != PlaybackStatus.idle or self._resource is not None:
            await self.stop()

        self._ensure_consumer()
        self._state.generation += 1
        self._state.error = None
        self._segments = list(segments)
        if not self._segments:
            logger.info("Playback requested with no segments; staying idle")
            return self.state

        logger.info(
            "Playback started: %s segments (generation %s)",
            len(self._segments),
            self._state.generation,
        )
        await self._load_and_play(0, self._state.generation)
        return self.state

    async def pause(self) -> PlaybackState:
        if self._state.status != PlaybackStatus.playing or self._resource is None:
            return self.state
        await self._resource.pause()
        await self._transition(status=PlaybackStatus.paused)
        return self.state

    async def resume(self) -> PlaybackState:
        if self._state.status != PlaybackStatus.paused or self._resource is None:
            return self.state
        await self._resource.resume()
        await self._transition(status=PlaybackStatus.playing)
        return self.state

    async def stop(self) -> PlaybackState:
        """Tear down the current sequence. Safe to call at any time."""
        if self._state.status == PlaybackStatus.idle and self._resource is None:
            return self.state

        self._state.generation += 1
        resource, self._resource = self._resource, None
        self._segments = []
        await self._safe_unload(resource)
        self._highlight(None)
        await self._transition(
            status=PlaybackStatus.idle,
            current_index=None,
            position_millis=0,
            highlighted_block_id=None,
        )
        logger.info("Playback stopped (generation %s)", self._state.generation)
        return self.state

    async def close(self) -> None:
        """Stop playback and shut down the event consumer."""
        await self.stop()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

    # ------------------------------------------------------------------
    # Player events
    # ------------------------------------------------------------------

    def post_event(self, event: PlayerEvent) -> None:
        """Queue a completion notice. Must be called on the event loop thread."""
        self._events.put_nowait(event)

    async def settle(self) -> None:
        """Wait until every queued player event has been handled."""
        await self._events.join()

    def _ensure_consumer(self) -> None:
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._consume_events())

    async def _consume_events(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._handle_finished(event)
            except Exception:
                logger.exception("Failed to handle player event %s", event)
            finally:
                self._events.task_done()

    async def _handle_finished(self, event: PlayerEvent) -> None:
        if (
            event.generation != self._state.generation
            or event.index != self._state.current_index
            or self._state.status not in (PlaybackStatus.playing, PlaybackStatus.paused)
        ):
            logger.debug("Discarding stale player event %s", event)
            return

        resource, self._resource = self._resource, None
        await self._safe_unload(resource)

        next_index = event.index + 1
        if next_index < len(self._segments):
            await self._load_and_play(next_index, event.generation)
            return

        self._highlight(None)
        await self._transition(
            status=PlaybackStatus.idle,
            current_index=None,
            position_millis=0,
            highlighted_block_id=None,
        )
        logger.info("Playback finished after %s segments", len(self._segments))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_and_play(self, index: int, generation: int) -> None:
        segment = self._segments[index]
        await self._transition(
            status=PlaybackStatus.loading, current_index=index, position_millis=0
        )

        def _on_finished() -> None:
            self.post_event(PlayerEvent(generation=generation, index=index))

        try:
            resource = await self._player.load(segment.uri, _on_finished)
        except Exception as exc:
            if generation != self._state.generation:
                return
            await self._abort(f"Could not load segment {index}: {exc}")
            return

        if generation != self._state.generation:
            # Stopped (or restarted) while loading.
            logger.debug("Discarding segment %s loaded for stale generation %s", index, generation)
            await self._safe_unload(resource)
            return

        self._resource = resource
        try:
            await resource.play()
        except Exception as exc:
            self._resource = None
            await self._safe_unload(resource)
            await self._abort(f"Could not play segment {index}: {exc}")
            return

        self._highlight(segment.block_id)
        await self._transition(
            status=PlaybackStatus.playing, highlighted_block_id=segment.block_id
        )

    async def _abort(self, notice: str) -> None:
        logger.warning("Playback aborted: %s", notice)
        self._segments = []
        self._highlight(None)
        await self._transition(
            status=PlaybackStatus.idle,
            current_index=None,
            position_millis=0,
            highlighted_block_id=None,
            error=notice,
        )

    async def _safe_unload(self, resource: LoadedAudio | None) -> None:
        if resource is None:
            return
        try:
            await resource.unload()
        except Exception:
            logger.warning("Failed to unload playback resource", exc_info=True)

    def _highlight(self, block_id: str | None) -> None:
        if self._on_highlight is None:
            return
        try:
            self._on_highlight(block_id)
        except Exception:
            logger.exception("Highlight callback failed")

    async def _transition(self, **changes) -> None:
        for key, value in changes.items():
            setattr(self._state, key, value)
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                await maybe_await(listener(snapshot))
            except Exception:
                logger.exception("Playback status listener failed")
