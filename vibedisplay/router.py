"""
Vibe display event router.

Subscribes to the device channel and decides which playback events trigger
work.  For the primary device, each new music id starts two pipelines:

  song:  lookup table -> catalog aggregator -> present_metadata / present_error
  vibe:  lookup table -> present_vibe

Device state updates from any device go straight to the display.  The
filtering step (handle_event) never awaits, so last_music_id is updated in
arrival order even when the pipelines it starts finish out of order.
"""

import asyncio
import logging
from dataclasses import dataclass

from .aggregator import Aggregator
from .display import PresentationSink
from .errors import TableReadError
from .lib.config import cfg
from .lookup import LookupStore, vibe_id_for
from .models import NO_MUSIC, PlaybackEvent

logger = logging.getLogger(__name__)

PING_ALL = {"ping_all": 1}


@dataclass
class RouterState:
    last_music_id: int = NO_MUSIC
    generation: int = 0     # bumped for every pipeline started

    @property
    def playing(self) -> bool:
        return self.last_music_id != NO_MUSIC


class EventRouter:
    def __init__(self, sink: PresentationSink, lookup: LookupStore | None = None,
                 aggregator: Aggregator | None = None, transport=None,
                 primary_device_id: int | None = None, discard_superseded: bool | None = None):
        self.sink = sink
        self.lookup = lookup or LookupStore()
        self.aggregator = aggregator or Aggregator()
        self.transport = transport
        self.primary_device_id = int(
            primary_device_id if primary_device_id is not None
            else cfg("router", "primary_device_id", default=1)
        )
        # Off: an older pipeline finishing late overwrites a newer one (last writer wins).
        self.discard_superseded = bool(
            discard_superseded if discard_superseded is not None
            else cfg("router", "discard_superseded", default=False)
        )
        self.state = RouterState()
        self._tasks: set[asyncio.Task] = set()
        self._pinged = False
        self._lent_session = False

    # --- Lifecycle ----------------------------------------------------------

    async def start(self):
        await self.sink.start()
        await self.aggregator.start()
        if self.lookup.session is None:
            # URL tables share the catalog session
            self.lookup.use_session(self.aggregator.session)
            self._lent_session = True
        # Session starts with nothing playing
        await self.sink.present_offline()
        if self.transport:
            self.transport.set_message_handler(self.handle_message)
            self.transport.set_connection_handler(self.handle_connection)
            await self.transport.start()
        logger.info("Router started (primary device: %d, discard superseded: %s)",
                    self.primary_device_id, self.discard_superseded)

    async def stop(self):
        if self.transport:
            await self.transport.stop()
        await self.wait_idle()
        if self._lent_session:
            self.lookup.use_session(None)
            self._lent_session = False
        await self.aggregator.close()
        await self.sink.stop()
        logger.info("Router stopped")

    async def wait_idle(self):
        """Wait until every in-flight pipeline has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def status_line(self) -> str:
        if not self.state.playing:
            return "Idle"
        return f"Playing music id {self.state.last_music_id} ({len(self._tasks)} in flight)"

    def handle_connection(self, connected: bool):
        if not connected:
            logger.warning("Channel disconnected, waiting for reconnect")
            return
        logger.info("Channel connected")
        if not self._pinged:
            # One ping per session, not per reconnect
            self._pinged = True
            self._spawn(self.transport.publish(dict(PING_ALL)))

    # --- Event filtering (synchronous) -------------------------------------

    def handle_message(self, data: dict) -> list[asyncio.Task]:
        """Channel callback: decode a raw payload and route it."""
        return self.handle_event(PlaybackEvent.from_message(data))

    def handle_event(self, event: PlaybackEvent) -> list[asyncio.Task]:
        """Apply one event to the router state and start the work it calls for.

        Returns the tasks started (empty for ignored events).
        """
        if event.device_id is None:
            logger.error("No device assigned to message, ignoring: %s", event)
            return []

        tasks = []
        music_id = event.music_id
        if (music_id is not None and music_id != 0
                and music_id != self.state.last_music_id
                and event.device_id == self.primary_device_id):
            self.state.last_music_id = music_id
            self.state.generation += 1
            generation = self.state.generation
            if music_id == NO_MUSIC:
                logger.info("Device %d stopped playing", event.device_id)
                tasks.append(self._spawn(self.sink.present_offline()))
            else:
                logger.info("Music id -> %d (generation %d)", music_id, generation)
                tasks.append(self._spawn(self._song_pipeline(music_id, generation)))
                tasks.append(self._spawn(self._vibe_pipeline(music_id, generation)))
        elif music_id is not None:
            logger.debug("Ignoring music id %s from device %d", music_id, event.device_id)

        if event.current_state is not None:
            logger.info("Device %d state -> %d", event.device_id, event.current_state)
            tasks.append(self._spawn(
                self.sink.present_device_state(event.device_id, event.current_state)
            ))
        return tasks

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            logger.error("Pipeline task failed", exc_info=task.exception())

    def _is_current(self, generation: int) -> bool:
        if not self.discard_superseded or generation == self.state.generation:
            return True
        logger.info("Discarding result of superseded generation %d (now %d)",
                    generation, self.state.generation)
        return False

    # --- Pipelines ----------------------------------------------------------

    async def _song_pipeline(self, music_id: int, generation: int):
        try:
            song = await self.lookup.lookup_song(music_id)
            if song is None:
                logger.warning("Failed to find song %d in song table", music_id)
                metadata = None
            else:
                metadata = await self.aggregator.resolve(song.song_name, song.artist)
        except TableReadError as e:
            logger.error("Song table unavailable: %s", e)
            metadata = None
        except Exception:
            logger.exception("Song pipeline for %d failed", music_id)
            metadata = None

        if not self._is_current(generation):
            return
        if metadata is None:
            await self.sink.present_error()
        else:
            await self.sink.present_metadata(metadata)

    async def _vibe_pipeline(self, music_id: int, generation: int):
        vibe_id = vibe_id_for(music_id)
        try:
            vibe = await self.lookup.lookup_vibe(vibe_id)
        except TableReadError as e:
            logger.error("Vibe table unavailable: %s", e)
            return
        if vibe is None:
            logger.warning("Failed to find vibe %d for music id %d", vibe_id, music_id)
            return
        if self._is_current(generation):
            await self.sink.present_vibe(vibe)
