import asyncio
import logging
from typing import Any, List, Optional, Tuple
from rogues.engine.engine import Engine
from rogues.engine.model import Event
from .eventlog import EventLog
from .presenter import EventDispatcher, LoggingPresenter, Presenter

logger = logging.getLogger(__name__)

OPERATIONS = {
    "confirm_army_selection", "place_unit", "handle_tile_activated", "handle_unit_activated",
    "end_current_turn", "cast_spell", "cancel_active_spell", "select_reward",
    "confirm_reward_selections",
}

class TurnRunner:
    """Async driver: serializes engine commands and paces presenter dispatch.

    The engine resolves each command immediately; its events are logged at once
    and replayed to the presenter spaced by their logical timestamps.
    """

    def __init__(self, engine: Engine, presenter: Optional[Presenter] = None,
                 time_compression: float = 1.0):
        self.engine = engine
        self.dispatcher = EventDispatcher(presenter or LoggingPresenter(),
                                          lambda uid: self.engine.state.units.get(uid))
        self.time_compression = max(0.1, min(1000.0, time_compression))
        self.events = EventLog()
        self._pending: asyncio.Queue[Event] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._last_ts: Optional[int] = None

    async def start(self):
        """Start the dispatch loop."""
        if self._task:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        """Stop the dispatch loop gracefully."""
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self):
        """Hand events to the presenter, sleeping across timestamp gaps."""
        while True:
            e = await self._pending.get()
            if self._last_ts is not None and e.ts_ms > self._last_ts:
                await asyncio.sleep((e.ts_ms - self._last_ts) / 1000.0 / self.time_compression)
            self._last_ts = max(e.ts_ms, self._last_ts or 0)
            try:
                self.dispatcher.dispatch(e)
            except Exception:
                logger.exception(f"Presenter failed on {e.kind}")

    async def execute(self, op: str, *args: Any) -> Tuple[Any, int]:
        """Run one engine operation. Returns (result, number of new events)."""
        if op not in OPERATIONS:
            raise ValueError(f"unknown operation {op}")
        async with self._lock:
            result = getattr(self.engine, op)(*args)
            evts: List[Event] = self.engine.drain_events()
        self.events.append_many(evts)
        for e in sorted(evts, key=lambda e: e.ts_ms):
            self._pending.put_nowait(e)
        logger.debug(f"{op}{args} -> {result}, {len(evts)} events")
        return result, len(evts)

    async def snapshot(self) -> dict:
        """Get current state (serialized with pending commands)."""
        async with self._lock:
            return self.engine.snapshot()

    async def save(self):
        async with self._lock:
            return self.engine.save()

    async def load(self, save) -> int:
        async with self._lock:
            self.engine.load(save)
            evts = self.engine.drain_events()
        self.events.append_many(evts)
        for e in sorted(evts, key=lambda e: e.ts_ms):
            self._pending.put_nowait(e)
        return len(evts)

    def set_time_compression(self, time_compression: float):
        """Update time compression factor (1.0 = real-time, higher = faster)."""
        self.time_compression = max(0.1, min(1000.0, time_compression))
        logger.info(f"Time compression set to {self.time_compression}x")
