"""Background scheduling of sync cycles."""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from meal_planner.services.sync_engine import SyncEngine

_logger = logging.getLogger(__name__)


@dataclass
class SyncScheduler:
    """Runs a startup cycle, then one cycle per interval.

    Triggers go through a queue holding at most one pending request. A
    trigger that arrives while a cycle is running is dropped, not queued.
    """

    engine: SyncEngine
    interval_seconds: float = 600.0
    initial_delay_seconds: float = 5.0
    _queue: asyncio.Queue[str] | None = field(default=None, init=False, repr=False)
    _ticker: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _worker: asyncio.Task[None] | None = field(default=None, init=False, repr=False)
    _current: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def _cycle_running(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> None:
        """Start the ticker and worker on the running event loop."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=1)
        self._worker = asyncio.create_task(
            self._work(self._queue), name="sync-worker"
        )
        self._ticker = asyncio.create_task(self._tick(), name="sync-ticker")
        _logger.info(
            "Sync scheduler started: initial_delay=%ss interval=%ss",
            self.initial_delay_seconds,
            self.interval_seconds,
        )

    def request(self, trigger: str = "manual") -> bool:
        """Queue a cycle; returns False when one is pending or running."""
        if self._queue is None:
            return False
        if self.engine.is_syncing or self._cycle_running:
            _logger.debug("Sync already running, dropping %s trigger", trigger)
            return False
        try:
            self._queue.put_nowait(trigger)
        except asyncio.QueueFull:
            _logger.debug("Sync already pending, dropping %s trigger", trigger)
            return False
        return True

    def trigger_manual(self) -> bool:
        return self.request("manual")

    async def stop(self) -> None:
        """Stop triggering new cycles and wait for the in-flight one."""
        for task in (self._ticker, self._worker):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        if self._current is not None and not self._current.done():
            await self._current
        self._ticker = None
        self._worker = None
        self._queue = None
        _logger.info("Sync scheduler stopped")

    async def _tick(self) -> None:
        await asyncio.sleep(self.initial_delay_seconds)
        self.request("startup")
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.request("scheduled")

    async def _work(self, queue: asyncio.Queue[str]) -> None:
        while True:
            trigger = await queue.get()
            self._current = asyncio.create_task(self._run(trigger))
            # Cancelling the worker must not abort a running cycle.
            await asyncio.shield(self._current)

    async def _run(self, trigger: str) -> None:
        try:
            await self.engine.perform_sync(trigger)
        except Exception:
            _logger.exception("Background sync failed: trigger=%s", trigger)
