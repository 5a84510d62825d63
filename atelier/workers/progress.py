from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

TickHandler = Callable[[int, str | None], None]


class ProgressCounter:
    """Shared counter of handled items plus the ids currently in flight."""

    def __init__(self, total: int) -> None:
        self._lock = threading.Lock()
        self._processed = 0
        self._in_flight: list[str] = []
        self.total = total

    def begin(self, item_id: str) -> None:
        with self._lock:
            self._in_flight.append(item_id)

    def finish(self, item_id: str) -> int:
        with self._lock:
            if item_id in self._in_flight:
                self._in_flight.remove(item_id)
            if self._processed >= self.total:
                raise ValueError("processed cannot exceed total")
            self._processed += 1
            return self._processed

    def snapshot(self) -> tuple[int, str | None]:
        with self._lock:
            return self._processed, (self._in_flight[0] if self._in_flight else None)

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed


class ProgressReporter:
    """Periodic ticker forwarding counter changes to ``on_tick``.

    Ticks are gated on the value having changed since the previous report. The
    terminal value (``processed == total``) is left to the caller's final flush
    so it is only ever recorded together with the terminal status.
    """

    def __init__(self, counter: ProgressCounter, on_tick: TickHandler, *, interval: float = 0.5) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._counter = counter
        self._on_tick = on_tick
        self._interval = interval
        self._last_reported = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def last_reported(self) -> int:
        return self._last_reported

    def tick(self) -> bool:
        processed, current = self._counter.snapshot()
        if processed == self._last_reported or processed >= self._counter.total:
            return False
        self._last_reported = processed
        try:
            self._on_tick(processed, current)
        except Exception:
            logger.exception("Progress report failed at %d/%d", processed, self._counter.total)
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._loop(), name="progress-ticker")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
