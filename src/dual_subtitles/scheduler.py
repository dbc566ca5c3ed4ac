"""Fixed-window rate limiter for outbound catalog requests.

Operations beyond the window's capacity are parked in a FIFO queue and
released when the background ticker opens the next window.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Set, Tuple

log = logging.getLogger("dual_subtitles.scheduler")

DEFAULT_CAPACITY = 40
DEFAULT_INTERVAL = 60.0

Operation = Callable[[], Awaitable[Any]]


class RequestScheduler:
    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        interval: float = DEFAULT_INTERVAL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._interval = interval
        self._sleep = sleep
        self._used = 0
        self._queue: Deque[Tuple[Operation, asyncio.Future]] = deque()
        self._running: Set[asyncio.Task] = set()
        self._ticker: Optional[asyncio.Task] = None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def used(self) -> int:
        return self._used

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def schedule(self, operation: Operation) -> Any:
        """Run ``operation`` now if the window has room, otherwise queue it.

        The returned value (or raised exception) is whatever the operation
        produced. Timeouts are the operation's own business.
        """
        self._ensure_ticker()
        future = asyncio.get_running_loop().create_future()
        if self._used < self._capacity:
            self._used += 1
            self._launch(operation, future)
        else:
            self._queue.append((operation, future))
            log.info("Rate limit reached. Queued request. Queue size: %d", len(self._queue))
        return await future

    def reset_window(self) -> None:
        """Open a new window and drain queued operations up to capacity."""
        self._used = 0
        while self._used < self._capacity and self._queue:
            operation, future = self._queue.popleft()
            if future.done():
                # caller gave up while waiting
                continue
            self._used += 1
            self._launch(operation, future)
        if self._queue:
            log.info("Window reset; %d request(s) still queued", len(self._queue))

    async def aclose(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
        while self._queue:
            _, future = self._queue.popleft()
            future.cancel()

    def _ensure_ticker(self) -> None:
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.get_running_loop().create_task(self._tick())

    async def _tick(self) -> None:
        while True:
            await self._sleep(self._interval)
            self.reset_window()

    def _launch(self, operation: Operation, future: asyncio.Future) -> None:
        task = asyncio.get_running_loop().create_task(self._run(operation, future))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    @staticmethod
    async def _run(operation: Operation, future: asyncio.Future) -> None:
        try:
            result = await operation()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:  # noqa: BLE001
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)


__all__ = ["RequestScheduler", "DEFAULT_CAPACITY", "DEFAULT_INTERVAL"]
