from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Set, Tuple


class ConcurrencyLimiter:
    """
    FIFO queue of async work with at most `max_concurrent` units running.

    submit() returns a future for the unit's result. When a unit finishes,
    successfully or not, the oldest queued unit starts. Failures are
    delivered through that unit's future only.
    """

    def __init__(self, max_concurrent: int = 1) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.active = 0
        self.peak = 0
        self._queue: Deque[Tuple[Callable[..., Awaitable[Any]], tuple, asyncio.Future]] = deque()
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def submit(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Future:
        fut = asyncio.get_running_loop().create_future()
        self._queue.append((fn, args, fut))
        self._drain()
        return fut

    def _drain(self) -> None:
        while self.active < self.max_concurrent and self._queue:
            fn, args, fut = self._queue.popleft()
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                task = asyncio.ensure_future(fn(*args))
            except Exception as e:
                # fn raised before producing an awaitable
                self.active -= 1
                if not fut.done():
                    fut.set_exception(e)
                continue
            self._running.add(task)
            task.add_done_callback(lambda t, fut=fut: self._finish(t, fut))

    def _finish(self, task: asyncio.Task, fut: asyncio.Future) -> None:
        self._running.discard(task)
        self.active -= 1
        if not fut.done():
            if task.cancelled():
                fut.cancel()
            elif task.exception() is not None:
                fut.set_exception(task.exception())
            else:
                fut.set_result(task.result())
        self._drain()
