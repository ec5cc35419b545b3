"""
authnexus.client.single_flight

Single-flight coordination for one asynchronous operation.

Responsibilities:
- Let the first caller run the operation while later callers queue behind it.
- Hand every queued caller the leader's result (or exception) exactly once, in FIFO order.
- Reset to idle before any queued caller resumes, so a new flight can start cleanly.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Cooperative (event-loop) single flight: no lock is needed because the in-progress
    flag is only read and written between awaits on one loop.
    """

    def __init__(self) -> None:
        self._in_progress = False
        self._waiters: deque[asyncio.Future[T]] = deque()

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._in_progress:
            waiter: asyncio.Future[T] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            return await waiter

        self._in_progress = True
        try:
            result = await operation()
        except BaseException as exc:
            self._settle(error=exc)
            raise
        self._settle(result=result)
        return result

    def _settle(self, *, result: T | None = None, error: BaseException | None = None) -> None:
        waiters, self._waiters = self._waiters, deque()
        self._in_progress = False
        for waiter in waiters:
            if waiter.done():
                # The waiting caller was cancelled; nothing to deliver.
                continue
            if error is None:
                waiter.set_result(result)  # type: ignore[arg-type]
            elif isinstance(error, asyncio.CancelledError):
                waiter.cancel()
            else:
                waiter.set_exception(error)
