"""
Bounded fan-out primitives shared by the per-station pipelines.

Fetches run on the default thread pool via asyncio.to_thread; an
AdmissionGate caps how many are in flight at once. ResultChannel is the
bounded single-reader hand-off that a supervisor closes exactly once.
"""
import asyncio
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    List,
    TypeVar,
)

T = TypeVar("T")
R = TypeVar("R")

_CLOSED = object()


class AdmissionGate:
    """Counting gate bounding the number of blocking fetches in flight."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)

    async def run(self, func: Callable[..., R], *args: Any) -> R:
        """Wait for a slot, then run ``func(*args)`` on a worker thread."""
        async with self._semaphore:
            return await asyncio.to_thread(func, *args)


class ChannelClosed(Exception):
    """Raised when sending on a closed ResultChannel."""


class ResultChannel(Generic[T]):
    """
    Bounded hand-off between many producers and a single consumer.

    ``send`` waits (cancellably) while the buffer is full. ``close`` is
    synchronous and idempotent so it can run from a ``finally`` block
    without ever blocking; the reader drains whatever is buffered and
    then stops.
    """

    def __init__(self, capacity: int):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("channel is closed")
        await self._queue.put(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Reader is not waiting; it sees the flag once the buffer drains
            pass

    def __aiter__(self) -> AsyncIterator[T]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[T]:
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


async def close_when_done(workers: Iterable["asyncio.Task[Any]"], channel: ResultChannel) -> None:
    """Await every worker, then close ``channel`` on every exit path."""
    try:
        await asyncio.gather(*workers, return_exceptions=True)
    finally:
        channel.close()


async def fan_out(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Run ``worker`` for every item concurrently and collect the results.

    Admission control belongs to the worker (typically through an
    AdmissionGate). Errors are not swallowed here; workers that must not
    abort the batch handle their own failures.
    """
    tasks = [asyncio.create_task(worker(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
