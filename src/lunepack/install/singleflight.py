"""Keyed request coalescing for asyncio.

Concurrent callers asking for the same key share one in-flight execution.
The execution runs in its own task, so it belongs to no single caller: it
is cancelled only when every caller waiting on it has been cancelled. The
key is dropped as soon as the execution settles, so a later call (for
example a retry after a failure) starts fresh.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class _Flight(Generic[T]):
    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Task[T]) -> None:
        self.task = task
        self.waiters = 0


class SingleFlight(Generic[K, T]):
    def __init__(self) -> None:
        self._inflight: dict[K, _Flight[T]] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    def in_flight(self, key: K) -> bool:
        return key in self._inflight

    async def do(self, key: K, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` for *key*, or join the execution already running.

        Every caller sees the shared result or exception. Cancelling one
        caller does not disturb the others; once the last waiting caller is
        cancelled the execution itself is cancelled and awaited.
        """
        flight = self._inflight.get(key)
        if flight is None:
            flight = _Flight(asyncio.ensure_future(factory()))
            self._inflight[key] = flight
            flight.task.add_done_callback(lambda _task: self._settle(key, flight))

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                self._release(key, flight)
                flight.task.cancel()
                await asyncio.wait([flight.task])
            raise
        finally:
            flight.waiters -= 1

    def _release(self, key: K, flight: _Flight[T]) -> None:
        if self._inflight.get(key) is flight:
            del self._inflight[key]

    def _settle(self, key: K, flight: _Flight[T]) -> None:
        self._release(key, flight)
        if not flight.task.cancelled():
            # Mark retrieved; the last caller may already be gone.
            flight.task.exception()
