"""asyncio helpers shared by the resolver and the installer."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")


async def gather_bounded(
    factories: Sequence[Callable[[], Awaitable[T]]],
    *,
    limit: int,
) -> list[T]:
    """Run coroutine factories concurrently, at most *limit* at a time.

    Results are returned in input order, after every task has finished, so
    callers can make ordering decisions independent of completion order.
    On the first failure the remaining tasks are cancelled and awaited, and
    the failure of the lowest-indexed failed task is raised. Cancelling the
    caller cancels every task.
    """
    if not factories:
        return []
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    tasks = [asyncio.ensure_future(_run(f)) for f in factories]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    failed = [t for t in tasks if t.done() and not t.cancelled() and t.exception() is not None]
    if failed:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise failed[0].exception()  # type: ignore[misc]
    return [t.result() for t in tasks]
