"""Bounded retry with exponential backoff for registry calls.

Only ``RegistryUnreachable`` is retried. ``NotFound``, ``VersionGone`` and
``InvalidDescriptor`` are permanent answers and surface immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from lunepack.exceptions import RegistryUnreachable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    backoff: float,
    what: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run *operation*, retrying transient registry failures.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        attempts: Maximum number of attempts (at least 1).
        backoff: Base delay; the wait after failed attempt ``n`` (1-based)
            is ``backoff * 2**(n - 1)``.
        what: Description used in log messages.
        sleep: Awaitable sleep function, replaceable in tests.

    Raises:
        RegistryUnreachable: After the final failed attempt.
    """
    attempts = max(1, attempts)

    def log_before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome is not None else None
        delay = state.next_action.sleep if state.next_action is not None else 0.0
        logger.warning(
            "%s failed (attempt %d/%d): %s; retrying in %.2fs",
            what, state.attempt_number, attempts, getattr(exc, "reason", exc), delay,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=backoff),
        retry=retry_if_exception_type(RegistryUnreachable),
        reraise=True,
        before_sleep=log_before_sleep,
        sleep=sleep,
    )
    return await retrying(operation)
