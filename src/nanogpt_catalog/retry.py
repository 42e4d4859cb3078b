"""
retry.py — Bounded retry with exponential back-off for catalog fetches.

Only ``TransientFetchError`` (network failures, non-2xx responses) is
retried.  Anything else is returned to the caller after the attempt that
raised it.  A cancel signal (an ``asyncio.Event``) is honoured before the
first attempt, while an attempt is in flight and during back-off.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import CatalogCancelledError, TransientFetchError
from .models import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (delay_seconds, cancel_event) -> True if cancelled while waiting
SleepFn = Callable[[float, Optional[asyncio.Event]], Awaitable[bool]]


async def wait_or_cancel(delay: float, cancel: Optional[asyncio.Event]) -> bool:
    """Suspend for ``delay`` seconds; return True early if ``cancel`` fires."""
    if cancel is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


async def run_cancellable(op: Callable[[], Awaitable[T]], cancel: Optional[asyncio.Event]) -> T:
    """Await ``op()`` but abandon it as soon as ``cancel`` is set."""
    if cancel is None:
        return await op()
    if cancel.is_set():
        raise CatalogCancelledError()

    op_task = asyncio.ensure_future(op())
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({op_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        op_task.cancel()
        raise
    finally:
        cancel_task.cancel()
    if op_task.done():
        return op_task.result()
    op_task.cancel()
    try:
        await op_task
    except asyncio.CancelledError:
        pass
    raise CatalogCancelledError()


class RetryExecutor:
    """
    Run a fallible coroutine factory under a :class:`RetryPolicy`.

    Usage::

        executor = RetryExecutor()
        result = await executor.execute(lambda: fetcher.fetch(ep, key), policy, cancel)
    """

    def __init__(self, sleep: Optional[SleepFn] = None) -> None:
        self._sleep: SleepFn = sleep or wait_or_cancel

    async def execute(
        self,
        op: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        cancel: Optional[asyncio.Event] = None,
    ) -> T:
        last_exc: Optional[TransientFetchError] = None
        for attempt in range(1, policy.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                raise CatalogCancelledError()
            try:
                return await run_cancellable(op, cancel)
            except TransientFetchError as exc:
                last_exc = exc
                if attempt >= policy.max_attempts:
                    break
                delay = policy.delay_for(attempt)
                logger.debug(
                    "Attempt %d/%d failed, retrying in %.2fs: %s",
                    attempt,
                    policy.max_attempts,
                    delay,
                    exc,
                )
                if await self._sleep(delay, cancel):
                    logger.debug("Cancelled during back-off after attempt %d", attempt)
                    raise CatalogCancelledError() from exc

        assert last_exc is not None
        logger.debug("All %d attempts failed: %s", policy.max_attempts, last_exc)
        raise last_exc
