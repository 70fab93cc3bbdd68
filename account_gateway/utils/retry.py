"""
Bounded retry with exponential backoff for outbound HTTP calls.

Waits are ``asyncio`` suspension points: a registration task is parked for
the duration of each delay, and the delay bounds are the same whether the
task runs alone or among many.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_DELAY = 2.0
MAX_JITTER = 0.06

Sleep = Callable[[float], Awaitable[None]]


class RetryCancelledError(Exception):
    """Raised when a retry wait is interrupted by a cancellation request."""
    pass


def is_retryable_status(status_code: int) -> bool:
    """Rate limiting and server errors are worth another attempt."""
    return status_code == 429 or 500 <= status_code <= 599


async def pause(
    delay: float,
    sleep: Sleep = asyncio.sleep,
    cancel_event: Optional[asyncio.Event] = None
) -> None:
    """
    Wait ``delay`` seconds unless cancellation is requested.

    Args:
        delay: Seconds to wait
        sleep: Sleep coroutine function, injectable for tests
        cancel_event: Optional event; when set, the wait is abandoned

    Raises:
        RetryCancelledError: If the event is set before or during the wait
    """
    if cancel_event is None:
        await sleep(delay)
        return

    if cancel_event.is_set():
        raise RetryCancelledError("Retry interrupted before waiting")

    sleeper = asyncio.ensure_future(sleep(delay))
    watcher = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()

    if cancel_event.is_set():
        raise RetryCancelledError("Retry interrupted while waiting")


async def with_backoff(
    action: Callable[[], Awaitable[T]],
    max_attempts: int,
    initial_delay: float,
    *,
    max_delay: float = MAX_DELAY,
    rng: Optional[random.Random] = None,
    sleep: Sleep = asyncio.sleep,
    cancel_event: Optional[asyncio.Event] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None
) -> T:
    """
    Run ``action`` until it succeeds or the attempt budget is spent.

    Only ``httpx.HTTPStatusError`` with a retryable status and
    ``httpx.TransportError`` are retried; anything else propagates on first
    occurrence. The delay doubles after each retry up to ``max_delay`` and a
    uniform jitter of up to 60 ms is added to every wait.

    Args:
        action: Zero-argument coroutine function performing one attempt
        max_attempts: Total number of attempts, including the first
        initial_delay: Delay in seconds before the second attempt
        max_delay: Upper bound of the exponential delay
        rng: Random source for jitter
        sleep: Sleep coroutine function
        cancel_event: Optional cancellation event checked around each wait
        on_retry: Optional callback receiving the failed attempt number and error

    Returns:
        Whatever ``action`` returns on its first successful attempt

    Raises:
        The last error observed, unmodified, once attempts are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    rng = rng or random.Random()
    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            return await action()
        except httpx.HTTPStatusError as e:
            if not is_retryable_status(e.response.status_code) or attempt == max_attempts:
                raise
            logger.warning(
                f"Upstream returned {e.response.status_code} (attempt {attempt}/{max_attempts}), retrying"
            )
            if on_retry is not None:
                on_retry(attempt, e)
        except httpx.TransportError as e:
            if attempt == max_attempts:
                raise
            logger.warning(f"Network failure (attempt {attempt}/{max_attempts}), retrying: {e}")
            if on_retry is not None:
                on_retry(attempt, e)

        await pause(delay + rng.uniform(0, MAX_JITTER), sleep=sleep, cancel_event=cancel_event)
        delay = min(delay * 2, max_delay)

    raise RuntimeError("Retry loop exited unexpectedly")
