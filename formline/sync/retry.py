"""Retry with exponential backoff, returning a tagged outcome.

Attempt ``n`` (1-based) that fails is followed by a wait of
``base_delay * 2^(n - 1)`` seconds before attempt ``n + 1``.  The final
failure is returned, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar, Union

logger = logging.getLogger("formline.sync.retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Succeeded(Generic[T]):
    value: T
    attempts: int


@dataclass(frozen=True)
class Failed:
    error: Exception
    attempts: int


Outcome = Union[Succeeded[T], Failed]


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay after failed attempt ``attempt`` (1-based)."""
    return base_delay * (2 ** (attempt - 1))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    base_delay: float,
    *,
    label: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> Outcome[T]:
    """Run ``operation`` up to ``max_attempts`` times.

    Args:
        operation:    Zero-argument coroutine factory, called once per attempt.
        max_attempts: Total attempts, the first one included (>= 1).
        base_delay:   Backoff base in seconds.
        label:        Name used in log messages.
        sleep:        Awaitable used for the backoff wait.

    Returns:
        ``Succeeded(value, attempts)`` or ``Failed(last_error, attempts)``.
    """
    attempts = max(1, max_attempts)
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            value = await operation()
        except Exception as exc:
            last_error = exc
            if attempt == attempts:
                break
            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                label, attempt, attempts, exc, delay,
            )
            await sleep(delay)
        else:
            return Succeeded(value=value, attempts=attempt)

    logger.error("%s failed after %d attempt(s): %s", label, attempts, last_error)
    return Failed(error=last_error, attempts=attempts)
