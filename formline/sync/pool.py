"""Bounded-concurrency worker pool.

At most ``limit`` jobs run at once; the rest wait on a semaphore in
submission order.  ``run_all`` settles every job: an exception raised by
one job is captured in its outcome and never cancels the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

logger = logging.getLogger("formline.sync.pool")

T = TypeVar("T")
K = TypeVar("K")


@dataclass(frozen=True)
class JobOutcome(Generic[K, T]):
    """Settled result of one job: exactly one of ``value`` / ``error`` is meaningful."""

    key: K
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkerPool:
    """Run async jobs with a concurrency cap.

    Usage::

        pool = WorkerPool(limit=5)
        outcomes = await pool.run_all(user_ids, sync_user)
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"Concurrency limit must be >= 1, got {limit}")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)

    @property
    def limit(self) -> int:
        return self._limit

    async def submit(self, job: Callable[[], Awaitable[T]]) -> T:
        """Run one job once a slot is free."""
        async with self._semaphore:
            return await job()

    async def run_all(
        self, keys: Sequence[K], job: Callable[[K], Awaitable[T]]
    ) -> list[JobOutcome[K, T]]:
        """Run ``job(key)`` for every key and settle all of them.

        Returns:
            One outcome per key, in the order of ``keys``.
        """
        logger.debug("WorkerPool: running %d job(s), limit %d", len(keys), self._limit)
        results = await asyncio.gather(
            *(self.submit(lambda key=key: job(key)) for key in keys),
            return_exceptions=True,
        )

        outcomes: list[JobOutcome[K, T]] = []
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                logger.error("Job %s raised: %s", key, result)
                outcomes.append(JobOutcome(key=key, error=result))
            else:
                outcomes.append(JobOutcome(key=key, value=result))
        return outcomes
