"""
Admission control for rate-limited provider calls.

The provider allows a handful of requests per minute. ``RateScheduler`` keeps a
pool of capacity units that refills on a fixed wall-clock cadence (one unit per
``refill_interval``) regardless of whether earlier calls succeeded. Callers that
find the pool empty wait in FIFO order until a refill tick hands them a unit.

Usage:
    scheduler = RateScheduler(max_concurrent=2, refill_interval=30.0)
    await scheduler.start()

    audio = await scheduler.schedule(lambda: speech.synthesize(text))

    await scheduler.stop()

Every scheduled call is wrapped in a ``RetryPolicy``: provider rate-limit
errors are retried once after a fixed delay, everything else propagates.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import suppress
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional, TypeVar

from ..errors import (
    ProviderAuthError,
    ProviderError,
    ProviderQuotaError,
    RateLimitedError,
    SchedulerStopped,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
TaskFactory = Callable[[], Awaitable[T]]
QueueListener = Callable[[int], None]

RATE_LIMIT_MARKER = "rate limit"


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return True when ``exc`` signals a transient provider rate limit.

    Typed ``RateLimitedError`` is authoritative. For other provider errors the
    message is checked for "rate limit" as a fallback heuristic.
    """
    if isinstance(exc, RateLimitedError):
        return True
    if isinstance(exc, (ProviderAuthError, ProviderQuotaError)):
        return False
    if isinstance(exc, ProviderError):
        return RATE_LIMIT_MARKER in str(exc).lower()
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry for errors accepted by ``is_retryable``."""

    max_attempts: int = 2
    delay: float = 30.0
    is_retryable: Callable[[BaseException], bool] = is_rate_limit_error

    async def run(self, task: TaskFactory[T], *, label: str = "task") -> T:
        attempt = 1
        while True:
            try:
                return await task()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.is_retryable(exc):
                    raise
                logger.warning(
                    "%s hit a rate limit (attempt %d/%d), retrying in %.1fs: %s",
                    label,
                    attempt,
                    self.max_attempts,
                    self.delay,
                    exc,
                )
                await asyncio.sleep(self.delay)
                attempt += 1


class RateScheduler:
    """Gate calls to a provider behind a time-refilled capacity pool.

    Attributes:
        max_concurrent: Pool size and upper bound on calls running at once
        refill_interval: Seconds between refill ticks
        retry_policy: Policy applied to every scheduled task
    """

    def __init__(
        self,
        max_concurrent: int = 2,
        refill_interval: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        on_queue_change: Optional[QueueListener] = None,
        name: str = "provider",
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if refill_interval <= 0:
            raise ValueError("refill_interval must be positive")

        self.max_concurrent = max_concurrent
        self.refill_interval = refill_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self.name = name
        self._on_queue_change = on_queue_change

        self._available = max_concurrent
        self._active = 0
        self._waiters: Deque[asyncio.Future[None]] = deque()
        self._lock = asyncio.Lock()
        self._refill_task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def available(self) -> int:
        return self._available

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return len(self._waiters)

    @property
    def running(self) -> bool:
        return self._refill_task is not None and not self._refill_task.done()

    async def start(self) -> None:
        """Start the periodic refill task."""
        self._stopped = False
        self._ensure_refill_task()

    async def stop(self) -> None:
        """Cancel the refill task and fail callers still waiting for a slot."""
        self._stopped = True
        task = self._refill_task
        self._refill_task = None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

        async with self._lock:
            while self._waiters:
                waiter = self._waiters.popleft()
                if not waiter.done():
                    waiter.set_exception(
                        SchedulerStopped(f"{self.name} scheduler stopped")
                    )
        self._notify_queue()
        logger.info("%s scheduler stopped", self.name)

    async def __aenter__(self) -> "RateScheduler":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def schedule(self, task: TaskFactory[T], *, label: str = "task") -> T:
        """Run ``task`` once a capacity unit is available.

        Raises whatever ``task`` raises after the retry policy gives up, or
        ``SchedulerStopped`` if the scheduler shuts down while waiting.
        """
        if self._stopped:
            raise SchedulerStopped(f"{self.name} scheduler is stopped")
        self._ensure_refill_task()

        await self._acquire(label)
        try:
            return await self.retry_policy.run(task, label=label)
        finally:
            async with self._lock:
                self._active -= 1
                handed = self._dispatch()
            if handed:
                self._notify_queue()

    def _ensure_refill_task(self) -> None:
        if self._refill_task is None or self._refill_task.done():
            self._refill_task = asyncio.create_task(
                self._refill_loop(), name=f"{self.name}-refill"
            )
            logger.debug(
                "%s scheduler refilling 1 unit every %.1fs (capacity %d)",
                self.name,
                self.refill_interval,
                self.max_concurrent,
            )

    async def _acquire(self, label: str) -> None:
        async with self._lock:
            if (
                not self._waiters
                and self._available > 0
                and self._active < self.max_concurrent
            ):
                self._available -= 1
                self._active += 1
                return
            waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)

        logger.info(
            "%s queued on %s scheduler (%d waiting)", label, self.name, self.queued
        )
        self._notify_queue()

        try:
            await waiter
        except asyncio.CancelledError:
            # No await between the check and the update below
            if waiter.done() and not waiter.cancelled():
                self._active -= 1
                self._available = min(self._available + 1, self.max_concurrent)
                self._dispatch()
            else:
                with suppress(ValueError):
                    self._waiters.remove(waiter)
            self._notify_queue()
            raise

    def _dispatch(self) -> int:
        """Hand available units to the oldest waiters. Caller holds the lock."""
        handed = 0
        while (
            self._waiters
            and self._available > 0
            and self._active < self.max_concurrent
        ):
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            self._available -= 1
            self._active += 1
            waiter.set_result(None)
            handed += 1
        return handed

    async def _refill_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refill_interval)
            async with self._lock:
                self._available = min(self._available + 1, self.max_concurrent)
                handed = self._dispatch()
            if handed:
                logger.info(
                    "%s refill tick released %d queued call(s), %d still waiting",
                    self.name,
                    handed,
                    self.queued,
                )
                self._notify_queue()

    def _notify_queue(self) -> None:
        if self._on_queue_change is None:
            return
        try:
            self._on_queue_change(self.queued)
        except Exception:
            logger.exception("%s scheduler queue listener failed", self.name)


__all__ = ["RateScheduler", "RetryPolicy", "is_rate_limit_error"]
