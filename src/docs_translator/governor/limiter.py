"""
Rate limiter for a single named service.

Token bucket plus concurrency cap, driven by one dispatcher coroutine per
service. Every admission decision (concurrency, spacing, reservoir) is made
inside that coroutine, one job at a time, so counters never need a lock on a
single event loop.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from docs_translator.config import GovernorConfig
from docs_translator.errors import GovernorShutdownError, QueueClearedError
from docs_translator.logging_config import get_logger

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class ServiceMetrics:
    """Point-in-time snapshot of a service queue."""

    total_requests: int = 0
    failed_requests: int = 0
    queued_requests: int = 0
    running_requests: int = 0
    average_wait_time: float = 0.0
    last_error: str | None = None
    last_request_time: datetime | None = None


@dataclass(order=True)
class _Job:
    # Sort key: higher priority first, then enqueue order
    sort_key: tuple[int, int]
    operation: Operation = field(compare=False)
    future: asyncio.Future = field(compare=False)
    enqueued_at: float = field(compare=False)


class RateLimiter:
    """
    Rate limiter for one API service.

    An operation starts only when fewer than ``max_concurrent`` are running,
    at least ``min_interval`` seconds passed since the previous start, and the
    reservoir holds a token. Higher priority dequeues first; equal priorities
    are FIFO.
    """

    def __init__(self, name: str, config: GovernorConfig):
        self.name = name
        self.config = config
        self._logger = get_logger(__name__, service=name)

        self._queue: list[_Job] = []
        self._sequence = itertools.count()
        self._running: set[asyncio.Task] = set()
        self._wakeup: asyncio.Event | None = None
        self._dispatcher: asyncio.Task | None = None
        self._closed = False

        self._reservoir: float | None = config.reservoir
        self._last_refill = time.monotonic()
        self._last_start: float | None = None

        # Metrics
        self._total = 0
        self._failed = 0
        self._waited_total = 0.0
        self._started = 0
        self._last_error: str | None = None
        self._last_request_time: datetime | None = None

        self._logger.info(
            "Rate limiter initialized",
            extra={
                "max_concurrent": config.max_concurrent,
                "min_interval": config.min_interval,
                "reservoir": config.reservoir,
            },
        )

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    async def schedule(self, operation: Operation[T], priority: int = 0) -> T:
        """
        Queue an operation and wait for its result.

        Args:
            operation: Zero-argument callable returning an awaitable.
            priority: Higher values are started sooner.

        Returns:
            Whatever the operation returns.

        Raises:
            GovernorShutdownError: If the limiter was shut down.
            QueueClearedError: If the job was dropped by clear_queue().
        """
        if self._closed:
            raise GovernorShutdownError(
                f"Rate limiter '{self.name}' is shut down",
                operation="RateLimiter.schedule",
                metadata={"service": self.name},
            )

        loop = asyncio.get_running_loop()
        job = _Job(
            sort_key=(-priority, next(self._sequence)),
            operation=operation,
            future=loop.create_future(),
            enqueued_at=time.monotonic(),
        )
        heapq.heappush(self._queue, job)

        queued = len(self._queue)
        if self.config.debug:
            self._logger.debug(
                "Request queued", extra={"queued": queued, "running": len(self._running)}
            )
        if self.config.high_water is not None and queued > self.config.high_water:
            self._logger.warning(
                "Queue size above high water mark",
                extra={"queued": queued, "high_water": self.config.high_water},
            )

        self._ensure_dispatcher()
        self._wake()
        return await job.future

    def metrics(self) -> ServiceMetrics:
        """Return an independent snapshot of the current metrics."""
        return ServiceMetrics(
            total_requests=self._total,
            failed_requests=self._failed,
            queued_requests=len(self._queue),
            running_requests=len(self._running),
            average_wait_time=self._waited_total / self._started if self._started else 0.0,
            last_error=self._last_error,
            last_request_time=self._last_request_time,
        )

    def clear_queue(self) -> int:
        """
        Reject every queued (not yet started) operation.

        Returns:
            Number of operations dropped.
        """
        dropped = self._drop_queued(
            lambda: QueueClearedError(
                f"Queued request dropped from '{self.name}'",
                operation="RateLimiter.clear_queue",
                metadata={"service": self.name},
            )
        )
        self._logger.warning("Rate limiter queue cleared", extra={"cleared_jobs": dropped})
        return dropped

    async def shutdown(self, drop_waiting: bool = True) -> None:
        """
        Stop accepting work, then wait for in-flight operations.

        Args:
            drop_waiting: Reject queued operations (True) or let them run first.
        """
        if self._closed:
            self._logger.debug("Rate limiter already shut down, skipping")
            return

        self._closed = True
        self._logger.info("Shutting down rate limiter")

        if drop_waiting:
            self._drop_queued(
                lambda: GovernorShutdownError(
                    f"Rate limiter '{self.name}' shut down before request started",
                    operation="RateLimiter.shutdown",
                    metadata={"service": self.name},
                )
            )

        if self._dispatcher is not None:
            self._wake()
            await asyncio.gather(self._dispatcher, return_exceptions=True)
            self._dispatcher = None
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

        self._logger.info("Rate limiter shut down", extra=describe(self.metrics()))

    # ------------------------------------------------------------------
    # Dispatcher
    # ------------------------------------------------------------------

    def _ensure_dispatcher(self) -> None:
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(
                self._dispatch(), name=f"governor-{self.name}"
            )

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()

    async def _dispatch(self) -> None:
        assert self._wakeup is not None
        while True:
            self._wakeup.clear()
            while self._queue and self._queue[0].future.cancelled():
                heapq.heappop(self._queue)

            if not self._queue:
                if self._closed:
                    return
                await self._wakeup.wait()
                continue

            if len(self._running) >= self.config.max_concurrent:
                await self._wakeup.wait()
                continue

            delay = self._admission_delay(time.monotonic())
            if delay > 0:
                # New jobs or clear_queue() during the wait are seen on the next pass
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                continue

            self._start(heapq.heappop(self._queue))

    def _admission_delay(self, now: float) -> float:
        """Seconds until the next job may start (0 when it may start now)."""
        waits = [0.0]
        if self._last_start is not None and self.config.min_interval > 0:
            waits.append(self._last_start + self.config.min_interval - now)
        if self._reservoir is not None:
            self._refill(now)
            if self._reservoir < 1:
                interval = self.config.reservoir_refresh_interval or 0.0
                waits.append(self._last_refill + interval - now)
        return max(waits)

    def _refill(self, now: float) -> None:
        interval = self.config.reservoir_refresh_interval
        if self._reservoir is None or interval is None or self.config.reservoir is None:
            return
        periods = int((now - self._last_refill) // interval)
        if periods <= 0:
            return
        self._last_refill += periods * interval
        self._reservoir = min(
            float(self.config.reservoir),
            self._reservoir + periods * self.config.reservoir_refresh_amount,
        )

    def _start(self, job: _Job) -> None:
        now = time.monotonic()
        self._last_start = now
        if self._reservoir is not None:
            self._reservoir -= 1
        self._started += 1
        self._waited_total += now - job.enqueued_at

        task = asyncio.get_running_loop().create_task(self._run(job))
        self._running.add(task)
        task.add_done_callback(self._on_done)
        # A waiter that gives up cancels the operation it was waiting on
        job.future.add_done_callback(lambda f: task.cancel() if f.cancelled() else None)

        if self.config.debug:
            self._logger.debug(
                "Request executing",
                extra={"running": len(self._running), "queued": len(self._queue)},
            )

    async def _run(self, job: _Job) -> None:
        if job.future.cancelled():
            return
        try:
            result = await job.operation()
        except Exception as e:
            self._failed += 1
            self._last_error = str(e) or type(e).__name__
            self._logger.warning(
                "Rate limited request failed",
                extra={"error": self._last_error, "failed": self._failed, "total": self._total},
            )
            if not job.future.done():
                job.future.set_exception(e)
        else:
            if not job.future.done():
                job.future.set_result(result)
        finally:
            self._total += 1
            self._last_request_time = datetime.now(timezone.utc)
            if not job.future.done():
                job.future.cancel()

    def _on_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        self._wake()
        if self.config.debug:
            self._logger.debug(
                "Request completed",
                extra={"total": self._total, "running": len(self._running)},
            )

    def _drop_queued(self, make_error: Callable[[], Exception]) -> int:
        dropped = 0
        while self._queue:
            job = heapq.heappop(self._queue)
            if not job.future.done():
                job.future.set_exception(make_error())
            dropped += 1
        self._wake()
        return dropped


def describe(metrics: ServiceMetrics) -> dict[str, Any]:
    """Flatten a metrics snapshot for logging."""
    return {
        "total": metrics.total_requests,
        "failed": metrics.failed_requests,
        "queued": metrics.queued_requests,
        "running": metrics.running_requests,
        "avg_wait_s": round(metrics.average_wait_time, 3),
    }
