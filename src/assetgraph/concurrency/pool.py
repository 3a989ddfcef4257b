"""Bounded async scheduler with in-flight deduplication."""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from collections.abc import Awaitable, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

from assetgraph.errors.exceptions import TaskTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENCY = 8


def default_concurrency() -> int:
    return min(os.cpu_count() or 1, DEFAULT_MAX_CONCURRENCY)


class TaskResult(BaseModel):
    """Outcome of one scheduled task: exactly one of ``value`` / ``error``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SchedulerStats(BaseModel):
    submitted: int = 0
    executed: int = 0
    deduplicated: int = 0
    failed: int = 0


class Scheduler:
    """Runs leaf tasks concurrently, at most one in flight per key.

    ``submit`` inserts into the in-flight table before the first await, so
    concurrent requests for the same key always attach to the running task.
    Attached callers wait through ``asyncio.shield``: a timeout or
    cancellation on one caller never cancels the shared work. CPU-bound
    steps go through ``run_cpu`` on a thread pool sized to the bound.
    """

    def __init__(
        self,
        max_concurrency: int | None = None,
        task_timeout: float | None = None,
    ) -> None:
        self._max_concurrency = max_concurrency or default_concurrency()
        self._task_timeout = task_timeout
        self._semaphore: asyncio.Semaphore | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._started: dict[str, asyncio.Event] = {}
        self._executor: ThreadPoolExecutor | None = None
        self._stats = SchedulerStats()

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def stats(self) -> SchedulerStats:
        return self._stats.model_copy()

    @property
    def in_flight(self) -> list[str]:
        return list(self._in_flight)

    async def submit(
        self,
        key: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        """Run ``fn(*args)`` under ``key``, or await the task already running it."""
        self._stats.submitted += 1
        task = self._in_flight.get(key)
        if task is None:
            started = asyncio.Event()
            task = asyncio.create_task(
                self._run_bounded(started, fn, *args), name=f"leaf:{key}"
            )
            self._in_flight[key] = task
            self._started[key] = started
            task.add_done_callback(functools.partial(self._finished, key))
        else:
            started = self._started[key]
            self._stats.deduplicated += 1
            logger.debug("Attaching to in-flight task for %s", key)

        if self._task_timeout is None:
            return await asyncio.shield(task)

        # The timeout covers execution only, not time queued on the bound
        await self._wait_started(task, started)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._task_timeout)
        except TimeoutError as e:
            raise TaskTimeoutError(
                f"Task {key} exceeded {self._task_timeout}s timeout", source=key
            ) from e

    async def execute(
        self,
        tasks: Sequence[tuple[str, Callable[..., Awaitable[Any]], tuple[Any, ...]]],
        max_concurrency: int | None = None,
    ) -> list[TaskResult]:
        """Run ``(key, fn, args)`` triples; results in input order.

        A failure is recorded on its own ``TaskResult`` and never cancels
        sibling tasks.
        """
        call_limit = asyncio.Semaphore(max_concurrency) if max_concurrency else None

        async def worker(key: str, fn: Callable[..., Awaitable[Any]], args: tuple[Any, ...]) -> Any:
            if call_limit is None:
                return await self.submit(key, fn, *args)
            async with call_limit:
                return await self.submit(key, fn, *args)

        outcomes = await asyncio.gather(
            *(worker(key, fn, args) for key, fn, args in tasks),
            return_exceptions=True,
        )

        results: list[TaskResult] = []
        for (key, _, _), outcome in zip(tasks, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                self._stats.failed += 1
                logger.error("Task %s failed: %s", key, outcome)
                results.append(TaskResult(key=key, error=outcome))
            else:
                results.append(TaskResult(key=key, value=outcome))
        return results

    async def run_cpu(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking callable on the worker thread pool."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_concurrency, thread_name_prefix="assetgraph"
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def _run_bounded(
        self,
        started: asyncio.Event,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        async with self._bound():
            started.set()
            self._stats.executed += 1
            return await fn(*args)

    def _finished(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
            self._started.pop(key, None)
        # Retrieve the exception so an abandoned shared task does not warn
        if not task.cancelled():
            task.exception()

    @staticmethod
    async def _wait_started(task: asyncio.Task[Any], started: asyncio.Event) -> None:
        if started.is_set() or task.done():
            return
        waiter = asyncio.ensure_future(started.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

    def _bound(self) -> asyncio.Semaphore:
        # Sync wrappers may drive one scheduler from successive event loops
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._loop is not loop:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
            self._loop = loop
        return self._semaphore
