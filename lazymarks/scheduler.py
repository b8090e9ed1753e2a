"""Cooperative single-threaded scheduler with background tasks and timers.

Every engine handler runs on the thread that calls ``run_pending``.
Blocking work (git subprocesses) runs on a small worker pool; completions are
queued and delivered back on the loop, never concurrently with other handlers.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Empty, Queue
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimerHandle:
    """Cancelable handle for one ``call_later`` callback."""

    __slots__ = ("due_at", "callback", "cancelled")

    def __init__(self, due_at: float, callback: Callable[[], None]) -> None:
        self.due_at = due_at
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Task(Generic[T]):
    """Loop-side view of one background job.

    Done-callbacks registered with ``add_done_callback`` always run on the
    loop thread, in completion order.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._done = False
        self._result: T | None = None
        self._error: BaseException | None = None
        self._callbacks: list[Callable[[Task[T]], None]] = []

    def done(self) -> bool:
        return self._done

    def result(self) -> T | None:
        if not self._done:
            raise RuntimeError("task is still running")
        if self._error is not None:
            raise self._error
        return self._result

    def exception(self) -> BaseException | None:
        return self._error

    def add_done_callback(self, callback: Callable[[Task[T]], None]) -> None:
        if self._done:
            self._scheduler.call_soon(lambda: callback(self))
            return
        self._callbacks.append(callback)

    def set_result(self, result: T | None) -> None:
        """Finish a task created on the loop (not via ``submit``)."""
        self._resolve(result, None)

    def _resolve(self, result: T | None, error: BaseException | None) -> None:
        self._done = True
        self._result = result
        self._error = error
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    @classmethod
    def completed(cls, scheduler: Scheduler, result: T | None) -> Task[T]:
        """Build an already-finished task (used by cache fast paths)."""
        task: Task[T] = cls(scheduler)
        task._done = True
        task._result = result
        return task


class Scheduler:
    """Deferred callbacks, timers and background tasks for one event loop."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_workers: int = 2,
    ) -> None:
        self.clock = clock
        self._max_workers = max(1, max_workers)
        self._executor: ThreadPoolExecutor | None = None
        self._ready: list[Callable[[], None]] = []
        self._timers: list[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()
        self._completions: Queue[tuple[Task, object, BaseException | None]] = Queue()
        self._outstanding = 0

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="lazymarks-backend",
            )
        return self._executor

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Queue ``callback`` for the next idle tick."""
        self._ready.append(callback)

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once ``delay_seconds`` have elapsed on the clock."""
        handle = TimerHandle(self.clock() + max(0.0, delay_seconds), callback)
        heapq.heappush(self._timers, (handle.due_at, next(self._sequence), handle))
        return handle

    def submit(self, fn: Callable[..., T], *args: object) -> Task[T]:
        """Run ``fn(*args)`` on a worker thread and return its loop-side task."""
        task: Task[T] = Task(self)
        self._outstanding += 1

        def _deliver(future: Future) -> None:
            error = future.exception()
            result = None if error is not None else future.result()
            self._completions.put((task, result, error))

        self._pool().submit(fn, *args).add_done_callback(_deliver)
        return task

    @property
    def pending_tasks(self) -> int:
        """Background tasks whose completion has not been delivered yet."""
        return self._outstanding

    def has_pending_work(self) -> bool:
        live_timers = any(not handle.cancelled for _due, _seq, handle in self._timers)
        return bool(self._ready) or self._outstanding > 0 or live_timers

    def _drain_completions(self, block_seconds: float = 0.0) -> int:
        delivered = 0
        while True:
            try:
                if block_seconds > 0 and delivered == 0:
                    task, result, error = self._completions.get(timeout=block_seconds)
                else:
                    task, result, error = self._completions.get_nowait()
            except Empty:
                return delivered
            self._outstanding -= 1
            delivered += 1
            if error is not None:
                logger.debug("background task failed", exc_info=error)
            task._resolve(result, error)

    def _run_ready(self) -> int:
        ran = 0
        while self._ready:
            batch, self._ready = self._ready, []
            for callback in batch:
                callback()
                ran += 1
        return ran

    def _run_due_timers(self) -> int:
        ran = 0
        now = self.clock()
        while self._timers and self._timers[0][0] <= now:
            _due, _seq, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        return ran

    def run_pending(self) -> int:
        """Run one loop tick: completions, ready callbacks, then due timers.

        Returns the number of callbacks executed.
        """
        ran = self._drain_completions()
        ran += self._run_ready()
        ran += self._run_due_timers()
        ran += self._run_ready()
        return ran

    def run_until_idle(self, timeout_seconds: float = 2.0) -> None:
        """Tick until no ready callbacks or background tasks remain.

        Timers that are not yet due are left alone; advance the clock to fire
        them.
        """
        deadline = time.monotonic() + timeout_seconds
        while True:
            self.run_pending()
            if not self._ready and self._outstanding == 0:
                return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("scheduler did not become idle")
            if self._outstanding > 0:
                self._drain_completions(block_seconds=min(0.05, remaining))

    def next_timer_due(self) -> float | None:
        for due_at, _seq, handle in sorted(self._timers):
            if not handle.cancelled:
                return due_at
        return None

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._drain_completions()
        self._run_ready()


__all__ = ["Scheduler", "Task", "TimerHandle"]
