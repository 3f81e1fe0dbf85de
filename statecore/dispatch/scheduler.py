"""
Schedulers: the timer collaborator behind queued and delayed dispatch.

The dispatcher never sleeps. It hands callbacks to a scheduler:
- call_soon(fn): run fn "soon", FIFO relative to other call_soon callbacks
- call_later(delay_ms, fn): run fn no earlier than delay_ms from now

ManualScheduler keeps a virtual clock and only runs tasks when told to,
which makes ordering fully reproducible. AsyncioScheduler forwards to an
asyncio event loop for hosts that run one.
"""

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol


Task = Callable[[], None]


class Scheduler(Protocol):
    def call_soon(self, fn: Task) -> None:
        ...

    def call_later(self, delay_ms: int, fn: Task) -> None:
        ...


@dataclass(order=True)
class _Scheduled:
    due: int
    seq: int
    fn: Task = field(compare=False)


class ManualScheduler:
    """
    Deterministic scheduler driven by a virtual millisecond clock.

    Tasks are ordered by due time, then by scheduling order. Nothing runs
    until run_pending(), advance() or run_all() is called. Exceptions raised
    by a task propagate out of the run method; the task is not retried.

    Usage:
        sched = ManualScheduler()
        sched.call_later(1000, fire)
        sched.advance(999)   # nothing
        sched.advance(1)     # fire() runs
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._queue: List[_Scheduled] = []
        self._seq = itertools.count()

    def now(self) -> int:
        """Current virtual time in milliseconds."""
        return self._now

    def call_soon(self, fn: Task) -> None:
        self.call_later(0, fn)

    def call_later(self, delay_ms: int, fn: Task) -> None:
        if delay_ms < 0:
            raise ValueError(f"delay must be >= 0, got {delay_ms}")
        heapq.heappush(self._queue, _Scheduled(self._now + delay_ms, next(self._seq), fn))

    def pending(self) -> int:
        return len(self._queue)

    def next_due(self) -> Optional[int]:
        return self._queue[0].due if self._queue else None

    def run_pending(self) -> int:
        """
        Run every task due at the current time, including tasks they schedule
        for the current time.

        Returns:
            Number of tasks run
        """
        return self._run_until(self._now)

    def advance(self, ms: int) -> int:
        """
        Move the clock forward by ms, running due tasks in order.

        The clock is set to each task's due time before it runs, so tasks
        scheduled from inside a task are timed relative to that moment.

        Returns:
            Number of tasks run
        """
        if ms < 0:
            raise ValueError(f"cannot move clock backwards ({ms})")
        return self._run_until(self._now + ms)

    def run_all(self, max_tasks: int = 10_000) -> int:
        """
        Run tasks until the queue is empty, jumping the clock as needed.

        Raises:
            RuntimeError: If more than max_tasks run (e.g. a self-rescheduling event)
        """
        ran = 0
        while self._queue:
            if ran >= max_tasks:
                raise RuntimeError(f"run_all exceeded {max_tasks} tasks; queue is not draining")
            self._pop_and_run()
            ran += 1
        return ran

    def _run_until(self, target: int) -> int:
        ran = 0
        while self._queue and self._queue[0].due <= target:
            self._pop_and_run()
            ran += 1
        self._now = max(self._now, target)
        return ran

    def _pop_and_run(self) -> None:
        task = heapq.heappop(self._queue)
        self._now = max(self._now, task.due)
        task.fn()


class AsyncioScheduler:
    """
    Scheduler backed by an asyncio event loop.

    Exceptions raised by callbacks are reported through the loop's
    exception handler, as for any loop callback.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            return asyncio.get_running_loop()
        return self._loop

    def call_soon(self, fn: Task) -> None:
        self._get_loop().call_soon(fn)

    def call_later(self, delay_ms: int, fn: Task) -> None:
        if delay_ms < 0:
            raise ValueError(f"delay must be >= 0, got {delay_ms}")
        self._get_loop().call_later(delay_ms / 1000.0, fn)
