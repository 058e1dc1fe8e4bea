"""Conductor: admits tasks under a concurrency ceiling and surfaces their results."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable, Iterable, Iterator
from enum import Enum
from typing import Any, Generic, NamedTuple, TypeVar

from task_conductor.config import ConductorSettings
from task_conductor.errors import AdmissionRefused, ConductorTimeout
from task_conductor.strategies.base import ConcurrencyStrategy
from task_conductor.task import TaskHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL_SECONDS = 0.05
DEFAULT_WAIT_TIME_LIMIT_SECONDS = 10.0
_WAIT_TOLERANCE_SECONDS = 1e-9


class ScanOutcome(str, Enum):
    """Result of one pass over the active tasks."""

    FOUND = "found"
    PENDING = "pending"
    EXHAUSTED = "exhausted"


class ScanResult(NamedTuple):
    outcome: ScanOutcome
    key: Hashable | None = None
    task: TaskHandle | None = None


class Conductor(Generic[T]):
    """Runs registered actions through a strategy and yields ``(key, result)`` pairs.

    Results come out in completion order. Iteration is single pass: results
    are handed over one at a time and internal bookkeeping is dropped once the
    batch is exhausted, stopped or timed out. The only blocking point is the
    poll sleep, and the sum of all sleeps over the conductor's lifetime never
    exceeds ``wait_time_limit_seconds``.
    """

    def __init__(
        self,
        strategy: ConcurrencyStrategy,
        *,
        wait_time_limit_seconds: float = DEFAULT_WAIT_TIME_LIMIT_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be > 0, got {poll_interval_seconds}.")
        self.strategy = strategy
        self.wait_time_limit_seconds = wait_time_limit_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._tasks: dict[Hashable, TaskHandle[T]] = {}
        self._arguments: dict[Hashable, tuple[Any, ...]] = {}
        self._active: dict[Hashable, TaskHandle[T]] = {}
        self._results: dict[Hashable, T] = {}
        self._waits = 0

    @classmethod
    def from_settings(
        cls,
        strategy: ConcurrencyStrategy,
        settings: ConductorSettings,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Conductor[Any]:
        return cls(
            strategy,
            wait_time_limit_seconds=settings.wait_time_limit_seconds,
            poll_interval_seconds=settings.poll_interval_seconds,
            sleep=sleep,
        )

    def register(
        self,
        key: Hashable,
        action: Callable[..., T],
        arguments: Iterable[Any] = (),
    ) -> None:
        """Add a task, replacing any task registered under the same key."""

        self._tasks[key] = TaskHandle(action, self.strategy, key=key)
        self._arguments[key] = tuple(arguments)

    def admit_pending(self) -> int:
        """Launch not-started tasks in registration order until the strategy refuses one."""

        launched = 0
        for key, task in self._tasks.items():
            if task.has_started():
                continue
            try:
                task.launch(*self._arguments[key])
            except AdmissionRefused as refusal:
                logger.debug("Admission refused for task %r: %s", key, refusal)
                break
            self._active[key] = task
            launched += 1
        return launched

    def start(self) -> int:
        """Activate as many tasks as the strategy allows."""

        return self.admit_pending()

    def stop(self) -> None:
        """Halt every active task and drop uncollected results."""

        self._clean_up()

    def action_count(self) -> int:
        return len(self._tasks)

    def active_count(self) -> int:
        return len(self._active)

    def total_wait_seconds(self) -> float:
        return self._waits * self.poll_interval_seconds

    @property
    def waits(self) -> int:
        return self._waits

    @property
    def has_current(self) -> bool:
        return bool(self._results)

    @property
    def current_key(self) -> Hashable | None:
        if not self._results:
            return None
        return next(reversed(self._results))

    @property
    def current_value(self) -> T | None:
        if not self._results:
            return None
        return self._results[next(reversed(self._results))]

    def reset(self) -> None:
        """Drop previous bookkeeping and produce the first result."""

        self._clean_up()
        self.advance()

    def advance(self) -> None:
        """Block, within the wait budget, until one more result is collected.

        Leaves ``has_current`` false when every task has been accounted for.
        Any error halts the remaining active tasks before it propagates.
        """

        try:
            while True:
                scan = self._scan()
                if scan.outcome is ScanOutcome.FOUND:
                    self._collect(scan.key, scan.task)
                    return
                if scan.outcome is ScanOutcome.EXHAUSTED:
                    logger.debug("All %d tasks processed", len(self._tasks))
                    self._clean_up()
                    return
                self._wait()
        except ConductorTimeout as timeout:
            logger.warning("%s; halting %d active tasks", timeout, len(self._active))
            self._clean_up()
            raise
        except BaseException:
            self._clean_up()
            raise

    def __iter__(self) -> Iterator[tuple[Hashable, T]]:
        try:
            self.reset()
            while self.has_current:
                yield self.current_key, self.current_value
                self.advance()
        finally:
            if self._active:
                self.stop()

    def _scan(self) -> ScanResult:
        self.admit_pending()
        if not self._active:
            if self._has_pending():
                return ScanResult(ScanOutcome.PENDING)
            return ScanResult(ScanOutcome.EXHAUSTED)
        for key, task in self._active.items():
            if task.probe_completion():
                return ScanResult(ScanOutcome.FOUND, key, task)
        return ScanResult(ScanOutcome.PENDING)

    def _has_pending(self) -> bool:
        return any(not task.has_started() for task in self._tasks.values())

    def _collect(self, key: Hashable, task: TaskHandle[T]) -> None:
        result = task.collect_result()
        del self._active[key]
        self._results.pop(key, None)
        self._results[key] = result

    def _wait(self) -> None:
        projected = (self._waits + 1) * self.poll_interval_seconds
        if projected > self.wait_time_limit_seconds + _WAIT_TOLERANCE_SECONDS:
            raise ConductorTimeout(
                f"Exceeded conductor total wait time of {self.wait_time_limit_seconds}s",
                waited_seconds=self.total_wait_seconds(),
                limit_seconds=self.wait_time_limit_seconds,
            )
        self._sleep(self.poll_interval_seconds)
        self._waits += 1

    def _clean_up(self) -> None:
        for task in self._active.values():
            task.halt()
        self._active.clear()
        self._results.clear()
