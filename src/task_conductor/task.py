"""Task handle: one unit of work and its execution status."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from task_conductor.errors import (
    AdmissionRefused,
    ConductorError,
    ResultAlreadyCollected,
    TaskNotFinished,
)
from task_conductor.strategies.base import ConcurrencyStrategy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskStatus(str, Enum):
    """Task lifecycle states; FINISHED and HALTED are terminal."""

    NOT_STARTED = "not_started"
    EXECUTING = "executing"
    FINISHED = "finished"
    HALTED = "halted"


class TaskHandle(Generic[T]):
    """Wraps an action and delegates launch, probing and termination to a strategy."""

    def __init__(
        self,
        action: Callable[..., T],
        strategy: ConcurrencyStrategy,
        *,
        key: Any = None,
    ) -> None:
        self.action = action
        self.strategy = strategy
        self.key = key
        self.worker_id: str | None = None
        self._status = TaskStatus.NOT_STARTED
        self._collected = False

    @property
    def status(self) -> TaskStatus:
        return self._status

    def launch(self, *arguments: Any) -> str:
        """Start the action through the strategy and return its worker id.

        On ``AdmissionRefused`` the task goes back to NOT_STARTED and the error
        propagates so the caller can retry later.
        """

        if self._status is not TaskStatus.NOT_STARTED:
            raise ConductorError(f"Task {self.key!r} was already launched ({self._status.value}).")
        self._status = TaskStatus.EXECUTING
        try:
            self.worker_id = self.strategy.spawn(self.action, arguments)
        except AdmissionRefused:
            self._status = TaskStatus.NOT_STARTED
            raise
        except Exception:
            self._status = TaskStatus.HALTED
            raise
        return self.worker_id

    def probe_completion(self) -> bool:
        """Ask the strategy whether the worker finished and record it."""

        if (
            not self.has_completed()
            and self.worker_id is not None
            and self.strategy.has_completed(self.worker_id)
        ):
            self._status = TaskStatus.FINISHED
        return self.has_completed()

    def collect_result(self) -> T:
        """Flush the worker's result from the strategy; allowed once per task."""

        if self._status is not TaskStatus.FINISHED or self.worker_id is None:
            raise TaskNotFinished(
                f"Task {self.key!r} has no result to collect ({self._status.value}).",
            )
        if self._collected:
            raise ResultAlreadyCollected(f"Result of task {self.key!r} was already collected.")
        self._collected = True
        return self.strategy.flush_result(self.worker_id)

    def halt(self) -> None:
        """Terminate the worker; a halted task never yields a result."""

        if self.worker_id is not None:
            self.strategy.halt(self.worker_id)
        if self._status is not TaskStatus.FINISHED:
            self._status = TaskStatus.HALTED
            logger.debug("Halted task %r (worker %s)", self.key, self.worker_id)

    def has_started(self) -> bool:
        return self._status is not TaskStatus.NOT_STARTED

    def has_completed(self) -> bool:
        return self._status in (TaskStatus.FINISHED, TaskStatus.HALTED)

    def has_halted(self) -> bool:
        return self._status is TaskStatus.HALTED
