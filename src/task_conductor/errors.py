"""Error taxonomy shared by the conductor, task handles and strategies."""

from __future__ import annotations


class ConductorError(RuntimeError):
    """Base class for every error raised by task-conductor."""


class AdmissionRefused(ConductorError):
    """Strategy is at its concurrency ceiling; retry the launch later."""

    def __init__(self, message: str, *, active: int, maximum: int) -> None:
        super().__init__(message)
        self.active = active
        self.maximum = maximum


class SpawnFailure(ConductorError):
    """Worker could not be launched."""


class WorkerFailure(ConductorError):
    """Completion check, termination or the remote action itself failed."""

    def __init__(self, message: str, *, remote_traceback: str | None = None) -> None:
        super().__init__(message)
        self.remote_traceback = remote_traceback


class ConductorTimeout(ConductorError, TimeoutError):
    """Cumulative wait budget was exhausted before every task finished."""

    def __init__(self, message: str, *, waited_seconds: float, limit_seconds: float) -> None:
        super().__init__(message)
        self.waited_seconds = waited_seconds
        self.limit_seconds = limit_seconds


class TaskNotFinished(ConductorError):
    """Result was requested from a task that has not finished."""


class ResultAlreadyCollected(ConductorError):
    """Result of a task was already collected once."""


class PartialResults(ConductorTimeout):
    """Batch timed out; carries whatever results were collected in time."""

    def __init__(
        self,
        message: str,
        *,
        results: dict,
        waited_seconds: float,
        limit_seconds: float,
    ) -> None:
        super().__init__(message, waited_seconds=waited_seconds, limit_seconds=limit_seconds)
        self.results = results
