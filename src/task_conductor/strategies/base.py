"""Concurrency strategy interface implemented by worker launchers."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol


class ConcurrencyStrategy(Protocol):
    """Launch, probe and terminate workers for task handles."""

    def spawn(self, action: Callable[..., Any], arguments: Sequence[Any]) -> str:
        """Start the action and return an identifier for its worker.

        Raises ``AdmissionRefused`` when the concurrency ceiling is reached and
        ``SpawnFailure`` when the worker cannot be started at all.
        """

    def halt(self, worker_id: str) -> None:
        """Forcibly terminate the worker; calling it twice is harmless."""

    def get_latest_completed(self) -> str | None:
        """Identifier of any one worker that has finished, without blocking."""

    def has_completed(self, worker_id: str) -> bool:
        """Whether the worker finished, without blocking.

        Raises ``WorkerFailure`` when the completion check itself errors.
        """

    def flush_result(self, worker_id: str) -> Any:
        """Return and clear the stored result of the worker."""
