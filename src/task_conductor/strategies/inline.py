"""Synchronous strategy that runs every action on the caller."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from task_conductor.errors import WorkerFailure

logger = logging.getLogger(__name__)


class InlineLedger:
    """Worker id sequence and result store for inline strategies.

    Strategies built with the same ledger draw ids from one gapless sequence.
    """

    def __init__(self) -> None:
        self.sequence = 0
        self.results: dict[str, Any] = {}

    def next_id(self) -> str:
        self.sequence += 1
        return str(self.sequence)

    def reset(self) -> None:
        """Restart ids at 1 and drop stored results.

        Ids issued before the reset may be handed out again afterwards.
        """

        self.sequence = 0
        self.results.clear()


class InlineStrategy:
    """Runs actions immediately; nothing ever needs to be waited on or halted.

    Timeouts never trigger with this strategy since every worker has finished
    by the time ``spawn`` returns.
    """

    def __init__(self, ledger: InlineLedger | None = None) -> None:
        self.ledger = ledger or InlineLedger()

    def spawn(self, action: Callable[..., Any], arguments: Sequence[Any]) -> str:
        worker_id = self.ledger.next_id()
        try:
            self.ledger.results[worker_id] = action(*arguments)
        except Exception as error:
            raise WorkerFailure(
                f"Inline worker {worker_id} action raised {type(error).__name__}: {error}",
            ) from error
        logger.debug("Inline worker %s finished", worker_id)
        return worker_id

    def halt(self, worker_id: str) -> None:
        return None

    def get_latest_completed(self) -> str | None:
        if self.ledger.sequence == 0:
            return None
        return str(self.ledger.sequence)

    def has_completed(self, worker_id: str) -> bool:
        return True

    def flush_result(self, worker_id: str) -> Any:
        return self.ledger.results.pop(worker_id, None)
