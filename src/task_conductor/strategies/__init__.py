"""Concurrency strategies that decide how task actions are executed."""

from task_conductor.strategies.base import ConcurrencyStrategy
from task_conductor.strategies.fork import (
    ACTIVE_WORKERS_KEY,
    ParallelWorkerStrategy,
    RemoteFailure,
)
from task_conductor.strategies.inline import InlineLedger, InlineStrategy

__all__ = [
    "ACTIVE_WORKERS_KEY",
    "ConcurrencyStrategy",
    "InlineLedger",
    "InlineStrategy",
    "ParallelWorkerStrategy",
    "RemoteFailure",
]
