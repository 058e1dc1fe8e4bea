"""Run tasks concurrently in isolated workers and collect their results in completion order."""

from task_conductor.channel import Channel, MemoryChannel, SqliteChannel
from task_conductor.conductor import Conductor, ScanOutcome
from task_conductor.errors import (
    AdmissionRefused,
    ConductorError,
    ConductorTimeout,
    PartialResults,
    ResultAlreadyCollected,
    SpawnFailure,
    TaskNotFinished,
    WorkerFailure,
)
from task_conductor.mapping import conduct_filter, conduct_map
from task_conductor.strategies import InlineLedger, InlineStrategy, ParallelWorkerStrategy
from task_conductor.task import TaskHandle, TaskStatus

__version__ = "0.1.0"

__all__ = [
    "AdmissionRefused",
    "Channel",
    "Conductor",
    "ConductorError",
    "ConductorTimeout",
    "InlineLedger",
    "InlineStrategy",
    "MemoryChannel",
    "ParallelWorkerStrategy",
    "PartialResults",
    "ResultAlreadyCollected",
    "ScanOutcome",
    "SpawnFailure",
    "SqliteChannel",
    "TaskHandle",
    "TaskNotFinished",
    "TaskStatus",
    "WorkerFailure",
    "__version__",
    "conduct_filter",
    "conduct_map",
]
