"""Process-per-task strategy built on ``os.fork``."""

from __future__ import annotations

import logging
import os
import signal
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from task_conductor.channel import Channel
from task_conductor.config import MAX_WORKERS_CEILING
from task_conductor.errors import AdmissionRefused, SpawnFailure, WorkerFailure

logger = logging.getLogger(__name__)

ACTIVE_WORKERS_KEY = "ACTIVE_PROCESS_COUNT"
ANY_CHILD = -1


@dataclass(frozen=True)
class RemoteFailure:
    """Published by a worker in place of a result when its action raised."""

    exception_type: str
    message: str
    traceback: str

    @classmethod
    def from_exception(cls, error: BaseException) -> RemoteFailure:
        return cls(
            exception_type=type(error).__name__,
            message=str(error),
            traceback="".join(traceback.format_exception(error)),
        )


class ParallelWorkerStrategy:
    """Runs each action in a forked child that reports back through the channel.

    The parent never blocks on a child: it gets the pid back from ``spawn``
    and later polls with ``WNOHANG``. The running-worker count lives in the
    channel so several parents sharing a channel also share the ceiling.
    """

    def __init__(self, channel: Channel, max_workers: int | None = None) -> None:
        if not channel.shared_across_processes:
            raise ValueError(
                f"{type(channel).__name__} is not visible across processes; "
                "forked workers could not report results through it.",
            )
        if max_workers is not None and max_workers <= 0:
            raise ValueError(f"max_workers must be a positive integer, got {max_workers}.")
        self.channel = channel
        self.maximum_workers = (
            MAX_WORKERS_CEILING
            if max_workers is None
            else min(max_workers, MAX_WORKERS_CEILING)
        )
        self._running: set[int] = set()
        self._reaped: dict[int, int] = {}

    def spawn(self, action: Callable[..., Any], arguments: Sequence[Any]) -> str:
        active = self.channel.increment_counter(ACTIVE_WORKERS_KEY, ceiling=self.maximum_workers)
        if active is None:
            current = self.active_worker_count()
            raise AdmissionRefused(
                f"Can not start new worker, {current} workers already running. "
                f"{self.maximum_workers} workers allowed at a time.",
                active=current,
                maximum=self.maximum_workers,
            )

        try:
            pid = self._fork()
        except OSError as error:
            self.channel.decrement_counter(ACTIVE_WORKERS_KEY)
            raise SpawnFailure(f"Error attempting to fork: {error}") from error

        if pid == 0:
            self._run_worker(action, arguments)
            raise WorkerFailure("Worker process failed to terminate itself.")

        self._running.add(pid)
        logger.debug("Spawned worker %s (%d/%d active)", pid, active, self.maximum_workers)
        return str(pid)

    def halt(self, worker_id: str) -> None:
        """Kill a running worker and reap it.

        The admission slot is released here only when the reaped status shows
        the worker died from the signal. A worker that exited on its own ran
        its own release. The one window left is a kill landing between the
        worker's release and its ``_exit``; the counter floor absorbs it.
        """

        pid = int(worker_id)
        if pid not in self._running:
            return
        try:
            if self._poll(pid):
                return
        except ChildProcessError:
            self._running.discard(pid)
            return

        self._running.discard(pid)
        try:
            self._kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug("Worker %s exited before it could be halted", pid)
        try:
            _, status = self._waitpid(pid, 0)
        except ChildProcessError:
            return
        self._reaped[pid] = status
        if os.WIFSIGNALED(status):
            self.channel.decrement_counter(ACTIVE_WORKERS_KEY)
            logger.debug("Halted worker %s", pid)
        else:
            logger.debug("Worker %s finished before it could be halted", pid)

    def get_latest_completed(self) -> str | None:
        try:
            pid, status = self._waitpid(ANY_CHILD, os.WNOHANG)
        except ChildProcessError:
            return None
        except OSError as error:
            raise WorkerFailure(f"Error waiting for worker completion: {error}") from error
        if pid == 0:
            return None
        self._mark_reaped(pid, status)
        return str(pid)

    def has_completed(self, worker_id: str) -> bool:
        pid = int(worker_id)
        if pid in self._reaped:
            return True
        try:
            return self._poll(pid)
        except OSError as error:
            raise WorkerFailure(
                f"Error waiting for worker {worker_id} completion: {error}",
            ) from error

    def flush_result(self, worker_id: str) -> Any:
        result = self.channel.flush_message(worker_id)
        status = self._reaped.pop(int(worker_id), None)
        if isinstance(result, RemoteFailure):
            raise WorkerFailure(
                f"Worker {worker_id} action raised {result.exception_type}: {result.message}",
                remote_traceback=result.traceback,
            )
        if result is None and status is not None and os.waitstatus_to_exitcode(status) != 0:
            raise WorkerFailure(
                f"Worker {worker_id} exited with code {os.waitstatus_to_exitcode(status)} "
                "without publishing a result.",
            )
        return result

    def active_worker_count(self) -> int:
        """Running workers according to the shared admission counter."""

        return self.channel.read_counter(ACTIVE_WORKERS_KEY)

    def reset_admission(self) -> None:
        """Zero the shared admission counter, e.g. after a crashed parent leaked slots."""

        self.channel.reset_counter(ACTIVE_WORKERS_KEY)

    def _run_worker(self, action: Callable[..., Any], arguments: Sequence[Any]) -> None:
        pid = self._getpid()
        exit_code = 0
        try:
            try:
                result = action(*arguments)
            except BaseException as error:  # noqa: BLE001
                logger.exception("Worker %s action failed", pid)
                result = RemoteFailure.from_exception(error)
                exit_code = 1
            self.channel.send(pid, result)
        except Exception:
            logger.exception("Worker %s could not publish its result", pid)
            exit_code = 2
        finally:
            try:
                self.channel.decrement_counter(ACTIVE_WORKERS_KEY)
            finally:
                self._exit(exit_code)

    def _poll(self, pid: int) -> bool:
        reaped_pid, status = self._waitpid(pid, os.WNOHANG)
        if reaped_pid == 0:
            return False
        self._mark_reaped(reaped_pid, status)
        return True

    def _mark_reaped(self, pid: int, status: int) -> None:
        self._running.discard(pid)
        self._reaped[pid] = status
        logger.debug("Worker %s completed with status %d", pid, status)

    def _fork(self) -> int:
        return os.fork()

    def _getpid(self) -> int:
        return os.getpid()

    def _waitpid(self, pid: int, options: int) -> tuple[int, int]:
        return os.waitpid(pid, options)

    def _kill(self, pid: int, sig: int) -> None:
        os.kill(pid, sig)

    def _exit(self, code: int) -> None:
        os._exit(code)
