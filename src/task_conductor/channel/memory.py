"""In-process channel backed by a dict."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

from task_conductor.channel.base import _MISSING, PrefixedChannel


class MemoryChannel(PrefixedChannel):
    """Channel for a single process; forked workers get a private copy."""

    shared_across_processes = False

    def __init__(
        self,
        *,
        prefix: str = "thread",
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(prefix=prefix, ttl_seconds=ttl_seconds, clock=clock)
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()

    def _store(self, key: str, value: Any, expires_at: float | None) -> None:
        with self._lock:
            self._entries[key] = (value, expires_at)

    def _fetch(self, key: str, now: float) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISSING
            value, expires_at = entry
            if expires_at is not None and expires_at <= now:
                del self._entries[key]
                return _MISSING
            return value

    def _remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def read_counter(self, key: object) -> int:
        with self._lock:
            return self._counters.get(self.message_key(key), 0)

    def increment_counter(self, key: object, *, ceiling: int) -> int | None:
        counter_key = self.message_key(key)
        with self._lock:
            current = self._counters.get(counter_key, 0)
            if current >= ceiling:
                return None
            self._counters[counter_key] = current + 1
            return current + 1

    def decrement_counter(self, key: object) -> int:
        counter_key = self.message_key(key)
        with self._lock:
            current = max(0, self._counters.get(counter_key, 0) - 1)
            self._counters[counter_key] = current
            return current

    def reset_counter(self, key: object) -> None:
        with self._lock:
            self._counters[self.message_key(key)] = 0
