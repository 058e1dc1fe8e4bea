"""Channel interface for passing values between workers."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

_MISSING: Any = object()


class Channel(Protocol):
    """Key/value medium with per-entry expiry, shared by the workers of a run."""

    prefix: str
    shared_across_processes: bool

    def send(self, key: object, value: Any, ttl: float | None = None) -> None:
        """Store a value under the key, replacing any previous one."""

    def receive(self, key: object, default: Any = None) -> Any:
        """Return the live value for the key, or ``default`` when unset or expired."""

    def flush_message(self, key: object, default: Any = None) -> Any:
        """Return the live value for the key and delete it."""

    def delete(self, key: object) -> None:
        """Drop the value stored under the key."""

    def read_counter(self, key: object) -> int:
        """Current value of a shared counter, zero when unset."""

    def increment_counter(self, key: object, *, ceiling: int) -> int | None:
        """Atomically add one unless the counter already reached ``ceiling``."""

    def decrement_counter(self, key: object) -> int:
        """Atomically subtract one, never going below zero."""

    def reset_counter(self, key: object) -> None:
        """Set a counter back to zero."""


class PrefixedChannel:
    """Key prefixing and TTL policy shared by concrete channels.

    Subclasses implement the raw storage hooks; ``flush_message`` is a
    ``receive`` followed by a ``delete`` and two concurrent flushers of the
    same key may both observe the value.
    """

    shared_across_processes = False

    def __init__(
        self,
        *,
        prefix: str = "thread",
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.prefix = prefix
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def message_key(self, key: object) -> str:
        return f"{self.prefix}{key}"

    def send(self, key: object, value: Any, ttl: float | None = None) -> None:
        self._store(self.message_key(key), value, self._expires_at(ttl))

    def receive(self, key: object, default: Any = None) -> Any:
        value = self._fetch(self.message_key(key), self._clock())
        if value is _MISSING:
            return default
        return value

    def flush_message(self, key: object, default: Any = None) -> Any:
        message = self.receive(key, default)
        self.delete(key)
        return message

    def delete(self, key: object) -> None:
        self._remove(self.message_key(key))

    def _expires_at(self, ttl: float | None) -> float | None:
        effective = self.ttl_seconds if ttl is None else ttl
        if effective <= 0:
            return None
        return self._clock() + effective

    def _store(self, key: str, value: Any, expires_at: float | None) -> None:
        raise NotImplementedError

    def _fetch(self, key: str, now: float) -> Any:
        raise NotImplementedError

    def _remove(self, key: str) -> None:
        raise NotImplementedError
