"""Map/filter helpers that fan a mapping out over a conductor."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping
from typing import Any, TypeVar

from task_conductor.conductor import Conductor
from task_conductor.errors import ConductorTimeout, PartialResults
from task_conductor.strategies.base import ConcurrencyStrategy

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
R = TypeVar("R")


def conduct_map(
    items: Mapping[K, V],
    function: Callable[[V], R],
    strategy: ConcurrencyStrategy,
    **conductor_options: Any,
) -> dict[K, R]:
    """Apply ``function`` to every value, returning results keyed like ``items``.

    Keys appear in completion order. When the wait budget runs out,
    ``PartialResults`` carries the results collected before the timeout.
    """

    conductor: Conductor[R] = Conductor(strategy, **conductor_options)
    for key, value in items.items():
        conductor.register(key, function, [value])

    mapped: dict[K, R] = {}
    try:
        for key, result in conductor:
            mapped[key] = result  # type: ignore[index]
    except ConductorTimeout as timeout:
        raise PartialResults(
            f"Did not map all values, exceeded execution time - {timeout}",
            results=mapped,
            waited_seconds=timeout.waited_seconds,
            limit_seconds=timeout.limit_seconds,
        ) from timeout
    return mapped


def conduct_filter(
    items: Mapping[K, V],
    predicate: Callable[[V], object],
    strategy: ConcurrencyStrategy,
    **conductor_options: Any,
) -> dict[K, V]:
    """Keep the entries whose predicate result is truthy, in input order."""

    try:
        verdicts = conduct_map(items, predicate, strategy, **conductor_options)
    except PartialResults as partial:
        raise PartialResults(
            f"Did not judge all values, exceeded execution time - {partial.__cause__}",
            results={key: items[key] for key in items if partial.results.get(key)},
            waited_seconds=partial.waited_seconds,
            limit_seconds=partial.limit_seconds,
        ) from partial
    return {key: value for key, value in items.items() if verdicts.get(key)}
