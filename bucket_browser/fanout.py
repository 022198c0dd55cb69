from __future__ import annotations
"""Generation-tagged fan-out of independent coroutines."""
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class TaskOutcome(Generic[T]):
    """Result of one unit of a :class:`FanOut`, success or failure."""

    key: str
    generation: int
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FanOut(Generic[T]):
    """Starts keyed coroutines together and joins every outcome.

    Unlike :class:`asyncio.TaskGroup` a failing unit does not cancel its
    siblings; failures come back as outcomes next to the successes. Each
    outcome carries the generation the fan-out was created for so callers can
    drop results that belong to a superseded load.
    """

    def __init__(self, generation: int) -> None:
        self.generation = generation
        self._units: dict[str, Callable[[], Awaitable[T]]] = {}

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, key: object) -> bool:
        return key in self._units

    def add(self, key: str, factory: Callable[[], Awaitable[T]]) -> None:
        if key in self._units:
            raise ValueError(f"Duplicate fan-out key '{key}'")
        self._units[key] = factory

    async def join(self) -> list[TaskOutcome[T]]:
        if not self._units:
            return []
        keys = list(self._units)
        results: list[Any] = await asyncio.gather(
            *(self._units[key]() for key in keys),
            return_exceptions=True,
        )
        outcomes: list[TaskOutcome[T]] = []
        for key, result in zip(keys, results):
            if isinstance(result, Exception):
                outcomes.append(TaskOutcome(key=key, generation=self.generation, error=result))
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(TaskOutcome(key=key, generation=self.generation, value=result))
        return outcomes
