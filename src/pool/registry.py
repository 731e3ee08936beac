# SPDX-License-Identifier: MIT
"""Demand class registry.

A demand class is a named category of fetch requests (interactive navigation,
thumbnails, prefetch, ...) with a scheduling priority and a concurrency limit.
The registry keeps classes sorted by descending priority so the scheduler can
walk them in order on every tick.

Limits are modelled as small strategy objects: :class:`FixedLimit` for a
constant and :class:`DynamicLimit` for a zero-argument supplier that is called
afresh every time the limit is resolved. Plain integers and callables passed to
:meth:`DemandClassRegistry.register` are wrapped automatically.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Protocol, Union, runtime_checkable

import logfire


class UnknownDemandClassError(KeyError):
    """Raised when a request names a class that was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown demand class '{self.name}'"


@runtime_checkable
class ConcurrencyPolicy(Protocol):
    """Strategy returning the current concurrency limit of a class."""

    def resolve(self) -> int: ...


@dataclass(frozen=True)
class FixedLimit:
    """Constant concurrency limit."""

    value: int

    def resolve(self) -> int:
        return self.value


@dataclass(frozen=True)
class DynamicLimit:
    """Concurrency limit computed by ``supplier`` each time it is resolved."""

    supplier: Callable[[], int]

    def resolve(self) -> int:
        return int(self.supplier())


LimitSpec = Union[int, Callable[[], int], ConcurrencyPolicy]


def as_policy(limit: LimitSpec) -> ConcurrencyPolicy:
    """Wrap ``limit`` in the matching :class:`ConcurrencyPolicy`.

    Raises:
        TypeError: If ``limit`` is neither an integer, a policy nor a callable.
    """
    if isinstance(limit, bool):
        raise TypeError("concurrency limit must be an int or a supplier")
    if isinstance(limit, int):
        return FixedLimit(limit)
    if isinstance(limit, ConcurrencyPolicy):
        return limit
    if callable(limit):
        return DynamicLimit(limit)
    raise TypeError("concurrency limit must be an int or a supplier")


@dataclass(frozen=True)
class DemandClass:
    """A registered demand class.

    Attributes:
        name: Unique class name.
        priority: Scheduling priority; higher values are dispatched first.
        policy: Concurrency limit strategy.
        load_priority: Hint forwarded to the loader gateway. It is independent
            of ``priority`` so queue order and fetch order may differ.
    """

    name: str
    priority: int
    policy: ConcurrencyPolicy
    load_priority: int = 0


class DemandClassRegistry:
    """Ordered catalogue of demand classes."""

    def __init__(self) -> None:
        self._classes: list[DemandClass] = []

    def register(
        self,
        name: str,
        priority: int,
        limit: LimitSpec,
        *,
        load_priority: int = 0,
    ) -> DemandClass:
        """Insert or replace the class ``name``.

        The entry is placed before the first existing class with a strictly
        lower priority, so classes sharing a priority keep registration order.
        Registering an existing name replaces the previous entry in place; it
        only moves when its priority changes.

        Args:
            name: Unique class name.
            priority: Scheduling priority; higher is more urgent.
            limit: Constant limit, zero-argument supplier or policy object.
            load_priority: Priority hint passed to the loader gateway.

        Returns:
            The registered :class:`DemandClass`.

        Raises:
            ValueError: If ``name`` is empty.
        """
        if not name:
            raise ValueError("demand class name must not be empty")
        entry = DemandClass(
            name=name,
            priority=priority,
            policy=as_policy(limit),
            load_priority=load_priority,
        )
        current = self._index(name)
        replaced = current is not None
        if current is not None and self._classes[current].priority == priority:
            # Same priority: keep the slot so ties keep their order.
            self._classes[current] = entry
        else:
            if current is not None:
                del self._classes[current]
            position = len(self._classes)
            for index, existing in enumerate(self._classes):
                if existing.priority < priority:
                    position = index
                    break
            self._classes.insert(position, entry)
        logfire.debug(
            "Registered demand class",
            name=name,
            priority=priority,
            load_priority=load_priority,
            replaced=replaced,
        )
        return entry

    def _index(self, name: str) -> int | None:
        for index, entry in enumerate(self._classes):
            if entry.name == name:
                return index
        return None

    def get(self, name: str) -> DemandClass:
        """Return the class registered as ``name``.

        Raises:
            UnknownDemandClassError: If ``name`` was never registered.
        """
        for entry in self._classes:
            if entry.name == name:
                return entry
        raise UnknownDemandClassError(name)

    def classes_by_priority(self) -> list[DemandClass]:
        """Return registered classes, most urgent first."""
        return list(self._classes)

    def resolve_limit(self, demand_class: DemandClass | str) -> int:
        """Return the current limit for ``demand_class``; never below zero."""
        entry = (
            self.get(demand_class)
            if isinstance(demand_class, str)
            else demand_class
        )
        return max(entry.policy.resolve(), 0)

    def __contains__(self, name: object) -> bool:
        return any(entry.name == name for entry in self._classes)

    def __iter__(self) -> Iterator[DemandClass]:
        return iter(self.classes_by_priority())

    def __len__(self) -> int:
        return len(self._classes)


__all__ = [
    "ConcurrencyPolicy",
    "DemandClass",
    "DemandClassRegistry",
    "DynamicLimit",
    "FixedLimit",
    "LimitSpec",
    "UnknownDemandClassError",
    "as_policy",
]
