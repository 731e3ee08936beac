# SPDX-License-Identifier: MIT
"""Active request bookkeeping and the retry budget.

:class:`ActiveRequestTracker` counts outstanding work in two dimensions: per
demand class, which is what admission limits are checked against, and per item,
which counts every caller currently waiting for that item. A dispatched request
occupies both; a caller that coalesced onto an existing load only holds an item
reference and never consumes a class slot.

:class:`RetryPolicy` decides whether a cached failure should be evicted so the
next dispatch fetches the item again.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

import logfire

from .gateway import handle_failed

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .gateway import LoaderGateway


class ActiveRequestTracker:
    """Reference counts for in-flight items and per-class slot usage."""

    def __init__(self) -> None:
        self._items: Counter[str] = Counter()
        self._classes: Counter[str] = Counter()

    def begin(self, class_name: str, item_id: str) -> None:
        """Record a dispatch of ``item_id`` occupying a ``class_name`` slot."""
        self._classes[class_name] += 1
        self._items[item_id] += 1

    def end(self, class_name: str, item_id: str) -> None:
        """Release the slot and item reference taken by :meth:`begin`."""
        self._release(self._classes, class_name)
        self._release(self._items, item_id)

    def attach(self, item_id: str) -> None:
        """Record an extra caller waiting on an outstanding load."""
        self._items[item_id] += 1

    def detach(self, item_id: str) -> None:
        """Release a reference taken by :meth:`attach`."""
        self._release(self._items, item_id)

    @staticmethod
    def _release(counter: Counter[str], key: str) -> None:
        remaining = counter[key] - 1
        if remaining > 0:
            counter[key] = remaining
        else:
            del counter[key]

    def is_in_flight(self, item_id: str) -> bool:
        """Return ``True`` while any caller still waits for ``item_id``."""
        return self._items.get(item_id, 0) > 0

    def waiting(self, item_id: str) -> int:
        """Return the number of callers waiting for ``item_id``."""
        return self._items.get(item_id, 0)

    def in_flight(self, class_name: str) -> int:
        """Return the number of dispatched requests for ``class_name``."""
        return self._classes.get(class_name, 0)

    def total_in_flight(self) -> int:
        """Return the number of dispatched requests across every class."""
        return sum(self._classes.values())

    def idle(self) -> bool:
        """Return ``True`` when nothing is dispatched and nobody is waiting."""
        return not self._items and not self._classes


class RetryPolicy:
    """Bounded re-fetch budget per item.

    Counters are monotonic for the life of the policy unless :meth:`reset` is
    called, so an item that exhausted its budget keeps surfacing the cached
    failure.
    """

    def __init__(self, max_retries: int = 0) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self._attempts: dict[str, int] = {}

    @property
    def enabled(self) -> bool:
        return self.max_retries > 0

    def attempts(self, item_id: str) -> int:
        """Return how many retries were spent on ``item_id``."""
        return self._attempts.get(item_id, 0)

    def tracked_items(self) -> int:
        """Return how many items have spent at least one retry."""
        return len(self._attempts)

    def prepare(self, item_id: str, gateway: "LoaderGateway") -> bool:
        """Evict a cached failure for ``item_id`` while budget remains.

        Returns:
            ``True`` when a failed handle was evicted and a retry was charged.
        """
        if not self.enabled:
            return False
        used = self._attempts.get(item_id, 0)
        if used >= self.max_retries:
            return False
        handle = gateway.lookup(item_id)
        if handle is None or not handle_failed(handle):
            return False
        gateway.evict_failed(item_id)
        self._attempts[item_id] = used + 1
        logfire.info(
            "Retrying failed item",
            item_id=item_id,
            attempt=used + 1,
            max_retries=self.max_retries,
        )
        return True

    def reset(self, item_id: str | None = None) -> None:
        """Clear the counter for ``item_id`` or for every item."""
        if item_id is None:
            self._attempts.clear()
        else:
            self._attempts.pop(item_id, None)


__all__ = ["ActiveRequestTracker", "RetryPolicy"]
