# SPDX-License-Identifier: MIT
"""Per-class pending request queues."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Iterable, Optional

SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[BaseException], None]
PendingCallback = Callable[[], None]


@dataclass
class RequestDescriptor:
    """A request waiting for, or owned by, a dispatch slot."""

    class_name: str
    item_id: str
    on_success: SuccessCallback
    on_failure: FailureCallback
    prevent_cache: bool = False
    on_pending: Optional[PendingCallback] = None
    # Internal hook for awaitable callers; never invoked for plain callbacks.
    on_discard: Optional[Callable[[], None]] = None
    enqueued_at: float = field(default_factory=time.monotonic)


class RequestQueues:
    """FIFO queues keyed by demand class name with front insertion.

    Queues are created lazily; callers are expected to validate class names
    against the registry before touching a queue.
    """

    def __init__(self) -> None:
        self._queues: dict[str, Deque[RequestDescriptor]] = {}

    def _queue(self, name: str) -> Deque[RequestDescriptor]:
        return self._queues.setdefault(name, deque())

    def append(self, request: RequestDescriptor) -> None:
        """Add ``request`` behind existing work of its class."""
        self._queue(request.class_name).append(request)

    def prepend(self, request: RequestDescriptor) -> None:
        """Add ``request`` ahead of existing work of its class."""
        self._queue(request.class_name).appendleft(request)

    def extend_front(self, name: str, requests: Iterable[RequestDescriptor]) -> None:
        """Place ``requests`` ahead of existing work, keeping their order."""
        self._queue(name).extendleft(reversed(list(requests)))

    def pop(self, name: str) -> RequestDescriptor | None:
        """Remove and return the next request for ``name``, if any."""
        queue = self._queues.get(name)
        if not queue:
            return None
        return queue.popleft()

    def clear(self, name: str) -> list[RequestDescriptor]:
        """Drop pending requests for ``name`` and return them."""
        queue = self._queues.get(name)
        if not queue:
            return []
        dropped = list(queue)
        queue.clear()
        return dropped

    def pending(self, name: str) -> int:
        """Return the number of requests waiting in ``name``."""
        return len(self._queues.get(name, ()))

    def is_empty(self) -> bool:
        """Return ``True`` when no class has pending work."""
        return not any(self._queues.values())

    def item_ids(self, name: str) -> list[str]:
        """Return queued item ids for ``name`` in dispatch order."""
        return [request.item_id for request in self._queues.get(name, ())]


__all__ = [
    "FailureCallback",
    "PendingCallback",
    "RequestDescriptor",
    "RequestQueues",
    "SuccessCallback",
]
