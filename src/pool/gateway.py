# SPDX-License-Identifier: MIT
"""Loader gateway contract and a caching adapter.

The request pool never performs I/O itself. It sequences calls into a
:class:`LoaderGateway`, which owns fetching, decoding and caching. Every load is
represented by an ``asyncio.Future`` that completes exactly once with either a
payload or an exception.

:class:`CachingLoaderGateway` adapts any ``async def fetch(item_id, options)``
coroutine function to that contract. In-flight and completed handles are kept
in a cache so repeated lookups observe the same outcome, which is what makes
request coalescing and retry eviction work.

Example:
    ```python
    async def fetch(item_id: str, options: LoadOptions) -> bytes:
        async with session.get(url_for(item_id)) as response:
            return await response.read()

    gateway = CachingLoaderGateway(fetch)
    pool = RequestPool(gateway)
    ```
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

import logfire

from models import LoadOptions

FetchFn = Callable[[str, LoadOptions], Awaitable[Any]]


def handle_failed(handle: asyncio.Future[Any]) -> bool:
    """Return ``True`` when ``handle`` completed without a payload."""

    if not handle.done():
        return False
    return handle.cancelled() or handle.exception() is not None


class LoaderGateway(Protocol):
    """External loading and caching service consumed by the pool."""

    def lookup(self, item_id: str) -> asyncio.Future[Any] | None:
        """Return the resolved or in-flight handle for ``item_id``, if any."""
        ...

    def load(self, item_id: str, options: LoadOptions) -> asyncio.Future[Any]:
        """Start fetching ``item_id`` and return its completion handle."""
        ...

    def evict_failed(self, item_id: str) -> None:
        """Forget a failed handle so the next load re-attempts the fetch."""
        ...


class CachingLoaderGateway:
    """Gateway that runs ``fetch`` as tasks and caches their handles."""

    def __init__(self, fetch: FetchFn) -> None:
        self._fetch = fetch
        self._handles: dict[str, asyncio.Future[Any]] = {}
        self.loads = 0

    def lookup(self, item_id: str) -> asyncio.Future[Any] | None:
        return self._handles.get(item_id)

    def load(self, item_id: str, options: LoadOptions) -> asyncio.Future[Any]:
        task = asyncio.ensure_future(self._fetch(item_id, options))
        self.loads += 1
        # In-flight handles stay visible so concurrent callers can coalesce.
        self._handles[item_id] = task
        task.add_done_callback(lambda done: self._settle(item_id, done, options))
        logfire.debug(
            "Loader fetch started",
            item_id=item_id,
            class_name=options.class_name,
            priority=options.priority,
            prevent_cache=options.prevent_cache,
        )
        return task

    def _settle(
        self, item_id: str, handle: asyncio.Future[Any], options: LoadOptions
    ) -> None:
        failed = handle_failed(handle)
        if failed:
            logfire.warning(
                "Loader fetch failed",
                item_id=item_id,
                error=repr(handle.exception()) if not handle.cancelled() else None,
            )
        if options.prevent_cache and self._handles.get(item_id) is handle:
            del self._handles[item_id]

    def evict_failed(self, item_id: str) -> None:
        handle = self._handles.get(item_id)
        if handle is not None and handle_failed(handle):
            del self._handles[item_id]
            logfire.debug("Evicted failed handle", item_id=item_id)

    def remove(self, item_id: str) -> None:
        """Drop any cached handle for ``item_id``."""
        self._handles.pop(item_id, None)

    def clear(self) -> None:
        """Drop every cached handle."""
        self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)


__all__ = [
    "CachingLoaderGateway",
    "FetchFn",
    "LoaderGateway",
    "handle_failed",
]
