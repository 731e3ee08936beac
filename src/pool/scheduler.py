# SPDX-License-Identifier: MIT
"""Prioritised, concurrency-bounded request pool.

:class:`RequestPool` arbitrates fetches for content items between competing
demand classes that share one loader gateway and one global concurrency
ceiling. Producers call :meth:`RequestPool.enqueue`; a request for an item that
is already resolved or already being fetched is served from that existing load
without entering a queue. Everything else joins its class queue and wakes the
pump.

The pump is a debounced tick driven by the running ``asyncio`` loop. Each tick
dispatches up to ``ceiling - total_in_flight`` requests, always taking the next
request from the most urgent class that has queued work and spare capacity.
Completions release their slot, notify the caller and schedule another tick,
so work left behind by capped classes resumes as capacity frees. The pump goes
to sleep once every queue is empty.

All state is touched only from the event loop thread: from producer calls, from
ticks and from future completion callbacks. Completions never dispatch
synchronously, which keeps stack depth bounded when callbacks chain new work.

Example:
    ```python
    gateway = CachingLoaderGateway(fetch)
    pool = RequestPool(gateway, ceiling=6)
    pool.register_class("interaction", priority=30, limit=6)
    pool.register_class("prefetch", priority=10, limit=lambda: viewports())

    image = await pool.fetch("image-1", "interaction")
    ```
"""

from __future__ import annotations

import asyncio
import time
from functools import partial
from typing import Any, Callable, Iterable

import logfire

from constants import DEFAULT_MAX_SIMULTANEOUS_REQUESTS
from models import ClassSnapshot, LoadOptions, PoolConfiguration, PoolSnapshot
from observability.telemetry import PoolTelemetry
from utils import ErrorHandler, LoggingErrorHandler

from .gateway import LoaderGateway
from .queues import (
    FailureCallback,
    PendingCallback,
    RequestDescriptor,
    RequestQueues,
    SuccessCallback,
)
from .registry import DemandClass, DemandClassRegistry, LimitSpec, as_policy
from .tracker import ActiveRequestTracker, RetryPolicy


class RequestPool:
    """Scheduler owning the registry, queues and counters of one session."""

    def __init__(
        self,
        gateway: LoaderGateway,
        *,
        ceiling: LimitSpec = DEFAULT_MAX_SIMULTANEOUS_REQUESTS,
        configuration: PoolConfiguration | None = None,
        error_handler: ErrorHandler | None = None,
        telemetry: PoolTelemetry | None = None,
    ) -> None:
        """Create a pool.

        Args:
            gateway: Loader gateway performing the actual fetches.
            ceiling: Global concurrency ceiling, either a constant or a
                zero-argument supplier queried at the start of every tick.
            configuration: Retry budget and tick delay.
            error_handler: Receives exceptions raised by caller callbacks.
            telemetry: Per-class metrics sink.
        """
        self._gateway = gateway
        self._ceiling = as_policy(ceiling)
        self._config = configuration or PoolConfiguration()
        self._registry = DemandClassRegistry()
        self._queues = RequestQueues()
        self._tracker = ActiveRequestTracker()
        self._retries = RetryPolicy(self._config.max_retries)
        self._errors = error_handler or LoggingErrorHandler()
        self.telemetry = telemetry or PoolTelemetry()
        self._awake = False
        self._tick_handle: asyncio.TimerHandle | None = None

    # -- configuration -----------------------------------------------------------

    @property
    def registry(self) -> DemandClassRegistry:
        return self._registry

    @property
    def gateway(self) -> LoaderGateway:
        return self._gateway

    @property
    def configuration(self) -> PoolConfiguration:
        """Return the active configuration."""
        return self._config

    def configure(self, configuration: PoolConfiguration) -> None:
        """Replace the configuration; retry counters already spent are kept."""
        self._config = configuration
        self._retries.max_retries = configuration.max_retries
        logfire.info(
            "Request pool configured",
            max_retries=configuration.max_retries,
            tick_delay=configuration.tick_delay,
        )

    def register_class(
        self,
        name: str,
        priority: int,
        limit: LimitSpec,
        *,
        load_priority: int = 0,
    ) -> DemandClass:
        """Register or replace a demand class."""
        return self._registry.register(
            name, priority, limit, load_priority=load_priority
        )

    def ceiling(self) -> int:
        """Return the global concurrency ceiling as currently resolved."""
        return max(self._ceiling.resolve(), 0)

    # -- producer API ------------------------------------------------------------

    def enqueue(
        self,
        item_id: str | None,
        class_name: str,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
        *,
        prevent_cache: bool = False,
        on_pending: PendingCallback | None = None,
        at_front: bool = False,
    ) -> bool:
        """Request ``item_id`` on behalf of ``class_name``.

        Exactly one of ``on_success`` or ``on_failure`` is called once the item
        is available, unless the request is still queued when its class is
        cleared. Those two callbacks always run from the event loop, never
        from inside this call; ``on_pending`` runs synchronously.

        Args:
            item_id: Identity of the content item. Empty values are ignored.
            class_name: Registered demand class.
            on_success: Called with the loaded payload.
            on_failure: Called with the load error.
            prevent_cache: Ask the gateway not to cache the result.
            on_pending: Called immediately when the item is not yet resolved.
            at_front: Queue ahead of existing work in the same class.

        Returns:
            ``False`` when the request was ignored because ``item_id`` is
            empty, ``True`` otherwise.

        Raises:
            UnknownDemandClassError: If ``class_name`` was never registered.
        """
        self._registry.get(class_name)
        if not item_id:
            return False
        request = RequestDescriptor(
            class_name=class_name,
            item_id=item_id,
            on_success=on_success,
            on_failure=on_failure,
            prevent_cache=prevent_cache,
            on_pending=on_pending,
        )
        self._submit(request, at_front=at_front)
        return True

    def add_prior_requests(
        self,
        item_ids: Iterable[str | None],
        class_name: str,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
        *,
        prevent_cache: bool = False,
        on_pending: PendingCallback | None = None,
    ) -> int:
        """Queue ``item_ids`` ahead of existing work of ``class_name``.

        The batch keeps its own order and the previously queued requests follow
        it unchanged.

        Returns:
            Number of requests that entered the queue.

        Raises:
            UnknownDemandClassError: If ``class_name`` was never registered.
        """
        self._registry.get(class_name)
        batch: list[RequestDescriptor] = []
        for item_id in item_ids:
            if not item_id:
                continue
            request = RequestDescriptor(
                class_name=class_name,
                item_id=item_id,
                on_success=on_success,
                on_failure=on_failure,
                prevent_cache=prevent_cache,
                on_pending=on_pending,
            )
            if not self._serve_existing(request):
                batch.append(request)
        if batch:
            self._queues.extend_front(class_name, batch)
            self._wake()
        return len(batch)

    async def fetch(
        self,
        item_id: str,
        class_name: str,
        *,
        prevent_cache: bool = False,
        at_front: bool = False,
    ) -> Any:
        """Enqueue ``item_id`` and wait for its payload.

        Raises:
            UnknownDemandClassError: If ``class_name`` was never registered.
            ValueError: If ``item_id`` is empty.
            asyncio.CancelledError: If the request was dropped by
                :meth:`clear_queue` before dispatch.
            Exception: Whatever the loader gateway failed with.
        """
        self._registry.get(class_name)
        if not item_id:
            raise ValueError("item_id must not be empty")
        result: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def _resolve(payload: Any) -> None:
            if not result.done():
                result.set_result(payload)

        def _reject(error: BaseException) -> None:
            if not result.done():
                result.set_exception(error)

        request = RequestDescriptor(
            class_name=class_name,
            item_id=item_id,
            on_success=_resolve,
            on_failure=_reject,
            prevent_cache=prevent_cache,
            on_discard=result.cancel,
        )
        self._submit(request, at_front=at_front)
        return await result

    def clear_queue(self, class_name: str) -> int:
        """Drop every queued request of ``class_name`` without notifying it.

        Requests that were already dispatched are unaffected.

        Returns:
            Number of dropped requests.

        Raises:
            UnknownDemandClassError: If ``class_name`` was never registered.
        """
        self._registry.get(class_name)
        dropped = self._queues.clear(class_name)
        for request in dropped:
            if request.on_discard is not None:
                request.on_discard()
        if dropped:
            self.telemetry.record_cleared(class_name, len(dropped))
            logfire.debug(
                "Cleared request queue", class_name=class_name, dropped=len(dropped)
            )
        return len(dropped)

    def pump(self) -> None:
        """Resume processing if the pool is asleep; no-op otherwise."""
        self._wake()

    def is_in_flight(self, item_id: str) -> bool:
        """Return ``True`` while any caller still waits for ``item_id``."""
        return self._tracker.is_in_flight(item_id)

    def in_flight(self, class_name: str) -> int:
        """Return the number of dispatched requests for ``class_name``."""
        return self._tracker.in_flight(class_name)

    def reset_retries(self, item_id: str | None = None) -> None:
        """Forget retry attempts for ``item_id`` or for every item."""
        self._retries.reset(item_id)

    def retry_attempts(self, item_id: str) -> int:
        return self._retries.attempts(item_id)

    @property
    def awake(self) -> bool:
        return self._awake

    def snapshot(self) -> PoolSnapshot:
        """Return a point-in-time view of queues and counters."""
        return PoolSnapshot(
            awake=self._awake,
            ceiling=self.ceiling(),
            total_in_flight=self._tracker.total_in_flight(),
            classes=[
                ClassSnapshot(
                    name=demand.name,
                    priority=demand.priority,
                    limit=self._registry.resolve_limit(demand),
                    queued=self._queues.item_ids(demand.name),
                    in_flight=self._tracker.in_flight(demand.name),
                )
                for demand in self._registry
            ],
        )

    async def drain(self, poll: float | None = None) -> None:
        """Wait until every queue is empty and no caller is waiting."""
        interval = poll if poll is not None else max(self._config.tick_delay, 0.001)
        while self._awake or not self._tracker.idle():
            await asyncio.sleep(interval)

    # -- admission ---------------------------------------------------------------

    def _submit(self, request: RequestDescriptor, *, at_front: bool) -> None:
        if self._serve_existing(request):
            return
        if at_front:
            self._queues.prepend(request)
        else:
            self._queues.append(request)
        self._wake()

    def _serve_existing(self, request: RequestDescriptor) -> bool:
        """Attach ``request`` to a resolved or in-flight load when one exists."""
        self._retries.prepare(request.item_id, self._gateway)
        handle = self._gateway.lookup(request.item_id)
        if request.on_pending is not None and (handle is None or not handle.done()):
            self._invoke(request, request.on_pending)
        if handle is None:
            return False
        self.telemetry.record_coalesced(request.class_name)
        if handle.done():
            handle.add_done_callback(partial(self._deliver, request))
        else:
            self._tracker.attach(request.item_id)
            handle.add_done_callback(partial(self._on_listener_done, request))
        return True

    def _on_listener_done(
        self, request: RequestDescriptor, handle: asyncio.Future[Any]
    ) -> None:
        try:
            self._deliver(request, handle)
        finally:
            self._tracker.detach(request.item_id)

    # -- pump --------------------------------------------------------------------

    def _wake(self) -> None:
        if not self._awake:
            logfire.debug("Request pool awake")
        self._awake = True
        self._schedule_tick()

    def _rearm(self) -> None:
        if self._awake:
            self._schedule_tick()

    def _schedule_tick(self) -> None:
        if self._tick_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._tick_handle = loop.call_later(self._config.tick_delay, self._tick)

    def _tick(self) -> None:
        self._tick_handle = None
        if not self._awake:
            return
        classes = self._registry.classes_by_priority()
        try:
            limits = {
                demand.name: self._registry.resolve_limit(demand) for demand in classes
            }
            ceiling = self.ceiling()
        except Exception as exc:
            self._errors.handle("Resolving request pool limits failed", exc)
            self._schedule_tick()
            return
        available = ceiling - self._tracker.total_in_flight()
        dispatched = 0
        with logfire.span(
            "request_pool.tick",
            attributes={"ceiling": ceiling, "available": available},
        ):
            for _ in range(max(available, 0)):
                request = self._next_request(classes, limits)
                if request is None:
                    break
                self._dispatch(request, self._registry.get(request.class_name))
                dispatched += 1
        if self._queues.is_empty():
            self._awake = False
            logfire.debug("Request pool asleep", dispatched=dispatched)
        elif self._tracker.total_in_flight() == 0:
            # No completion is pending to re-arm the pump, so poll for limits
            # that may have changed.
            self._schedule_tick()

    def _next_request(
        self, classes: list[DemandClass], limits: dict[str, int]
    ) -> RequestDescriptor | None:
        for demand in classes:
            if not self._queues.pending(demand.name):
                continue
            if self._tracker.in_flight(demand.name) < limits[demand.name]:
                return self._queues.pop(demand.name)
        return None

    def _dispatch(self, request: RequestDescriptor, demand: DemandClass) -> None:
        self._tracker.begin(request.class_name, request.item_id)
        self.telemetry.record_dispatch(
            request.class_name, self._tracker.total_in_flight()
        )
        with logfire.span(
            "request_pool.dispatch",
            attributes={
                "item_id": request.item_id,
                "class_name": request.class_name,
            },
        ):
            handle = self._gateway.lookup(request.item_id)
            if handle is None:
                handle = self._start_load(request, demand)
        handle.add_done_callback(partial(self._on_complete, request))

    def _start_load(
        self, request: RequestDescriptor, demand: DemandClass
    ) -> asyncio.Future[Any]:
        options = LoadOptions(
            priority=demand.load_priority,
            class_name=request.class_name,
            prevent_cache=request.prevent_cache,
        )
        try:
            return self._gateway.load(request.item_id, options)
        except Exception as exc:
            logfire.warning(
                "Loader gateway rejected load", item_id=request.item_id, error=repr(exc)
            )
            failed: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            failed.set_exception(exc)
            return failed

    def _on_complete(
        self, request: RequestDescriptor, handle: asyncio.Future[Any]
    ) -> None:
        # Counts are released after delivery; the item reads as in flight
        # inside its own callback.
        try:
            self._deliver(request, handle)
        finally:
            self._tracker.end(request.class_name, request.item_id)
            self.telemetry.record_completion(
                request.class_name,
                latency=time.monotonic() - request.enqueued_at,
                failed=handle.cancelled() or handle.exception() is not None,
                in_flight=self._tracker.total_in_flight(),
            )
            self._rearm()

    # -- notification ------------------------------------------------------------

    def _deliver(self, request: RequestDescriptor, handle: asyncio.Future[Any]) -> None:
        if handle.cancelled():
            error: BaseException | None = asyncio.CancelledError()
        else:
            error = handle.exception()
        if error is None:
            self._invoke(request, request.on_success, handle.result())
        else:
            self._invoke(request, request.on_failure, error)

    def _invoke(
        self, request: RequestDescriptor, callback: Callable[..., None], *args: Any
    ) -> None:
        try:
            callback(*args)
        except Exception as exc:
            self._errors.handle(
                f"Callback for item '{request.item_id}' in class"
                f" '{request.class_name}' raised",
                exc,
            )


__all__ = ["RequestPool"]
