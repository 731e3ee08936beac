# SPDX-License-Identifier: MIT
"""Shared test doubles for the request pool tests."""

from __future__ import annotations

import asyncio
from typing import Any

from models import LoadOptions
from pool.gateway import handle_failed

TICK = 0.001


class FakeGateway:
    """Loader gateway whose handles are completed explicitly by tests."""

    def __init__(self) -> None:
        self.handles: dict[str, asyncio.Future[Any]] = {}
        self.loads: list[tuple[str, LoadOptions]] = []
        self.evicted: list[str] = []

    @property
    def loaded_ids(self) -> list[str]:
        return [item_id for item_id, _ in self.loads]

    def lookup(self, item_id: str) -> asyncio.Future[Any] | None:
        return self.handles.get(item_id)

    def load(self, item_id: str, options: LoadOptions) -> asyncio.Future[Any]:
        handle = asyncio.get_running_loop().create_future()
        self.handles[item_id] = handle
        self.loads.append((item_id, options))
        return handle

    def evict_failed(self, item_id: str) -> None:
        handle = self.handles.get(item_id)
        if handle is not None and handle_failed(handle):
            del self.handles[item_id]
            self.evicted.append(item_id)

    def resolve(self, item_id: str, payload: Any = None) -> None:
        self.handles[item_id].set_result(
            payload if payload is not None else f"payload:{item_id}"
        )

    def fail(self, item_id: str, error: BaseException | None = None) -> None:
        self.handles[item_id].set_exception(error or RuntimeError(f"boom {item_id}"))


class Recorder:
    """Collects callback invocations for assertions."""

    def __init__(self) -> None:
        self.successes: list[tuple[str, Any]] = []
        self.failures: list[tuple[str, BaseException]] = []

    def success(self, item_id: str):
        return lambda payload: self.successes.append((item_id, payload))

    def failure(self, item_id: str):
        return lambda error: self.failures.append((item_id, error))

    def calls(self, item_id: str) -> int:
        return sum(1 for i, _ in self.successes if i == item_id) + sum(
            1 for i, _ in self.failures if i == item_id
        )


async def settle(rounds: int = 20) -> None:
    """Let pending ticks and completion callbacks run."""

    await asyncio.sleep(TICK * rounds)
