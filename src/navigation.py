# SPDX-License-Identifier: MIT
"""Interactive stack navigation on top of the request pool.

A :class:`StackNavigator` tracks the current position within an ordered stack
of item ids, for example the slices of an image series. Moving to another
position supersedes any interactive request still waiting in the queue, asks
the pool for the new item at interaction priority, and forwards the result to
the display callback only if the navigator still points at that position when
the load completes. Late results for positions the user already scrolled past
are dropped.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

import logfire

from constants import INTERACTION
from pool import RequestPool

DisplayCallback = Callable[[int, Any], None]
ErrorCallback = Callable[[int, str, BaseException], None]
LoadStartCallback = Callable[[int, str], None]


class StackNavigator:
    """Current-position tracker issuing interaction requests."""

    def __init__(
        self,
        pool: RequestPool,
        item_ids: Sequence[str],
        *,
        on_display: DisplayCallback,
        on_error: ErrorCallback | None = None,
        on_load_start: LoadStartCallback | None = None,
        class_name: str = INTERACTION,
        prevent_cache: bool = False,
        current_index: int = 0,
    ) -> None:
        self._pool = pool
        self.item_ids = list(item_ids)
        self.current_index = current_index
        self.class_name = class_name
        self.prevent_cache = prevent_cache
        self._on_display = on_display
        self._on_error = on_error
        self._on_load_start = on_load_start

    def scroll_to_index(self, index: int, *, reload_same_index: bool = False) -> bool:
        """Move to ``index`` and request its item.

        Negative indexes count from the end of the stack. Moving to the current
        index is ignored unless ``reload_same_index`` is set.

        Returns:
            ``True`` when a request was issued.
        """
        if not self.item_ids:
            return False
        if index < 0:
            index += len(self.item_ids)
        if not 0 <= index < len(self.item_ids):
            raise IndexError(f"stack index {index} out of range")
        if index == self.current_index and not reload_same_index:
            return False

        direction = index - self.current_index
        self.current_index = index
        item_id = self.item_ids[index]
        if self._on_load_start is not None:
            self._on_load_start(index, item_id)

        self._pool.clear_queue(self.class_name)
        self._pool.enqueue(
            item_id,
            self.class_name,
            lambda payload: self._display(index, payload),
            lambda error: self._fail(index, item_id, error),
            prevent_cache=self.prevent_cache,
        )
        self._pool.pump()
        logfire.debug(
            "Stack scrolled", index=index, item_id=item_id, direction=direction
        )
        return True

    def step(self, direction: int = 1, *, loop: bool = True) -> bool:
        """Advance one position in ``direction`` (positive or negative).

        A zero ``direction`` issues nothing. With ``loop`` the position wraps around the ends of the stack;
        otherwise the navigator stays put at the boundary.

        Returns:
            ``True`` when a request was issued.
        """
        if not self.item_ids or direction == 0:
            return False
        target = self.current_index + (1 if direction > 0 else -1)
        count = len(self.item_ids)
        if not 0 <= target < count:
            if not loop:
                return False
            target %= count
        return self.scroll_to_index(target)

    def _display(self, index: int, payload: Any) -> None:
        if index != self.current_index:
            return
        self._on_display(index, payload)

    def _fail(self, index: int, item_id: str, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(index, item_id, error)


__all__ = ["StackNavigator"]
