# SPDX-License-Identifier: MIT
"""Standard demand classes for image stack viewers.

Interactive navigation always wins, thumbnails come next, then explicit
prefetch and finally automatic background prefetch. Limits follow the global
ceiling so a single busy class cannot take every slot from the others, and they
are recomputed on every tick because the ceiling may change at runtime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from constants import AUTO_PREFETCH, INTERACTION, PREFETCH, THUMBNAIL

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .scheduler import RequestPool

AUTO_PREFETCH_LIMIT = 3

# name -> (scheduling priority, loader priority hint)
DEFAULT_PRIORITIES: dict[str, tuple[int, int]] = {
    INTERACTION: (40, 0),
    THUMBNAIL: (30, 5),
    PREFETCH: (20, -5),
    AUTO_PREFETCH: (10, -5),
}


def _offset(ceiling: Callable[[], int], delta: int) -> Callable[[], int]:
    return lambda: max(ceiling() - delta, 1)


def register_default_classes(pool: "RequestPool") -> None:
    """Register the standard classes on ``pool`` with ceiling-derived limits."""

    limits = {
        INTERACTION: _offset(pool.ceiling, 0),
        THUMBNAIL: _offset(pool.ceiling, 2),
        PREFETCH: _offset(pool.ceiling, 1),
        AUTO_PREFETCH: AUTO_PREFETCH_LIMIT,
    }
    for name, (priority, load_priority) in DEFAULT_PRIORITIES.items():
        pool.register_class(
            name, priority, limits[name], load_priority=load_priority
        )


__all__ = ["AUTO_PREFETCH_LIMIT", "DEFAULT_PRIORITIES", "register_default_classes"]
