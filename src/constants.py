"""Project-wide constants and defaults.

This module centralises small constants that are imported across the
application. Keep this file minimal and free of side effects.
"""

from __future__ import annotations

DEFAULT_TICK_DELAY = 0.02
"""Seconds between a wake-up and the scheduling pass it triggers."""

DEFAULT_MAX_SIMULTANEOUS_REQUESTS = 6

DEFAULT_MAX_RETRIES = 0
"""Retries are disabled unless configured."""

INTERACTION = "interaction"
THUMBNAIL = "thumbnail"
PREFETCH = "prefetch"
AUTO_PREFETCH = "auto_prefetch"

__all__ = [
    "DEFAULT_TICK_DELAY",
    "DEFAULT_MAX_SIMULTANEOUS_REQUESTS",
    "DEFAULT_MAX_RETRIES",
    "INTERACTION",
    "THUMBNAIL",
    "PREFETCH",
    "AUTO_PREFETCH",
]
