# SPDX-License-Identifier: MIT
"""Helpers for enabling Pydantic Logfire telemetry."""

from __future__ import annotations

import os
from typing import Literal

import logfire

LogLevel = Literal["fatal", "error", "warn", "notice", "info", "debug", "trace"]


def _mask_token(value: str | None) -> str | None:
    """Return a masked representation of ``value`` for safe logging."""

    if not value:
        return None
    return f"{value[:4]}..."


def init_logfire(
    token: str | None = None,
    min_log_level: LogLevel = "warn",
    *,
    system_metrics: bool = False,
) -> None:
    """Configure Logfire for the request pool.

    Args:
        token: Optional Logfire API token. If omitted, ``RP_LOGFIRE_TOKEN`` from the
            environment is used. Missing tokens keep telemetry local.
        min_log_level: Minimum level for console and telemetry output.
        system_metrics: Also collect host CPU and memory metrics.
    """

    key = token or os.getenv("RP_LOGFIRE_TOKEN")
    masked = _mask_token(key)
    logfire.debug("Configuring logfire", token=masked)
    logfire.configure(
        token=key,
        send_to_logfire="if-token-present",
        service_name="image-request-pool",
        console=logfire.ConsoleOptions(
            min_log_level=min_log_level,
            show_project_link=False,
            verbose=True,
        ),
        min_level=min_log_level,
    )
    if system_metrics:
        logfire.instrument_system_metrics(base="full")
    instrument = getattr(logfire, "instrument_pydantic", None)
    if instrument:
        instrument()
