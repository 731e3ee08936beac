# SPDX-License-Identifier: MIT
"""Aggregate request pool metrics for end-of-run reporting.

Counters are mirrored to Logfire metrics so dashboards can follow the pool
live, while :class:`PoolTelemetry` keeps an in-process per-class summary that
the command line prints when a run finishes.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import DefaultDict

import logfire

DISPATCHED_TOTAL = logfire.metric_counter("request_pool_dispatched")
"""Counter for requests handed to the loader gateway."""

COMPLETED_TOTAL = logfire.metric_counter("request_pool_completed")

FAILED_TOTAL = logfire.metric_counter("request_pool_failed")

COALESCED_TOTAL = logfire.metric_counter("request_pool_coalesced")
"""Counter for callers served by an existing resolved or in-flight load."""

IN_FLIGHT = logfire.metric_gauge("request_pool_in_flight")


@dataclass
class ClassMetrics:
    """Metrics collected for a single demand class."""

    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    coalesced: int = 0
    cleared: int = 0
    total_latency: float = 0.0
    samples: int = 0

    @property
    def average_latency(self) -> float:
        """Return the average enqueue-to-completion latency in seconds."""

        if not self.samples:
            return 0.0
        return self.total_latency / self.samples


class PoolTelemetry:
    """Per-class counters for one request pool."""

    def __init__(self) -> None:
        self._metrics: DefaultDict[str, ClassMetrics] = defaultdict(ClassMetrics)

    def record_dispatch(self, class_name: str, in_flight: int) -> None:
        self._metrics[class_name].dispatched += 1
        DISPATCHED_TOTAL.add(1)
        IN_FLIGHT.set(in_flight)

    def record_completion(
        self, class_name: str, *, latency: float, failed: bool, in_flight: int
    ) -> None:
        data = self._metrics[class_name]
        data.total_latency += latency
        data.samples += 1
        if failed:
            data.failed += 1
            FAILED_TOTAL.add(1)
        else:
            data.completed += 1
            COMPLETED_TOTAL.add(1)
        IN_FLIGHT.set(in_flight)

    def record_coalesced(self, class_name: str) -> None:
        self._metrics[class_name].coalesced += 1
        COALESCED_TOTAL.add(1)

    def record_cleared(self, class_name: str, count: int) -> None:
        self._metrics[class_name].cleared += count

    def get(self, class_name: str) -> ClassMetrics:
        """Return metrics for ``class_name`` (empty when nothing was recorded)."""

        return self._metrics.get(class_name, ClassMetrics())

    def reset(self) -> None:
        """Clear all recorded metrics."""

        self._metrics.clear()

    def summary_lines(self) -> list[str]:
        """Return one human readable line per class plus a totals line."""

        lines = [
            f"{name}: dispatched={data.dispatched} completed={data.completed} "
            f"failed={data.failed} coalesced={data.coalesced} "
            f"cleared={data.cleared} avg_latency={data.average_latency:.3f}s"
            for name, data in self._metrics.items()
        ]
        if lines:
            total = sum(d.dispatched for d in self._metrics.values())
            failed = sum(d.failed for d in self._metrics.values())
            lines.append(f"Totals: dispatched={total} failed={failed}")
        return lines

    def print_summary(self) -> None:
        """Write a summary of collected metrics to ``stdout``."""

        for line in self.summary_lines():
            print(line)


__all__ = ["ClassMetrics", "PoolTelemetry"]
