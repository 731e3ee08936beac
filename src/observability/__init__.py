"""Telemetry and monitoring helpers for the request pool.

Exports:
    init_logfire: Configure Pydantic Logfire instrumentation.
    PoolTelemetry: Per-class dispatch, completion and latency counters.
    ClassMetrics: Metrics collected for a single demand class.
"""

from .monitoring import init_logfire
from .telemetry import ClassMetrics, PoolTelemetry

__all__ = ["init_logfire", "ClassMetrics", "PoolTelemetry"]
