# SPDX-License-Identifier: MIT
"""Pydantic models describing pool configuration, load options and snapshots.

These definitions act as the contract between the command-line interface, the
request pool and any loader gateway plugged into it. Runtime request
descriptors carry callables and therefore live beside the queues as plain
dataclasses; everything that is configured, logged or printed is modelled here.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_SIMULTANEOUS_REQUESTS,
    DEFAULT_TICK_DELAY,
)


class StrictModel(BaseModel):
    """Base model with strict settings to prevent shape drift."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=False)


class PoolConfiguration(StrictModel):
    """Tunable behaviour of a :class:`pool.RequestPool` instance."""

    max_retries: int = Field(
        DEFAULT_MAX_RETRIES,
        ge=0,
        description="Re-fetch attempts allowed per item after a failure; 0 disables.",
    )
    tick_delay: float = Field(
        DEFAULT_TICK_DELAY,
        ge=0,
        description="Debounce delay in seconds before a scheduling pass runs.",
    )


class LoadOptions(StrictModel):
    """Options handed to the loader gateway for a single fetch."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    priority: int = Field(0, description="Fetch priority hint for the loader.")
    class_name: str = Field(..., description="Demand class issuing the fetch.")
    prevent_cache: bool = Field(
        False, description="Skip storing the result in the loader cache."
    )


class ClassSnapshot(StrictModel):
    """Point-in-time view of a single demand class."""

    name: str
    priority: int
    limit: int = Field(..., description="Concurrency limit resolved at capture time.")
    queued: list[str] = Field(default_factory=list)
    in_flight: int = 0


class PoolSnapshot(StrictModel):
    """Point-in-time view of the whole request pool."""

    awake: bool
    ceiling: int
    total_in_flight: int
    classes: list[ClassSnapshot] = Field(default_factory=list)

    def queued(self, name: str) -> list[str]:
        """Return queued item ids for class ``name``."""

        for entry in self.classes:
            if entry.name == name:
                return entry.queued
        raise KeyError(name)


class Workload(StrictModel):
    """Synthetic request mix replayed by ``request-pool simulate``."""

    requests: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Item ids to request, keyed by demand class, in enqueue order.",
    )
    failures: list[str] = Field(
        default_factory=list,
        description="Item ids whose fetch should fail.",
    )
    latency: float = Field(
        0.05, ge=0, description="Simulated fetch latency in seconds."
    )

    @field_validator("requests")
    @classmethod
    def _no_empty_ids(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for name, items in value.items():
            if any(not item for item in items):
                raise ValueError(f"empty item id in class '{name}'")
        return value

    def total(self) -> int:
        """Return the number of requests in the workload."""

        return sum(len(items) for items in self.requests.values())


class AppConfig(StrictModel):
    """Top-level application configuration read from ``config/app.yaml``."""

    log_level: Annotated[
        str, Field(min_length=1, description="Logging verbosity level.")
    ] = "INFO"
    max_simultaneous_requests: int = Field(
        DEFAULT_MAX_SIMULTANEOUS_REQUESTS,
        ge=1,
        description="Global ceiling on concurrent fetches across all classes.",
    )
    max_retries: int = Field(
        DEFAULT_MAX_RETRIES,
        ge=0,
        description="Re-fetch attempts allowed per item after a failure.",
    )
    tick_delay: float = Field(
        DEFAULT_TICK_DELAY,
        ge=0,
        description="Debounce delay in seconds between scheduling passes.",
    )
    diagnostics: bool = Field(
        False, description="Enable verbose diagnostics and tracing."
    )

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


__all__ = [
    "AppConfig",
    "ClassSnapshot",
    "LoadOptions",
    "PoolConfiguration",
    "PoolSnapshot",
    "StrictModel",
    "Workload",
]
