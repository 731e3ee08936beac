"""Prioritised request pool for content loading.

Exports:
    RequestPool: Scheduler arbitrating fetches between demand classes.
    DemandClassRegistry: Ordered catalogue of demand classes.
    FixedLimit, DynamicLimit: Concurrency limit strategies.
    UnknownDemandClassError: Raised for unregistered class names.
    LoaderGateway: Protocol for the loading and caching service.
    CachingLoaderGateway: Adapter turning a fetch coroutine into a gateway.
    register_default_classes: Install the standard viewer classes.
"""

from .defaults import register_default_classes
from .gateway import CachingLoaderGateway, LoaderGateway
from .queues import RequestDescriptor
from .registry import (
    DemandClass,
    DemandClassRegistry,
    DynamicLimit,
    FixedLimit,
    UnknownDemandClassError,
)
from .scheduler import RequestPool
from .tracker import ActiveRequestTracker, RetryPolicy

__all__ = [
    "ActiveRequestTracker",
    "CachingLoaderGateway",
    "DemandClass",
    "DemandClassRegistry",
    "DynamicLimit",
    "FixedLimit",
    "LoaderGateway",
    "RequestDescriptor",
    "RequestPool",
    "RetryPolicy",
    "UnknownDemandClassError",
    "register_default_classes",
]
