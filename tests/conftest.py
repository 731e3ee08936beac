# SPDX-License-Identifier: MIT
"""Test configuration for image-request-pool.

Keeps Logfire local and provides a controllable loader gateway whose loads only
complete when a test resolves or fails them.
"""

from __future__ import annotations

from typing import Any

import logfire
import pytest
from helpers import TICK, FakeGateway, Recorder

from io_utils.loader import clear_config_cache
from models import PoolConfiguration
from pool import RequestPool
from utils import RecordingErrorHandler


@pytest.fixture(scope="session", autouse=True)
def _local_logfire():
    """Disable exporting and console output during tests."""

    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """Ensure configuration files are re-read by every test."""

    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def errors() -> RecordingErrorHandler:
    return RecordingErrorHandler()


@pytest.fixture()
def make_pool(gateway: FakeGateway, errors: RecordingErrorHandler):
    """Return a factory building pools over the fake gateway."""

    def _make(ceiling: Any = 6, max_retries: int = 0) -> RequestPool:
        return RequestPool(
            gateway,
            ceiling=ceiling,
            configuration=PoolConfiguration(max_retries=max_retries, tick_delay=TICK),
            error_handler=errors,
        )

    return _make
