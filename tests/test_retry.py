# SPDX-License-Identifier: MIT
"""Retry budget behaviour as seen through the request pool."""

import pytest
from helpers import settle

from models import PoolConfiguration


async def _request_and_fail(pool, gateway, recorder, item_id="x"):
    pool.enqueue(item_id, "interaction", recorder.success(item_id), recorder.failure(item_id))
    await settle()
    handle = gateway.lookup(item_id)
    if not handle.done():
        gateway.fail(item_id)
        await settle()


@pytest.mark.asyncio()
async def test_failed_item_refetched_until_budget_spent(make_pool, gateway, recorder):
    pool = make_pool(max_retries=2)
    pool.register_class("interaction", 30, 6)

    for _ in range(4):
        await _request_and_fail(pool, gateway, recorder)

    assert gateway.loaded_ids == ["x", "x", "x"]
    assert gateway.evicted == ["x", "x"]
    assert pool.retry_attempts("x") == 2
    assert recorder.calls("x") == 4
    assert len(recorder.failures) == 4


@pytest.mark.asyncio()
async def test_retries_disabled_serves_cached_failure(make_pool, gateway, recorder):
    pool = make_pool(max_retries=0)
    pool.register_class("interaction", 30, 6)

    await _request_and_fail(pool, gateway, recorder)
    await _request_and_fail(pool, gateway, recorder)

    assert gateway.loaded_ids == ["x"]
    assert gateway.evicted == []
    assert len(recorder.failures) == 2


@pytest.mark.asyncio()
async def test_reset_retries_restores_budget(make_pool, gateway, recorder):
    pool = make_pool(max_retries=1)
    pool.register_class("interaction", 30, 6)

    await _request_and_fail(pool, gateway, recorder)
    await _request_and_fail(pool, gateway, recorder)
    await _request_and_fail(pool, gateway, recorder)
    assert len(gateway.loads) == 2

    pool.reset_retries("x")
    await _request_and_fail(pool, gateway, recorder)

    assert len(gateway.loads) == 3


@pytest.mark.asyncio()
async def test_configure_enables_retries(make_pool, gateway, recorder):
    pool = make_pool(max_retries=0)
    pool.register_class("interaction", 30, 6)
    await _request_and_fail(pool, gateway, recorder)

    pool.configure(PoolConfiguration(max_retries=1, tick_delay=0.001))
    await _request_and_fail(pool, gateway, recorder)

    assert len(gateway.loads) == 2
