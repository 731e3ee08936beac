# SPDX-License-Identifier: MIT
"""Tests for configuration and snapshot models."""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from models import AppConfig, LoadOptions, PoolConfiguration, PoolSnapshot, Workload

item_ids = st.text(min_size=1, max_size=12)


@given(st.dictionaries(st.sampled_from(["interaction", "prefetch"]), st.lists(item_ids)))
def test_workload_accepts_non_empty_ids(requests):
    """Workload totals match the number of listed items."""
    workload = Workload(requests=requests)
    assert workload.total() == sum(len(items) for items in requests.values())


def test_workload_rejects_empty_id():
    with pytest.raises(ValidationError):
        Workload(requests={"prefetch": ["a", ""]})


def test_pool_configuration_bounds():
    with pytest.raises(ValidationError):
        PoolConfiguration(max_retries=-1)
    with pytest.raises(ValidationError):
        PoolConfiguration(tick_delay=-0.1)
    with pytest.raises(ValidationError):
        PoolConfiguration(retries=1)


def test_load_options_frozen():
    options = LoadOptions(class_name="interaction", priority=5)
    with pytest.raises(ValidationError):
        options.priority = 1


def test_app_config_normalises_log_level():
    assert AppConfig(log_level="debug").log_level == "DEBUG"


def test_snapshot_queued_lookup():
    snapshot = PoolSnapshot(
        awake=False,
        ceiling=6,
        total_in_flight=0,
        classes=[{"name": "prefetch", "priority": 10, "limit": 5, "queued": ["a"]}],
    )

    assert snapshot.queued("prefetch") == ["a"]
    with pytest.raises(KeyError):
        snapshot.queued("interaction")
