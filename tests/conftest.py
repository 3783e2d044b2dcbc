"""Shared fixtures for hbase_river tests."""

from __future__ import annotations

from typing import Any

import pytest

from hbase_river.adapters.memory import InMemoryIndexBackend, InMemoryStore
from hbase_river.config import RiverSettings
from hbase_river.correlation import set_correlation_id
from hbase_river.instrumentation import HookRegistry, set_hook_registry


@pytest.fixture(autouse=True)
def isolated_context() -> None:
    """Every test starts without hooks or a correlation id."""
    set_hook_registry(HookRegistry())
    set_correlation_id(None)


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    store.create_table("events")
    return store


@pytest.fixture
def backend() -> InMemoryIndexBackend:
    return InMemoryIndexBackend()


@pytest.fixture
def make_settings():
    """Build RiverSettings for the ``events`` table, overriding any key."""

    def _make(**overrides: Any) -> RiverSettings:
        section: dict[str, Any] = {"hosts": "zk1:9090", "table": "events"}
        section.update(overrides)
        return RiverSettings.from_river_settings("events_river", {"hbase": section})

    return _make
