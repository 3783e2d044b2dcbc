"""Tests for WatermarkResolver."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from hbase_river.instrumentation import get_hook_registry
from hbase_river.watermark import WatermarkResolver


def backend_returning(**kwargs: Any) -> MagicMock:
    backend = MagicMock()
    backend.max_event_timestamp = AsyncMock(**kwargs)
    return backend


@pytest.mark.asyncio
async def test_resolves_largest_recorded_timestamp() -> None:
    backend = backend_returning(return_value=1_700_000_000_000)

    watermark = await WatermarkResolver(backend).resolve("idx", "events")

    assert watermark == 1_700_000_000_000
    backend.max_event_timestamp.assert_awaited_once_with("idx", "events")


@pytest.mark.asyncio
async def test_empty_index_resolves_to_zero() -> None:
    backend = backend_returning(return_value=None)

    assert await WatermarkResolver(backend).resolve("idx", "events") == 0


@pytest.mark.asyncio
async def test_failing_query_resolves_to_zero(caplog: pytest.LogCaptureFixture) -> None:
    backend = backend_returning(side_effect=ConnectionError("index unreachable"))

    with caplog.at_level("WARNING", logger="hbase_river.watermark"):
        watermark = await WatermarkResolver(backend).resolve("idx", "events")

    assert watermark == 0
    assert "scanning from 0" in caplog.text


@pytest.mark.asyncio
async def test_negative_timestamp_is_clamped_to_zero() -> None:
    backend = backend_returning(return_value=-5)

    assert await WatermarkResolver(backend).resolve("idx", "events") == 0


@pytest.mark.asyncio
async def test_lookup_runs_through_instrumentation_hooks() -> None:
    seen: list[tuple[str, dict[str, Any]]] = []

    async def hook(operation: str, attributes: dict[str, Any], next_handler: Any) -> Any:
        seen.append((operation, attributes))
        return await next_handler()

    get_hook_registry().register(hook, operations=["river.watermark.*"])
    backend = backend_returning(return_value=42)

    assert await WatermarkResolver(backend).resolve("idx", "events") == 42
    assert seen[0][0] == "river.watermark.idx"
    assert seen[0][1]["doc_type"] == "events"
