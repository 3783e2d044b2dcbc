"""Tests for BulkWriter."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hbase_river.adapters.memory import InMemoryIndexBackend
from hbase_river.codec import Document
from hbase_river.exceptions import BatchOverflowError, BatchSubmissionError
from hbase_river.model import BulkResult
from hbase_river.retry import RetryPolicy
from hbase_river.writer import BatchOutcome, BulkWriter, WriterStats


def doc(identifier: str) -> Document:
    return Document(body={"cf": {"q": identifier}}, identifier=identifier)


def add(writer: BulkWriter, *identifiers: str, event_timestamp: int = 0) -> None:
    for identifier in identifiers:
        writer.add(
            doc(identifier), index="idx", doc_type="events", event_timestamp=event_timestamp
        )


class TestBatching:
    def test_add_builds_index_requests(self, backend: InMemoryIndexBackend) -> None:
        writer = BulkWriter(backend, batch_size=2)

        request = writer.add(
            doc("r1"), index="idx", doc_type="events", event_timestamp=123
        )

        assert request.index == "idx"
        assert request.doc_type == "events"
        assert request.event_timestamp == 123
        assert request.identifier == "r1"
        assert request.body == {"cf": {"q": "r1"}}
        assert writer.pending == [request]

    def test_add_beyond_batch_size_raises(self, backend: InMemoryIndexBackend) -> None:
        writer = BulkWriter(backend, batch_size=2)
        add(writer, "r1", "r2")

        assert writer.is_full
        with pytest.raises(BatchOverflowError):
            add(writer, "r3")

    @pytest.mark.asyncio
    async def test_flush_without_pending_is_a_no_op(
        self, backend: InMemoryIndexBackend
    ) -> None:
        writer = BulkWriter(backend, batch_size=2)

        assert await writer.flush() is None
        assert backend.batches == []

    @pytest.mark.asyncio
    async def test_flush_submits_and_clears_batch(
        self, backend: InMemoryIndexBackend
    ) -> None:
        writer = BulkWriter(backend, batch_size=2)
        add(writer, "r1", "r2")

        task = await writer.flush()
        assert writer.pending == []
        assert task is not None
        stats = await writer.drain()

        assert [[r.identifier for r in batch] for batch in backend.batches] == [
            ["r1", "r2"]
        ]
        assert stats.batches_submitted == 1
        assert stats.documents_submitted == 2
        assert stats.documents_indexed == 2

    @pytest.mark.parametrize(("batch_size", "max_in_flight"), [(0, 1), (1, 0)])
    def test_invalid_limits(
        self, backend: InMemoryIndexBackend, batch_size: int, max_in_flight: int
    ) -> None:
        with pytest.raises(ValueError):
            BulkWriter(backend, batch_size=batch_size, max_in_flight=max_in_flight)


class TestFailures:
    @pytest.mark.asyncio
    async def test_partial_failure_is_counted_not_raised(
        self, backend: InMemoryIndexBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        backend.rejected_ids = {"r2"}
        writer = BulkWriter(backend, batch_size=3)
        add(writer, "r1", "r2", "r3")

        await writer.flush()
        stats = await writer.drain()

        assert stats.documents_indexed == 2
        assert stats.batches_with_failures == 1
        assert stats.batches_lost == 0
        assert backend.get("idx", "r2") is None
        assert "Errors have occurred while indexing" in caplog.text

    @pytest.mark.asyncio
    async def test_transport_failure_loses_the_batch(
        self, backend: InMemoryIndexBackend, caplog: pytest.LogCaptureFixture
    ) -> None:
        backend.fail_submissions = 1
        writer = BulkWriter(backend, batch_size=2)
        add(writer, "r1", "r2")

        await writer.flush()
        stats = await writer.drain()

        assert stats.batches_lost == 1
        assert stats.documents_lost == 2
        assert stats.documents_indexed == 0
        assert backend.documents == {}
        assert "An error has been caught while trying to index" in caplog.text

    @pytest.mark.asyncio
    async def test_retry_policy_resubmits_failed_request(
        self, backend: InMemoryIndexBackend
    ) -> None:
        backend.fail_submissions = 2
        policy = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)
        writer = BulkWriter(backend, batch_size=2, retry_policy=policy)
        add(writer, "r1", "r2")

        task = await writer.flush()
        assert task is not None
        outcome = await task
        stats = await writer.drain()

        assert outcome.attempts == 3
        assert not outcome.lost
        assert len(backend.batches) == 3
        assert stats.documents_indexed == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted_loses_the_batch(
        self, backend: InMemoryIndexBackend
    ) -> None:
        backend.fail_submissions = 5
        policy = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0)
        writer = BulkWriter(backend, batch_size=1, retry_policy=policy)
        add(writer, "r1")

        task = await writer.flush()
        assert task is not None
        outcome = await task

        assert outcome.lost
        assert outcome.attempts == 2
        assert isinstance(outcome.error, BatchSubmissionError)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_flush_returns_before_submission_completes(self) -> None:
        release = asyncio.Event()

        async def slow_submit(requests: list) -> BulkResult:
            await release.wait()
            return BulkResult(succeeded_count=len(requests), item_count=len(requests))

        backend = MagicMock()
        backend.submit_batch = AsyncMock(side_effect=slow_submit)
        writer = BulkWriter(backend, batch_size=1, max_in_flight=2)

        add(writer, "r1")
        await writer.flush()
        add(writer, "r2")
        await writer.flush()

        assert writer.in_flight == 2
        assert writer.collect().documents_indexed == 0

        release.set()
        stats = await writer.drain()

        assert writer.in_flight == 0
        assert stats.documents_indexed == 2

    @pytest.mark.asyncio
    async def test_max_in_flight_bounds_concurrent_submissions(self) -> None:
        active = 0
        peak = 0

        async def submit(requests: list) -> BulkResult:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return BulkResult(succeeded_count=len(requests), item_count=len(requests))

        backend = MagicMock()
        backend.submit_batch = AsyncMock(side_effect=submit)
        writer = BulkWriter(backend, batch_size=1, max_in_flight=1)

        for identifier in ("r1", "r2", "r3"):
            add(writer, identifier)
            await writer.flush()
        stats = await writer.drain()

        assert peak == 1
        assert stats.documents_indexed == 3


class TestStats:
    def test_record_outcomes(self) -> None:
        stats = WriterStats()

        stats.record(BatchOutcome(size=2, succeeded=2))
        stats.record(BatchOutcome(size=2, succeeded=1, has_failures=True))
        stats.record(BatchOutcome(size=3, error=RuntimeError("boom")))

        assert stats.documents_indexed == 3
        assert stats.batches_with_failures == 1
        assert stats.batches_lost == 1
        assert stats.documents_lost == 3
