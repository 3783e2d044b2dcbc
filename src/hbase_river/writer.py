"""BulkWriter: bounded batches shipped to the index without blocking the scan."""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import BatchOverflowError
from .instrumentation import instrument
from .model import IndexRequest
from .retry import RetryPolicy

if TYPE_CHECKING:
    from .codec import Document
    from .model import BulkResult
    from .ports import IIndexBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one submission, posted back to the pass that issued it."""

    size: int
    succeeded: int = 0
    has_failures: bool = False
    attempts: int = 1
    error: BaseException | None = None

    @property
    def lost(self) -> bool:
        """The request never completed, so none of its documents reached the index."""
        return self.error is not None


@dataclass
class WriterStats:
    batches_submitted: int = 0
    documents_submitted: int = 0
    documents_indexed: int = 0
    batches_with_failures: int = 0
    batches_lost: int = 0
    documents_lost: int = 0

    def record(self, outcome: BatchOutcome) -> None:
        if outcome.lost:
            self.batches_lost += 1
            self.documents_lost += outcome.size
            return
        self.documents_indexed += outcome.succeeded
        if outcome.has_failures:
            self.batches_with_failures += 1


class BulkWriter:
    """Accumulates index requests and submits them as one bulk call per flush.

    :meth:`flush` hands the batch to a background task and returns at once;
    the caller keeps scanning while the request is in flight. At most
    ``max_in_flight`` submissions run concurrently, a further ``flush`` waits
    for a free slot.

    Submissions never raise into the caller. Item failures are logged and
    counted; a request that fails at the transport level is retried per
    ``retry_policy`` and then recorded as lost. Completed submissions post a
    :class:`BatchOutcome` to a queue which the owning pass folds into
    :attr:`stats` via :meth:`collect` / :meth:`drain`.
    """

    def __init__(
        self,
        backend: IIndexBackend,
        *,
        batch_size: int,
        max_in_flight: int = 1,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self._backend = backend
        self._batch_size = batch_size
        self._retry_policy = retry_policy or RetryPolicy()
        self._slots = asyncio.Semaphore(max_in_flight)
        self._pending: list[IndexRequest] = []
        self._in_flight: set[asyncio.Task[BatchOutcome]] = set()
        self._completed: asyncio.Queue[BatchOutcome] = asyncio.Queue()
        self.stats = WriterStats()

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def pending(self) -> list[IndexRequest]:
        return list(self._pending)

    @property
    def is_full(self) -> bool:
        return len(self._pending) >= self._batch_size

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def add(
        self,
        document: Document,
        *,
        index: str,
        doc_type: str,
        event_timestamp: int,
    ) -> IndexRequest:
        if self.is_full:
            raise BatchOverflowError(self._batch_size)
        request = IndexRequest(
            index=index,
            doc_type=doc_type,
            event_timestamp=event_timestamp,
            body=document.body,
            identifier=document.identifier,
        )
        self._pending.append(request)
        return request

    async def flush(self) -> asyncio.Task[BatchOutcome] | None:
        """Submit the pending batch in the background; None if nothing is pending."""
        if not self._pending:
            return None
        requests, self._pending = self._pending, []
        await self._slots.acquire()
        task = asyncio.create_task(self._submit(requests))
        self._in_flight.add(task)
        task.add_done_callback(functools.partial(self._on_done, len(requests)))
        self.stats.batches_submitted += 1
        self.stats.documents_submitted += len(requests)
        logger.debug("Sent bulk request with %d documents", len(requests))
        return task

    def collect(self) -> WriterStats:
        """Fold every outcome posted so far into :attr:`stats`."""
        received = False
        while True:
            try:
                outcome = self._completed.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.stats.record(outcome)
            received = True
        if received:
            logger.info(
                "HBase river has indexed %d entries so far",
                self.stats.documents_indexed,
            )
        return self.stats

    async def drain(self) -> WriterStats:
        """Wait for all in-flight submissions and return the final stats."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        return self.collect()

    def _on_done(self, size: int, task: asyncio.Task[BatchOutcome]) -> None:
        self._in_flight.discard(task)
        self._slots.release()
        if task.cancelled():
            outcome = BatchOutcome(size=size, error=asyncio.CancelledError())
        elif task.exception() is not None:
            outcome = BatchOutcome(size=size, error=task.exception())
        else:
            outcome = task.result()
        self._completed.put_nowait(outcome)

    async def _submit(self, requests: list[IndexRequest]) -> BatchOutcome:
        index = requests[0].index
        return await instrument(
            "flush",
            index,
            {"index": index, "batch.size": len(requests)},
            lambda: self._submit_with_retry(requests),
        )

    async def _submit_with_retry(self, requests: list[IndexRequest]) -> BatchOutcome:
        attempt = 1
        while True:
            try:
                result = await self._backend.submit_batch(requests)
            except Exception as e:  # noqa: BLE001
                if self._retry_policy.should_retry(attempt):
                    logger.warning(
                        "Bulk request of %d documents failed (attempt %d), retrying: %s",
                        len(requests),
                        attempt,
                        e,
                    )
                    await self._retry_policy.wait_before_retry(attempt)
                    attempt += 1
                    continue
                logger.error(
                    "An error has been caught while trying to index %d documents",
                    len(requests),
                    exc_info=e,
                )
                return BatchOutcome(size=len(requests), attempts=attempt, error=e)
            return self._outcome_from(result, len(requests), attempt)

    @staticmethod
    def _outcome_from(result: BulkResult, size: int, attempt: int) -> BatchOutcome:
        if result.has_failures:
            logger.error(
                "Errors have occurred while indexing a batch of %d documents: %s",
                size,
                result.errors[:5],
            )
        return BatchOutcome(
            size=size,
            succeeded=result.succeeded_count,
            has_failures=result.has_failures,
            attempts=attempt,
        )
