"""SyncEngine: one synchronization pass from the store to the index."""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .codec import RowCodec
from .correlation import generate_correlation_id, set_correlation_id
from .instrumentation import instrument
from .retry import RetryPolicy
from .scanner import BatchScanner
from .watermark import WatermarkResolver
from .writer import BulkWriter, WriterStats

if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import RiverSettings
    from .ports import IIndexBackend, IStoreClient, StoreClientFactory
    from .worker import StopSignal

logger = logging.getLogger(__name__)


class PassStatus(str, enum.Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class PassResult:
    """What one pass did; returned to the worker, which only logs it."""

    correlation_id: str
    status: PassStatus = PassStatus.COMPLETED
    watermark: int = 0
    event_timestamp: int = 0
    pages: int = 0
    rows: int = 0
    writer: WriterStats = field(default_factory=WriterStats)
    error: BaseException | None = None
    duration_seconds: float = 0.0

    @property
    def failed(self) -> bool:
        return self.status is PassStatus.FAILED


class SyncEngine:
    """Runs passes: connect, verify table, resolve watermark, scan, write.

    Each pass owns a fresh store client, scanner and writer; nothing survives
    into the next pass except what the index recorded. Errors inside a pass
    are caught at :meth:`run_pass` and reported in the :class:`PassResult`,
    the next scheduled pass simply tries again.

    The stop signal is checked before and after every page fetch. A stop
    ends the pass after the current page has been flushed.
    """

    def __init__(
        self,
        settings: RiverSettings,
        store_factory: StoreClientFactory,
        index_backend: IIndexBackend,
        *,
        stop_signal: StopSignal,
        codec: RowCodec | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._store_factory = store_factory
        self._backend = index_backend
        self._stop = stop_signal
        self._codec = codec or RowCodec(settings.id_field)
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.retry_attempts
        )
        self._clock = clock
        self._watermarks = WatermarkResolver(index_backend)

    @property
    def settings(self) -> RiverSettings:
        return self._settings

    async def run_pass(self) -> PassResult:
        correlation_id = generate_correlation_id()
        set_correlation_id(correlation_id)
        result = PassResult(correlation_id=correlation_id)
        started = time.monotonic()
        try:
            await instrument(
                "pass",
                self._settings.table,
                {"table": self._settings.table, "index": self._settings.index},
                lambda: self._run_pass_internal(result),
            )
        except Exception as e:  # noqa: BLE001
            result.status = PassStatus.FAILED
            result.error = e
            logger.error(
                "An exception has been caught while parsing data from HBase",
                exc_info=True,
            )
        finally:
            result.duration_seconds = time.monotonic() - started
            set_correlation_id(None)
        logger.info(
            "Pass %s %s: %d rows in %d pages, %d indexed, %d lost (watermark=%d)",
            correlation_id,
            result.status.value,
            result.rows,
            result.pages,
            result.writer.documents_indexed,
            result.writer.documents_lost,
            result.watermark,
        )
        return result

    async def _run_pass_internal(self, result: PassResult) -> None:
        settings = self._settings
        logger.info("Parsing data from HBase table %s", settings.table)
        run_started_ms = int(self._clock() * 1000)
        client: IStoreClient | None = None
        scanner: BatchScanner | None = None
        writer = BulkWriter(
            self._backend,
            batch_size=settings.batch_size,
            max_in_flight=settings.max_in_flight,
            retry_policy=self._retry_policy,
        )
        try:
            client = self._store_factory(settings.hosts)
            logger.debug("Checking if table %s actually exists", settings.table)
            await client.ensure_table_exists(settings.table)

            result.watermark = await self._watermarks.resolve(
                settings.index, settings.doc_type
            )
            result.event_timestamp = (
                run_started_ms
                if settings.event_time == "pass_start"
                else result.watermark
            )

            scanner = BatchScanner(client, settings.table)
            await scanner.open(result.watermark)
            await self._scan(scanner, writer, result)
        finally:
            await self._teardown(client, scanner, writer, result)

    async def _scan(
        self, scanner: BatchScanner, writer: BulkWriter, result: PassResult
    ) -> None:
        settings = self._settings
        logger.debug("Starting to fetch rows")
        while True:
            if self._stop.is_set():
                result.status = PassStatus.STOPPED
                break
            page = await scanner.next_page(settings.batch_size)
            if not page:
                break
            if self._stop.is_set():
                result.status = PassStatus.STOPPED
                break

            logger.debug("Processing the next %d entries", len(page))
            for row in page:
                writer.add(
                    self._codec.transform(row),
                    index=settings.index,
                    doc_type=settings.doc_type,
                    event_timestamp=result.event_timestamp,
                )
            await writer.flush()
            writer.collect()
            result.pages += 1
            result.rows += len(page)

        if result.status is PassStatus.STOPPED:
            logger.info("Stopping HBase import in the middle of it")

    async def _teardown(
        self,
        client: IStoreClient | None,
        scanner: BatchScanner | None,
        writer: BulkWriter,
        result: PassResult,
    ) -> None:
        if scanner is not None:
            await scanner.close()
        result.writer = await writer.drain()
        if client is None:
            return
        try:
            await client.shutdown()
        except Exception:  # noqa: BLE001
            logger.error(
                "An exception has been caught while shutting down the HBase client",
                exc_info=True,
            )
