"""BatchScanner: pages through a table from a minimum timestamp."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType

    from .model import Row
    from .ports import IScanner, IStoreClient

logger = logging.getLogger(__name__)


class BatchScanner:
    """Finite, non-restartable sequence of row pages in store key order.

    Once the store reports exhaustion, or once :meth:`close` ran, every
    further :meth:`next_page` returns ``None`` without touching the store.
    ``close`` is idempotent and only logs errors from the underlying cursor.
    """

    def __init__(self, client: IStoreClient, table: str) -> None:
        self._client = client
        self._table = table
        self._scanner: IScanner | None = None
        self._exhausted = False
        self._closed = False
        self.min_timestamp = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    async def open(self, min_timestamp: int) -> BatchScanner:
        if self._closed:
            raise RuntimeError("Scanner has been closed")
        if self._scanner is not None:
            raise RuntimeError("Scanner is already open")
        logger.debug("Opening scanner on %s from timestamp %d", self._table, min_timestamp)
        self._scanner = await self._client.open_scanner(self._table)
        self._scanner.set_min_timestamp(min_timestamp)
        self.min_timestamp = min_timestamp
        return self

    async def next_page(self, page_size: int) -> list[Row] | None:
        if self._closed or self._exhausted:
            return None
        if self._scanner is None:
            raise RuntimeError("Scanner is not open; call open() first")
        page = await self._scanner.next_page(page_size)
        if not page:
            self._exhausted = True
            return None
        return page

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._scanner is None:
            return
        try:
            await self._scanner.close()
        except Exception:  # noqa: BLE001
            logger.error("Error while closing the scanner on %s", self._table, exc_info=True)
        finally:
            self._scanner = None

    async def __aenter__(self) -> BatchScanner:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
