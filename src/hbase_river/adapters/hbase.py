"""HBase store client over the Thrift gateway, using happybase."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import Any

import happybase

from ..exceptions import StoreConnectionError, TableNotFoundError
from ..model import Cell, Row
from ..ports import IScanner, IStoreClient, StoreClientFactory

logger = logging.getLogger(__name__)

DEFAULT_THRIFT_PORT = 9090

ScanItem = tuple[bytes, dict[bytes, tuple[bytes, int]]]


def parse_hosts(hosts: str) -> list[tuple[str, int]]:
    """Split ``"zk1:9090,zk2"`` into ``[("zk1", 9090), ("zk2", 9090)]``."""
    parsed: list[tuple[str, int]] = []
    for entry in hosts.split(","):
        entry = entry.strip()
        if not entry:
            continue
        host, _, port = entry.partition(":")
        parsed.append((host, int(port) if port else DEFAULT_THRIFT_PORT))
    return parsed


def cells_from_scan(
    row_key: bytes, data: dict[bytes, tuple[bytes, int]], min_timestamp: int
) -> list[Cell]:
    """Convert one happybase scan item into cells, dropping those older than
    ``min_timestamp``."""
    cells: list[Cell] = []
    for column, (value, timestamp) in data.items():
        if timestamp < min_timestamp:
            continue
        family, _, qualifier = column.partition(b":")
        cells.append(
            Cell(
                key=row_key,
                family=family,
                qualifier=qualifier,
                value=value,
                timestamp=timestamp,
            )
        )
    return cells


class HappyBaseScanner(IScanner):
    """Wraps the generator returned by ``Table.scan``.

    The Thrift gateway has no minimum-timestamp scan, so the bound is applied
    to every cell as it arrives; rows left without cells are skipped.
    """

    def __init__(self, table: Any, *, scan_batch_size: int = 1000) -> None:
        self._table = table
        self._scan_batch_size = scan_batch_size
        self._min_timestamp = 0
        self._rows: Iterator[ScanItem] | None = None

    def set_min_timestamp(self, timestamp: int) -> None:
        self._min_timestamp = timestamp

    async def next_page(self, page_size: int) -> list[Row] | None:
        page = await asyncio.to_thread(self._read_page, page_size)
        return page or None

    def _read_page(self, page_size: int) -> list[Row]:
        if self._rows is None:
            self._rows = self._table.scan(
                batch_size=self._scan_batch_size, include_timestamp=True
            )
        page: list[Row] = []
        for row_key, data in self._rows:
            cells = cells_from_scan(row_key, data, self._min_timestamp)
            if cells:
                page.append(cells)
            if len(page) >= page_size:
                break
        return page

    async def close(self) -> None:
        rows, self._rows = self._rows, None
        if rows is not None and hasattr(rows, "close"):
            await asyncio.to_thread(rows.close)


class HappyBaseStoreClient(IStoreClient):
    """One Thrift connection per pass, opened on first use.

    ``hosts`` is a comma separated list of Thrift gateways; the first one that
    accepts a connection is used.
    """

    def __init__(
        self,
        hosts: str,
        *,
        timeout_ms: int | None = None,
        scan_batch_size: int = 1000,
        **connection_kwargs: Any,
    ) -> None:
        self._hosts = parse_hosts(hosts)
        self._timeout_ms = timeout_ms
        self._scan_batch_size = scan_batch_size
        self._connection_kwargs = connection_kwargs
        self._connection: happybase.Connection | None = None

    async def _connect(self) -> happybase.Connection:
        if self._connection is not None:
            return self._connection
        if not self._hosts:
            raise StoreConnectionError("No HBase hosts configured")
        errors: list[str] = []
        for host, port in self._hosts:
            try:
                self._connection = await asyncio.to_thread(
                    happybase.Connection,
                    host=host,
                    port=port,
                    timeout=self._timeout_ms,
                    **self._connection_kwargs,
                )
                logger.debug("Connected to HBase Thrift gateway %s:%d", host, port)
                return self._connection
            except Exception as e:  # noqa: BLE001
                errors.append(f"{host}:{port}: {e}")
        raise StoreConnectionError("; ".join(errors))

    async def ensure_table_exists(self, table: str) -> None:
        connection = await self._connect()
        tables = await asyncio.to_thread(connection.tables)
        if table.encode("utf-8") not in tables:
            raise TableNotFoundError(table)

    async def open_scanner(self, table: str) -> HappyBaseScanner:
        connection = await self._connect()
        return HappyBaseScanner(
            connection.table(table), scan_batch_size=self._scan_batch_size
        )

    async def shutdown(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await asyncio.to_thread(connection.close)


def happybase_store_factory(**kwargs: Any) -> StoreClientFactory:
    """Build a ``StoreClientFactory`` producing :class:`HappyBaseStoreClient`."""

    def connect(hosts: str) -> HappyBaseStoreClient:
        return HappyBaseStoreClient(hosts, **kwargs)

    return connect
