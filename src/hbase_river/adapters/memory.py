"""In-memory store and index backend, used as fakes in tests."""

from __future__ import annotations

import itertools
from collections import defaultdict
from typing import Any

from ..exceptions import BatchSubmissionError, StoreConnectionError, TableNotFoundError
from ..model import BulkResult, Cell, IndexRequest, Row
from ..ports import IIndexBackend, IScanner, IStoreClient


class InMemoryScanner(IScanner):
    """Pages over a snapshot of a table taken when the scanner was opened."""

    def __init__(self, store: InMemoryStore, rows: list[list[Cell]]) -> None:
        self._store = store
        self._rows = rows
        self._position = 0
        self._min_timestamp = 0
        self.closed = False
        self.close_calls = 0

    def set_min_timestamp(self, timestamp: int) -> None:
        self._min_timestamp = timestamp

    async def next_page(self, page_size: int) -> list[Row] | None:
        if self.closed:
            raise RuntimeError("Scanner is closed")
        self._store.pages_fetched += 1
        page: list[Row] = []
        while self._position < len(self._rows) and len(page) < page_size:
            row = [
                cell
                for cell in self._rows[self._position]
                if cell.timestamp >= self._min_timestamp
            ]
            self._position += 1
            if row:
                page.append(row)
        return page or None

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class InMemoryStoreClient(IStoreClient):
    def __init__(self, store: InMemoryStore, hosts: str) -> None:
        self._store = store
        self.hosts = hosts
        self.is_shutdown = False

    async def ensure_table_exists(self, table: str) -> None:
        if table not in self._store.tables:
            raise TableNotFoundError(table)

    async def open_scanner(self, table: str) -> InMemoryScanner:
        await self.ensure_table_exists(table)
        by_key: dict[bytes, list[Cell]] = defaultdict(list)
        for cell in self._store.tables[table]:
            by_key[cell.key].append(cell)
        scanner = InMemoryScanner(self._store, [by_key[k] for k in sorted(by_key)])
        self._store.scanners.append(scanner)
        return scanner

    async def shutdown(self) -> None:
        self.is_shutdown = True


class InMemoryStore:
    """Tables of cells kept in a dict; :meth:`connect` is a ``StoreClientFactory``.

    Rows come back in key order, like an HBase scan.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[Cell]] = {}
        self.clients: list[InMemoryStoreClient] = []
        self.scanners: list[InMemoryScanner] = []
        self.pages_fetched = 0
        self.unreachable = False

    def create_table(self, table: str) -> None:
        self.tables.setdefault(table, [])

    def put(
        self,
        table: str,
        key: bytes | str,
        family: bytes | str,
        qualifier: bytes | str,
        value: bytes | str,
        timestamp: int = 0,
    ) -> Cell:
        cell = Cell(
            key=_to_bytes(key),
            family=_to_bytes(family),
            qualifier=_to_bytes(qualifier),
            value=_to_bytes(value),
            timestamp=timestamp,
        )
        self.tables.setdefault(table, []).append(cell)
        return cell

    def connect(self, hosts: str) -> InMemoryStoreClient:
        if self.unreachable:
            raise StoreConnectionError(f"Cannot reach {hosts}")
        client = InMemoryStoreClient(self, hosts)
        self.clients.append(client)
        return client


class InMemoryIndexBackend(IIndexBackend):
    """Dict-backed index that keeps every document and every bulk request.

    Failure injection for tests: ``fail_queries`` makes the watermark lookup
    raise, ``fail_submissions`` makes the next N bulk calls raise, and
    identifiers listed in ``rejected_ids`` are reported as item failures.
    """

    def __init__(self) -> None:
        self.indices: dict[str, dict[str, Any]] = {}
        self.documents: dict[tuple[str, str], IndexRequest] = {}
        self.batches: list[list[IndexRequest]] = []
        self.fail_queries = False
        self.fail_submissions = 0
        self.rejected_ids: set[str] = set()
        self._ids = itertools.count(1)

    async def ensure_index(
        self, index: str, doc_type: str, id_field: str | None = None
    ) -> None:
        self.indices.setdefault(index, {})[doc_type] = {"id_field": id_field}

    async def max_event_timestamp(self, index: str, doc_type: str) -> int | None:
        if self.fail_queries:
            raise RuntimeError("search failed")
        stamps = [
            request.event_timestamp
            for (doc_index, _), request in self.documents.items()
            if doc_index == index and request.doc_type == doc_type
        ]
        return max(stamps) if stamps else None

    async def submit_batch(self, requests: list[IndexRequest]) -> BulkResult:
        self.batches.append(list(requests))
        if self.fail_submissions > 0:
            self.fail_submissions -= 1
            raise BatchSubmissionError("bulk request failed")
        errors: list[dict[str, Any]] = []
        for request in requests:
            if request.identifier is not None and request.identifier in self.rejected_ids:
                errors.append({"_id": request.identifier, "error": "rejected"})
                continue
            doc_id = request.identifier or f"auto-{next(self._ids)}"
            self.documents[(request.index, doc_id)] = request
        return BulkResult(
            succeeded_count=len(requests) - len(errors),
            has_failures=bool(errors),
            item_count=len(requests),
            errors=errors,
        )

    def get(self, index: str, doc_id: str) -> IndexRequest | None:
        return self.documents.get((index, doc_id))


def _to_bytes(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")
