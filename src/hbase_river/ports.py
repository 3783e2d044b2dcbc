"""Protocols for the collaborators a synchronization pass depends on."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from .model import BulkResult, IndexRequest, Row


@runtime_checkable
class IScanner(Protocol):
    """Server-side cursor over a table, paged by the caller."""

    def set_min_timestamp(self, timestamp: int) -> None:
        """Only cells with ``timestamp >= min`` are returned."""
        ...

    async def next_page(self, page_size: int) -> list[Row] | None:
        """Return up to ``page_size`` rows; ``None`` or ``[]`` once exhausted."""
        ...

    async def close(self) -> None:
        """Release the cursor."""
        ...


@runtime_checkable
class IStoreClient(Protocol):
    """A connected client of the column-family store, owned by one pass."""

    async def ensure_table_exists(self, table: str) -> None:
        """Raise if the table is missing or unreachable."""
        ...

    async def open_scanner(self, table: str) -> IScanner:
        """Open a new scanner over ``table``."""
        ...

    async def shutdown(self) -> None:
        """Close the connection."""
        ...


StoreClientFactory: TypeAlias = Callable[[str], IStoreClient]
"""``connect(hosts)``: builds a fresh client for one pass."""


@runtime_checkable
class IIndexBackend(Protocol):
    """Target document index."""

    async def max_event_timestamp(self, index: str, doc_type: str) -> int | None:
        """Largest event timestamp recorded for ``doc_type``; None if there is none."""
        ...

    async def submit_batch(self, requests: list[IndexRequest]) -> BulkResult:
        """Write all requests in one bulk call.

        Raises on transport failure; item level failures are reported in the
        returned :class:`BulkResult`.
        """
        ...

    async def ensure_index(
        self, index: str, doc_type: str, id_field: str | None = None
    ) -> None:
        """Create the index and its event-time mapping if missing."""
        ...
