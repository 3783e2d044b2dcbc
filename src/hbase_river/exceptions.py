"""Exceptions raised by the HBase river."""

from __future__ import annotations


class RiverError(Exception):
    """Root exception for the river."""


class RiverConfigurationError(RiverError):
    """Raised once at construction when the river settings are invalid.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class StoreError(RiverError):
    """Base class for source store failures. Fatal to the current pass."""


class StoreConnectionError(StoreError):
    """Raised when no connection to the store can be established."""


class TableNotFoundError(StoreError):
    """Raised when the source table does not exist."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table {table!r} does not exist")


class IndexBackendError(RiverError):
    """Base class for index backend failures."""


class IndexBootstrapError(IndexBackendError):
    """Raised when the target index cannot be prepared."""


class BatchSubmissionError(IndexBackendError):
    """Raised by a backend when a bulk request never completes."""


class BatchOverflowError(RiverError):
    """Raised when a document is added to a batch that is already full."""

    def __init__(self, batch_size: int) -> None:
        self.batch_size = batch_size
        super().__init__(f"Batch already holds {batch_size} requests")
