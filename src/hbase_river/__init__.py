"""Incremental import of an HBase table into a search index."""

from __future__ import annotations

from .codec import Document, RowCodec
from .config import RiverSettings
from .engine import PassResult, PassStatus, SyncEngine
from .exceptions import (
    BatchOverflowError,
    BatchSubmissionError,
    IndexBackendError,
    IndexBootstrapError,
    RiverConfigurationError,
    RiverError,
    StoreConnectionError,
    StoreError,
    TableNotFoundError,
)
from .instrumentation import (
    HookRegistry,
    InstrumentationHook,
    get_hook_registry,
    set_hook_registry,
)
from .model import BulkResult, Cell, IndexRequest, Row
from .ports import IIndexBackend, IScanner, IStoreClient, StoreClientFactory
from .retry import RetryPolicy
from .river import HBaseRiver
from .scanner import BatchScanner
from .structured_logging import StructuredLoggingHook
from .watermark import WatermarkResolver
from .worker import RiverWorker, StopSignal, WorkerState
from .writer import BatchOutcome, BulkWriter, WriterStats

__version__ = "0.1.0"

__all__ = [
    "BatchOutcome",
    "BatchOverflowError",
    "BatchScanner",
    "BatchSubmissionError",
    "BulkResult",
    "BulkWriter",
    "Cell",
    "Document",
    "HBaseRiver",
    "HookRegistry",
    "IIndexBackend",
    "IScanner",
    "IStoreClient",
    "IndexBackendError",
    "IndexBootstrapError",
    "IndexRequest",
    "InstrumentationHook",
    "PassResult",
    "PassStatus",
    "RetryPolicy",
    "RiverConfigurationError",
    "RiverError",
    "RiverSettings",
    "RiverWorker",
    "Row",
    "RowCodec",
    "StopSignal",
    "StoreClientFactory",
    "StoreConnectionError",
    "StoreError",
    "StructuredLoggingHook",
    "SyncEngine",
    "TableNotFoundError",
    "WatermarkResolver",
    "WorkerState",
    "WriterStats",
    "get_hook_registry",
    "set_hook_registry",
]
