"""Store and index adapters.

The in-memory adapters are always available. The HBase and Elasticsearch
adapters need the ``hbase`` and ``elasticsearch`` extras and are imported from
their own modules.
"""

from __future__ import annotations

from .memory import (
    InMemoryIndexBackend,
    InMemoryScanner,
    InMemoryStore,
    InMemoryStoreClient,
)

__all__ = [
    "InMemoryIndexBackend",
    "InMemoryScanner",
    "InMemoryStore",
    "InMemoryStoreClient",
]
