"""Value types flowing through a synchronization pass."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias


@dataclass(frozen=True)
class Cell:
    """One ``(family, qualifier, value, timestamp)`` unit of a row.

    ``key`` is the row key the cell was read from.
    """

    key: bytes
    family: bytes
    qualifier: bytes
    value: bytes
    timestamp: int = 0


Row: TypeAlias = Sequence[Cell]
DocumentBody: TypeAlias = dict[str, dict[str, str]]


@dataclass(frozen=True)
class IndexRequest:
    """A single document write inside a bulk request."""

    index: str
    doc_type: str
    event_timestamp: int
    body: DocumentBody
    identifier: str | None = None


@dataclass(frozen=True)
class BulkResult:
    """Completion of one bulk submission as reported by the backend."""

    succeeded_count: int
    has_failures: bool = False
    item_count: int | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        if self.item_count is None:
            return 0
        return max(self.item_count - self.succeeded_count, 0)
