"""RowCodec: turns a scanned row into an index document."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import DocumentBody, Row

_ENCODING = "utf-8"


def _decode(raw: bytes) -> str:
    return raw.decode(_ENCODING, errors="replace")


@dataclass(frozen=True)
class Document:
    """Nested ``family -> qualifier -> value`` body plus optional identifier."""

    body: DocumentBody
    identifier: str | None = None


class RowCodec:
    """Pure row -> document transformation.

    Every cell becomes ``body[family][qualifier] = value``. When two cells
    share the same family and qualifier the later one wins. Bytes are decoded
    as UTF-8 with replacement, so malformed input never raises.

    Without an ``id_field`` the document identifier is the row key of the
    first cell. With one, identifiers are left to the index backend, which
    routes them from that field.
    """

    def __init__(self, id_field: str | None = None) -> None:
        self._id_field = id_field

    @property
    def id_field(self) -> str | None:
        return self._id_field

    def transform(self, row: Row) -> Document:
        body: DocumentBody = {}
        for cell in row:
            family = body.setdefault(_decode(cell.family), {})
            family[_decode(cell.qualifier)] = _decode(cell.value)
        return Document(body=body, identifier=self.derive_identifier(row))

    def derive_identifier(self, row: Row) -> str | None:
        if self._id_field is not None or not row:
            return None
        return _decode(row[0].key)
