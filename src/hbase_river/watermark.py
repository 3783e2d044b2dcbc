"""WatermarkResolver: recovers the low-water mark from the index itself."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .instrumentation import instrument

if TYPE_CHECKING:
    from .ports import IIndexBackend

logger = logging.getLogger(__name__)


class WatermarkResolver:
    """Asks the index for the largest event timestamp of a document type.

    The result is the minimum timestamp the next scan accepts. Rows written
    exactly at the watermark are read again; with row-key identifiers that
    rewrite is idempotent.

    :meth:`resolve` never raises. An empty index, a missing aggregation or a
    failing query all resolve to 0, i.e. a full scan.
    """

    def __init__(self, backend: IIndexBackend) -> None:
        self._backend = backend

    async def resolve(self, index: str, doc_type: str) -> int:
        return int(
            await instrument(
                "watermark",
                index,
                {"index": index, "doc_type": doc_type},
                lambda: self._resolve_internal(index, doc_type),
            )
        )

    async def _resolve_internal(self, index: str, doc_type: str) -> int:
        logger.debug("Looking up timestamp of last import in %s/%s", index, doc_type)
        try:
            maximum = await self._backend.max_event_timestamp(index, doc_type)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Could not read last import timestamp from %s/%s, "
                "scanning from 0: %s",
                index,
                doc_type,
                e,
                exc_info=True,
            )
            return 0

        if maximum is None:
            logger.debug(
                "No timestamp data in %s/%s, probably no data there yet",
                index,
                doc_type,
            )
            return 0
        return max(int(maximum), 0)
