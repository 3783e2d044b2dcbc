"""HBaseRiver: the component a host process starts and closes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .config import RiverSettings
from .engine import SyncEngine
from .exceptions import IndexBootstrapError
from .worker import RiverWorker, StopSignal

if TYPE_CHECKING:
    from .ports import IIndexBackend, StoreClientFactory

logger = logging.getLogger(__name__)


class HBaseRiver:
    """Imports an HBase table into a search index on a fixed interval.

    Settings are validated on construction; invalid settings raise
    :class:`~hbase_river.exceptions.RiverConfigurationError` and the river
    never starts. :meth:`start` prepares the index with an event-time mapping
    and launches the background worker. If the index cannot be prepared the
    river is disabled and the worker is not started.
    """

    def __init__(
        self,
        river_name: str,
        settings: Mapping[str, Any] | RiverSettings,
        index_backend: IIndexBackend,
        store_factory: StoreClientFactory,
        *,
        stop_timeout: float = 30.0,
    ) -> None:
        logger.info("Creating HBase river %s", river_name)
        self.river_name = river_name
        self.settings = (
            settings
            if isinstance(settings, RiverSettings)
            else RiverSettings.from_river_settings(river_name, settings)
        )
        self._backend = index_backend
        stop_signal = StopSignal()
        self.engine = SyncEngine(
            self.settings,
            store_factory,
            index_backend,
            stop_signal=stop_signal,
        )
        self.worker = RiverWorker(
            self.engine,
            interval=self.settings.interval_seconds,
            poll_granularity=self.settings.poll_granularity_seconds,
            stop_signal=stop_signal,
            stop_timeout=stop_timeout,
            name=f"hbase_river[{river_name}]",
        )

    @property
    def running(self) -> bool:
        return self.worker.is_active

    async def start(self) -> bool:
        """Prepare the index and start the worker; False if the river is disabled."""
        if self.worker.is_active:
            logger.warning(
                "Trying to start HBase river %s although it is already running",
                self.river_name,
            )
            return True
        logger.info("Starting HBase river %s", self.river_name)
        try:
            await self._backend.ensure_index(
                self.settings.index, self.settings.doc_type, self.settings.id_field
            )
        except IndexBootstrapError:
            logger.warning(
                "Failed to create index [%s], disabling river %s",
                self.settings.index,
                self.river_name,
                exc_info=True,
            )
            return False
        await self.worker.start()
        return True

    async def close(self) -> None:
        logger.info("Closing HBase river %s", self.river_name)
        await self.worker.stop()
