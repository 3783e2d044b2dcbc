"""StructuredLoggingHook: one JSON log entry per instrumented river operation."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from .correlation import get_correlation_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_log = logging.getLogger(__name__)


class StructuredLoggingHook:
    """Emits JSON log entries with operation, outcome, duration and correlation id.

    Register it on the hook registry, e.g.
    ``get_hook_registry().register(StructuredLoggingHook(), operations=["river.*"])``.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or _log

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        start = time.monotonic()
        outcome = "success"
        try:
            return await next_handler()
        except Exception:
            outcome = "error"
            raise
        finally:
            try:
                entry = {
                    "operation": operation,
                    "outcome": outcome,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                    "correlation_id": attributes.get("correlation_id")
                    or get_correlation_id(),
                    **{
                        key: value
                        for key, value in attributes.items()
                        if key != "correlation_id"
                    },
                }
                self._log.info(json.dumps(entry, default=str))
            except Exception:  # noqa: BLE001
                _log.debug("Failed to emit structured log entry", exc_info=True)
