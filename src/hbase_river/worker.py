"""RiverWorker: runs a pass every interval until told to stop."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import PassResult, SyncEngine

logger = logging.getLogger(__name__)


class WorkerState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class StopSignal:
    """Stop flag shared by the worker loop and whoever asks it to stop.

    Backed by :class:`threading.Event`, so :meth:`set` is safe from any thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()


class RiverWorker:
    """Background task owning the run / sleep cadence of a river.

    The first pass runs as soon as the worker starts. Afterwards the worker
    sleeps, checking the stop signal every ``poll_granularity`` seconds, and
    starts the next pass once ``interval`` seconds have passed since the
    previous one began. Passes never overlap.

    A pass that fails is only logged; it is retried at the next interval.
    Anything escaping :meth:`SyncEngine.run_pass` is a defect: it is logged
    and the worker stops for good.
    """

    def __init__(
        self,
        engine: SyncEngine,
        *,
        interval: float,
        poll_granularity: float = 1.0,
        stop_signal: StopSignal | None = None,
        stop_timeout: float = 30.0,
        name: str = "hbase_river",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        if poll_granularity <= 0:
            raise ValueError("poll_granularity must be > 0")
        self._engine = engine
        self._interval = interval
        self._poll_granularity = poll_granularity
        self._stop = stop_signal or StopSignal()
        self._stop_timeout = stop_timeout
        self._name = name
        self._state = WorkerState.IDLE
        self._task: asyncio.Task[None] | None = None
        self.passes = 0
        self.last_result: PassResult | None = None

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def stop_signal(self) -> StopSignal:
        return self._stop

    @property
    def is_active(self) -> bool:
        return self._state in (WorkerState.RUNNING, WorkerState.SLEEPING)

    async def start(self) -> None:
        if self.is_active:
            logger.warning(
                "Trying to start %s although it is already running", self._name
            )
            return
        self._stop.clear()
        self._state = WorkerState.RUNNING
        self._task = asyncio.create_task(self._run_loop(), name=self._name)
        self._task.add_done_callback(self._on_loop_done)
        logger.info(
            "%s started (interval=%.1fs, poll_granularity=%.1fs)",
            self._name,
            self._interval,
            self._poll_granularity,
        )

    def request_stop(self) -> None:
        """Ask the loop to stop; callable from any thread."""
        self._stop.set()

    async def stop(self) -> None:
        """Request a stop and wait for the loop to finish.

        An in-flight pass finishes its current page first. If the loop does
        not end within ``stop_timeout`` seconds it is cancelled.
        """
        self._stop.set()
        task = self._task
        if task is None:
            return
        if task is not asyncio.current_task():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self._stop_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "%s did not stop within %.1fs, cancelling",
                    self._name,
                    self._stop_timeout,
                )
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            except Exception:  # noqa: BLE001
                # Already logged by _on_loop_done.
                pass
        self._task = None
        self._state = WorkerState.STOPPED

    async def run_once(self) -> PassResult:
        """Execute a single pass (useful in tests)."""
        result = await self._engine.run_pass()
        self.passes += 1
        self.last_result = result
        return result

    async def _run_loop(self) -> None:
        logger.info("HBase import task has started")
        loop = asyncio.get_running_loop()
        last_run: float | None = None
        while not self._stop.is_set():
            if last_run is None or loop.time() - last_run >= self._interval:
                last_run = loop.time()
                self._state = WorkerState.RUNNING
                await self.run_once()
                if not self._stop.is_set():
                    logger.info(
                        "HBase import task is waiting for %.1f seconds until the next run",
                        self._interval,
                    )
            self._state = WorkerState.SLEEPING
            await asyncio.sleep(self._poll_granularity)
        logger.info("HBase import task has finished")

    def _on_loop_done(self, task: asyncio.Task[None]) -> None:
        self._state = WorkerState.STOPPED
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "An exception has been thrown in the HBase import task, stopping %s",
                self._name,
                exc_info=exc,
            )
            self._stop.set()
