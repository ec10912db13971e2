"""Single-flight save worker.

Every save trigger posts a request here. One worker task performs the
flushes one at a time; a request that arrives while another is pending or
in flight is dropped rather than queued, so bursts collapse into one write.
The exit save is never dropped: it joins the pending flush, or queues behind
the one in flight."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class SaveTrigger(str, Enum):
    INTERVAL = "interval"
    IDLE = "idle"
    VISIBILITY = "visibility"
    MANUAL = "manual"
    EXIT = "exit"


class SaveOutcome(str, Enum):
    SAVED_REMOTE = "saved_remote"
    SAVED_LOCAL = "saved_local"
    CONFLICT = "conflict"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SaveRequest:
    trigger: SaveTrigger
    notify: bool = False


FlushFunc = Callable[[SaveRequest], Awaitable[SaveOutcome]]


class SaveCoordinator:
    """Serializes flushes through a single worker task."""

    def __init__(self, flush: FlushFunc):
        self._flush = flush
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._worker: Optional[asyncio.Task] = None
        self._in_flight = False
        self._pending: Optional[asyncio.Future] = None
        self.dropped = 0
        self.completed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def busy(self) -> bool:
        return self._in_flight or self._queue.full()

    def start(self) -> None:
        if not self.running:
            self._worker = asyncio.get_running_loop().create_task(self._run())

    def request(
        self,
        trigger: SaveTrigger,
        notify: bool = False,
        coalesce: bool = False,
    ) -> Optional[asyncio.Future]:
        """Post a save request.

        With ``coalesce`` the request is not dropped: it shares the future of
        an already pending flush (which snapshots state when it starts), or
        is queued to run after the flush in flight.

        Returns:
            Future resolving to the SaveOutcome, or None if the request was
            dropped because a flush is already pending or in flight
        """
        if not self.running:
            logger.warning(f"Save requested ({trigger.value}) with no running worker")
            return None

        if coalesce and self._pending is not None:
            return self._pending

        if self.busy and not coalesce:
            self.dropped += 1
            logger.debug(f"Dropped {trigger.value} save; flush already outstanding")
            return None

        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((SaveRequest(trigger, notify), future))
        self._pending = future
        return future

    async def _run(self) -> None:
        while True:
            request, future = await self._queue.get()
            self._pending = None
            self._in_flight = True
            try:
                outcome = await self._flush(request)
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as e:
                logger.error(f"Save flush failed ({request.trigger.value}): {e}", exc_info=True)
                if not future.done():
                    future.set_exception(e)
            else:
                self.completed += 1
                if not future.done():
                    future.set_result(outcome)
            finally:
                self._in_flight = False
                self._queue.task_done()

    async def stop(self) -> None:
        """Cancel the worker and any request still waiting for it."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        self._pending = None
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            if not future.done():
                future.cancel()
