import asyncio
import contextlib
import logging
from typing import Optional, Tuple

from coach_core.models.messages import Message
from coach_core.workflows.delegate import DelegateGateway

logger = logging.getLogger(__name__)


class UpdateBatcher:
    """
    Coalesces message updates and flushes them on a fixed cadence.

    At most one update is pending at a time; scheduling a new one replaces it.
    `close()` stops the ticker and flushes whatever is still pending exactly
    once, so the latest state is never lost to coalescing.
    """

    def __init__(self, gateway: DelegateGateway, interval: float):
        self._gateway = gateway
        self._interval = interval
        self._pending: Optional[Tuple[int, Message]] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.flush_count = 0

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def start(self) -> None:
        if self._task is None and not self._closed:
            self._task = asyncio.create_task(self._run())

    def schedule(self, index: int, message: Message) -> None:
        if self._closed:
            raise RuntimeError("Cannot schedule an update on a closed batcher.")
        self._pending = (index, message)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.flush()

    async def flush(self) -> None:
        pending = self._pending
        if pending is None:
            return
        await self._gateway.update_message(*pending)
        self.flush_count += 1
        # Keep anything scheduled while the update was in flight.
        if self._pending is pending:
            self._pending = None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self.flush()
        logger.debug(f"Update batcher closed after {self.flush_count} flushes.")

    async def __aenter__(self) -> "UpdateBatcher":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
