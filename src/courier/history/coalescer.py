"""
Write Coalescer

Timer-plus-queue abstraction that merges bursts of write operations into a
single flush. A flush fires ``delay`` seconds after the first queued
operation, or immediately once ``max_batch`` operations are waiting. A
failed flush puts its operations back at the head of the queue and re-arms
the timer with exponential backoff.
"""

import asyncio
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from ..core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FlushCallback = Callable[[List[T]], Awaitable[None]]


class WriteCoalescer(Generic[T]):
    """
    Debounced batch writer.

    Flushes are serialized: a flush never starts while another one is still
    writing, so durable storage sees batches in queue order.
    """

    def __init__(
        self,
        flush_callback: FlushCallback,
        delay_seconds: float = 0.1,
        max_batch: int = 50,
        max_retry_delay: float = 5.0,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")
        if max_batch < 1:
            raise ValueError("max_batch must be at least 1")
        self._flush_callback = flush_callback
        self.delay_seconds = delay_seconds
        self.max_batch = max_batch
        self.max_retry_delay = max_retry_delay
        self._pending: List[T] = []
        self._in_flight: List[T] = []
        self._timer: Optional[asyncio.Task] = None
        self._flush_lock = asyncio.Lock()
        self._failures = 0
        self.flush_count = 0

    @property
    def pending(self) -> List[T]:
        """Operations queued but not yet handed to a flush."""
        return list(self._pending)

    def unflushed(self) -> List[T]:
        """Operations not yet durably written, oldest first."""
        return list(self._in_flight) + list(self._pending)

    def add(self, operation: T) -> None:
        """Queue an operation and make sure a flush is scheduled."""
        self._pending.append(operation)
        if len(self._pending) >= self.max_batch:
            self._schedule(0.0)
        elif self._timer is None or self._timer.done():
            self._schedule(self.delay_seconds)

    def _schedule(self, delay: float) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._flush_after(delay))

    async def _flush_after(self, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        # A timer that has started writing is no longer cancellable
        if self._timer is asyncio.current_task():
            self._timer = None
        await self.flush()

    async def flush(self) -> bool:
        """
        Write every queued operation now.

        Returns:
            True if the queue was written (or empty), False if the write
            failed and the operations were re-queued
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        async with self._flush_lock:
            if not self._pending:
                return True

            batch, self._pending = self._pending, []
            self._in_flight = batch
            try:
                await self._flush_callback(batch)
            except asyncio.CancelledError:
                self._pending = batch + self._pending
                raise
            except Exception as e:
                self._pending = batch + self._pending
                self._failures += 1
                retry_delay = min(
                    max(self.delay_seconds, 0.01) * (2 ** self._failures),
                    self.max_retry_delay,
                )
                logger.error(
                    f"Flush of {len(batch)} operations failed, retrying in "
                    f"{retry_delay:.2f}s: {e}"
                )
                self._schedule(retry_delay)
                return False
            finally:
                self._in_flight = []

            self._failures = 0
            self.flush_count += 1
            logger.debug(f"Flushed {len(batch)} coalesced operations")
            return True

    async def close(self) -> bool:
        """Cancel the timer and flush whatever is still queued."""
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None
        flushed = await self.flush()
        if self._timer is not None and not self._timer.done():
            # A failed final flush re-armed the retry timer
            self._timer.cancel()
            self._timer = None
        return flushed
