"""
Windowed batch execution.

Requests are split into fixed-size windows. Each window runs concurrently
and must fully resolve before the next one starts, which bounds peak
concurrency at the window size. Results always follow input order.
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

from ..core.logging import get_logger
from ..core.models import ErrorKind, ExecutionOutcome, RequestDescriptor
from .selector import StrategySelector

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_WINDOW_SIZE = 5


async def run_windowed(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> List[R]:
    """
    Run ``worker`` over ``items`` one window at a time.

    Args:
        items: Inputs, processed in order
        worker: Coroutine function applied to every item
        window_size: Maximum number of concurrent workers

    Returns:
        Results where ``results[i]`` corresponds to ``items[i]``

    Raises:
        Whatever ``worker`` raises; callers that need per-item isolation
        must catch inside the worker.
    """
    if window_size < 1:
        raise ValueError("window_size must be at least 1")

    results: List[R] = []
    for start in range(0, len(items), window_size):
        window = items[start : start + window_size]
        results.extend(await asyncio.gather(*(worker(item) for item in window)))
    return results


class BatchExecutor:
    """Executes prepared requests in bounded windows via the strategy selector."""

    def __init__(
        self, selector: StrategySelector, window_size: int = DEFAULT_WINDOW_SIZE
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.selector = selector
        self.window_size = window_size

    async def execute_batch(
        self, requests: Sequence[RequestDescriptor]
    ) -> List[ExecutionOutcome]:
        logger.info(
            f"Executing batch of {len(requests)} requests "
            f"(window size {self.window_size})"
        )
        return await run_windowed(requests, self._execute_one, self.window_size)

    async def _execute_one(self, request: RequestDescriptor) -> ExecutionOutcome:
        try:
            return await self.selector.select(request).execute(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error executing request {request.id}")
            return ExecutionOutcome.failure(
                request_id=request.id,
                error_kind=ErrorKind.UNKNOWN,
                message=f"Unexpected error: {e}",
            )
