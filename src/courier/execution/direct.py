"""
Direct execution strategy: send the request straight through the shared
transport under a timeout.
"""

import asyncio
import time

from ..core.exceptions import NetworkError
from ..core.logging import get_logger
from ..core.models import ExecutionOutcome, RequestDescriptor
from .base import RequestExecutor, StrategyType
from .transport import Transport

logger = get_logger(__name__)


class DirectExecutor(RequestExecutor):
    """
    Sends requests on the caller's shared transport.

    Every call is bounded by ``timeout_ms``; when the deadline fires the
    in-flight send is cancelled and a Timeout outcome is returned.
    """

    strategy = StrategyType.DIRECT

    def __init__(self, transport: Transport, timeout_ms: int = 30_000) -> None:
        super().__init__(timeout_ms)
        self.transport = transport

    async def execute(self, request: RequestDescriptor) -> ExecutionOutcome:
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self.transport.send(request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Request {request.id} timed out after {self.timeout_ms} ms: "
                f"{request.method.value} {request.url}"
            )
            return self._timeout_outcome(request, started)
        except NetworkError as e:
            logger.warning(f"Request {request.id} failed: {e.message}")
            return self._network_outcome(request, e, started)

        logger.debug(
            f"{request.method.value} {request.url} -> {response.status} "
            f"({request.id})"
        )
        return self._response_outcome(request, response, started)
