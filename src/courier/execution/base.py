"""
Executor contract shared by every execution strategy.
"""

import time
from abc import ABC, abstractmethod
from enum import Enum

from ..core.models import ErrorKind, ExecutionOutcome, RequestDescriptor
from .transport import TransportResponse


class StrategyType(str, Enum):
    """Available execution strategies."""

    DIRECT = "direct"
    ISOLATED = "isolated"


class RequestExecutor(ABC):
    """Executes one prepared request and reports a normalized outcome."""

    strategy: StrategyType

    def __init__(self, timeout_ms: int = 30_000) -> None:
        if timeout_ms < 1:
            raise ValueError("timeout_ms must be positive")
        self.timeout_ms = timeout_ms

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @abstractmethod
    async def execute(self, request: RequestDescriptor) -> ExecutionOutcome:
        """
        Execute a prepared request.

        Timeouts and transport failures are returned as failed outcomes;
        any other exception propagates to the caller.
        """
        pass

    def _response_outcome(
        self, request: RequestDescriptor, response: TransportResponse, started: float
    ) -> ExecutionOutcome:
        return ExecutionOutcome.ok(
            request_id=request.id,
            status=response.status,
            headers=response.headers,
            body=response.body,
            duration_ms=elapsed_ms(started),
        )

    def _timeout_outcome(
        self, request: RequestDescriptor, started: float
    ) -> ExecutionOutcome:
        return ExecutionOutcome.failure(
            request_id=request.id,
            error_kind=ErrorKind.TIMEOUT,
            message=f"Request timed out after {self.timeout_ms} ms",
            duration_ms=elapsed_ms(started),
        )

    def _network_outcome(
        self, request: RequestDescriptor, error: Exception, started: float
    ) -> ExecutionOutcome:
        return ExecutionOutcome.failure(
            request_id=request.id,
            error_kind=ErrorKind.NETWORK_ERROR,
            message=str(getattr(error, "message", None) or error),
            duration_ms=elapsed_ms(started),
        )


def elapsed_ms(started: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return round((time.perf_counter() - started) * 1000, 3)
