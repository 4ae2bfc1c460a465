"""
Courier Execution Strategies

Direct and isolated executors, strategy selection and windowed batches.
"""

from .base import RequestExecutor, StrategyType
from .batch import BatchExecutor, run_windowed
from .direct import DirectExecutor
from .isolated import IsolatedContext, IsolatedExecutor, SessionIsolatedContext
from .selector import StrategySelector, strategy_for
from .transport import AiohttpTransport, Transport, TransportResponse

__all__ = [
    "RequestExecutor",
    "StrategyType",
    "BatchExecutor",
    "run_windowed",
    "DirectExecutor",
    "IsolatedContext",
    "IsolatedExecutor",
    "SessionIsolatedContext",
    "StrategySelector",
    "strategy_for",
    "AiohttpTransport",
    "Transport",
    "TransportResponse",
]
