"""
Execution strategy selection.
"""

from typing import Callable, Dict, Mapping

from ..core.logging import get_logger
from ..core.models import HttpMethod, RequestDescriptor
from .base import RequestExecutor, StrategyType

logger = get_logger(__name__)

# Methods the direct strategy can send without origin restrictions
DIRECT_METHODS = frozenset({HttpMethod.GET, HttpMethod.POST})


def strategy_for(request: RequestDescriptor) -> StrategyType:
    """
    Map a request to the strategy that should execute it.

    GET and POST go direct unless the request is flagged as
    cross-origin-restricted; every other method runs isolated.
    """
    if request.method in DIRECT_METHODS and not request.cross_origin_restricted:
        return StrategyType.DIRECT
    return StrategyType.ISOLATED


class StrategySelector:
    """
    Resolves requests to executor instances.

    Executors are built lazily from their factories and cached per strategy
    type, never per request.
    """

    def __init__(
        self, factories: Mapping[StrategyType, Callable[[], RequestExecutor]]
    ) -> None:
        missing = set(StrategyType) - set(factories)
        if missing:
            raise ValueError(
                f"Missing executor factories for: {', '.join(sorted(m.value for m in missing))}"
            )
        self._factories = dict(factories)
        self._executors: Dict[StrategyType, RequestExecutor] = {}

    def select(self, request: RequestDescriptor) -> RequestExecutor:
        return self.executor(strategy_for(request))

    def executor(self, strategy: StrategyType) -> RequestExecutor:
        executor = self._executors.get(strategy)
        if executor is None:
            executor = self._factories[strategy]()
            self._executors[strategy] = executor
            logger.debug(f"Created {strategy.value} executor")
        return executor
