"""
Isolated execution strategy.

Each request runs in a context of its own that shares no cookies,
credentials or pooled connections with the caller. The context is torn down
on every exit path: success, error, timeout and cancellation.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from aiohttp import ClientSession, ClientTimeout, DummyCookieJar, TCPConnector

from ..core.exceptions import NetworkError
from ..core.logging import get_logger
from ..core.models import ExecutionOutcome, RequestDescriptor
from .base import RequestExecutor, StrategyType
from .transport import TransportResponse, send_with_session

logger = get_logger(__name__)


class IsolatedContext(ABC):
    """Short-lived execution context owning its own network resources."""

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def send(self, request: RequestDescriptor) -> TransportResponse:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class SessionIsolatedContext(IsolatedContext):
    """
    Throwaway aiohttp session.

    Cookies are discarded and connections are never reused, so nothing from
    the caller's origin leaks into the request and nothing leaks back.
    """

    def __init__(self, verify_ssl: bool = False, follow_redirects: bool = False) -> None:
        self.verify_ssl = verify_ssl
        self.follow_redirects = follow_redirects
        self._session: Optional[ClientSession] = None

    async def open(self) -> None:
        self._session = ClientSession(
            connector=TCPConnector(force_close=True, limit=1),
            cookie_jar=DummyCookieJar(),
            timeout=ClientTimeout(total=None),
        )

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        if self._session is None:
            raise RuntimeError("Isolated context used before open()")
        return await send_with_session(
            self._session,
            request,
            verify_ssl=self.verify_ssl,
            follow_redirects=self.follow_redirects,
        )

    async def close(self) -> None:
        if self._session is not None:
            session, self._session = self._session, None
            await session.close()


ContextFactory = Callable[[], IsolatedContext]


class IsolatedExecutor(RequestExecutor):
    """
    Executes each request inside a fresh IsolatedContext.

    The timeout covers opening the context and sending the request.
    ``active_contexts`` counts contexts that have not been closed yet and is
    zero whenever no execution is in flight.
    """

    strategy = StrategyType.ISOLATED

    def __init__(
        self,
        context_factory: Optional[ContextFactory] = None,
        timeout_ms: int = 30_000,
    ) -> None:
        super().__init__(timeout_ms)
        self.context_factory = context_factory or SessionIsolatedContext
        self.active_contexts = 0

    async def execute(self, request: RequestDescriptor) -> ExecutionOutcome:
        started = time.perf_counter()
        context = self.context_factory()
        self.active_contexts += 1
        try:
            response = await asyncio.wait_for(
                self._run(context, request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Isolated request {request.id} timed out after {self.timeout_ms} ms"
            )
            return self._timeout_outcome(request, started)
        except NetworkError as e:
            logger.warning(f"Isolated request {request.id} failed: {e.message}")
            return self._network_outcome(request, e, started)
        finally:
            await self._teardown(context, request)

        return self._response_outcome(request, response, started)

    async def _run(
        self, context: IsolatedContext, request: RequestDescriptor
    ) -> TransportResponse:
        await context.open()
        return await context.send(request)

    async def _teardown(self, context: IsolatedContext, request: RequestDescriptor) -> None:
        self.active_contexts -= 1
        try:
            # Shielded so a cancellation arriving mid-teardown still releases
            # the context
            await asyncio.shield(context.close())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to close isolated context for {request.id}: {e}")
