"""
HTTP Transport

Thin async layer over aiohttp used by the executors. Transport-level
failures surface as NetworkError; everything else propagates unchanged.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector

from ..core.exceptions import NetworkError
from ..core.logging import get_logger
from ..core.models import RequestDescriptor

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Status, headers and body text of a completed exchange."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


class Transport(ABC):
    """Sends one prepared request and returns the raw response."""

    @abstractmethod
    async def send(self, request: RequestDescriptor) -> TransportResponse:
        pass

    async def close(self) -> None:
        pass


async def send_with_session(
    session: ClientSession,
    request: RequestDescriptor,
    verify_ssl: bool = False,
    follow_redirects: bool = False,
) -> TransportResponse:
    """
    Send a prepared request on an aiohttp session.

    The request body is taken from ``raw_body``; body fields must already
    have been encoded.

    Raises:
        NetworkError: On any aiohttp client or socket failure
    """
    data = request.raw_body.encode("utf-8") if request.raw_body else None
    try:
        async with session.request(
            method=request.method.value,
            url=request.url,
            headers=dict(request.headers),
            data=data,
            allow_redirects=follow_redirects,
            ssl=verify_ssl,
        ) as response:
            body = await response.text(errors="replace")
            return TransportResponse(
                status=response.status,
                headers=dict(response.headers),
                body=body,
            )
    except asyncio.TimeoutError:
        # Socket-level timeouts are reported as timeouts, not network errors
        raise
    except aiohttp.ClientError as e:
        raise NetworkError(
            f"Failed to send request: {str(e) or type(e).__name__}",
            {"url": request.url, "error_type": type(e).__name__},
        )
    except OSError as e:
        raise NetworkError(
            f"Connection failed: {e}",
            {"url": request.url, "error_type": type(e).__name__},
        )


class AiohttpTransport(Transport):
    """
    Pooled transport backed by one shared aiohttp ClientSession.

    The session is created lazily on first use and reused for every request
    until close() is called.
    """

    def __init__(
        self,
        session: Optional[ClientSession] = None,
        verify_ssl: bool = False,
        follow_redirects: bool = False,
        max_connections: int = 100,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self.verify_ssl = verify_ssl
        self.follow_redirects = follow_redirects
        self.max_connections = max_connections

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            connector = TCPConnector(limit=self.max_connections, ttl_dns_cache=300)
            # Executors enforce their own deadline
            self._session = ClientSession(
                connector=connector, timeout=ClientTimeout(total=None)
            )
            self._owns_session = True
            logger.debug("Created shared HTTP session")
        return self._session

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        return await send_with_session(
            self._get_session(),
            request,
            verify_ssl=self.verify_ssl,
            follow_redirects=self.follow_redirects,
        )

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug("Closed shared HTTP session")
        self._session = None
