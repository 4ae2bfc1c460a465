"""
Pytest configuration and shared fixtures for Courier tests.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional

import pytest

from courier.core.config import (
    CacheConfig,
    CourierConfig,
    ExecutionConfig,
    HistoryConfig,
)
from courier.core.models import RequestDescriptor
from courier.execution.isolated import IsolatedContext
from courier.execution.transport import Transport, TransportResponse


class FakeTransport(Transport):
    """Transport double that records requests and replays a canned response."""

    def __init__(self, response: Optional[TransportResponse] = None):
        self.response = response or TransportResponse(
            status=200, headers={"Content-Type": "text/plain"}, body="ok"
        )
        self.sent: List[RequestDescriptor] = []
        self.error: Optional[Exception] = None
        self.hang = False
        self.closed = False
        self.failing_urls: Dict[str, Exception] = {}

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        self.sent.append(request)
        if request.url in self.failing_urls:
            raise self.failing_urls[request.url]
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()
        return self.response

    async def close(self) -> None:
        self.closed = True


class FakeContext(IsolatedContext):
    """Isolated context double tracking its open/close lifecycle."""

    def __init__(self, transport: FakeTransport):
        self.transport = transport
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        return await self.transport.send(request)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def test_config() -> CourierConfig:
    """Provide a test configuration with in-memory history."""
    return CourierConfig(
        environment="test",
        debug=True,
        execution=ExecutionConfig(timeout_ms=1000),
        cache=CacheConfig(ttl_seconds=60.0, max_entries=10),
        history=HistoryConfig(backend="memory", flush_delay_ms=10),
        logging={"level": "DEBUG"},
    )


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Provide a transport that answers 200 without touching the network."""
    return FakeTransport()


@pytest.fixture
def context_factory(fake_transport: FakeTransport):
    """Provide an isolated-context factory that remembers every context it built."""
    created: List[FakeContext] = []

    def factory() -> FakeContext:
        context = FakeContext(fake_transport)
        created.append(context)
        return context

    factory.created = created
    return factory


@pytest.fixture
def make_request() -> Callable[..., RequestDescriptor]:
    """Provide a RequestDescriptor builder with sensible defaults."""

    def build(**overrides) -> RequestDescriptor:
        data = {"method": "GET", "url": "https://example.com/api", "headers": {}}
        data.update(overrides)
        return RequestDescriptor(**data)

    return build
