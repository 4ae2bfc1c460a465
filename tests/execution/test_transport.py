"""
Transport tests against a local aiohttp test server.
"""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from courier.core.exceptions import NetworkError
from courier.core.models import ErrorKind, RequestDescriptor
from courier.execution import (
    AiohttpTransport,
    DirectExecutor,
    IsolatedExecutor,
    SessionIsolatedContext,
)


async def echo(request: web.Request) -> web.Response:
    body = await request.text()
    return web.json_response(
        {
            "method": request.method,
            "body": body,
            "content_type": request.headers.get("Content-Type"),
            "cookie": request.headers.get("Cookie"),
        },
        headers={"X-Echo": "1"},
    )


async def set_cookie(request: web.Request) -> web.Response:
    response = web.Response(text="cookie set")
    response.set_cookie("session", "secret")
    return response


async def slow(request: web.Request) -> web.Response:
    await asyncio.sleep(0.5)
    return web.Response(text="late")


async def redirect(request: web.Request) -> web.Response:
    raise web.HTTPFound("/echo")


def build_app() -> web.Application:
    app = web.Application()
    app.router.add_route("*", "/echo", echo)
    app.router.add_get("/cookie", set_cookie)
    app.router.add_get("/slow", slow)
    app.router.add_get("/redirect", redirect)
    return app


@pytest.mark.asyncio
async def test_transport_sends_body_and_headers():
    """Test the shared transport delivers method, body and headers."""
    server = TestServer(build_app())
    await server.start_server()
    transport = AiohttpTransport()
    try:
        request = RequestDescriptor(
            method="POST",
            url=str(server.make_url("/echo")),
            headers={"Content-Type": "application/json"},
            raw_body='{"a":"1"}',
        )
        response = await transport.send(request)
    finally:
        await transport.close()
        await server.close()

    assert response.status == 200
    assert response.headers["X-Echo"] == "1"
    assert '"body": "{\\"a\\":\\"1\\"}"' in response.body
    assert '"content_type": "application/json"' in response.body


@pytest.mark.asyncio
async def test_redirects_are_reported_not_followed():
    server = TestServer(build_app())
    await server.start_server()
    transport = AiohttpTransport()
    try:
        response = await transport.send(
            RequestDescriptor(url=str(server.make_url("/redirect")))
        )
    finally:
        await transport.close()
        await server.close()

    assert response.status == 302
    assert response.headers["Location"] == "/echo"


@pytest.mark.asyncio
async def test_connection_failure_raises_network_error():
    server = TestServer(build_app())
    await server.start_server()
    url = str(server.make_url("/echo"))
    await server.close()

    transport = AiohttpTransport()
    try:
        with pytest.raises(NetworkError):
            await transport.send(RequestDescriptor(url=url))
    finally:
        await transport.close()


@pytest.mark.asyncio
async def test_direct_executor_times_out_against_slow_server():
    server = TestServer(build_app())
    await server.start_server()
    transport = AiohttpTransport()
    try:
        executor = DirectExecutor(transport, timeout_ms=100)
        outcome = await executor.execute(
            RequestDescriptor(url=str(server.make_url("/slow")))
        )
    finally:
        await transport.close()
        await server.close()

    assert outcome.error_kind == ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_isolated_context_does_not_keep_cookies():
    """Test cookies set in one isolated execution never reach the next."""
    server = TestServer(build_app())
    await server.start_server()
    executor = IsolatedExecutor(SessionIsolatedContext)
    try:
        await executor.execute(RequestDescriptor(url=str(server.make_url("/cookie"))))
        outcome = await executor.execute(
            RequestDescriptor(url=str(server.make_url("/echo")))
        )
    finally:
        await server.close()

    assert outcome.success
    assert '"cookie": null' in outcome.response_body
    assert executor.active_contexts == 0


@pytest.mark.asyncio
async def test_shared_transport_reuses_session():
    server = TestServer(build_app())
    await server.start_server()
    transport = AiohttpTransport()
    try:
        await transport.send(RequestDescriptor(url=str(server.make_url("/echo"))))
        first = transport._session
        await transport.send(RequestDescriptor(url=str(server.make_url("/echo"))))
        assert transport._session is first
    finally:
        await transport.close()
        await server.close()

    assert transport._session is None
