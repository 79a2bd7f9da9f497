"""Pytest configuration and fixtures."""

import asyncio

import httpx
import pytest

from courier.sdk.client import GatewayClient
from courier.sdk.config import GatewayConfig
from courier.sdk.engine import Engine

ENVELOPE_BODY = {"status": 0, "message": "ok", "data": {"x": 1}, "extra": "z"}


class GatewayStub:
    """Async handler for ``httpx.MockTransport`` that records every call."""

    def __init__(self):
        self.calls: list[httpx.Request] = []

    def paths(self) -> list[str]:
        return [request.url.path for request in self.calls]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path == "/ok":
            return httpx.Response(200, json=ENVELOPE_BODY)
        if path == "/slow":
            await asyncio.sleep(0.2)
            return httpx.Response(200, json={"status": 0, "message": "slow", "data": None})
        if path == "/text":
            return httpx.Response(200, text="hello")
        if path == "/created":
            return httpx.Response(201, json={"status": 0})
        if path == "/missing":
            return httpx.Response(404, text="not here")
        if path == "/empty":
            return httpx.Response(200, content=b"")
        if path == "/broken":
            return httpx.Response(200, text="not json")
        if path == "/refused":
            raise httpx.ConnectError("connection refused", request=request)
        if path == "/timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if path.startswith("/echo"):
            return httpx.Response(
                200,
                json={
                    "method": request.method,
                    "url": str(request.url),
                    "headers": [[k, v] for k, v in request.headers.multi_items()],
                    "body": request.content.decode("utf-8", "replace"),
                },
            )
        return httpx.Response(500, text="unexpected path")


@pytest.fixture
def gateway_config():
    """Configuration pointing at a fake gateway."""
    return GatewayConfig(
        environment="sit",
        gateway_host="http://gateway.test",
        debug=True,
        default_timeout_ms=1000,
    )


@pytest.fixture
def gateway_stub():
    return GatewayStub()


@pytest.fixture
def mock_transport(gateway_stub):
    return httpx.MockTransport(gateway_stub)


@pytest.fixture
def engine(gateway_config, mock_transport):
    """Engine whose handles all talk to the gateway stub."""
    engine = Engine(gateway_config, transport=mock_transport)
    yield engine
    engine.close()


@pytest.fixture
def client(gateway_config, mock_transport):
    """Client with mocked transport."""
    client = GatewayClient(gateway_config, transport=mock_transport)
    yield client
    client.close()


def echoed(result):
    """Decode the request an ``/echo`` call saw."""
    body = result.body
    return {
        "method": body["method"],
        "url": body["url"],
        "headers": [tuple(pair) for pair in body["headers"]],
        "body": body["body"],
    }


@pytest.fixture
def echo():
    return echoed
