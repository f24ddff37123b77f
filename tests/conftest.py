"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import json
import socket
from contextlib import closing
from dataclasses import dataclass, field
from typing import AsyncGenerator, Dict, Optional

import pytest
import pytest_asyncio

from kvhttp.network.handlers import RequestHandlers
from kvhttp.network.http_server import KVHTTPServer
from kvhttp.protocol.messages import HTTPRequest
from kvhttp.protocol.parser import HTTPParser
from kvhttp.storage.store import KVStore


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Store / Handler Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh, empty KVStore."""
    return KVStore()


@pytest.fixture
def handlers(store: KVStore) -> RequestHandlers:
    """Create a handler set around the store fixture."""
    return RequestHandlers(store)


@pytest.fixture
def parser() -> HTTPParser:
    """Create an HTTPParser instance."""
    return HTTPParser()


def make_request(method: str, path: str, body=None, headers: Dict[str, str] = None) -> HTTPRequest:
    """Build an HTTPRequest; dict bodies are JSON encoded."""
    if isinstance(body, (dict, list)):
        body = json.dumps(body).encode()
    elif isinstance(body, str):
        body = body.encode()
    return HTTPRequest(
        method=method,
        path=path,
        headers=dict(headers or {}),
        body=body or b"",
    )


@pytest.fixture
def request_factory():
    """Factory fixture returning make_request."""
    return make_request


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest_asyncio.fixture
async def server(server_port: int, store: KVStore) -> AsyncGenerator[KVHTTPServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a KVHTTPServer on a free port around the store fixture
    2. Binds it
    3. Yields the server for testing
    4. Shuts it down after the test
    """
    srv = KVHTTPServer(host='127.0.0.1', port=server_port, store=store)
    await srv.start()

    yield srv

    await srv.shutdown(timeout=1.0)


# ============================================================================
# Client Fixtures
# ============================================================================

@dataclass
class RawResponse:
    """A response read off the wire by AsyncHTTPClient."""
    status: int
    reason: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self):
        return json.loads(self.body.decode())

    @property
    def text(self) -> str:
        return self.body.decode()


async def read_response(reader: asyncio.StreamReader) -> Optional[RawResponse]:
    """Read one HTTP response; None if the server closed the connection."""
    status_line = await reader.readline()
    if not status_line:
        return None

    _, code, reason = status_line.decode().rstrip("\r\n").split(" ", 2)
    headers = {}
    while True:
        line = (await reader.readline()).decode().rstrip("\r\n")
        if not line:
            break
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    length = int(headers.get("content-length", "0"))
    body = await reader.readexactly(length) if length else b""
    return RawResponse(int(code), reason, headers, body)


class AsyncHTTPClient:
    """
    Helper class for testing server interactions.

    Keeps one keep-alive connection open and speaks raw HTTP/1.1 on it.

    Usage:
        async with AsyncHTTPClient('127.0.0.1', 4000) as client:
            response = await client.request("POST", "/data", {"a": "1"})
            assert response.status == 201
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None

    async def connect(self) -> None:
        """Establish connection to server."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def write(self, data: bytes) -> None:
        """Write raw bytes without waiting for a response."""
        self.writer.write(data)
        await self.writer.drain()

    async def read(self) -> Optional[RawResponse]:
        """Read one response off the connection."""
        return await read_response(self.reader)

    async def send_raw(self, data: bytes) -> Optional[RawResponse]:
        """Write raw bytes and read back one response."""
        await self.write(data)
        return await self.read()

    async def request(
            self,
            method: str,
            path: str,
            body=None,
            headers: Dict[str, str] = None,
    ) -> Optional[RawResponse]:
        """
        Send a request and receive the response.

        Args:
            method: HTTP method
            path: Request target
            body: dict/list (sent as JSON), str or bytes
            headers: Extra request headers

        Returns:
            The parsed response, or None if the connection was closed
        """
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode()
        elif isinstance(body, str):
            body = body.encode()
        body = body or b""

        lines = [f"{method} {path} HTTP/1.1", f"Host: {self.host}:{self.port}"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        if body or method in ("POST", "PUT"):
            lines.append(f"Content-Length: {len(body)}")

        raw = ("\r\n".join(lines) + "\r\n\r\n").encode() + body
        return await self.send_raw(raw)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server_port: int):
    """
    Factory fixture to create test clients.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.request("GET", "/data")
    """
    def factory(port: int = None) -> AsyncHTTPClient:
        return AsyncHTTPClient('127.0.0.1', port or server_port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
