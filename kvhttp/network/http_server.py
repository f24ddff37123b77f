"""
Async HTTP Server Module

This module implements the asyncio HTTP/1.1 listener for KV-HTTP.

Each client connection is handled in its own coroutine. Requests on a
connection are read one at a time, dispatched to RequestHandlers and
answered in order (keep-alive is supported).

Shutdown is graceful and bounded:
    1. Stop accepting new connections
    2. Close connections that are idle between requests
    3. Let in-flight requests finish, then close their connections
    4. After the deadline, abort whatever is left
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from http import HTTPStatus
from typing import Optional, Set

from .handlers import RequestHandlers
from ..config.settings import settings
from ..protocol.messages import HTTPParseError, HTTPResponse
from ..protocol.parser import HTTPParser
from ..storage.store import KVStore

logger = logging.getLogger(__name__)


class ShutdownTimeoutError(Exception):
    """Raised when in-flight requests do not finish before the deadline."""

    def __init__(self, timeout: float, remaining: int):
        super().__init__(
            f"shutdown deadline of {timeout}s exceeded with {remaining} connection(s) still open"
        )
        self.timeout = timeout
        self.remaining = remaining


class _Connection:
    """Book-keeping for one client connection."""

    def __init__(self, writer: StreamWriter):
        self.writer = writer
        self.busy = False

    def close(self) -> None:
        self.writer.close()

    def abort(self) -> None:
        self.writer.transport.abort()


class KVHTTPServer:
    """
    Asynchronous HTTP server for the KV-HTTP service.

    Usage:
        server = KVHTTPServer(host='0.0.0.0', port=4000)
        await server.start()           # bind; raises OSError on failure
        await server.serve_forever()   # returns once shut down
        ...
        await server.shutdown(timeout=5)

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number (e.g., 4000)
        store: The KVStore instance shared by all connections
        handlers: The RequestHandlers that answer each request
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
            handlers: RequestHandlers = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings, 0 picks a free port)
            store: KVStore instance (creates new one if not provided)
            handlers: Handler set (built around store if not provided)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        if handlers is not None:
            self.handlers = handlers
            self.store = handlers.store
        else:
            self.store = store if store is not None else KVStore()
            self.handlers = RequestHandlers(self.store)
        self.parser = HTTPParser()

        # Server state
        self._server: Optional[asyncio.Server] = None
        self._connections: Set[_Connection] = set()
        self._closing = False
        self._stopped: Optional[asyncio.Event] = None
        self._drained: Optional[asyncio.Event] = None

    async def handle_client(
            self,
            reader: StreamReader,
            writer: StreamWriter
    ) -> None:
        """
        Handle a single client connection.

        Reads requests until the client disconnects, asks to close, sends
        something unparseable, or the server starts shutting down.
        """
        addr = writer.get_extra_info('peername')
        conn = _Connection(writer)
        self._connections.add(conn)
        logger.debug(f"Client connected: {addr}")

        def mark_busy() -> None:
            conn.busy = True

        try:
            while not self._closing:
                try:
                    request = await self.parser.read_request(reader, on_start=mark_busy)
                except HTTPParseError as exc:
                    logger.debug(f"Bad request from {addr}: {exc}")
                    response = HTTPResponse.error(exc.status_code)
                    writer.write(self.parser.format_response(response, keep_alive=False))
                    await writer.drain()
                    break

                if request is None:
                    logger.debug(f"Client disconnected: {addr}")
                    break

                response = self._dispatch(request)
                keep_alive = request.is_keep_alive and not self._closing

                writer.write(self.parser.format_response(response, keep_alive=keep_alive))
                await writer.drain()
                conn.busy = False

                logger.debug(
                    f"{addr} {request.method} {request.path} -> {response.status.value}"
                )
                if not keep_alive:
                    break

        except (ConnectionResetError, BrokenPipeError, asyncio.IncompleteReadError):
            logger.debug(f"Connection lost: {addr}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {addr}: {exc}")
        finally:
            self._connections.discard(conn)
            if self._closing and not self._connections and self._drained is not None:
                self._drained.set()
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    def _dispatch(self, request) -> HTTPResponse:
        """Run the handler, turning unexpected failures into a 500."""
        try:
            return self.handlers.dispatch(request)
        except Exception as exc:
            logger.exception(f"Handler error for {request.method} {request.path}: {exc}")
            return HTTPResponse.error(HTTPStatus.INTERNAL_SERVER_ERROR)

    async def start(self) -> None:
        """
        Bind the listening socket and start accepting connections.

        Raises:
            OSError: If the address cannot be bound
        """
        if self._server is not None:
            return

        self._closing = False
        self._stopped = asyncio.Event()
        self._drained = asyncio.Event()
        self._server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port,
            limit=settings.READ_BUFFER_SIZE,
        )

        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        addrs = ', '.join(str(sock.getsockname()) for sock in sockets)
        logger.info(f"Serving on {addrs}")

    async def serve_forever(self) -> None:
        """
        Wait until the server has been shut down.

        Returns normally once shutdown() has closed the listener.
        """
        if self._stopped is None:
            raise RuntimeError("server not started")
        await self._stopped.wait()

    async def shutdown(self, timeout: float = None) -> None:
        """
        Stop the server gracefully.

        Args:
            timeout: Seconds to wait for in-flight requests (default from
                     settings)

        Raises:
            ShutdownTimeoutError: If connections were still busy at the
                                  deadline; they are aborted first.
        """
        if self._server is None:
            return
        timeout = timeout if timeout is not None else settings.SHUTDOWN_TIMEOUT

        self._closing = True
        self._server.close()

        idle = [conn for conn in self._connections if not conn.busy]
        for conn in idle:
            conn.close()
        if not self._connections:
            self._drained.set()

        open_connections = self.active_connections()
        logger.info(
            f"Draining {open_connections} connection(s), "
            f"{open_connections - len(idle)} in flight"
        )

        try:
            await asyncio.wait_for(self._drained.wait(), timeout)
        except asyncio.TimeoutError:
            remaining = self.active_connections()
            for conn in list(self._connections):
                conn.abort()
            raise ShutdownTimeoutError(timeout, remaining)
        finally:
            self._server = None
            self._stopped.set()

    def is_running(self) -> bool:
        """Check if the server is currently accepting connections."""
        return self._server is not None and not self._closing

    def active_connections(self) -> int:
        """Number of client connections not yet closed."""
        return len(self._connections)
