"""
Lifecycle Coordinator

Owns process start and stop: runs the HTTP listener and the status
reporter side by side and turns SIGINT/SIGTERM into a graceful, bounded
shutdown.

    STARTING -> RUNNING -> SHUTTING_DOWN -> STOPPED

run() returns the exit code for the process: 0 after a clean shutdown,
1 if the listener could not start, stopped on its own, or could not be
drained before the deadline.
"""

import asyncio
import logging
import signal
import sys
from enum import Enum
from typing import Optional

from .config.settings import settings
from .network.handlers import RequestHandlers
from .network.http_server import KVHTTPServer
from .reporter import StatusReporter
from .storage.store import KVStore

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleState(Enum):
    """States of the server process."""
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class LifecycleCoordinator:
    """
    Starts the listener and reporter, waits for a shutdown trigger and
    stops both.

    Usage:
        coordinator = LifecycleCoordinator(host='0.0.0.0', port=4000)
        exit_code = asyncio.run(coordinator.run())

    Attributes:
        store: The KVStore shared by the handlers and the reporter
        server: The KVHTTPServer
        reporter: The StatusReporter
        state: Current LifecycleState
        error: Description of the failure when run() returned non-zero
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
            report_interval: float = None,
            shutdown_timeout: float = None,
            install_signal_handlers: bool = True,
    ):
        self.store = store if store is not None else KVStore()
        self.server = KVHTTPServer(
            host=host,
            port=port,
            handlers=RequestHandlers(self.store),
        )
        self.reporter = StatusReporter(self.store, interval=report_interval)
        self.shutdown_timeout = (
            shutdown_timeout if shutdown_timeout is not None else settings.SHUTDOWN_TIMEOUT
        )
        self.install_signal_handlers = install_signal_handlers

        self.state = LifecycleState.STARTING
        self.error: Optional[str] = None
        self._shutdown_requested = asyncio.Event()
        self._started = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def request_shutdown(self, sig: signal.Signals = None) -> None:
        """Begin graceful shutdown. Safe to call more than once."""
        if sig is not None:
            logger.info(f"Received signal {sig.name}, initiating shutdown...")
        else:
            logger.info("Shutdown requested")
        self._shutdown_requested.set()

    async def wait_started(self) -> None:
        """Wait until the listener is bound, or until run() has given up."""
        await self._started.wait()

    async def run(self) -> int:
        """
        Run until shutdown and return the process exit code.

        The reporter stop and the listener drain are started together and
        the coordinator waits for both before reporting STOPPED.
        """
        self._loop = asyncio.get_running_loop()
        self.state = LifecycleState.STARTING

        stop_reporter = asyncio.Event()
        self._add_signal_handlers()
        reporter_task = asyncio.create_task(self.reporter.run(stop_reporter))
        serve_task = None
        shutdown_task = None

        try:
            try:
                await self.server.start()
            except OSError as exc:
                return self._fail(f"ListenAndServe error: {exc}")

            self.state = LifecycleState.RUNNING
            self._started.set()
            logger.info(f"Server running on http://localhost:{self.server.port}")

            serve_task = asyncio.create_task(self.server.serve_forever())
            shutdown_task = asyncio.create_task(self._shutdown_requested.wait())
            await asyncio.wait(
                {serve_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )

            if not self._shutdown_requested.is_set():
                exc = serve_task.exception()
                return self._fail(f"ListenAndServe error: {exc or 'listener stopped'}")

            self.state = LifecycleState.SHUTTING_DOWN
            logger.info("Gracefully shutting down...")
            stop_reporter.set()
            drain, _ = await asyncio.gather(
                self.server.shutdown(self.shutdown_timeout),
                reporter_task,
                return_exceptions=True,
            )
            if isinstance(drain, Exception):
                return self._fail(f"Graceful shutdown error: {drain}")

            logger.info("Server shutdown complete")
            return 0

        finally:
            stop_reporter.set()
            for task in (shutdown_task, serve_task):
                if task is not None and not task.done():
                    task.cancel()
            await asyncio.gather(
                *(t for t in (reporter_task, serve_task, shutdown_task) if t is not None),
                return_exceptions=True,
            )
            if self.server.is_running():
                await self.server.shutdown(self.shutdown_timeout)
            self._remove_signal_handlers()
            self.state = LifecycleState.STOPPED
            self._started.set()

    def _fail(self, message: str) -> int:
        self.error = message
        logger.error(message)
        return 1

    def _add_signal_handlers(self) -> None:
        # Signal handlers on the loop are Unix only
        if not self.install_signal_handlers or sys.platform == 'win32':
            return
        for sig in SHUTDOWN_SIGNALS:
            self._loop.add_signal_handler(sig, self.request_shutdown, sig)

    def _remove_signal_handlers(self) -> None:
        if not self.install_signal_handlers or sys.platform == 'win32':
            return
        for sig in SHUTDOWN_SIGNALS:
            self._loop.remove_signal_handler(sig)
