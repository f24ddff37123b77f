#!/usr/bin/env python3
"""
KV-HTTP Server Entry Point

This is the main entry point for starting the KV-HTTP server.

Usage:
    python -m kvhttp.server                        # Default settings (0.0.0.0:4000)
    python -m kvhttp.server --port 8080            # Custom port
    python -m kvhttp.server --host 127.0.0.1       # Custom host
    python -m kvhttp.server --debug                # Enable debug logging
    python -m kvhttp.server --shutdown-timeout 10  # Longer drain on shutdown

Environment Variables:
    KV_HTTP_HOST              - Server bind address
    KV_HTTP_PORT              - Server port
    KV_HTTP_REPORT_INTERVAL   - Seconds between status log lines
    KV_HTTP_SHUTDOWN_TIMEOUT  - Seconds allowed for in-flight requests on shutdown
    KV_HTTP_DEBUG             - Enable debug mode (true/false)
    PORT                      - Overrides --port when set
"""

import argparse
import asyncio
import logging
import os
import sys

from .config.settings import settings
from .lifecycle import LifecycleCoordinator
from .storage.store import KVStore


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="KV-HTTP: In-Memory Key-Value Store over HTTP",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--host",
        type=str,
        default=settings.HOST,
        help="Host address to bind to",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help="Port number to listen on",
    )

    parser.add_argument(
        "--report-interval",
        type=float,
        default=settings.REPORT_INTERVAL,
        help="Seconds between status log lines",
    )

    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=settings.SHUTDOWN_TIMEOUT,
        help="Seconds to let in-flight requests finish on shutdown",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.DEBUG,
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


def main(argv=None) -> None:
    """Main entry point for the server."""
    args = parse_args(argv)

    env_port = os.getenv('PORT')
    if env_port:
        args.port = int(env_port)

    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    logger.info("Starting KV-HTTP server")
    logger.info(f"  Host: {args.host}")
    logger.info(f"  Port: {args.port}")
    logger.info(f"  Report interval: {args.report_interval}s")
    logger.info(f"  Shutdown timeout: {args.shutdown_timeout}s")
    logger.info(f"  Debug: {args.debug}")

    coordinator = LifecycleCoordinator(
        host=args.host,
        port=args.port,
        store=KVStore(),
        report_interval=args.report_interval,
        shutdown_timeout=args.shutdown_timeout,
    )

    exit_code = asyncio.run(coordinator.run())
    if exit_code != 0:
        # Message goes to stderr, exit status 1
        sys.exit(f"kv-http: {coordinator.error}")


if __name__ == "__main__":
    main()
