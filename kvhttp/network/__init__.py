"""Network module for KV-HTTP."""

from .handlers import RequestHandlers, Router
from .http_server import KVHTTPServer, ShutdownTimeoutError

__all__ = [
    "KVHTTPServer",
    "RequestHandlers",
    "Router",
    "ShutdownTimeoutError",
]
