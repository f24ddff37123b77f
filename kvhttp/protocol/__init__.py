"""Protocol module for KV-HTTP."""

from .messages import HTTPParseError, HTTPRequest, HTTPResponse
from .parser import HTTPParser

__all__ = [
    "HTTPParseError",
    "HTTPRequest",
    "HTTPResponse",
    "HTTPParser",
]
