"""
HTTP Message Definitions

This module defines the data structures for parsed HTTP requests and the
responses produced by the handlers.
"""

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, Optional


JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


class HTTPParseError(Exception):
    """
    Raised when an HTTP request cannot be parsed.

    Carries the status code to answer the client with before the
    connection is closed.
    """

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status_code = HTTPStatus(status_code)


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Attributes:
        method: Request method, upper case (GET, POST, DELETE, ...)
        path: Path component of the request target, still percent-encoded
        version: Protocol version string (HTTP/1.0 or HTTP/1.1)
        headers: Header fields with lower-cased names
        body: Raw request body
    """
    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if the connection should stay open after this request.

        HTTP/1.1 keeps alive unless "Connection: close" is sent,
        HTTP/1.0 closes unless "Connection: keep-alive" is sent.
        """
        connection = self.get_header("connection").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be written back to the client.

    Attributes:
        status: HTTP status code
        headers: Extra response headers (Content-Length is added on write)
        body: Response body bytes
    """
    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_line(self) -> str:
        return f"{self.status.value} {self.status.phrase}"

    @classmethod
    def empty(cls, status: HTTPStatus = HTTPStatus.OK) -> "HTTPResponse":
        """Create a response with no body."""
        return cls(status=status)

    @classmethod
    def json(cls, data: Any, status: HTTPStatus = HTTPStatus.OK) -> "HTTPResponse":
        """
        Create a JSON response.

        Keys are sorted and the document is terminated by a newline.

        Raises:
            TypeError, ValueError: If data cannot be encoded
        """
        body = json.dumps(data, sort_keys=True, separators=(",", ":")) + "\n"
        return cls(
            status=status,
            headers={"Content-Type": JSON_CONTENT_TYPE},
            body=body.encode("utf-8"),
        )

    @classmethod
    def error(cls, status: HTTPStatus, message: Optional[str] = None) -> "HTTPResponse":
        """Create a short plain-text error response."""
        text = message if message is not None else status.phrase
        return cls(
            status=status,
            headers={
                "Content-Type": TEXT_CONTENT_TYPE,
                "X-Content-Type-Options": "nosniff",
            },
            body=(text + "\n").encode("utf-8"),
        )
