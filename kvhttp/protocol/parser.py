"""
HTTP Parser Module

This module reads HTTP/1.x requests off an asyncio stream and formats
responses into bytes ready to be written to the socket.

Supported subset:
    - Request line:  <METHOD> <target> HTTP/1.0|HTTP/1.1
    - Header fields: <name>: <value>
    - Body framed by Content-Length (Transfer-Encoding is rejected)
"""

import re
from asyncio import StreamReader
from email.utils import formatdate
from http import HTTPStatus
from typing import Callable, Dict, Optional
from urllib.parse import urlsplit

from .messages import HTTPParseError, HTTPRequest, HTTPResponse
from ..config.settings import settings


class HTTPParser:
    """
    Parser for HTTP/1.x requests arriving on an asyncio StreamReader.

    Constraints:
        - Body: at most max_body_size bytes
        - Headers: at most max_headers fields
        - A single line may not exceed the StreamReader limit
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) (\S+) (HTTP/\d\.\d)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")
    SERVER_NAME = "kv-http"

    def __init__(self, max_body_size: int = None, max_headers: int = 100):
        """Initialize the parser with limits from settings."""
        self.max_body_size = (
            max_body_size if max_body_size is not None else settings.MAX_BODY_SIZE
        )
        self.max_headers = max_headers

    async def read_request(
            self,
            reader: StreamReader,
            on_start: Optional[Callable[[], None]] = None,
    ) -> Optional[HTTPRequest]:
        """
        Read one request from the stream.

        Args:
            reader: Stream connected to the client
            on_start: Called once the request line has arrived, before the
                      rest of the request is read

        Returns:
            The parsed HTTPRequest, or None if the client closed the
            connection before sending a request line.

        Raises:
            HTTPParseError: If the request is malformed
            asyncio.IncompleteReadError: If the client disconnects mid-body
        """
        line = await self._read_line(reader)
        # Tolerate stray CRLFs between pipelined requests
        while line == "":
            line = await self._read_line(reader)
        if line is None:
            return None

        if on_start is not None:
            on_start()

        method, path, version = self._parse_request_line(line)
        headers = await self._read_headers(reader)

        if "transfer-encoding" in headers:
            raise HTTPParseError(
                "Transfer-Encoding not supported",
                status_code=HTTPStatus.NOT_IMPLEMENTED,
            )

        length = self._parse_content_length(headers)
        body = await reader.readexactly(length) if length else b""

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
        )

    async def _read_line(self, reader: StreamReader) -> Optional[str]:
        """Read a CRLF terminated line; None on EOF."""
        try:
            data = await reader.readline()
        except ValueError:
            # StreamReader limit overrun
            raise HTTPParseError(
                "Header line too long",
                status_code=HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
            )
        if not data or not data.endswith(b"\n"):
            return None
        return data.decode("latin-1").rstrip("\r\n")

    def _parse_request_line(self, line: str):
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()
        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=HTTPStatus.HTTP_VERSION_NOT_SUPPORTED,
            )

        path = urlsplit(target).path
        if not path.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {target!r}")
        return method, path, version

    async def _read_headers(self, reader: StreamReader) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        while True:
            line = await self._read_line(reader)
            if line is None:
                raise HTTPParseError("Incomplete headers")
            if line == "":
                return headers

            if len(headers) >= self.max_headers:
                raise HTTPParseError(
                    "Too many headers",
                    status_code=HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
                )

            name, sep, value = line.partition(":")
            name = name.strip().lower()
            if not sep or not name or " " in name:
                raise HTTPParseError(f"Invalid header line: {line!r}")

            value = value.strip()
            if name in headers:
                if name == "content-length" and headers[name] != value:
                    raise HTTPParseError("Conflicting Content-Length headers")
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value

    def _parse_content_length(self, headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0

        # Repeated identical headers were joined with ", "
        raw = raw.split(",")[0].strip()
        if not (raw.isascii() and raw.isdigit()):
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")

        length = int(raw)
        if length > self.max_body_size:
            raise HTTPParseError(
                f"Request body too large: {length} bytes",
                status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            )
        return length

    def format_response(self, response: HTTPResponse, keep_alive: bool = True) -> bytes:
        """
        Serialize a response into raw HTTP/1.1 bytes.

        Args:
            response: HTTPResponse to serialize
            keep_alive: Whether the connection stays open afterwards

        Returns:
            Status line, headers and body as bytes.

        Examples:
            >>> parser = HTTPParser()
            >>> raw = parser.format_response(HTTPResponse.empty(HTTPStatus.CREATED))
            >>> raw.startswith(b"HTTP/1.1 201 Created\\r\\n")
            True
        """
        lines = [f"HTTP/1.1 {response.status_line}"]

        headers = {
            "Date": formatdate(usegmt=True),
            "Server": self.SERVER_NAME,
        }
        headers.update(response.headers)
        headers["Content-Length"] = str(len(response.body))
        if not keep_alive:
            headers["Connection"] = "close"

        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1") + response.body
