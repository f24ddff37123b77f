"""
HTTP Request Handlers

Translates HTTP requests into KVStore operations and serializes the
results. Handlers receive the store they operate on explicitly; there is
no module-level state.

Routes:
    POST   /data         insert a JSON object of string -> string
    GET    /data         dump every entry as a JSON object
    DELETE /data/{key}   remove one key
    *      /stats        {"requests": N}
"""

import json
import logging
import re
from dataclasses import dataclass
from http import HTTPStatus
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from ..protocol.messages import HTTPRequest, HTTPResponse
from ..storage.store import KVStore

logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest, Dict[str, str]], HTTPResponse]


@dataclass
class Route:
    """
    A single registered route.

    Attributes:
        method: Required method, or None to accept any method
        pattern: Compiled regex for the path, with named groups for {params}
        handler: Callable invoked with the request and the path params
    """
    method: Optional[str]
    pattern: "re.Pattern"
    handler: Handler


class Router:
    """
    Method + path dispatcher.

    Path templates use {name} for a single non-empty segment, e.g.
    "/data/{key}". Captured segments are percent-decoded before they reach
    the handler.
    """

    PARAM_PATTERN = re.compile(r"\{(\w+)\}")

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(self, method: Optional[str], path: str, handler: Handler) -> None:
        """Register handler for method (None = any) on path."""
        self._routes.append(Route(method, self._compile(path), handler))

    def _compile(self, path: str) -> "re.Pattern":
        regex = ""
        last = 0
        for match in self.PARAM_PATTERN.finditer(path):
            regex += re.escape(path[last:match.start()])
            regex += f"(?P<{match.group(1)}>[^/]+)"
            last = match.end()
        regex += re.escape(path[last:])
        return re.compile(f"^{regex}$")

    def match(self, method: str, path: str) -> Tuple[Optional[Route], Dict[str, str], List[str]]:
        """
        Find the route for a request.

        Returns:
            (route, params, allowed_methods). route is None when nothing
            matched; allowed_methods then lists the methods registered for
            the path, empty if the path itself is unknown.
        """
        allowed: List[str] = []
        for route in self._routes:
            found = route.pattern.match(path)
            if not found:
                continue
            if route.method is None or route.method == method:
                params = {name: unquote(value) for name, value in found.groupdict().items()}
                return route, params, []
            allowed.append(route.method)
        return None, {}, allowed

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """Route a request to its handler and return the handler's response."""
        route, params, allowed = self.match(request.method, request.path)
        if route is not None:
            return route.handler(request, params)

        if allowed:
            response = HTTPResponse.error(HTTPStatus.METHOD_NOT_ALLOWED)
            response.headers["Allow"] = ", ".join(sorted(set(allowed)))
            return response
        return HTTPResponse.error(HTTPStatus.NOT_FOUND, "404 page not found")


class RequestHandlers:
    """
    The handler set for the key-value API.

    Every handler bumps the store's request counter exactly once, first
    thing, so failed requests are counted as well.

    Usage:
        handlers = RequestHandlers(KVStore())
        response = handlers.dispatch(request)
    """

    def __init__(self, store: KVStore):
        self.store = store
        self.router = Router()
        self.router.add_route("POST", "/data", self.handle_post_data)
        self.router.add_route("GET", "/data", self.handle_get_data)
        self.router.add_route("DELETE", "/data/{key}", self.handle_delete_data)
        self.router.add_route(None, "/stats", self.handle_get_stats)

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        return self.router.dispatch(request)

    def handle_post_data(self, request: HTTPRequest, params: Dict[str, str]) -> HTTPResponse:
        """Insert every entry of the JSON body, or none of them."""
        self.store.increment_requests()

        entries = decode_entries(request.body)
        if entries is None:
            return HTTPResponse.error(HTTPStatus.BAD_REQUEST, "Invalid JSON")

        conflicts = self.store.insert(entries)
        if conflicts:
            logger.debug(f"Rejected insert, duplicate keys: {conflicts}")
            return HTTPResponse.error(
                HTTPStatus.BAD_REQUEST,
                f"Duplicate entry for key(s): {', '.join(conflicts)}",
            )

        return HTTPResponse.empty(HTTPStatus.CREATED)

    def handle_get_data(self, request: HTTPRequest, params: Dict[str, str]) -> HTTPResponse:
        """Return a snapshot of the whole store."""
        self.store.increment_requests()

        try:
            return HTTPResponse.json(self.store.get_all())
        except (TypeError, ValueError) as exc:
            logger.error(f"Failed to encode data: {exc}")
            return HTTPResponse.error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to encode data")

    def handle_get_stats(self, request: HTTPRequest, params: Dict[str, str]) -> HTTPResponse:
        """Report how many requests were handled before this one."""
        count = self.store.increment_requests() - 1

        try:
            return HTTPResponse.json({"requests": count})
        except (TypeError, ValueError) as exc:
            logger.error(f"Failed to encode stats: {exc}")
            return HTTPResponse.error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to encode stats")

    def handle_delete_data(self, request: HTTPRequest, params: Dict[str, str]) -> HTTPResponse:
        self.store.increment_requests()

        if self.store.delete(params["key"]):
            return HTTPResponse.empty(HTTPStatus.OK)
        return HTTPResponse.error(HTTPStatus.NOT_FOUND, "Key not found")


def decode_entries(body: bytes) -> Optional[Dict[str, str]]:
    """
    Decode a request body as a flat JSON object of strings.

    Returns:
        The decoded mapping, or None if the body is not valid UTF-8 JSON,
        is not an object, or holds a non-string value.

    Examples:
        >>> decode_entries(b'{"a": "1"}')
        {'a': '1'}
        >>> decode_entries(b'{"a": 1}') is None
        True
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError):
        return None

    if not isinstance(data, dict):
        return None
    if not all(isinstance(value, str) for value in data.values()):
        return None
    return data
