#!/usr/bin/env python3
"""
Interactive Test Client for KV-HTTP

A simple command-line client for manually testing the KV-HTTP server.

Usage:
    python scripts/client.py                  # Connect to localhost:4000
    python scripts/client.py --host 1.2.3.4   # Connect to specific host
    python scripts/client.py --port 8080      # Connect to specific port

Commands:
    PUT <key> <value> [<key> <value> ...]   - POST /data with the given pairs
    GET                                     - GET /data
    DELETE <key>                            - DELETE /data/<key>
    STATS                                   - GET /stats
    help                                    - Show this help
    exit                                    - Exit client
"""

import argparse
import http.client
import json
import sys
from urllib.parse import quote

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default


class KVHTTPClient:
    """Small HTTP client for KV-HTTP."""

    def __init__(self, host: str, port: int, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.conn = None

    def connect(self) -> None:
        self.conn = http.client.HTTPConnection(self.host, self.port, timeout=self.timeout)

    def disconnect(self):
        """Disconnect from the server."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def request(self, method: str, path: str, payload: dict = None) -> str:
        """Send a request and format the response as one line."""
        if not self.conn:
            self.connect()

        body = json.dumps(payload) if payload is not None else None
        headers = {"Content-Type": "application/json"} if body is not None else {}

        try:
            self.conn.request(method, path, body=body, headers=headers)
            response = self.conn.getresponse()
            text = response.read().decode("utf-8").strip()
        except (OSError, http.client.HTTPException) as e:
            # Drop the connection so the next request reconnects
            self.disconnect()
            return f"ERROR: {e}"

        line = f"{response.status} {response.reason}"
        return f"{line} {text}" if text else line

    def put(self, pairs: dict) -> str:
        return self.request("POST", "/data", pairs)

    def get_all(self) -> str:
        return self.request("GET", "/data")

    def delete(self, key: str) -> str:
        return self.request("DELETE", f"/data/{quote(key, safe='')}")

    def stats(self) -> str:
        return self.request("GET", "/stats")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def print_help():
    """Print help message."""
    print("""
KV-HTTP Commands:
-----------------
  PUT <key> <value> [...]   Insert one or more pairs (rejected if any key exists)
  GET                       Show every stored pair
  DELETE <key>              Delete a key
  STATS                     Show the request counter

Client Commands:
----------------
  help                      Show this help message
  exit                      Exit the client

Examples:
---------
  PUT a 1 b 2               POST {"a": "1", "b": "2"}
  GET                       GET /data
  DELETE a                  DELETE /data/a
""")


def execute(client: KVHTTPClient, line: str) -> str:
    """Translate one input line into a request."""
    parts = line.split()
    command, args = parts[0].upper(), parts[1:]

    if command == "PUT":
        if not args or len(args) % 2:
            return "usage: PUT <key> <value> [<key> <value> ...]"
        return client.put(dict(zip(args[::2], args[1::2])))
    if command == "GET" and not args:
        return client.get_all()
    if command == "DELETE" and len(args) == 1:
        return client.delete(args[0])
    if command == "STATS" and not args:
        return client.stats()
    return "unknown command, type 'help'"


def main():
    parser = argparse.ArgumentParser(
        description="Interactive test client for KV-HTTP"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="localhost",
        help="Server host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=4000,
        help="Server port (default: 4000)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=5.0,
        help="Socket timeout in seconds (default: 5.0)"
    )

    args = parser.parse_args()

    print("KV-HTTP Client")
    print("==============")
    print(f"Server: http://{args.host}:{args.port}")

    client = KVHTTPClient(args.host, args.port, args.timeout)
    response = client.stats()
    if response.startswith("ERROR"):
        print(f"Failed to reach server: {response}")
        print(f"  Try: python -m kvhttp.server --port {args.port}")
        sys.exit(1)

    print("Connected! Type 'help' for commands.\n")

    try:
        while True:
            try:
                command = input(">>> ").strip()

                if not command:
                    continue

                lower_cmd = command.lower()

                if lower_cmd == "help":
                    print_help()
                    continue

                if lower_cmd in ("exit", "quit"):
                    print("Goodbye!")
                    break

                print(execute(client, command))

            except EOFError:
                print("\nGoodbye!")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
