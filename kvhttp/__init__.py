"""
KV-HTTP: In-Memory Key-Value Store over HTTP

A small in-memory key-value store served over HTTP/1.1, built with
Python asyncio. State lives in one lock-guarded mapping and is lost when
the process exits.
"""

__version__ = "1.0.0"
