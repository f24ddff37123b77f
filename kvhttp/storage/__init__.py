"""Storage module for KV-HTTP."""

from .store import KVStore

__all__ = ["KVStore"]
