"""
Key-Value Store Module

This module implements the shared in-memory state of the server: the
key-value mapping and the request counter.

Every operation acquires the same lock for its full duration, so each
insert, delete, snapshot and counter update is atomic with respect to
all others.
"""

import threading
from typing import Dict, List, Optional, Tuple


class KVStore:
    """
    Lock-guarded in-memory key-value store with a request counter.

    The mapping and the counter share one mutex. There is no reader/writer
    split: reads are serialized with writes and with each other.

    Internal Storage:
        Plain dict, key -> value. Iteration order is not part of the
        contract.

    Usage:
        store = KVStore()
        conflicts = store.insert({"a": "1"})   # [] on success
        store.get_all()                        # {"a": "1"}
        store.delete("a")                      # True
    """

    def __init__(self):
        """Initialize an empty store with a zeroed request counter."""
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}
        self._requests = 0

    def insert(self, entries: Dict[str, str]) -> List[str]:
        """
        Insert a batch of key-value pairs, all or nothing.

        Every key is checked against the existing keys before anything is
        written. If any of them is already present the store is left
        untouched.

        Args:
            entries: Mapping of new keys to their values

        Returns:
            Sorted list of keys that already exist. An empty list means the
            whole batch was inserted.
        """
        with self._lock:
            conflicts = sorted(key for key in entries if key in self._data)
            if conflicts:
                return conflicts
            self._data.update(entries)
            return []

    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if absent."""
        with self._lock:
            return self._data.get(key)

    def exists(self, key: str) -> bool:
        """Check if a key exists."""
        with self._lock:
            return key in self._data

    def get_all(self) -> Dict[str, str]:
        """
        Return an independent copy of the whole mapping.

        The copy is taken under the lock, so concurrent writers are either
        fully visible in it or not at all.
        """
        with self._lock:
            return dict(self._data)

    def delete(self, key: str) -> bool:
        """
        Delete a key-value pair.

        Args:
            key: The key to delete

        Returns:
            True if key was deleted, False if key didn't exist
        """
        with self._lock:
            if key not in self._data:
                return False
            del self._data[key]
            return True

    def increment_requests(self) -> int:
        """Increment the request counter and return the updated value."""
        with self._lock:
            self._requests += 1
            return self._requests

    def size(self) -> int:
        """Get the current number of keys in the store."""
        with self._lock:
            return len(self._data)

    def request_count(self) -> int:
        """Get the number of requests handled so far."""
        with self._lock:
            return self._requests

    def snapshot_stats(self) -> Tuple[int, int]:
        """
        Read the item count and the request count in one lock acquisition.

        Returns:
            (size, request_count) as of the same instant
        """
        with self._lock:
            return len(self._data), self._requests
