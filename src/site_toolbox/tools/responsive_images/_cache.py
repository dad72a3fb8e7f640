"""Cache capability passed explicitly into the image functions."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class Cache(Protocol):
    """Key/value store supplied by the host."""

    def get(self, key: str) -> Any | None:
        """Return the stored value, or ``None`` when absent."""

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""


class MemoryCache:
    """Thread-safe in-process ``Cache`` implementation."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data


def cachified_process(cache: Cache | None, key: str, process: Callable[[], T]) -> T:
    """Return the cached value for *key*, computing and storing it on a miss.

    Without a cache the value is computed on every call.  ``None`` results
    are never stored, so failures are retried next time.
    """
    if cache is None:
        return process()

    cached = cache.get(key)
    if cached is not None:
        return cached

    result = process()
    if result is not None:
        cache.set(key, result)
    return result
