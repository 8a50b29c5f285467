from __future__ import annotations

import time
from typing import Callable, Generic, Optional, TypeVar

from storefront.config import settings

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    Single-value read-through cache.

    A value is served while `now - fetched_at < ttl`. `clear()` is the manual
    invalidation hook called after writes to the underlying collection.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = float(settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self._clock = clock
        self._value: Optional[T] = None
        self._fetched_at = 0.0

    def is_fresh(self) -> bool:
        return self._value is not None and (self._clock() - self._fetched_at) < self.ttl

    def get(self) -> Optional[T]:
        if self.is_fresh():
            return self._value
        return None

    def set(self, value: T) -> T:
        self._value = value
        self._fetched_at = self._clock()
        return value

    def clear(self) -> None:
        self._value = None
        self._fetched_at = 0.0

    def get_or_fetch(self, fetch: Callable[[], T]) -> T:
        cached = self.get()
        if cached is not None:
            return cached
        return self.set(fetch())
