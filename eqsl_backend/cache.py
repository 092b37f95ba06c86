"""
In-process cache for the card listing.

One instance is owned by the app and handed to the catalog; every write
to the store must call ``invalidate``.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from qsl_shared.types import Card


class CardListCache:
    """Holds the most recent card listing for ``ttl_seconds``."""

    def __init__(
        self, ttl_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cards: Optional[list[Card]] = None
        self._stored_at = 0.0
        self._generation = 0

    @property
    def generation(self) -> int:
        """Counter bumped on every invalidation."""
        with self._lock:
            return self._generation

    def get(self) -> Optional[list[Card]]:
        """Return a copy of the cached listing, or None when empty or stale."""
        if self.ttl_seconds <= 0:
            return None
        with self._lock:
            if self._cards is None:
                return None
            if self._clock() - self._stored_at > self.ttl_seconds:
                self._cards = None
                return None
            return list(self._cards)

    def set(self, cards: list[Card], generation: Optional[int] = None) -> None:
        """
        Store a listing.

        When `generation` is given and a write invalidated the cache since it
        was read, the listing is already outdated and is dropped.
        """
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            if generation is not None and generation != self._generation:
                return
            self._cards = list(cards)
            self._stored_at = self._clock()

    def invalidate(self) -> None:
        with self._lock:
            self._cards = None
            self._generation += 1
