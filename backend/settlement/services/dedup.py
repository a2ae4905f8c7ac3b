"""Bounded in-memory de-duplication of processor event deliveries."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict


class EventDeduplicator:
    """Remembers recently seen event ids for ``window_seconds``.

    Advisory only: a restart or a second instance forgets everything, so every
    downstream handler stays idempotent on its own business keys. Instances are
    created by whoever builds the reconciler and can be swapped for a shared
    store exposing the same three methods.
    """

    def __init__(
        self,
        window_seconds: float = 300,
        high_water: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = float(window_seconds)
        self.high_water = int(high_water)
        self._clock = clock
        self._seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def is_duplicate(self, event_id: str) -> bool:
        """True if ``event_id`` was seen within the window; records it otherwise."""
        now = self._clock()
        with self._lock:
            seen_at = self._seen.get(event_id)
            if seen_at is not None and now - seen_at < self.window_seconds:
                return True
            self._seen[event_id] = now
            if len(self._seen) > self.high_water:
                self._evict(now)
            return False

    def forget(self, event_id: str) -> None:
        """Drop ``event_id`` so a redelivery after a failed attempt is processed."""
        with self._lock:
            self._seen.pop(event_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        expired = [k for k, t in self._seen.items() if t <= cutoff]
        for k in expired:
            del self._seen[k]
