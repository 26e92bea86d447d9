"""Append-only, thread-safe buffer of emitted events.

The cache has no size cap. While delivery is suspended it grows with event
volume; sessions are short-lived and the size is exported as a gauge and
through ``/api/status``.
"""

import threading
from collections.abc import Iterator

from simrelay.schemas.events import Event


class EventCache:
    """Ordered event buffer written by emitters and drained by flushes."""

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._lock = threading.Lock()

    def append(self, event: Event) -> int:
        """Append an event; safe from any thread, never blocks on I/O.

        Returns:
            Cache size after the append
        """
        with self._lock:
            self._events.append(event)
            return len(self._events)

    def snapshot_and_clear(self) -> list[Event]:
        """Atomically capture the contents in insertion order and empty the cache.

        Appends racing with a flush land either in the captured batch or in
        the emptied cache, never in neither.
        """
        with self._lock:
            captured = self._events
            self._events = []
        return captured

    def snapshot_for_read(self) -> list[Event]:
        """Non-destructive copy of the contents in insertion order."""
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.snapshot_for_read())
