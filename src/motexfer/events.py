from __future__ import annotations

import queue
from dataclasses import dataclass
from typing import Hashable

_CLOSED = object()
_WAKE = object()


@dataclass(frozen=True, slots=True)
class MoteEvent:
    sender_id: Hashable
    payload: str

    def is_from(self, sender_id: Hashable) -> bool:
        return self.sender_id == sender_id


class EventQueue:
    """Thread-safe stream of mote events.

    Links publish from their reader threads; a driver blocks in
    ``next_event`` until something arrives, the timeout expires or the
    queue is closed.
    """

    def __init__(self) -> None:
        self._q: queue.Queue = queue.Queue()
        self.closed = False

    def publish(self, event: MoteEvent) -> None:
        if self.closed:
            return
        self._q.put(event)

    def wake(self) -> None:
        """Make a blocked ``next_event`` return None without closing the queue."""
        self._q.put(_WAKE)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._q.put(_CLOSED)

    def next_event(self, timeout_s: float | None = None) -> MoteEvent | None:
        """Return the next event, or None once the queue is closed or woken.

        Raises TimeoutError when ``timeout_s`` elapses first.
        """
        try:
            item = self._q.get(timeout=timeout_s)
        except queue.Empty:
            raise TimeoutError(f"no event within {timeout_s:.3f}s") from None
        if item is _WAKE:
            return None
        if item is _CLOSED:
            # leave the marker for any other reader
            self._q.put(_CLOSED)
            return None
        return item
