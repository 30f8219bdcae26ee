"""Monotonic number source for surrogate keys minted during an import."""

from __future__ import annotations

import threading


class SequenceGenerator:
    """Hands out increasing integers, never below ``floor``.

    ``observe`` moves the counter past numbers that already exist
    (persisted maxima, or values supplied by uploaded rows) so minted
    numbers never collide with them.
    """

    def __init__(self, floor: int = 1):
        self._next = floor
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def observe(self, value) -> None:
        if value is None:
            return
        with self._lock:
            if int(value) >= self._next:
                self._next = int(value) + 1

    def peek(self) -> int:
        return self._next
