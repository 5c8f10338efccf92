"""Per-key lock registry for serializing read-modify-write updates."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ..core.types import Key


class _Slot:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class KeyLocks:
    """One lock per integer key, created on demand.

    Slots are reference counted and dropped once no thread holds or waits
    on them, so the registry only grows with the number of busy keys.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._slots: dict[Key, _Slot] = {}

    @contextmanager
    def hold(self, key: Key) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.holders += 1

        slot.lock.acquire()
        try:
            yield
        finally:
            slot.lock.release()
            with self._guard:
                slot.holders -= 1
                if slot.holders == 0:
                    del self._slots[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._slots)
