"""In-memory sorted partition.

Uses sortedcontainers.SortedDict so iteration follows byte order of keys.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from sortedcontainers import SortedDict

from ..core.errors import StoreError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..core.types import Entry, RawKey, RawValue

logger = logging.getLogger(__name__)


class MemoryPartition:
    """Named partition held entirely in memory.

    Args:
        name: Partition name

    Invariants:
        - Keys are always maintained in sorted byte order
        - iter_items() works on a copy taken at call time
        - Every operation after close() raises StoreError
    """

    def __init__(self, name: str = "memory"):
        self.name = name
        self._data: SortedDict = SortedDict()
        self._lock = threading.Lock()
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError(f"Partition {self.name!r} is closed")

    def get(self, key: RawKey) -> RawValue | None:
        with self._lock:
            self._check_open()
            return self._data.get(bytes(key))

    def insert(self, key: RawKey, value: RawValue) -> None:
        with self._lock:
            self._check_open()
            self._data[bytes(key)] = bytes(value)

    def remove(self, key: RawKey) -> bool:
        with self._lock:
            self._check_open()
            return self._data.pop(bytes(key), None) is not None

    def contains_key(self, key: RawKey) -> bool:
        with self._lock:
            self._check_open()
            return bytes(key) in self._data

    def last(self) -> Entry | None:
        with self._lock:
            self._check_open()
            if not self._data:
                return None
            return self._data.peekitem(-1)

    def iter_items(self, reverse: bool = False) -> Iterator[Entry]:
        with self._lock:
            self._check_open()
            entries = list(self._data.items())
        if reverse:
            entries.reverse()
        return iter(entries)

    def __len__(self) -> int:
        with self._lock:
            self._check_open()
            return len(self._data)

    def flush(self) -> None:
        with self._lock:
            self._check_open()

    def close(self) -> None:
        """Release the partition; later calls raise StoreError."""
        with self._lock:
            self._closed = True
        logger.debug(f"Closed partition {self.name!r}")
