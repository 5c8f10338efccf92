"""Protocol definition for a named store partition."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from ..core.types import Entry, RawKey, RawValue


class Partition(Protocol):
    """Named, independently iterable namespace of an ordered byte store."""

    name: str

    def get(self, key: RawKey) -> RawValue | None:
        """Return the value stored at key, or None if absent."""
        ...

    def insert(self, key: RawKey, value: RawValue) -> None:
        """Store value at key, replacing any existing value."""
        ...

    def remove(self, key: RawKey) -> bool:
        """Delete key; return whether it was present."""
        ...

    def contains_key(self, key: RawKey) -> bool:
        """Return True if key is present."""
        ...

    def last(self) -> Entry | None:
        """Return the entry with the greatest key, or None if empty."""
        ...

    def iter_items(self, reverse: bool = False) -> Iterator[Entry]:
        """Iterate entries in byte order of their keys.

        Invariants:
            - Bounded by the entries present when the call was made
            - Later writes do not disturb an iterator already returned
        """
        ...

    def __len__(self) -> int:
        """Return the number of stored entries."""
        ...

    def flush(self) -> None:
        """Make prior writes durable, where the store supports it."""
        ...
