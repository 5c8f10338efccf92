"""Single record per key.

ScalarTable maps an unsigned 64-bit key to exactly one record and offers
the key-management helpers built on ordered iteration: next key
discovery, reverse lookup by value and get-or-allocate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Generic, TypeVar

from ..core.errors import DecodeError, StoreError
from ..core.keys import MAX_KEY, encode_key, key_prefix
from ..core.types import OnDecodeError
from .base import TableBase

if TYPE_CHECKING:
    from ..core.types import Entry, Key
    from ..interfaces.codec import RecordCodec
    from ..interfaces.partition import Partition

logger = logging.getLogger(__name__)

T = TypeVar("T")
X = TypeVar("X")


class RecordSequence(Generic[X]):
    """Restartable, reversible view over a snapshot of partition entries.

    Entries are decoded lazily during traversal; the snapshot is taken when
    the sequence is created, so later writes never show up in it.
    """

    def __init__(self, entries: list[Entry], scan: Callable[[Iterable[Entry]], Iterator[X]]):
        self._entries = entries
        self._scan = scan

    def __iter__(self) -> Iterator[X]:
        return self._scan(self._entries)

    def __reversed__(self) -> Iterator[X]:
        return self._scan(reversed(self._entries))


class ScalarTable(TableBase[T]):
    """Direct key -> record table.

    Args:
        partition: Already opened partition to bind to
        codec: Record codec (CborCodec by default)
        on_decode_error: What scans do with undecodable entries
        default_factory: Produces the stand-in record for OnDecodeError.DEFAULT

    Public API:
        - get(key), contains_key(key), insert(key, value), remove(key)
        - contains_value(value), iter(), items()
        - get_next_key(), next_free_key()
        - get_key_by_value(value), designated_key(identifier)

    Invariants:
        - At most one record per key; insert() overwrites unconditionally
        - Scans run in ascending key order over a snapshot
    """

    def __init__(
        self,
        partition: Partition,
        codec: RecordCodec[T] | None = None,
        *,
        on_decode_error: OnDecodeError = OnDecodeError.SKIP,
        default_factory: Callable[[], T] | None = None,
    ):
        super().__init__(partition, codec)
        if on_decode_error is OnDecodeError.DEFAULT and default_factory is None:
            raise ValueError("OnDecodeError.DEFAULT requires a default_factory")
        self.on_decode_error = on_decode_error
        self.default_factory = default_factory

    def get(self, key: Key) -> T | None:
        """Return the record stored at key, or None if absent."""
        raw = self._get_raw(encode_key(key))
        if raw is None:
            return None
        return self._decode(raw, key)

    def contains_key(self, key: Key) -> bool:
        return self._contains_raw(encode_key(key))

    def insert(self, key: Key, value: T) -> None:
        """Store value at key.

        Warning: this replaces any record already stored at key, there is
        no check for concurrent writers.
        """
        raw_key = encode_key(key)
        self._put_raw(raw_key, self._encode(value, key))

    def remove(self, key: Key) -> bool:
        """Delete the record at key; return whether it existed."""
        return self._remove_raw(encode_key(key))

    # Scans

    def _snapshot(self) -> list[Entry]:
        with self._store_call("iterate"):
            return list(self.partition.iter_items())

    def _scan(
        self, entries: Iterable[Entry], coerce_default: bool = False
    ) -> Iterator[tuple[Key, T]]:
        """Decode entries under the table's decode-error policy.

        OnDecodeError.DEFAULT only substitutes default_factory() when
        coerce_default is set (reverse lookup); every other scan skips.
        """
        policy = self.on_decode_error
        if policy is OnDecodeError.DEFAULT and not coerce_default:
            policy = OnDecodeError.SKIP

        for raw_key, raw_value in entries:
            try:
                key = key_prefix(raw_key)
            except ValueError as e:
                if policy is OnDecodeError.ABORT:
                    raise DecodeError(f"Malformed key {raw_key!r}: {e}") from e
                logger.debug(
                    f"Skipping entry with malformed key {raw_key!r} "
                    f"in partition {self.partition.name!r}"
                )
                continue

            try:
                value = self.codec.decode(raw_value)
            except Exception as e:
                if policy is OnDecodeError.ABORT:
                    raise DecodeError(f"Failed to decode record at key {key}: {e}") from e
                if policy is OnDecodeError.SKIP:
                    logger.debug(
                        f"Skipping undecodable record at key {key} "
                        f"in partition {self.partition.name!r}: {e}"
                    )
                    continue
                value = self.default_factory()

            yield key, value

    def iter(self) -> RecordSequence[T]:
        """Records in ascending key order; undecodable ones are dropped or abort."""
        return RecordSequence(self._snapshot(), lambda entries: (v for _, v in self._scan(entries)))

    def items(self) -> RecordSequence[tuple[Key, T]]:
        """(key, record) pairs in ascending key order."""
        return RecordSequence(self._snapshot(), self._scan)

    def contains_value(self, value: T) -> bool:
        """Check if an equal record is stored. Expensive: full scan."""
        return any(v == value for _, v in self._scan(self._snapshot()))

    # Key management

    def _last_key(self) -> Key | None:
        with self._store_call("read"):
            last = self.partition.last()
        if last is None:
            return None
        try:
            return key_prefix(last[0])
        except ValueError as e:
            raise DecodeError(f"Malformed last key {last[0]!r}: {e}") from e

    def get_next_key(self) -> Key:
        """Key of the last stored entry, or 0 if the table is empty.

        The key is returned as is, not incremented; callers allocating a
        new slot add 1 themselves or use next_free_key().
        """
        last = self._last_key()
        return 0 if last is None else last

    def next_free_key(self) -> Key:
        """First key after the last stored entry, or 0 if empty."""
        last = self._last_key()
        if last is None:
            return 0
        if last == MAX_KEY:
            raise StoreError(f"Key space of partition {self.partition.name!r} exhausted")
        return last + 1

    def get_key_by_value(self, value: T) -> Key | None:
        """Somewhat expensive! Key of the first record equal to value."""
        for key, stored in self._scan(self._snapshot(), coerce_default=True):
            if stored == value:
                return key
        return None

    def designated_key(self, identifier: T) -> Key:
        """Key already holding identifier, else get_next_key(). Also expensive."""
        key = self.get_key_by_value(identifier)
        if key is not None:
            return key
        return self.get_next_key()
