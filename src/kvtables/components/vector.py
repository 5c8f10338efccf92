"""Ordered collection of records per key.

VectorTable stores the whole sequence for a key as one value; growth by
push/append is a read followed by a write of the full sequence.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterable
from typing import TYPE_CHECKING, TypeVar

from ..core.errors import DecodeError, EncodeError
from ..core.keys import encode_key
from .base import TableBase

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from ..core.types import Key, RawKey
    from ..interfaces.codec import RecordCodec
    from ..interfaces.partition import Partition
    from .locks import KeyLocks

T = TypeVar("T")


class VectorTable(TableBase[T]):
    """Key -> list of records table.

    Args:
        partition: Already opened partition to bind to
        codec: Record codec (CborCodec by default)
        locks: Optional per-key lock registry. Writers sharing one
            registry never lose each other's push/append updates.

    Invariants:
        - Order of records within a key is insertion order
        - An empty sequence is never stored; the key is absent instead
        - Without locks, push/append are not atomic: two concurrent
          writers on one key can both read the same state and the later
          write wins
    """

    def __init__(
        self,
        partition: Partition,
        codec: RecordCodec[T] | None = None,
        *,
        locks: KeyLocks | None = None,
    ):
        super().__init__(partition, codec)
        self.locks = locks

    def _guard(self, key: Key) -> AbstractContextManager[None]:
        if self.locks is None:
            return contextlib.nullcontext()
        return self.locks.hold(key)

    def get(self, key: Key) -> list[T] | None:
        """Get all records for key in one go."""
        raw = self._get_raw(encode_key(key))
        if raw is None:
            return None
        try:
            return self.codec.decode_many(raw)
        except Exception as e:
            raise DecodeError(f"Failed to decode records at key {key}: {e}") from e

    def _write(self, key: Key, raw_key: RawKey, values: list[T]) -> None:
        if not values:
            self._remove_raw(raw_key)
            return
        try:
            raw_value = self.codec.encode_many(values)
        except Exception as e:
            raise EncodeError(f"Failed to encode records for key {key}: {e}") from e
        self._put_raw(raw_key, raw_value)

    def put(self, key: Key, values: Iterable[T]) -> None:
        """Overwrite or add the whole sequence for key."""
        raw_key = encode_key(key)
        values = list(values)
        with self._guard(key):
            self._write(key, raw_key, values)

    def push(self, key: Key, value: T) -> None:
        """Push one record onto the sequence, creating it if absent."""
        raw_key = encode_key(key)
        with self._guard(key):
            current = self.get(key)
            if current is None:
                current = []
            current.append(value)
            self._write(key, raw_key, current)

    def append(self, key: Key, values: Iterable[T]) -> None:
        """Append records to the stored sequence, or store them as is."""
        raw_key = encode_key(key)
        values = list(values)
        if not values:
            return
        with self._guard(key):
            current = self.get(key)
            if current is None:
                current = values
            else:
                current.extend(values)
            self._write(key, raw_key, current)

    def remove(self, key: Key) -> bool:
        """Delete the whole sequence for key; return whether it existed."""
        raw_key = encode_key(key)
        with self._guard(key):
            return self._remove_raw(raw_key)
