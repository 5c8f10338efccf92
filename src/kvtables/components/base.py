"""Plumbing shared by the typed tables: codec calls and store calls."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Generic, TypeVar

from ..core.errors import DecodeError, EncodeError, StoreError
from .codec import CborCodec

if TYPE_CHECKING:
    from ..core.types import Key, RawKey, RawValue
    from ..interfaces.codec import RecordCodec
    from ..interfaces.partition import Partition

T = TypeVar("T")


class TableBase(Generic[T]):
    """Binds a record codec to a partition.

    Holds no state of its own besides the two collaborators; handles are
    cheap to create and can be dropped at any time.
    """

    def __init__(self, partition: Partition, codec: RecordCodec[T] | None = None):
        self.partition = partition
        self.codec: RecordCodec[T] = codec if codec is not None else CborCodec()

    @contextmanager
    def _store_call(self, action: str) -> Iterator[None]:
        try:
            yield
        except StoreError:
            raise
        except OSError as e:
            raise StoreError(
                f"Failed to {action} in partition {self.partition.name!r}: {e}"
            ) from e

    def _get_raw(self, raw_key: RawKey) -> RawValue | None:
        with self._store_call("read"):
            return self.partition.get(raw_key)

    def _put_raw(self, raw_key: RawKey, raw_value: RawValue) -> None:
        with self._store_call("write"):
            self.partition.insert(raw_key, raw_value)

    def _remove_raw(self, raw_key: RawKey) -> bool:
        with self._store_call("remove"):
            return self.partition.remove(raw_key)

    def _contains_raw(self, raw_key: RawKey) -> bool:
        with self._store_call("read"):
            return self.partition.contains_key(raw_key)

    def _encode(self, value: T, key: Key) -> RawValue:
        try:
            return self.codec.encode(value)
        except Exception as e:
            raise EncodeError(f"Failed to encode record for key {key}: {e}") from e

    def _decode(self, raw_value: RawValue, key: Key) -> T:
        try:
            return self.codec.decode(raw_value)
        except Exception as e:
            raise DecodeError(f"Failed to decode record at key {key}: {e}") from e

    def __len__(self) -> int:
        with self._store_call("count"):
            return len(self.partition)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(partition={self.partition.name!r})"
