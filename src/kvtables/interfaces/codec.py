"""Protocol definition for record codecs."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, TypeVar

T = TypeVar("T")


class RecordCodec(Protocol[T]):
    """Converts records of one type to and from bytes."""

    def encode(self, value: T) -> bytes:
        """Serialize a single record."""
        ...

    def decode(self, data: bytes) -> T:
        """Deserialize a single record."""
        ...

    def encode_many(self, values: Iterable[T]) -> bytes:
        """Serialize an ordered sequence of records as one value."""
        ...

    def decode_many(self, data: bytes) -> list[T]:
        """Deserialize a sequence written by encode_many."""
        ...
