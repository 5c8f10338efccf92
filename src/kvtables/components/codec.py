"""Record codecs.

CBOR (via cbor2) is the default on-disk encoding; JSON is offered for
partitions that should stay human-readable.
"""

from __future__ import annotations

import dataclasses
import json
import types
import typing
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

import cbor2

T = TypeVar("T")

_UNION_TYPES = (typing.Union, types.UnionType)


def _rebuild(tp: Any, obj: Any) -> Any:
    """Turn a decoded primitive back into the annotated type tp.

    Undoes dataclasses.asdict for nested dataclasses and restores tuples
    that the wire format returned as arrays. Unannotated or unsupported
    types pass through unchanged.
    """
    if obj is None:
        return None

    if dataclasses.is_dataclass(tp) and isinstance(tp, type):
        if not isinstance(obj, dict):
            raise TypeError(f"Expected a map for {tp.__name__}, got {type(obj).__name__}")
        hints = typing.get_type_hints(tp)
        return tp(**{name: _rebuild(hints.get(name, Any), value) for name, value in obj.items()})

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin in _UNION_TYPES:
        members = [a for a in args if a is not type(None)]
        if len(members) == 1:
            return _rebuild(members[0], obj)
        return obj

    if isinstance(obj, list):
        if tp is tuple:
            return tuple(obj)
        if origin is tuple:
            if len(args) == 2 and args[1] is Ellipsis:
                return tuple(_rebuild(args[0], item) for item in obj)
            if args:
                return tuple(_rebuild(a, item) for a, item in zip(args, obj))
            return tuple(obj)
        if origin is list and args:
            return [_rebuild(args[0], item) for item in obj]

    if isinstance(obj, dict) and origin is dict and len(args) == 2:
        return {k: _rebuild(args[1], v) for k, v in obj.items()}

    return obj


class _PrimitiveCodec(Generic[T]):
    """Shared record <-> primitive mapping for the concrete codecs.

    Args:
        record_type: Optional record class. Dataclasses are stored as maps
            of their fields and rebuilt on decode, nested dataclasses and
            tuple fields included (resolved from the field annotations);
            any other type is only checked with isinstance.
    """

    def __init__(self, record_type: type[T] | None = None):
        self.record_type = record_type
        self._is_dataclass = record_type is not None and dataclasses.is_dataclass(record_type)

    def _to_primitive(self, value: T) -> Any:
        if self.record_type is not None and not isinstance(value, self.record_type):
            raise TypeError(
                f"Expected {self.record_type.__name__}, got {type(value).__name__}"
            )
        if self._is_dataclass:
            return dataclasses.asdict(value)
        return value

    def _from_primitive(self, obj: Any) -> T:
        if self._is_dataclass:
            if not isinstance(obj, dict):
                raise TypeError(f"Expected a map for {self.record_type.__name__}")
            return _rebuild(self.record_type, obj)
        if self.record_type is not None and not isinstance(obj, self.record_type):
            raise TypeError(
                f"Expected {self.record_type.__name__}, got {type(obj).__name__}"
            )
        return obj

    def _dumps(self, obj: Any) -> bytes:
        raise NotImplementedError

    def _loads(self, data: bytes) -> Any:
        raise NotImplementedError

    def encode(self, value: T) -> bytes:
        return self._dumps(self._to_primitive(value))

    def decode(self, data: bytes) -> T:
        return self._from_primitive(self._loads(data))

    def encode_many(self, values: Iterable[T]) -> bytes:
        return self._dumps([self._to_primitive(v) for v in values])

    def decode_many(self, data: bytes) -> list[T]:
        obj = self._loads(data)
        if not isinstance(obj, list):
            raise TypeError(f"Expected an array of records, got {type(obj).__name__}")
        return [self._from_primitive(item) for item in obj]


class CborCodec(_PrimitiveCodec[T]):
    """Compact, self-describing binary records."""

    def _dumps(self, obj: Any) -> bytes:
        return cbor2.dumps(obj)

    def _loads(self, data: bytes) -> Any:
        return cbor2.loads(data)


class JsonCodec(_PrimitiveCodec[T]):
    """Compact UTF-8 JSON records."""

    def _dumps(self, obj: Any) -> bytes:
        return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")

    def _loads(self, data: bytes) -> Any:
        return json.loads(bytes(data).decode("utf-8"))
