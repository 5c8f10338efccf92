"""Order-preserving encoding of integer table keys.

Keys are unsigned 64-bit integers stored as 8 big-endian bytes, so the
store's byte order is the same as numeric key order.
"""

from __future__ import annotations

import struct

from .types import Key, RawKey

KEY_WIDTH = 8
MAX_KEY = 2**64 - 1

_KEY_STRUCT = struct.Struct(">Q")


def encode_key(key: Key) -> RawKey:
    """Return the 8-byte big-endian representation of ``key``."""
    if not isinstance(key, int) or isinstance(key, bool):
        raise ValueError(f"Key must be an int, got {type(key).__name__}")
    if not 0 <= key <= MAX_KEY:
        raise ValueError(f"Key {key} outside unsigned 64-bit range")
    return _KEY_STRUCT.pack(key)


def decode_key(raw: RawKey) -> Key:
    """Inverse of encode_key; ``raw`` must be exactly 8 bytes."""
    if len(raw) != KEY_WIDTH:
        raise ValueError(f"Encoded key must be {KEY_WIDTH} bytes, got {len(raw)}")
    return _KEY_STRUCT.unpack(raw)[0]


def key_prefix(raw: RawKey) -> Key:
    """Decode the fixed-width key prefix of a raw store key."""
    return decode_key(bytes(raw[:KEY_WIDTH]))
