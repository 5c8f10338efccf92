"""kvtables - typed, keyed record tables over an ordered byte store."""

from .core.config import DatabaseConfig
from .core.database import Database
from .components.codec import CborCodec, JsonCodec
from .components.durable import DurablePartition
from .components.locks import KeyLocks
from .components.memory import MemoryPartition
from .components.scalar import RecordSequence, ScalarTable
from .components.vector import VectorTable
from .core.errors import (
    TablesError,
    EncodeError,
    DecodeError,
    StoreError,
    LogCorruptionError,
    RecoveryError,
)
from .core.keys import KEY_WIDTH, MAX_KEY, decode_key, encode_key
from .core.types import Key, RawKey, RawValue, OnDecodeError

__all__ = [
    "CborCodec",
    "JsonCodec",
    "DurablePartition",
    "KeyLocks",
    "MemoryPartition",
    "RecordSequence",
    "ScalarTable",
    "VectorTable",
    "DatabaseConfig",
    "Database",
    "TablesError",
    "EncodeError",
    "DecodeError",
    "StoreError",
    "LogCorruptionError",
    "RecoveryError",
    "KEY_WIDTH",
    "MAX_KEY",
    "decode_key",
    "encode_key",
    "Key",
    "RawKey",
    "RawValue",
    "OnDecodeError",
]
