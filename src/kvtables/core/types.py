"""Common type definitions for kvtables.

Defines fundamental types used across all components.
"""

from __future__ import annotations

from enum import Enum

# Core primitive types
Key = int
RawKey = bytes
RawValue = bytes
Entry = tuple[RawKey, RawValue]


class OnDecodeError(Enum):
    """What a scan does with an entry that fails to deserialize."""

    SKIP = "skip"
    ABORT = "abort"
    DEFAULT = "default"
