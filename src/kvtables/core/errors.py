"""Exception hierarchy for kvtables.

Defines all custom exceptions used throughout the implementation.
"""

from __future__ import annotations


class TablesError(Exception):
    """Base exception for all kvtables errors."""
    pass


class EncodeError(TablesError):
    """Raised when a record fails to serialize."""
    pass


class DecodeError(TablesError):
    """Raised when stored bytes fail to deserialize into a record."""
    pass


class StoreError(TablesError):
    """Raised when the backing store fails a read or write."""
    pass


class LogCorruptionError(StoreError):
    """Raised when partition log data is corrupted or invalid."""
    pass


class RecoveryError(StoreError):
    """Raised when a partition cannot be rebuilt from its log."""
    pass
