"""Log-backed durable partition.

Keeps the partition in a SortedDict like MemoryPartition and writes every
mutation to a PartitionLog before applying it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..core.errors import StoreError
from ..core.types import RawKey, RawValue
from .memory import MemoryPartition
from .wal import OP_PUT, OP_REMOVE, PartitionLog

logger = logging.getLogger(__name__)


class DurablePartition(MemoryPartition):
    """Named partition persisted to a write-ahead log.

    Args:
        name: Partition name
        path: Path to the partition log
        flush_every_write: Whether to fsync after each log append
        compact_bytes: Log size that triggers a rewrite to live entries

    Invariants:
        - Every mutation reaches the log before the in-memory view
        - Reopening the same path restores the last written state
    """

    def __init__(
        self,
        name: str,
        path: str | Path,
        flush_every_write: bool = True,
        compact_bytes: int = 64 * 1024 * 1024,
    ):
        super().__init__(name)
        self.compact_bytes = compact_bytes
        self._log = PartitionLog(path, flush_every_write=flush_every_write)
        self._recover()
        self._compact_at = max(self.compact_bytes, 2 * self._log.size_bytes())

    def _recover(self) -> None:
        """Rebuild the in-memory view from the log."""
        count = 0
        for op, key, value in self._log:
            if op == OP_PUT:
                self._data[key] = value
            else:
                self._data.pop(key, None)
            count += 1

        self._log.open_for_append()
        logger.info(
            f"Recovered partition {self.name!r}: {count} log records, "
            f"{len(self._data)} live entries"
        )

    def insert(self, key: RawKey, value: RawValue) -> None:
        key, value = bytes(key), bytes(value)
        with self._lock:
            self._check_open()
            self._log.append(OP_PUT, key, value)
            self._data[key] = value
            self._maybe_compact_locked()

    def remove(self, key: RawKey) -> bool:
        key = bytes(key)
        with self._lock:
            self._check_open()
            if key not in self._data:
                return False
            self._log.append(OP_REMOVE, key)
            del self._data[key]
            self._maybe_compact_locked()
            return True

    def _maybe_compact_locked(self) -> None:
        """Internal compaction check (must hold lock).

        The triggering write is already logged, so a failed compaction is
        only reported and retried once the log has doubled again.
        """
        if self._log.size_bytes() <= self._compact_at:
            return
        try:
            self._compact_locked()
        except StoreError as e:
            logger.warning(f"Log compaction of partition {self.name!r} failed: {e}")
            self._compact_at = max(self._compact_at, 2 * self._log.size_bytes())

    def _compact_locked(self) -> None:
        self._log.rewrite(self._data.items())
        self._compact_at = max(self.compact_bytes, 2 * self._log.size_bytes())

    def compact(self) -> None:
        """Rewrite the log so it holds only live entries."""
        with self._lock:
            self._check_open()
            self._compact_locked()

    def log_size_bytes(self) -> int:
        with self._lock:
            return self._log.size_bytes()

    def flush(self) -> None:
        with self._lock:
            self._check_open()
            self._log.sync()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._log.close()
        logger.info(f"Closed partition {self.name!r}")
