"""Database of named partitions - the store-owning entry point.

Opens partitions by name and hands out typed tables bound to them.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from ..components.durable import DurablePartition
from ..components.locks import KeyLocks
from ..components.memory import MemoryPartition
from ..components.scalar import ScalarTable
from ..components.vector import VectorTable
from ..interfaces.codec import RecordCodec
from .config import DatabaseConfig
from .errors import LogCorruptionError, RecoveryError, StoreError
from .types import OnDecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOG_SUFFIX = ".log"
_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class Database:
    """Collection of named, independently iterable partitions.

    Args:
        config: Database configuration (memory only when data_dir is None)

    Public API:
        - open_partition(name): Get or open a partition
        - partition_names(): Names of known partitions
        - drop_partition(name): Delete a partition and its log
        - scalar_table(name, codec), vector_table(name, codec)
        - flush(), close()

    Invariants:
        - One live partition handle per name
        - Partition logs live at <data_dir>/partitions/<name>.log
    """

    def __init__(self, config: DatabaseConfig | None = None):
        self.config = config if config is not None else DatabaseConfig()
        self._lock = threading.Lock()
        self._partitions: dict[str, MemoryPartition] = {}
        self._key_locks: dict[str, KeyLocks] = {}
        self._closed = False

        self.partition_dir: Path | None = None
        if self.config.data_dir is not None:
            self.partition_dir = Path(self.config.data_dir) / "partitions"
            self.partition_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Initialized database at {self.config.data_dir}")
        else:
            logger.info("Initialized in-memory database")

    @staticmethod
    def _check_name(name: str) -> None:
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid partition name {name!r}")  # noqa: TRY003

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError("Database is closed")

    def _log_path(self, name: str) -> Path:
        return self.partition_dir / f"{name}{LOG_SUFFIX}"

    def open_partition(self, name: str) -> MemoryPartition:
        """Return the partition called name, opening it if needed."""
        self._check_name(name)
        with self._lock:
            self._check_open()
            partition = self._partitions.get(name)
            if partition is None:
                partition = self._open_locked(name)
                self._partitions[name] = partition
            return partition

    def _open_locked(self, name: str) -> MemoryPartition:
        """Internal open (must hold lock)."""
        if self.partition_dir is None:
            logger.debug(f"Opened memory partition {name!r}")
            return MemoryPartition(name)

        try:
            partition = DurablePartition(
                name,
                self._log_path(name),
                flush_every_write=self.config.log_flush_every_write,
                compact_bytes=self.config.log_compact_bytes,
            )
        except LogCorruptionError as e:
            raise RecoveryError(f"Failed to recover partition {name!r}: {e}") from e
        except OSError as e:
            raise StoreError(f"Failed to open partition {name!r}: {e}") from e

        logger.info(f"Opened partition {name!r}")
        return partition

    def partition_names(self) -> list[str]:
        """Names of open partitions plus those with a log on disk."""
        with self._lock:
            self._check_open()
            names = set(self._partitions)
        if self.partition_dir is not None:
            names.update(p.stem for p in self.partition_dir.glob(f"*{LOG_SUFFIX}"))
        return sorted(names)

    def drop_partition(self, name: str) -> bool:
        """Delete a partition and its log; return whether it existed."""
        self._check_name(name)
        with self._lock:
            self._check_open()
            partition = self._partitions.pop(name, None)
            self._key_locks.pop(name, None)
            existed = partition is not None
            if partition is not None:
                partition.close()

            if self.partition_dir is not None:
                path = self._log_path(name)
                if path.exists():
                    try:
                        path.unlink()
                    except OSError as e:
                        raise StoreError(f"Failed to drop partition {name!r}: {e}") from e
                    existed = True

        if existed:
            logger.info(f"Dropped partition {name!r}")
        return existed

    def scalar_table(
        self,
        name: str,
        codec: RecordCodec[T] | None = None,
        *,
        on_decode_error: OnDecodeError | None = None,
        default_factory: Callable[[], T] | None = None,
    ) -> ScalarTable[T]:
        """ScalarTable over the named partition."""
        if on_decode_error is None:
            on_decode_error = self.config.on_decode_error
        return ScalarTable(
            self.open_partition(name),
            codec,
            on_decode_error=on_decode_error,
            default_factory=default_factory,
        )

    def vector_table(
        self,
        name: str,
        codec: RecordCodec[T] | None = None,
        *,
        locks: KeyLocks | None = None,
    ) -> VectorTable[T]:
        """VectorTable over the named partition.

        With config.serialize_appends, every vector table of one partition
        shares the same KeyLocks unless locks is given explicitly.
        """
        partition = self.open_partition(name)
        if locks is None and self.config.serialize_appends:
            with self._lock:
                locks = self._key_locks.setdefault(name, KeyLocks())
        return VectorTable(partition, codec, locks=locks)

    def flush(self) -> None:
        """Force all partition logs to disk."""
        with self._lock:
            self._check_open()
            partitions = list(self._partitions.values())
        for partition in partitions:
            partition.flush()

    def close(self) -> None:
        """Close every partition and release resources."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            partitions = list(self._partitions.values())
            self._partitions.clear()
            self._key_locks.clear()
        logger.info("Closing database")
        for partition in partitions:
            partition.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
