"""Partition write-ahead log.

Append-only file of partition mutations with CRC32 checksums. Replaying
the log rebuilds the partition contents.
"""

from __future__ import annotations

import contextlib
import logging
import os
import struct
import zlib
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from ..core.errors import LogCorruptionError, StoreError
from ..core.types import Entry, RawKey, RawValue

logger = logging.getLogger(__name__)

# Log record format:
# [magic (4B)] [op (1B)] [key_len (4B)] [key bytes] [value_len (4B)] [value bytes] [crc32 (4B)]
MAGIC = 0x4B565401  # "KVT" + version
OP_PUT = 0
OP_REMOVE = 1

_HEADER = struct.Struct("<IBI")
_LENGTH = struct.Struct("<I")
_CRC = struct.Struct("<I")

LogRecord = tuple[int, RawKey, RawValue]


def _frame(op: int, key: RawKey, value: RawValue) -> bytes:
    payload = _HEADER.pack(MAGIC, op, len(key)) + key + _LENGTH.pack(len(value)) + value
    return payload + _CRC.pack(zlib.crc32(payload))


class PartitionLog:
    """Append-only log of put/remove operations for one partition.

    Args:
        path: Path to the log file
        flush_every_write: Whether to fsync after each append

    Invariants:
        - Records are written whole, each with its own checksum
        - A torn record at EOF is dropped on replay and truncated on open
        - Records are replayed in append order
        - A failed append leaves no partial record behind; if that cannot
          be guaranteed the log refuses further writes
    """

    def __init__(self, path: str | Path, flush_every_write: bool = True):
        self.path = Path(path)
        self.flush_every_write = flush_every_write
        self._fd: BinaryIO | None = None
        self._failure: str | None = None
        self._valid_bytes: int | None = None
        self._size_bytes = 0

    def __iter__(self) -> Iterator[LogRecord]:
        """Iterate records in append order, stopping at a torn tail."""
        self._valid_bytes = 0
        if not self.path.exists():
            return

        with open(self.path, "rb") as f:
            while True:
                header = f.read(_HEADER.size)
                if not header:
                    break  # EOF
                if len(header) < _HEADER.size:
                    self._warn_torn("header")
                    break

                magic, op, key_len = _HEADER.unpack(header)
                if magic != MAGIC:
                    raise LogCorruptionError(
                        f"Invalid magic {magic:x} at offset {self._valid_bytes} in {self.path}"
                    )
                if op not in (OP_PUT, OP_REMOVE):
                    raise LogCorruptionError(
                        f"Unknown op {op} at offset {self._valid_bytes} in {self.path}"
                    )

                key = f.read(key_len)
                if len(key) < key_len:
                    self._warn_torn("key")
                    break

                value_len_bytes = f.read(_LENGTH.size)
                if len(value_len_bytes) < _LENGTH.size:
                    self._warn_torn("value length")
                    break
                (value_len,) = _LENGTH.unpack(value_len_bytes)

                value = f.read(value_len)
                if len(value) < value_len:
                    self._warn_torn("value")
                    break

                crc_bytes = f.read(_CRC.size)
                if len(crc_bytes) < _CRC.size:
                    self._warn_torn("checksum")
                    break

                (stored_crc,) = _CRC.unpack(crc_bytes)
                computed_crc = zlib.crc32(header + key + value_len_bytes + value)
                if stored_crc != computed_crc:
                    raise LogCorruptionError(
                        f"CRC mismatch at offset {self._valid_bytes} in {self.path}: "
                        f"expected {computed_crc:x}, got {stored_crc:x}"
                    )

                self._valid_bytes = f.tell()
                yield (op, key, value)

    def _warn_torn(self, part: str) -> None:
        logger.warning(f"Partial {part} at EOF of {self.path}, skipping")

    def open_for_append(self) -> None:
        """Open the log for writing, truncating any torn tail first."""
        if self._valid_bytes is None:
            for _record in self:
                pass

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fd = open(self.path, "ab")
        end = self._fd.tell()
        if end > self._valid_bytes:
            logger.warning(
                f"Truncating {end - self._valid_bytes} torn bytes from {self.path}"
            )
            self._fd.truncate(self._valid_bytes)
        self._size_bytes = self._valid_bytes
        logger.debug(f"Opened log {self.path} at offset {self._size_bytes}")

    def _check_writable(self) -> None:
        if self._failure is not None:
            raise StoreError(f"Log {self.path} is unusable: {self._failure}")
        if self._fd is None:
            raise StoreError(f"Log {self.path} is closed")

    def _reopen(self) -> None:
        """Reopen the log for appending at its last whole record."""
        cause: OSError | None = None
        try:
            on_disk = self.path.stat().st_size
            if on_disk >= self._size_bytes:
                with open(self.path, "r+b") as f:
                    f.truncate(self._size_bytes)
                self._fd = open(self.path, "ab")
                return
            reason = f"{self._size_bytes - on_disk} acknowledged bytes missing"
        except OSError as e:
            reason = f"cannot restore log after failed write: {e}"
            cause = e

        self._failure = reason
        logger.error(f"Log {self.path} is unusable: {reason}")
        raise StoreError(f"Log {self.path} is unusable: {reason}") from cause

    def _discard_fd(self) -> None:
        fd, self._fd = self._fd, None
        # Closing may flush part of a failed record; _reopen truncates it
        with contextlib.suppress(OSError):
            fd.close()

    def append(self, op: int, key: RawKey, value: RawValue = b"") -> None:
        """Append one record."""
        self._check_writable()

        record = _frame(op, key, value)
        try:
            self._fd.write(record)
            if self.flush_every_write:
                self._fd.flush()
                os.fsync(self._fd.fileno())
        except OSError as e:
            self._discard_fd()
            self._reopen()
            raise StoreError(f"Failed to append to {self.path}: {e}") from e

        self._size_bytes += len(record)

    def rewrite(self, entries: Iterable[Entry]) -> None:
        """Replace the log with one put record per live entry.

        On failure the previous log stays in place and open for appends.
        """
        self._check_writable()

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        old_size = self._size_bytes
        size = 0
        try:
            with open(tmp_path, "wb") as tmp:
                for key, value in entries:
                    record = _frame(OP_PUT, key, value)
                    tmp.write(record)
                    size += len(record)
                tmp.flush()
                os.fsync(tmp.fileno())

            self._discard_fd()
            os.replace(tmp_path, self.path)
            self._size_bytes = size
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to rewrite {self.path}: {e}") from e
        finally:
            if self._fd is None:
                self._reopen()

        logger.info(f"Rewrote log {self.path}: {old_size} -> {size} bytes")

    def size_bytes(self) -> int:
        return self._size_bytes

    def sync(self) -> None:
        """Force data to disk (fsync)."""
        if self._fd:
            try:
                self._fd.flush()
                os.fsync(self._fd.fileno())
            except OSError as e:
                raise StoreError(f"Failed to sync {self.path}: {e}") from e

    def close(self) -> None:
        """Close writer and release resources."""
        if self._fd:
            self.sync()
            self._fd.close()
            self._fd = None
            logger.info(f"Closed log {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
