"""Configuration for kvtables databases.

Defines the tunable parameters of a Database and the tables it hands out.
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import OnDecodeError


@dataclass
class DatabaseConfig:
    """Configuration parameters for a partitioned table database.

    Attributes:
        data_dir: Root directory for partition logs, or None for memory only
        log_flush_every_write: Whether to fsync after each log append
        log_compact_bytes: Log size that triggers a rewrite to live entries
        on_decode_error: Default scan policy for tables built by the database
        serialize_appends: Give vector tables a shared per-key lock registry
    """

    data_dir: str | None = None
    log_flush_every_write: bool = True
    log_compact_bytes: int = 64 * 1024 * 1024  # 64 MB
    on_decode_error: OnDecodeError = OnDecodeError.SKIP
    serialize_appends: bool = False
