"""
utils/lock.py — Single-poller guard for a storage directory.

Two pollers watching the same drop directory would both import (and both
delete) the same export. The poller holds a file lock on
``<storage>/.trailcounts.lock`` for as long as it runs.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog
from filelock import FileLock, Timeout

from trailcount_shared.errors import ConfigError

log = structlog.get_logger(__name__)


@contextmanager
def storage_lock(lock_path: Path, timeout: float = 0) -> Iterator[FileLock]:
    """Hold the storage-directory lock, or raise ConfigError if another poller has it."""
    lock = FileLock(lock_path)
    try:
        lock.acquire(timeout=timeout)
    except Timeout as exc:
        raise ConfigError(
            "Another poller is already watching this storage directory",
            lock_path=str(lock_path),
        ) from exc
    log.debug("storage_lock_acquired", lock_path=str(lock_path))
    try:
        yield lock
    finally:
        lock.release()
        log.debug("storage_lock_released", lock_path=str(lock_path))
