"""
pipelines/poller.py — Long-running poll loop over the storage directory.

Every poll_interval_seconds:
  - if <storage>/<export_filename> is absent, do nothing
  - otherwise import it (pipelines.trail_counts.run_import), then remove the
    file whatever the outcome; a failed export is deleted or quarantined
    according to settings.failed_export_policy

A failed run is logged and the loop carries on. Only startup problems
(ConfigError, PoolError while building the pool) stop the poller.

Usage:
    from trailcount_pipeline.pipelines.poller import watch
    watch()                      # blocks forever

    # tests / one-off use
    poll_once(pool, cfg)         # ImportResult, or None when nothing is waiting
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from trailcount_pipeline.pipelines.trail_counts import ImportResult, run_import
from trailcount_pipeline.utils.logging import get_logger
from trailcount_pipeline.utils.lock import storage_lock
from trailcount_pipeline.utils.retry import with_retry
from trailcount_shared.config import Settings, settings
from trailcount_shared.db import ConnectionPool, build_connection_pool
from trailcount_shared.errors import PoolError
from trailcount_shared.layout import StationLayoutTable, load_station_layout

log = get_logger(__name__, component="poller")


def connect_pool(cfg: Settings) -> ConnectionPool:
    """Build the sink pool, retrying PoolError up to cfg.pool_connect_attempts times."""

    @with_retry(max_attempts=cfg.pool_connect_attempts, base_delay=1.0, retry_on=PoolError)
    def _connect() -> ConnectionPool:
        return build_connection_pool(cfg)

    return _connect()


def dispose_export(path: Path, cfg: Settings, *, succeeded: bool) -> Path | None:
    """
    Remove the export after a run.

    Returns:
        The quarantine path if the file was moved aside, else None.
    """
    if not path.exists():
        return None

    if succeeded or cfg.failed_export_policy == "delete":
        path.unlink()
        log.info("export_removed", path=str(path), succeeded=succeeded)
        return None

    rejected = cfg.rejected_path
    rejected.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    target = rejected / f"{path.stem}-{stamp}{path.suffix}"
    path.replace(target)
    log.warning("export_quarantined", path=str(path), moved_to=str(target))
    return target


def poll_once(
    pool: ConnectionPool,
    cfg: Settings | None = None,
    *,
    layout: StationLayoutTable | None = None,
) -> ImportResult | None:
    """
    Import the waiting export, if any.

    Returns:
        ImportResult, or None when no export is waiting.

    Raises:
        Whatever the run raised, after the export has been disposed of.
    """
    cfg = cfg or settings
    path = cfg.export_path
    if not path.is_file():
        return None

    log.info("export_found", path=str(path))
    succeeded = False
    try:
        layout = layout or load_station_layout(cfg.station_layout_path)
        result = run_import(path, pool=pool, layout=layout, insert_workers=cfg.insert_workers)
        succeeded = True
        return result
    finally:
        dispose_export(path, cfg, succeeded=succeeded)


def poll_forever(
    pool: ConnectionPool,
    cfg: Settings | None = None,
    *,
    layout: StationLayoutTable | None = None,
    sleep: Callable[[float], None] = time.sleep,
    max_iterations: int | None = None,
) -> int:
    """
    Poll until interrupted (or for max_iterations polls).

    Returns:
        Number of exports imported successfully.
    """
    cfg = cfg or settings
    imported = 0
    iteration = 0
    log.info(
        "poller_start",
        export_path=str(cfg.export_path),
        interval_s=cfg.poll_interval_seconds,
        failed_export_policy=cfg.failed_export_policy,
    )

    while True:
        iteration += 1
        try:
            if poll_once(pool, cfg, layout=layout) is not None:
                imported += 1
        except Exception as exc:
            log.exception(
                "import_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                iteration=iteration,
            )

        if max_iterations is not None and iteration >= max_iterations:
            break
        sleep(cfg.poll_interval_seconds)

    log.info("poller_stop", iterations=iteration, imported=imported)
    return imported


def watch(
    cfg: Settings | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    max_iterations: int | None = None,
) -> int:
    """
    Validate startup configuration, take the storage lock, build the pool,
    and poll.

    Raises:
        ConfigError: missing settings, invalid layout, or another poller
                     holds the storage directory.
        PoolError:   the pool could not be built within the attempt budget.
    """
    cfg = cfg or settings
    cfg.check_startup()
    layout = load_station_layout(cfg.station_layout_path)

    with storage_lock(cfg.lock_path):
        pool = connect_pool(cfg)
        try:
            return poll_forever(
                pool, cfg, layout=layout, sleep=sleep, max_iterations=max_iterations
            )
        finally:
            pool.close()
