"""
pipelines/trail_counts.py — One import of a counter export.

Orchestrates:
  1. CounterExportSource → header check + decode every row (whole file first)
  2. aggregate_daily     → one rollup per (location_id, count_date)
  3. SinkLoader          → delete the file's dates, insert counts, insert rollups
  4. Log the run summary (dates deleted, insert counts, elapsed time)

Nothing reaches the sink until the whole file has decoded cleanly; any
export or sink error propagates to the caller, which aborts the run.

Usage:
    from trailcount_pipeline.pipelines.trail_counts import run_import
    result = run_import(Path("/data/export.csv"), pool=pool)
    print(result.individual_inserted)
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from trailcount_pipeline.loaders.sink_loader import LoadResult, SinkLoader
from trailcount_pipeline.sources.counter_export import CounterExportSource
from trailcount_pipeline.transforms.aggregate import aggregate_daily
from trailcount_pipeline.utils.logging import get_logger
from trailcount_shared.db import ConnectionPool
from trailcount_shared.layout import StationLayoutTable

log = get_logger(__name__, pipeline="trail_counts")


@dataclass
class ImportResult:
    """Summary of one import run."""

    run_id: str
    path: str
    rows: int = 0
    dates: list[date] = field(default_factory=list)
    individual_decoded: int = 0
    aggregated_built: int = 0
    dry_run: bool = False
    load: LoadResult | None = None
    duration_ms: int = 0

    @property
    def dates_deleted(self) -> int:
        return self.load.dates_deleted if self.load else 0

    @property
    def individual_inserted(self) -> int:
        return self.load.individual_inserted if self.load else 0

    @property
    def aggregated_inserted(self) -> int:
        return self.load.aggregated_inserted if self.load else 0


def run_import(
    path: Path,
    *,
    pool: ConnectionPool | None = None,
    dry_run: bool = False,
    layout: StationLayoutTable | None = None,
    insert_workers: int | None = None,
) -> ImportResult:
    """
    Import one export file end-to-end.

    Args:
        path:           Export file.
        pool:           Sink pool; required unless dry_run.
        dry_run:        Decode, validate and aggregate without touching the sink.
        layout:         Station layout override (default: configured layout).
        insert_workers: Insert-phase worker override (default: settings).

    Returns:
        ImportResult.

    Raises:
        ExportError: the file is unreadable or malformed.
        SinkError:   a delete, insert or commit failed.
    """
    if pool is None and not dry_run:
        raise ValueError("run_import needs a connection pool unless dry_run=True")

    run_id = uuid.uuid4().hex[:12]
    run_log = log.bind(run_id=run_id, path=str(path))
    run_log.info("import_start", dry_run=dry_run)
    t0 = time.monotonic()

    result = ImportResult(run_id=run_id, path=str(path), dry_run=dry_run)

    source = CounterExportSource(layout=layout)
    export = source.run(path=Path(path))
    result.rows = export.rows
    result.dates = export.dates
    result.individual_decoded = len(export.counts)

    aggregated = aggregate_daily(export.counts)
    result.aggregated_built = len(aggregated)

    if dry_run or pool is None:
        result.duration_ms = int((time.monotonic() - t0) * 1000)
        run_log.info(
            "import_dry_run",
            rows=result.rows,
            dates=[d.isoformat() for d in result.dates],
            individual=result.individual_decoded,
            aggregated=result.aggregated_built,
            duration_ms=result.duration_ms,
        )
        return result

    loader = SinkLoader(pool, insert_workers=insert_workers)
    result.load = loader.load(export.dates, export.counts, aggregated)

    result.duration_ms = int((time.monotonic() - t0) * 1000)
    run_log.info(
        "import_complete",
        dates_deleted=result.dates_deleted,
        rows_deleted=result.load.rows_deleted,
        individual_inserted=result.individual_inserted,
        aggregated_inserted=result.aggregated_inserted,
        duration_ms=result.duration_ms,
    )
    return result
