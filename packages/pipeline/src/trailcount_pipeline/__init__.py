"""
trailcount_pipeline — Poller and import pipeline for bike/pedestrian counter exports.

Architecture:
  sources/     — the counter export reader (polars) and header/row validation
  transforms/  — row decoding into per-station readings, daily rollups
  loaders/     — delete-then-insert sink loader fanned across a worker pool
  pipelines/   — one import run, and the poll loop that drives it
  utils/       — structlog configuration, retry decorator, storage lock

Quick start:
    from trailcount_pipeline.pipelines.trail_counts import run_import
    result = run_import(Path("export.csv"), dry_run=True)

CLI:
    trailcounts watch
    trailcounts import export.csv --dry-run
    trailcounts check export.csv

Shared code from trailcount_shared:
    from trailcount_shared.config import settings
    from trailcount_shared.db import build_connection_pool
    from trailcount_shared.layout import load_station_layout
    from trailcount_shared.models import IndividualCount, AggregatedCount
"""

__version__ = "0.1.0"
