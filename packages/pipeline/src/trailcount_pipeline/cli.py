"""
cli.py — Click CLI entrypoint for the trail count importer.

Usage:
    trailcounts watch
    trailcounts import /data/export.csv --dry-run
    trailcounts check /data/export.csv
    trailcounts layout
    trailcounts status --date 2023-05-06
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import click
import structlog

from trailcount_shared.config import settings
from trailcount_shared.errors import ConfigError, TrailCountError

log = structlog.get_logger(__name__)


def _fail(message: str, exc: Exception) -> None:
    click.echo(f"{message}: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Console log level",
)
def main(log_level: str) -> None:
    """Bike/pedestrian counter export importer."""
    from trailcount_pipeline.utils.logging import configure_logging

    configure_logging(log_level=log_level.upper())


@main.command()
def watch() -> None:
    """Poll the storage directory and import each export that arrives."""
    from trailcount_pipeline.pipelines.poller import watch as run_watch

    click.echo(f"Watching {settings.storage_path} every {settings.poll_interval_seconds:g}s")
    try:
        run_watch(settings)
    except TrailCountError as exc:
        log.error("poller_startup_failed", error=str(exc), error_type=type(exc).__name__)
        _fail("Startup failed", exc)
    except KeyboardInterrupt:
        click.echo("Stopped.")


@main.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Decode and aggregate without writing to the sink.")
@click.option("--keep-file", is_flag=True, help="Leave the export in place after the run.")
def import_(path: Path, dry_run: bool, keep_file: bool) -> None:
    """Import one export file."""
    from trailcount_pipeline.pipelines.poller import connect_pool, dispose_export
    from trailcount_pipeline.pipelines.trail_counts import run_import

    pool = None
    succeeded = False
    try:
        if not dry_run:
            pool = connect_pool(settings)
        result = run_import(
            path, pool=pool, dry_run=dry_run, insert_workers=settings.insert_workers
        )
        succeeded = True
    except TrailCountError as exc:
        _fail("Import failed", exc)
    finally:
        if pool is not None:
            pool.close()
        if not dry_run and not keep_file:
            dispose_export(path, settings, succeeded=succeeded)

    click.echo(f"Import {'(dry run) ' if dry_run else ''}complete: {path}")
    click.echo(f"  rows:         {result.rows}")
    click.echo(f"  dates:        {', '.join(d.isoformat() for d in result.dates) or '-'}")
    click.echo(f"  individual:   {result.individual_decoded} decoded, {result.individual_inserted} inserted")
    click.echo(f"  aggregated:   {result.aggregated_built} built, {result.aggregated_inserted} inserted")
    click.echo(f"  elapsed:      {result.duration_ms} ms")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(path: Path) -> None:
    """Validate the header and decode every row, without touching the sink."""
    from trailcount_pipeline.pipelines.trail_counts import run_import

    try:
        result = run_import(path, dry_run=True)
    except TrailCountError as exc:
        _fail("Export is invalid", exc)

    click.echo(f"OK: {path}")
    click.echo(f"  {result.rows} rows, {result.individual_decoded} station readings")
    click.echo(f"  {result.aggregated_built} daily rollups over {len(result.dates)} date(s)")


@main.command()
def layout() -> None:
    """Print the station layout table."""
    from trailcount_shared.layout import load_station_layout

    try:
        table = load_station_layout(settings.station_layout_path)
    except ConfigError as exc:
        _fail("Layout is invalid", exc)

    click.echo(f"{'id':>4}  {'start':>5}  {'span':>4}  {'ped':3}  {'bike':4}  name")
    for s in table.stations:
        click.echo(
            f"{s.location_id:>4}  {s.start:>5}  {s.span:>4}  "
            f"{'yes' if s.has_pedestrian else 'no':3}  {'yes' if s.has_bicycle else 'no':4}  {s.name}"
        )
    click.echo(f"{len(table.stations)} stations, {len(table.expected_header())} header columns")


@main.command()
@click.option(
    "--date",
    "day",
    required=True,
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Count date (YYYY-MM-DD)",
)
def status(day: datetime) -> None:
    """Show the stored daily rollups for one date."""
    from trailcount_pipeline.pipelines.poller import connect_pool

    count_date = day.date()
    try:
        pool = connect_pool(settings)
        try:
            with pool.session() as session:
                readings = session.count_rows(session.individual_table, count_date)
                rollups = session.fetch_aggregates(count_date)
        finally:
            pool.close()
    except TrailCountError as exc:
        _fail("Error fetching status", exc)

    click.echo(f"{count_date.isoformat()}: {readings} readings, {len(rollups)} station rollups")
    for r in rollups:
        click.echo(
            f"  {r.location_id:>4}  ped={_fmt(r.total_ped):>6}  "
            f"bike={_fmt(r.total_bike):>6}  total={_fmt(r.total):>6}"
        )


def _fmt(value: int | None) -> str:
    return "-" if value is None else str(value)


if __name__ == "__main__":
    main()
