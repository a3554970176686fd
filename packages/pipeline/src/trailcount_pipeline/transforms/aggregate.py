"""
transforms/aggregate.py — Daily per-station rollups of individual counts.

Absent-absorbing addition is the only arithmetic used:

    None + None = None
    None + 5    = 5
    3 + 4       = 7

so a station that reported nothing all day stays "no data" instead of
turning into zero traffic. It is applied twice:
  - horizontally, in + out → ped_total / bike_total for each reading
  - vertically, summing a day's readings per (location_id, count_date)

The station total is summed verbatim; it is never recomputed from the
pedestrian and bicycle figures (the counter's own total is authoritative).

Usage:
    from trailcount_pipeline.transforms.aggregate import aggregate_daily

    daily = aggregate_daily(counts)     # list[AggregatedCount]
"""

from __future__ import annotations

from collections.abc import Sequence

import polars as pl
import structlog

from trailcount_shared.models import AggregatedCount, IndividualCount

log = structlog.get_logger(__name__)

COUNT_SCHEMA: dict[str, pl.DataType] = {
    "location_id": pl.Int64,
    "count_time": pl.Datetime("us"),
    "total": pl.Int64,
    "ped_in": pl.Int64,
    "ped_out": pl.Int64,
    "bike_in": pl.Int64,
    "bike_out": pl.Int64,
}

# output column → per-reading source column
_DAILY_SUMS: dict[str, str] = {
    "total_ped": "ped_total",
    "total_bike": "bike_total",
    "total": "total",
}


def nullable_add(left: pl.Expr, right: pl.Expr) -> pl.Expr:
    """Absent-absorbing addition of two Int64 expressions."""
    return (
        pl.when(left.is_null() & right.is_null())
        .then(pl.lit(None, dtype=pl.Int64))
        .otherwise(left.fill_null(0) + right.fill_null(0))
    )


def nullable_sum(df: pl.DataFrame, group_by: Sequence[str], columns: dict[str, str]) -> pl.DataFrame:
    """
    Absent-absorbing sum of `columns` within each group.

    Args:
        df:       Input frame.
        group_by: Grouping columns.
        columns:  {output name: source column}.

    Returns:
        One row per group; an output is null when every addend was null.
    """
    present = {out: f"__{out}_present" for out in columns}
    return (
        df.group_by(list(group_by))
        .agg(
            *[pl.col(src).sum().alias(out) for out, src in columns.items()],
            *[pl.col(src).is_not_null().any().alias(present[out]) for out, src in columns.items()],
        )
        .with_columns(
            [
                pl.when(pl.col(present[out])).then(pl.col(out)).otherwise(None).alias(out)
                for out in columns
            ]
        )
        .drop(list(present.values()))
    )


def counts_frame(counts: Sequence[IndividualCount]) -> pl.DataFrame:
    """IndividualCount records → polars DataFrame (COUNT_SCHEMA)."""
    return pl.from_dicts([c.model_dump() for c in counts], schema=COUNT_SCHEMA)


def daily_frame(counts: Sequence[IndividualCount]) -> pl.DataFrame:
    """
    Aggregate readings into one row per (location_id, count_date).

    Returns:
        DataFrame with location_id, count_date, total_ped, total_bike, total,
        sorted by count_date then location_id.
    """
    if not counts:
        return pl.DataFrame(
            schema={
                "location_id": pl.Int64,
                "count_date": pl.Date,
                "total_ped": pl.Int64,
                "total_bike": pl.Int64,
                "total": pl.Int64,
            }
        )

    readings = counts_frame(counts).with_columns(
        pl.col("count_time").dt.date().alias("count_date"),
        nullable_add(pl.col("ped_in"), pl.col("ped_out")).alias("ped_total"),
        nullable_add(pl.col("bike_in"), pl.col("bike_out")).alias("bike_total"),
    )
    daily = nullable_sum(readings, ["location_id", "count_date"], _DAILY_SUMS)
    return daily.select(["location_id", "count_date", *_DAILY_SUMS]).sort(
        ["count_date", "location_id"]
    )


def aggregate_daily(counts: Sequence[IndividualCount]) -> list[AggregatedCount]:
    """Reduce one run's readings to AggregatedCount rollups."""
    daily = daily_frame(counts)
    result = [AggregatedCount.model_validate(row) for row in daily.iter_rows(named=True)]
    log.debug("daily_aggregates_built", readings=len(counts), aggregates=len(result))
    return result
