"""
time_utils.py — Export timestamp parsing and date helpers.

The counter exporter writes timestamps as "May 6, 2023 12:30 PM": month
abbreviation, unpadded day, 4-digit year, 12-hour clock. Readings are local
wall-clock times and are kept naive.

Usage:
    from trailcount_shared.time_utils import parse_export_timestamp

    ts = parse_export_timestamp("May 6, 2023 12:30 PM")   # datetime(2023, 5, 6, 12, 30)
    count_date(ts)                                         # date(2023, 5, 6)
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from trailcount_shared.constants import TIMESTAMP_FORMAT


def parse_export_timestamp(raw: str | None) -> datetime | None:
    """
    Parse an export timestamp.

    Returns None if the string is empty or does not match the export format;
    callers decide whether that is fatal.
    """
    if not raw:
        return None
    # The exporter sometimes pads with double spaces ("May  6, 2023")
    s = " ".join(raw.split())
    try:
        return datetime.strptime(s, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def count_date(ts: datetime) -> date:
    """Calendar date a reading belongs to."""
    return ts.date()


def distinct_dates(timestamps: Iterable[datetime]) -> list[date]:
    """Every timestamp truncated to its calendar date, deduplicated and sorted."""
    return sorted({count_date(ts) for ts in timestamps})
