"""
transforms/decode.py — Wide export row → per-station IndividualCount records.

One export row holds a timestamp followed by every station's column group.
Decoding is a pure transform:

    row = ["May 6, 2023 12:30 PM", "10", "3", "2", "4", "1", ...]
    decode_row(row, layout)  →  [IndividualCount(location_id=16, total=10, ...), ...]

Rules:
  - the row must be exactly as wide as the header, otherwise RowWidthMismatch
  - the timestamp must parse, otherwise ParseError (the run aborts)
  - every other field parses independently to int or None; never fails
  - each station's slice must agree with its capability flags, otherwise
    LayoutMismatch (TooMany / TooFew / UnexpectedArity)

Usage:
    from trailcount_pipeline.transforms.decode import check_header, decode_row

    check_header(header_row, layout)          # raises HeaderMismatch
    counts = decode_row(row, layout, row_number=3)
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime

from trailcount_shared.errors import (
    HeaderMismatch,
    LayoutMismatch,
    LayoutMismatchKind,
    ParseError,
    RowWidthMismatch,
)
from trailcount_shared.layout import StationLayout, StationLayoutTable
from trailcount_shared.models import IndividualCount
from trailcount_shared.time_utils import parse_export_timestamp

_INTEGER = re.compile(r"^[+-]?\d+$")

# Sink count columns are 32-bit INTEGER
COUNT_MIN = -(2**31)
COUNT_MAX = 2**31 - 1


def parse_count(raw: str | None) -> int | None:
    """
    Parse one count field.

    Empty, unparseable or outside the 32-bit range → None (absent), never zero.
    """
    if raw is None:
        return None
    s = raw.strip()
    if not _INTEGER.match(s):
        return None
    value = int(s)
    if not COUNT_MIN <= value <= COUNT_MAX:
        return None
    return value


def check_header(header: Sequence[str | None], layout: StationLayoutTable) -> None:
    """
    Compare the declared header row field-for-field against the layout.

    Raises:
        HeaderMismatch: listing every differing position.
    """
    expected = layout.expected_header()
    found = ["" if v is None else v for v in header]

    differences: list[tuple[int, str | None, str | None]] = []
    for idx in range(max(len(expected), len(found))):
        want = expected[idx] if idx < len(expected) else None
        got = found[idx] if idx < len(found) else None
        if want != got:
            differences.append((idx, want, got))

    if differences:
        raise HeaderMismatch(
            "Header does not match expected header",
            differences=differences,
            expected_columns=len(expected),
            found_columns=len(found),
        )


def check_row_width(found: int, layout: StationLayoutTable, *, row_number: int | None = None) -> None:
    """
    A data row must have exactly as many fields as the expected header.

    Raises:
        RowWidthMismatch: the row is short (truncated) or over-wide.
    """
    expected = len(layout.expected_header())
    if found != expected:
        raise RowWidthMismatch(
            "Record has the wrong number of fields",
            row=row_number,
            expected_columns=expected,
            found_columns=found,
        )


def build_count(
    station: StationLayout,
    timestamp: datetime,
    fields: Sequence[int | None],
    *,
    row_number: int | None = None,
) -> IndividualCount:
    """
    Map one station slice onto an IndividualCount.

    `fields` starts with the station total, followed by either one in/out
    pair (span 3) or both pairs, pedestrians first (span 5).
    """
    ped_in = ped_out = bike_in = bike_out = None
    ped, bike = station.has_pedestrian, station.has_bicycle

    def mismatch(kind: LayoutMismatchKind) -> LayoutMismatch:
        return LayoutMismatch(
            kind,
            location_id=station.location_id,
            station=station.name,
            span=len(fields),
            row=row_number,
        )

    if len(fields) == 5:
        if not ped and not bike:
            raise mismatch(LayoutMismatchKind.TOO_MANY)
        ped_in, ped_out, bike_in, bike_out = fields[1:5]
    elif len(fields) == 3:
        if ped and bike:
            raise mismatch(LayoutMismatchKind.TOO_FEW)
        if ped:
            ped_in, ped_out = fields[1:3]
        elif bike:
            bike_in, bike_out = fields[1:3]
    else:
        raise mismatch(LayoutMismatchKind.UNEXPECTED_ARITY)

    return IndividualCount(
        location_id=station.location_id,
        count_time=timestamp,
        total=fields[0],
        ped_in=ped_in,
        ped_out=ped_out,
        bike_in=bike_in,
        bike_out=bike_out,
    )


def parse_row_timestamp(row: Sequence[str | None], *, row_number: int | None = None) -> datetime:
    """
    Parse the timestamp field of a row.

    Raises:
        ParseError: the timestamp is missing or malformed.
    """
    raw_ts = row[0] if row else None
    timestamp = parse_export_timestamp(raw_ts)
    if timestamp is None:
        raise ParseError(
            "Could not parse timestamp from record",
            row=row_number,
            value=raw_ts,
        )
    return timestamp


def decode_stations(
    row: Sequence[str | None],
    timestamp: datetime,
    layout: StationLayoutTable,
    *,
    row_number: int | None = None,
) -> list[IndividualCount]:
    """Slice an already time-stamped row into one IndividualCount per station."""
    check_row_width(len(row), layout, row_number=row_number)
    values = [parse_count(v) for v in row]

    return [
        build_count(station, timestamp, values[station.start : station.stop], row_number=row_number)
        for station in layout.stations
    ]


def decode_row(
    row: Sequence[str | None],
    layout: StationLayoutTable,
    *,
    row_number: int | None = None,
) -> list[IndividualCount]:
    """
    Decode one export row into one IndividualCount per station.

    Args:
        row:        Raw fields, timestamp first.
        layout:     Station layout table.
        row_number: 1-based line number in the file, for error context.

    Returns:
        IndividualCount list in layout order.

    Raises:
        ParseError:       the timestamp is missing or malformed.
        RowWidthMismatch: the row is short or over-wide.
        LayoutMismatch:   a station's flags disagree with its span.
    """
    timestamp = parse_row_timestamp(row, row_number=row_number)
    return decode_stations(row, timestamp, layout, row_number=row_number)
