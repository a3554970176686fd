"""
sources/counter_export.py — The counter vendor's wide CSV export.

File shape:
  line 1   metadata (report title / date range) — skipped
  line 2   header — must equal the station layout's expected header exactly
  line 3+  one row per 15-minute timestamp, every station side by side

The whole file is read before anything is decoded, and the header is
checked before any data row is touched. Every data row must be exactly as
wide as the header; a short (truncated) or over-wide row, like any other
malformed row, aborts the run. Blank records are skipped.

Usage:
    from trailcount_pipeline.sources.counter_export import CounterExportSource

    source = CounterExportSource()
    export = source.run(path=Path("/data/export.csv"))
    export.counts      # list[IndividualCount]
    export.dates       # distinct calendar dates in the file
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import polars as pl

from trailcount_pipeline.sources.base import BaseSource
from trailcount_pipeline.transforms.decode import (
    check_header,
    check_row_width,
    decode_stations,
    parse_row_timestamp,
)
from trailcount_shared.config import settings
from trailcount_shared.errors import ExportError
from trailcount_shared.layout import StationLayoutTable, load_station_layout
from trailcount_shared.models import IndividualCount
from trailcount_shared.time_utils import distinct_dates

# 1-based line number of the first data row (metadata line, header line)
FIRST_DATA_LINE = 3

# One quoted CSV field, doubled quotes included
_QUOTED_FIELD = r'"(?:[^"]|"")*"'


def field_counts(text: str) -> pl.DataFrame:
    """
    Count the CSV fields on every non-blank line of `text`.

    Returns:
        DataFrame with `line` (1-based line number) and `fields`.
    """
    lines = pl.DataFrame({"text": text.splitlines()}, schema={"text": pl.Utf8})
    return (
        lines.with_row_index("line", offset=1)
        .filter(pl.col("text").str.strip_chars() != "")
        .select(
            pl.col("line").cast(pl.Int64),
            (
                pl.col("text").str.replace_all(_QUOTED_FIELD, "").str.count_matches(",", literal=True)
                + 1
            )
            .cast(pl.Int64)
            .alias("fields"),
        )
    )


@dataclass
class DecodedExport:
    """Everything one export file decodes to."""

    counts: list[IndividualCount] = field(default_factory=list)
    timestamps: list[datetime] = field(default_factory=list)

    @property
    def rows(self) -> int:
        return len(self.timestamps)

    @property
    def dates(self) -> list[date]:
        return distinct_dates(self.timestamps)

    def __len__(self) -> int:
        return len(self.counts)


class CounterExportSource(BaseSource):
    """Reads and decodes one counter export file."""

    name = "counter_export"

    def __init__(self, layout: StationLayoutTable | None = None) -> None:
        super().__init__()
        self.layout = layout or load_station_layout(settings.station_layout_path)
        self._path: Path | None = None
        self._widths = field_counts("")

    def extract(self, *, path: Path) -> pl.DataFrame:  # type: ignore[override]
        """
        Read the export with every field as a string.

        Column names are positional (column_1, column_2, ...); the first row
        of the result is the declared header. The field count of every line
        is kept for transform().

        Raises:
            ExportError: the file is missing, empty or not readable as CSV.
        """
        self._path = Path(path)
        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            raise ExportError("Could not open export", path=str(self._path), cause=str(exc)) from exc

        self._widths = field_counts(raw.decode("utf-8", errors="replace"))
        try:
            # Rows wider than the header are rejected by the field-count check
            return pl.read_csv(
                io.BytesIO(raw),
                has_header=False,
                skip_rows=1,
                infer_schema_length=0,
                truncate_ragged_lines=True,
                encoding="utf8-lossy",
            )
        except pl.exceptions.NoDataError as exc:
            raise ExportError("Header not found", path=str(self._path)) from exc
        except pl.exceptions.PolarsError as exc:
            raise ExportError(
                "Could not read rows from CSV",
                path=str(self._path),
                cause=str(exc).splitlines()[0] if str(exc) else type(exc).__name__,
            ) from exc

    def transform(self, raw: pl.DataFrame) -> DecodedExport:
        """
        Check the header and every row's width, then decode every data row.
        Blank records are skipped.

        Raises:
            ExportError:      no header row.
            HeaderMismatch:   header differs from the layout.
            RowWidthMismatch: a data row is short or over-wide.
            ParseError:       a row timestamp is malformed.
            LayoutMismatch:   the layout's flags disagree with a span.
        """
        if raw.is_empty():
            raise ExportError("Header not found", path=str(self._path))

        rows = raw.rows()
        check_header(rows[0], self.layout)
        self._check_widths()

        export = DecodedExport()
        blank = 0
        for offset, row in enumerate(rows[1:]):
            line = FIRST_DATA_LINE + offset
            if all(v is None or not v.strip() for v in row):
                blank += 1
                continue
            timestamp = parse_row_timestamp(row, row_number=line)
            export.timestamps.append(timestamp)
            export.counts.extend(decode_stations(row, timestamp, self.layout, row_number=line))

        self._log.debug(
            "export_decoded",
            rows=export.rows,
            blank_rows=blank,
            counts=len(export.counts),
            dates=len(export.dates),
        )
        return export

    def _check_widths(self) -> None:
        expected = len(self.layout.expected_header())
        ragged = self._widths.filter(
            (pl.col("line") >= FIRST_DATA_LINE) & (pl.col("fields") != expected)
        )
        if not ragged.is_empty():
            line, fields = ragged.row(0)
            check_row_width(fields, self.layout, row_number=line)

    def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "path": str(self._path) if self._path else None,
            "stations": len(self.layout.stations),
            "header_columns": len(self.layout.expected_header()),
        }

