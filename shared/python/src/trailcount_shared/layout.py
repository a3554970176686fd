"""
layout.py — Station layout table: which export columns belong to which station.

The table is data, not code: the canonical layout comes from
``constants.STATIONS`` and can be replaced by a JSON file with the same
shape (a list of station objects) via ``settings.station_layout_path``.

Loading validates that the stations partition the data columns with no gaps
or overlaps. Capability flags are *not* checked here; a flag/span
disagreement is reported by the row decoder as a LayoutMismatch.

Usage:
    from trailcount_shared.layout import load_station_layout

    layout = load_station_layout()
    layout.expected_header()   # ["Time", "Bartram's Garden", ..., ""]
    for station in layout.stations:
        station.location_id, station.start, station.span
"""

from __future__ import annotations

import functools
import json
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from trailcount_shared.constants import STATIONS, TIME_COLUMN, TRAILING_COLUMNS
from trailcount_shared.errors import ConfigError

log = structlog.get_logger(__name__)


class StationLayout(BaseModel):
    """One station's column group in the export."""

    model_config = ConfigDict(frozen=True)

    location_id: int
    name: str
    start: int = Field(ge=1)          # column 0 is the timestamp
    columns: tuple[str, ...] = Field(min_length=1)
    has_pedestrian: bool
    has_bicycle: bool

    @property
    def span(self) -> int:
        return len(self.columns)

    @property
    def stop(self) -> int:
        return self.start + self.span


class StationLayoutTable(BaseModel):
    """The full, ordered station table."""

    model_config = ConfigDict(frozen=True)

    stations: tuple[StationLayout, ...]
    time_column: str = TIME_COLUMN
    trailing_columns: tuple[str, ...] = TRAILING_COLUMNS

    @model_validator(mode="after")
    def partition_columns(self) -> "StationLayoutTable":
        expected_start = 1
        seen: set[int] = set()
        for station in self.stations:
            if station.start != expected_start:
                kind = "overlaps" if station.start < expected_start else "leaves a gap before"
                raise ValueError(
                    f"station {station.location_id} ({station.name}) starts at column "
                    f"{station.start}, {kind} column {expected_start}"
                )
            if station.location_id in seen:
                raise ValueError(f"duplicate location_id {station.location_id}")
            seen.add(station.location_id)
            expected_start = station.stop
        return self

    @property
    def data_columns(self) -> int:
        return sum(s.span for s in self.stations)

    def expected_header(self) -> list[str]:
        header = [self.time_column]
        for station in self.stations:
            header.extend(station.columns)
        header.extend(self.trailing_columns)
        return header

    def by_location(self) -> dict[int, StationLayout]:
        return {s.location_id: s for s in self.stations}

    @classmethod
    def from_records(cls, records: list[dict]) -> "StationLayoutTable":
        return cls(stations=tuple(StationLayout.model_validate(r) for r in records))


@functools.lru_cache(maxsize=8)
def load_station_layout(path: Path | None = None) -> StationLayoutTable:
    """
    Return the station layout table, loaded and validated once per path.

    Args:
        path: JSON file holding a list of station objects. None (default)
              uses the built-in table from constants.STATIONS.

    Returns:
        StationLayoutTable.

    Raises:
        ConfigError: the file is unreadable, not JSON, or not a valid layout.
    """
    if path is None:
        return _validated(STATIONS, "builtin")
    try:
        records = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError("Unable to read station layout", path=str(path), cause=str(exc)) from exc
    return _validated(records, str(path))


def _validated(records: list[dict], source: str) -> StationLayoutTable:
    try:
        table = StationLayoutTable.from_records(records)
    except (ValidationError, TypeError) as exc:
        raise ConfigError(
            "Invalid station layout", source=source, errors=_summarize(exc)
        ) from exc

    log.debug(
        "station_layout_loaded",
        source=source,
        stations=len(table.stations),
        header_columns=len(table.expected_header()),
    )
    return table


def _summarize(exc: Exception) -> str:
    lines = [ln.strip() for ln in str(exc).splitlines() if ln.strip()]
    return " | ".join(lines[:3])
