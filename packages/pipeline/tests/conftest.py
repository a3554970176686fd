"""
tests/conftest.py — Shared pytest fixtures for the importer test suite.

Provides:
  build_row         — builds one wide export row from per-station values
  make_export       — writes a counter export (metadata, header, rows) to disk
  importer_settings — Settings pointed at tmp_path with a DuckDB sink
  duckdb_pool       — single-connection in-memory DuckDB pool
  recording_sink    — thread-safe fake sink that records every call in order
  recording_pool    — ConnectionPool over the recording sink
"""

from __future__ import annotations

import csv
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from trailcount_shared.config import Settings
from trailcount_shared.db import ConnectionPool, DuckDBPool, SinkSession
from trailcount_shared.errors import SinkError
from trailcount_shared.layout import StationLayoutTable, load_station_layout

METADATA_LINE = "Counter report,05/06/2023 - 05/07/2023"


# ---------------------------------------------------------------------------
# Export files
# ---------------------------------------------------------------------------


def export_row(
    timestamp: str,
    values: dict[int, Sequence[int | str | None]] | None = None,
    layout: StationLayoutTable | None = None,
) -> list[str]:
    """
    One data row: timestamp, every station's columns, trailing empty field.

    `values` maps location_id → that station's fields (total first); stations
    not listed are left empty.
    """
    layout = layout or load_station_layout()
    row = [timestamp] + [""] * layout.data_columns + [""]
    by_location = layout.by_location()
    for location_id, fields in (values or {}).items():
        station = by_location[location_id]
        for offset, value in enumerate(fields):
            row[station.start + offset] = "" if value is None else str(value)
    return row


@pytest.fixture
def build_row() -> Callable[..., list[str]]:
    return export_row


@pytest.fixture
def layout() -> StationLayoutTable:
    return load_station_layout()


@pytest.fixture
def make_export(tmp_path: Path) -> Callable[..., Path]:
    """
    Factory writing an export file.

    make_export(rows, header=None, name="export.csv", directory=None) → Path
    """

    def _make(
        rows: Sequence[Sequence[str]],
        *,
        header: Sequence[str] | None = None,
        name: str = "export.csv",
        directory: Path | None = None,
    ) -> Path:
        path = (directory or tmp_path) / name
        with path.open("w", newline="", encoding="utf-8") as fh:
            fh.write(METADATA_LINE + "\n")
            writer = csv.writer(fh)
            writer.writerow(header if header is not None else load_station_layout().expected_header())
            writer.writerows(rows)
        return path

    return _make


# ---------------------------------------------------------------------------
# Settings and real sinks
# ---------------------------------------------------------------------------


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    path = tmp_path / "storage"
    path.mkdir()
    return path


@pytest.fixture
def importer_settings(storage_dir: Path, tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        storage_path=storage_dir,
        sink_backend="duckdb",
        duckdb_path=str(tmp_path / "sink" / "trailcounts.duckdb"),
        pool_max_connections=1,
        insert_workers=1,
        pool_timeout_seconds=5,
        poll_interval_seconds=15,
    )


@pytest.fixture
def duckdb_pool() -> Iterator[DuckDBPool]:
    pool = DuckDBPool(
        ":memory:",
        max_connections=1,
        timeout=5,
        individual_table="tblcountdata",
        aggregate_table="tblheader",
    )
    yield pool
    pool.close()


# ---------------------------------------------------------------------------
# Recording fake sink
# ---------------------------------------------------------------------------


class RecordingSink:
    """
    Shared state behind every RecordingSession.

    events: ordered list of (operation, detail) tuples across all threads.
    rows:   simulated row counts returned by delete_by_date, keyed by (table, date).
    fail:   optional predicate (operation, detail) → bool; True raises SinkError.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.events: list[tuple[str, Any]] = []
        self.rows: dict[tuple[str, date], int] = {}
        self.fail: Callable[[str, Any], bool] | None = None
        self.delay = delay
        self._lock = threading.Lock()

    def record(self, operation: str, detail: Any) -> None:
        if self.delay:
            time.sleep(self.delay)
        if self.fail is not None and self.fail(operation, detail):
            raise SinkError(f"{operation} failed", operation=operation, cause="simulated")
        with self._lock:
            self.events.append((operation, detail))

    def operations(self, name: str) -> list[Any]:
        return [detail for op, detail in self.events if op == name]

    def index_of(self, name: str) -> list[int]:
        return [i for i, (op, _) in enumerate(self.events) if op == name]


class RecordingSession(SinkSession):
    def __init__(self, sink: RecordingSink, **kwargs: Any) -> None:
        super().__init__(None, **kwargs)
        self._sink = sink

    def delete_by_date(self, table: str, day: date) -> int:
        self._sink.record("delete", (table, day))
        return self._sink.rows.get((table, day), 0)

    def insert_individual(self, count) -> None:
        self._sink.record("insert_individual", count.identity())

    def insert_aggregate(self, count) -> None:
        self._sink.record("insert_aggregate", count.identity())

    def commit(self) -> None:
        self._sink.record("commit", threading.get_ident())

    def rollback(self) -> None:
        self._sink.record("rollback", threading.get_ident())

    def _execute(self, sql: str, params: Sequence[Any]) -> Any:
        raise NotImplementedError

    def _rows_affected(self, cur: Any) -> int:
        raise NotImplementedError


class RecordingPool(ConnectionPool):
    backend = "recording"

    def __init__(self, sink: RecordingSink, max_connections: int = 4) -> None:
        super().__init__(
            max_connections=max_connections,
            timeout=5,
            individual_table="tblcountdata",
            aggregate_table="tblheader",
        )
        self.sink = sink
        self.checkouts = 0
        self.closed = False
        self._count_lock = threading.Lock()

    def _checkout(self) -> SinkSession:
        with self._count_lock:
            self.checkouts += 1
        return RecordingSession(self.sink, **self._session_kwargs())

    def _checkin(self, session: SinkSession) -> None:
        pass

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def recording_pool(recording_sink: RecordingSink) -> RecordingPool:
    return RecordingPool(recording_sink)


@pytest.fixture
def make_recording_pool(recording_sink: RecordingSink) -> Callable[[int], RecordingPool]:
    def _make(max_connections: int) -> RecordingPool:
        return RecordingPool(recording_sink, max_connections=max_connections)

    return _make
