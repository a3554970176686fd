"""
tests/test_pipelines/test_trail_counts.py — End-to-end import runs.

Sink-backed runs use an in-memory DuckDB pool with a single connection.
"""

from __future__ import annotations

from datetime import date

import pytest

from trailcount_pipeline.pipelines.trail_counts import run_import
from trailcount_shared.errors import HeaderMismatch

MAY_6 = date(2023, 5, 6)


@pytest.fixture
def may_export(make_export, build_row):
    return make_export(
        [
            build_row("May 6, 2023 12:30 PM", {16: [10, 3, 2, 4, 1]}),
            build_row("May 6, 2023 12:45 PM", {16: [2, None, 1, None, 1], 24: [3, 1, 2]}),
            build_row("May 7, 2023 12:00 AM", {16: [1, 1, 0, 0, 0]}),
        ]
    )


class TestRunImport:
    def test_loads_counts_and_rollups(self, may_export, duckdb_pool, layout):
        result = run_import(may_export, pool=duckdb_pool, insert_workers=1)

        stations = len(layout.stations)
        assert result.rows == 3
        assert result.dates == [MAY_6, date(2023, 5, 7)]
        assert result.dates_deleted == 2
        assert result.individual_inserted == 3 * stations
        assert result.aggregated_inserted == 2 * stations

        with duckdb_pool.session() as session:
            assert session.count_rows(session.individual_table, MAY_6) == 2 * stations
            rollups = {r.location_id: r for r in session.fetch_aggregates(MAY_6)}

        assert len(rollups) == stations
        bartram = rollups[16]
        assert (bartram.total, bartram.total_ped, bartram.total_bike) == (12, 6, 6)
        pine = rollups[24]
        assert (pine.total, pine.total_ped, pine.total_bike) == (3, None, 3)
        untouched = rollups[1]
        assert (untouched.total, untouched.total_ped, untouched.total_bike) == (None, None, None)

    def test_reimport_is_idempotent(self, may_export, duckdb_pool, layout):
        first = run_import(may_export, pool=duckdb_pool, insert_workers=1)
        second = run_import(may_export, pool=duckdb_pool, insert_workers=1)

        stations = len(layout.stations)
        assert second.load.rows_deleted == {
            "tblcountdata": first.individual_inserted,
            "tblheader": first.aggregated_inserted,
        }
        with duckdb_pool.session() as session:
            assert session.count_rows(session.individual_table, MAY_6) == 2 * stations
            assert session.count_rows(session.aggregate_table, MAY_6) == stations
            assert session.count_rows(session.individual_table, date(2023, 5, 7)) == stations

    def test_other_dates_are_left_alone(self, make_export, build_row, duckdb_pool, layout):
        run_import(
            make_export([build_row("May 5, 2023 11:45 PM", {16: [1, 1, 0, 0, 0]})], name="a.csv"),
            pool=duckdb_pool,
            insert_workers=1,
        )
        run_import(
            make_export([build_row("May 6, 2023 12:00 AM", {16: [2, 2, 0, 0, 0]})], name="b.csv"),
            pool=duckdb_pool,
            insert_workers=1,
        )
        with duckdb_pool.session() as session:
            assert session.count_rows(session.individual_table, date(2023, 5, 5)) == len(layout.stations)
            assert session.count_rows(session.individual_table, MAY_6) == len(layout.stations)

    def test_out_of_range_count_keeps_the_day(self, make_export, build_row, duckdb_pool, layout):
        run_import(
            make_export([build_row("May 6, 2023 12:30 PM", {16: [10, 3, 2, 4, 1]})], name="a.csv"),
            pool=duckdb_pool,
            insert_workers=1,
        )
        result = run_import(
            make_export([build_row("May 6, 2023 12:30 PM", {16: [3000000000, 3, 2, 4, 1]})], name="b.csv"),
            pool=duckdb_pool,
            insert_workers=1,
        )

        assert result.individual_inserted == len(layout.stations)
        with duckdb_pool.session() as session:
            assert session.count_rows(session.individual_table, MAY_6) == len(layout.stations)
            assert session.count_rows(session.aggregate_table, MAY_6) == len(layout.stations)
            bartram = {r.location_id: r for r in session.fetch_aggregates(MAY_6)}[16]
        assert bartram.total is None
        assert bartram.total_ped == 5

    def test_header_mismatch_touches_no_sink(self, make_export, build_row, layout, recording_pool, recording_sink):
        header = layout.expected_header()
        header[-2] = "Wissahickon Trail Cyclists"
        path = make_export([build_row("May 6, 2023 12:30 PM")], header=header)

        with pytest.raises(HeaderMismatch):
            run_import(path, pool=recording_pool)

        assert recording_pool.checkouts == 0
        assert recording_sink.events == []

    def test_dry_run_needs_no_pool(self, may_export, layout):
        result = run_import(may_export, dry_run=True)
        assert result.dry_run is True
        assert result.load is None
        assert result.individual_decoded == 3 * len(layout.stations)
        assert result.aggregated_built == 2 * len(layout.stations)
        assert result.individual_inserted == 0

    def test_pool_required_unless_dry_run(self, may_export):
        with pytest.raises(ValueError):
            run_import(may_export)
