"""
tests/test_loaders/test_sink_loader.py — Tests for the delete-then-insert sink loader.

All tests run against the recording fake sink from conftest; DuckDB-backed
loads are covered in test_pipelines/test_trail_counts.py.
"""

from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta

import pytest

from trailcount_pipeline.loaders.sink_loader import SinkLoader
from trailcount_shared.errors import SinkError
from trailcount_shared.models import AggregatedCount, IndividualCount

DATES = [date(2023, 5, 6), date(2023, 5, 7), date(2023, 5, 8)]


def _individual(n: int) -> list[IndividualCount]:
    start = datetime(2023, 5, 6, 0, 0)
    return [
        IndividualCount(location_id=i % 20 + 1, count_time=start + timedelta(minutes=15 * i), total=i)
        for i in range(n)
    ]


def _aggregated(n: int) -> list[AggregatedCount]:
    return [
        AggregatedCount(location_id=i + 1, count_date=date(2023, 5, 6), total=i) for i in range(n)
    ]


class TestSinkLoaderLoad:
    def test_every_record_inserted_exactly_once(self, recording_pool, recording_sink):
        individual = _individual(57)
        aggregated = _aggregated(20)

        result = SinkLoader(recording_pool, insert_workers=4).load(DATES, individual, aggregated)

        assert result.dates_deleted == 3
        assert result.individual_inserted == 57
        assert result.aggregated_inserted == 20
        assert result.records_loaded == 77

        inserted = recording_sink.operations("insert_individual")
        assert sorted(i["count_time"] for i in inserted) == sorted(
            c.count_time.isoformat() for c in individual
        )
        assert len(recording_sink.operations("insert_aggregate")) == 20

    def test_each_date_deleted_from_both_tables(self, recording_pool, recording_sink):
        SinkLoader(recording_pool, insert_workers=2).load(DATES, [], [])
        deletes = recording_sink.operations("delete")
        assert sorted(deletes) == sorted(
            [("tblcountdata", d) for d in DATES] + [("tblheader", d) for d in DATES]
        )

    def test_rows_deleted_per_table(self, recording_pool, recording_sink):
        recording_sink.rows[("tblcountdata", DATES[0])] = 96
        recording_sink.rows[("tblcountdata", DATES[1])] = 4
        recording_sink.rows[("tblheader", DATES[0])] = 20

        result = SinkLoader(recording_pool, insert_workers=2).load(DATES, [], [])

        assert result.rows_deleted == {"tblcountdata": 100, "tblheader": 20}

    def test_commit_per_date_in_delete_phase(self, make_recording_pool, recording_sink):
        pool = make_recording_pool(1)
        SinkLoader(pool, insert_workers=1).delete_dates(DATES)
        # one worker: delete, delete, commit for each date
        ops = [op for op, _ in recording_sink.events]
        assert ops == ["delete", "delete", "commit"] * 3

    def test_insert_workers_commit_once_after_draining(self, make_recording_pool, recording_sink):
        pool = make_recording_pool(1)
        SinkLoader(pool, insert_workers=1).insert_individual(_individual(5))
        ops = [op for op, _ in recording_sink.events]
        assert ops == ["insert_individual"] * 5 + ["commit"]

    def test_no_insert_before_last_delete(self, make_recording_pool, recording_sink):
        recording_sink.delay = 0.005
        pool = make_recording_pool(4)
        dates = [date(2023, 5, 1) + timedelta(days=i) for i in range(12)]

        SinkLoader(pool, insert_workers=4).load(dates, _individual(40), _aggregated(20))

        last_delete = max(recording_sink.index_of("delete"))
        first_individual = min(recording_sink.index_of("insert_individual"))
        last_individual = max(recording_sink.index_of("insert_individual"))
        first_aggregate = min(recording_sink.index_of("insert_aggregate"))
        assert last_delete < first_individual
        assert last_individual < first_aggregate

    def test_empty_phases_skip_checkout(self, recording_pool):
        result = SinkLoader(recording_pool, insert_workers=2).load([], [], [])
        assert recording_pool.checkouts == 0
        assert result.records_loaded == 0
        assert [p.workers for p in result.phases] == [0, 0, 0]

    def test_workers_capped_by_work(self, recording_pool):
        result = SinkLoader(recording_pool, insert_workers=4).load(DATES[:1], _individual(2), _aggregated(1))
        assert [p.workers for p in result.phases] == [1, 2, 1]

    def test_delete_workers_default_to_pool_size(self, make_recording_pool):
        pool = make_recording_pool(3)
        phase = SinkLoader(pool, insert_workers=1).delete_dates(
            [date(2023, 5, 1) + timedelta(days=i) for i in range(10)]
        )
        assert phase.workers == 3
        assert phase.processed == 10


class TestSinkLoaderFailures:
    def test_insert_failure_aborts_before_aggregates(self, recording_pool, recording_sink):
        recording_sink.fail = lambda op, detail: op == "insert_individual" and detail["location_id"] == 3

        with pytest.raises(SinkError) as exc_info:
            SinkLoader(recording_pool, insert_workers=2).load(DATES, _individual(40), _aggregated(20))

        assert exc_info.value.operation == "insert_individual"
        assert recording_sink.operations("insert_aggregate") == []
        assert recording_sink.operations("rollback")

    def test_delete_failure_prevents_inserts(self, recording_pool, recording_sink):
        recording_sink.fail = lambda op, detail: op == "delete" and detail[1] == DATES[1]

        with pytest.raises(SinkError):
            SinkLoader(recording_pool, insert_workers=2).load(DATES, _individual(5), _aggregated(2))

        assert recording_sink.operations("insert_individual") == []
        assert recording_sink.operations("insert_aggregate") == []

    def test_commit_failure_is_fatal(self, make_recording_pool, recording_sink):
        recording_sink.fail = lambda op, detail: op == "commit"
        pool = make_recording_pool(1)

        with pytest.raises(SinkError) as exc_info:
            SinkLoader(pool, insert_workers=1).insert_aggregated(_aggregated(3))
        assert exc_info.value.operation == "commit"

    def test_other_workers_finish_before_raise(self, make_recording_pool, recording_sink):
        recording_sink.delay = 0.002
        calls = itertools.count()

        def fail_first(op, detail):
            return op == "insert_individual" and next(calls) == 0

        recording_sink.fail = fail_first
        pool = make_recording_pool(3)

        with pytest.raises(SinkError):
            SinkLoader(pool, insert_workers=3).insert_individual(_individual(30))

        # the failed worker stopped; the rest drained the queue and committed
        assert len(recording_sink.operations("insert_individual")) == 29
        assert len(recording_sink.operations("commit")) == 2
