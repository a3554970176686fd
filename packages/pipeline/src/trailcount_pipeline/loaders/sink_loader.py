"""
loaders/sink_loader.py — Delete-then-insert loader for the count sink.

The sink has no upsert, so a reimport first purges every date present in the
export and then inserts fresh rows. The loader runs three phases, strictly in
order, each behind a full barrier:

  1. delete   — one worker per pooled connection; for each date, delete from
                the individual and aggregate tables, then commit
  2. insert individual counts — fixed-size worker pool, one commit per worker
                after it has drained the queue
  3. insert aggregated counts — same fan-out as phase 2

Work is handed out through an unbounded queue.Queue filled before the workers
start (the feeder never blocks); each item goes to exactly one worker. Workers
keep local counts that are returned at join and summed here.

Any failure is fatal: the failing worker rolls back its own uncommitted work,
logs the record it was on, and raises. The phase still waits for every other
worker before the first error is re-raised, so no later phase starts.

Usage:
    from trailcount_pipeline.loaders.sink_loader import SinkLoader

    loader = SinkLoader(pool, insert_workers=10)
    result = loader.load(dates, individual_counts, aggregated_counts)
    print(result.individual_inserted, result.aggregated_inserted)
"""

from __future__ import annotations

import queue
import time
from collections import Counter
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from trailcount_shared.config import settings
from trailcount_shared.db import ConnectionPool, SinkSession
from trailcount_shared.errors import SinkError
from trailcount_shared.models import AggregatedCount, IndividualCount

log = structlog.get_logger(__name__)

# Queue terminator; one per worker, queued after all real work
_DONE = object()


@dataclass
class PhaseResult:
    """Outcome of one loader phase."""

    phase: str
    workers: int = 0
    processed: int = 0
    rows_deleted: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0


@dataclass
class LoadResult:
    """Summary of a full delete + insert load."""

    dates_deleted: int = 0
    rows_deleted: dict[str, int] = field(default_factory=dict)
    individual_inserted: int = 0
    aggregated_inserted: int = 0
    phases: list[PhaseResult] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def records_loaded(self) -> int:
        return self.individual_inserted + self.aggregated_inserted


class SinkLoader:
    """
    Runs the three load phases against a bounded connection pool.

    Args:
        pool:           Shared connection pool.
        insert_workers: Worker count for the insert phases (default:
                        settings.insert_workers).
        delete_workers: Worker count for the delete phase (default: one per
                        pooled connection).
    """

    def __init__(
        self,
        pool: ConnectionPool,
        *,
        insert_workers: int | None = None,
        delete_workers: int | None = None,
    ) -> None:
        self._pool = pool
        self._insert_workers = insert_workers or settings.insert_workers
        self._delete_workers = delete_workers or pool.max_connections

    # ------------------------------------------------------------------
    # Full load
    # ------------------------------------------------------------------

    def load(
        self,
        dates: Sequence[date],
        individual: Sequence[IndividualCount],
        aggregated: Sequence[AggregatedCount],
    ) -> LoadResult:
        """
        Purge `dates`, then insert `individual` and `aggregated` counts.

        Raises:
            SinkError: any delete, insert or commit failed (run must abort).
        """
        t0 = time.monotonic()
        result = LoadResult()

        deleted = self.delete_dates(dates)
        result.phases.append(deleted)
        result.dates_deleted = deleted.processed
        result.rows_deleted = deleted.rows_deleted

        inserted = self.insert_individual(individual)
        result.phases.append(inserted)
        result.individual_inserted = inserted.processed

        rolled_up = self.insert_aggregated(aggregated)
        result.phases.append(rolled_up)
        result.aggregated_inserted = rolled_up.processed

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        log.info(
            "load_complete",
            dates_deleted=result.dates_deleted,
            rows_deleted=result.rows_deleted,
            individual_inserted=result.individual_inserted,
            aggregated_inserted=result.aggregated_inserted,
            duration_ms=result.duration_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def delete_dates(self, dates: Sequence[date]) -> PhaseResult:
        """Delete every row for each date from both tables, committing per date."""

        def delete_one(session: SinkSession, day: date) -> dict[str, int]:
            return {
                table: session.delete_by_date(table, day)
                for table in (session.individual_table, session.aggregate_table)
            }

        return self._fan_out("delete", dates, self._delete_workers, delete_one, commit_each=True)

    def insert_individual(self, counts: Sequence[IndividualCount]) -> PhaseResult:
        def insert_one(session: SinkSession, count: IndividualCount) -> dict[str, int]:
            session.insert_individual(count)
            return {}

        return self._fan_out(
            "insert_individual", counts, self._insert_workers, insert_one, commit_each=False
        )

    def insert_aggregated(self, counts: Sequence[AggregatedCount]) -> PhaseResult:
        def insert_one(session: SinkSession, count: AggregatedCount) -> dict[str, int]:
            session.insert_aggregate(count)
            return {}

        return self._fan_out(
            "insert_aggregated", counts, self._insert_workers, insert_one, commit_each=False
        )

    # ------------------------------------------------------------------
    # Fan-out / fan-in
    # ------------------------------------------------------------------

    def _fan_out(
        self,
        phase: str,
        items: Sequence[Any],
        workers: int,
        handle: Callable[[SinkSession, Any], dict[str, int]],
        *,
        commit_each: bool,
    ) -> PhaseResult:
        result = PhaseResult(phase=phase)
        phase_log = log.bind(phase=phase)
        if not items:
            phase_log.info("phase_skipped", reason="no_work")
            return result

        result.workers = min(workers, len(items))
        work: queue.Queue[Any] = queue.Queue()
        for item in items:
            work.put(item)
        for _ in range(result.workers):
            work.put(_DONE)

        phase_log.info("phase_start", items=len(items), workers=result.workers)
        t0 = time.monotonic()

        with ThreadPoolExecutor(
            max_workers=result.workers, thread_name_prefix=f"trailcounts-{phase}"
        ) as executor:
            futures: list[Future[tuple[int, Counter[str]]]] = [
                executor.submit(self._run_worker, phase, worker_id, work, handle, commit_each)
                for worker_id in range(result.workers)
            ]
            # Barrier: every worker finishes (or fails) before we look at results
            wait(futures)

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        failures = [exc for f in futures if (exc := f.exception()) is not None]
        if failures:
            phase_log.error(
                "phase_failed",
                failed_workers=len(failures),
                workers=result.workers,
                duration_ms=result.duration_ms,
            )
            raise failures[0]

        deleted: Counter[str] = Counter()
        for future in futures:
            processed, rows = future.result()
            result.processed += processed
            deleted.update(rows)
        result.rows_deleted = dict(deleted)

        phase_log.info(
            "phase_complete",
            processed=result.processed,
            rows_deleted=result.rows_deleted,
            duration_ms=result.duration_ms,
        )
        return result

    def _run_worker(
        self,
        phase: str,
        worker_id: int,
        work: queue.Queue[Any],
        handle: Callable[[SinkSession, Any], dict[str, int]],
        commit_each: bool,
    ) -> tuple[int, Counter[str]]:
        """Drain `work` on one pooled session; return (items processed, rows affected per table)."""
        worker_log = log.bind(phase=phase, worker=worker_id)
        processed = 0
        affected: Counter[str] = Counter()
        item: Any = None

        try:
            with self._pool.session() as session:
                try:
                    while (item := work.get()) is not _DONE:
                        affected.update(handle(session, item))
                        if commit_each:
                            session.commit()
                        processed += 1
                    item = None
                    if not commit_each:
                        session.commit()
                except Exception:
                    self._rollback(session, worker_log)
                    raise
        except Exception as exc:
            worker_log.error(
                "worker_failed",
                record=_identity(item),
                error=str(exc),
                error_type=type(exc).__name__,
                processed=processed,
            )
            raise

        worker_log.debug("worker_done", processed=processed)
        return processed, affected

    @staticmethod
    def _rollback(session: SinkSession, worker_log: Any) -> None:
        try:
            session.rollback()
        except SinkError as exc:
            # The original failure is the one that propagates
            worker_log.warning("rollback_failed", error=str(exc))


def _identity(item: Any) -> dict[str, Any] | None:
    if item is None or item is _DONE:
        return None
    if isinstance(item, (IndividualCount, AggregatedCount)):
        return item.identity()
    if isinstance(item, date):
        return {"count_date": item.isoformat()}
    return {"item": repr(item)}
