"""
db.py — Sink sessions and bounded connection pools.

The sink has no native upsert: the loader deletes a day's rows and inserts
fresh ones. A session exposes exactly that surface:

    delete_by_date(table, day) -> rows deleted
    insert_individual(count)
    insert_aggregate(count)
    commit() / rollback()

Two backends:
    postgres — psycopg2 ThreadedConnectionPool over settings.database_url
    duckdb   — one local DuckDB database, one cursor per checkout (dev/tests)

Checkout is bounded by a semaphore sized to pool_max_connections; waiting
longer than pool_timeout_seconds raises PoolError.

Usage:
    from trailcount_shared.db import build_connection_pool

    pool = build_connection_pool()
    with pool.session() as session:
        session.delete_by_date(session.individual_table, date(2023, 5, 6))
        session.commit()
    pool.close()
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any

import duckdb
import psycopg2
import psycopg2.pool
import structlog

from trailcount_shared.config import Settings, settings as default_settings
from trailcount_shared.constants import AGGREGATE_COLUMNS, INDIVIDUAL_COLUMNS
from trailcount_shared.errors import PoolError, SinkError
from trailcount_shared.models import AggregatedCount, IndividualCount

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SinkSession(ABC):
    """One checked-out sink connection. Not thread-safe; one worker each."""

    placeholder = "%s"
    driver_errors: tuple[type[Exception], ...] = ()

    def __init__(self, conn: Any, *, individual_table: str, aggregate_table: str) -> None:
        self._conn = conn
        self.individual_table = individual_table
        self.aggregate_table = aggregate_table

    # ------------------------------------------------------------------
    # Sink interface
    # ------------------------------------------------------------------

    def delete_by_date(self, table: str, day: date) -> int:
        """Delete every row of `table` whose countdate falls on `day`."""
        sql = f"DELETE FROM {table} WHERE CAST(countdate AS DATE) = {self.placeholder}"
        with self._wrap("delete", table=table, count_date=day.isoformat()):
            cur = self._execute(sql, (day,))
            return self._rows_affected(cur)

    def insert_individual(self, count: IndividualCount) -> None:
        row = count.to_insert_dict()
        sql = self._insert_sql(self.individual_table, INDIVIDUAL_COLUMNS)
        with self._wrap("insert_individual", table=self.individual_table, **count.identity()):
            self._execute(sql, tuple(row[c] for c in INDIVIDUAL_COLUMNS))

    def insert_aggregate(self, count: AggregatedCount) -> None:
        row = count.to_insert_dict()
        sql = self._insert_sql(self.aggregate_table, AGGREGATE_COLUMNS)
        with self._wrap("insert_aggregate", table=self.aggregate_table, **count.identity()):
            self._execute(sql, tuple(row[c] for c in AGGREGATE_COLUMNS))

    def commit(self) -> None:
        with self._wrap("commit"):
            self._commit()

    def rollback(self) -> None:
        with self._wrap("rollback"):
            self._rollback()

    # ------------------------------------------------------------------
    # Reads (status reporting)
    # ------------------------------------------------------------------

    def fetch_aggregates(self, day: date) -> list[AggregatedCount]:
        """Return the stored daily rollups for `day`, ordered by location."""
        cols = ", ".join(AGGREGATE_COLUMNS)
        sql = (
            f"SELECT {cols} FROM {self.aggregate_table} "
            f"WHERE CAST(countdate AS DATE) = {self.placeholder} ORDER BY locationid"
        )
        with self._wrap("select", table=self.aggregate_table, count_date=day.isoformat()):
            cur = self._execute(sql, (day,))
            names = [d[0].lower() for d in cur.description]
            return [AggregatedCount.from_db_row(dict(zip(names, r))) for r in cur.fetchall()]

    def count_rows(self, table: str, day: date) -> int:
        sql = f"SELECT COUNT(*) FROM {table} WHERE CAST(countdate AS DATE) = {self.placeholder}"
        with self._wrap("select", table=table, count_date=day.isoformat()):
            cur = self._execute(sql, (day,))
            row = cur.fetchone()
            return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _execute(self, sql: str, params: Sequence[Any]) -> Any:
        """Run one statement and return a DB-API style cursor."""

    @abstractmethod
    def _rows_affected(self, cur: Any) -> int: ...

    def _commit(self) -> None:
        self._conn.commit()

    def _rollback(self) -> None:
        self._conn.rollback()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _insert_sql(self, table: str, columns: Sequence[str]) -> str:
        values = ", ".join([self.placeholder] * len(columns))
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({values})"

    @contextmanager
    def _wrap(self, operation: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except self.driver_errors as exc:
            raise SinkError(
                f"{operation} failed",
                operation=operation,
                cause=str(exc).strip(),
                **context,
            ) from exc


class PostgresSession(SinkSession):
    placeholder = "%s"
    driver_errors = (psycopg2.Error,)

    def __init__(self, conn: Any, **kwargs: Any) -> None:
        super().__init__(conn, **kwargs)
        self._cur = conn.cursor()

    def _execute(self, sql: str, params: Sequence[Any]) -> Any:
        self._cur.execute(sql, params)
        return self._cur

    def _rows_affected(self, cur: Any) -> int:
        return max(cur.rowcount, 0)

    def close(self) -> None:
        self._cur.close()


class DuckDBSession(SinkSession):
    """
    DuckDB cursors autocommit unless a transaction is open, so a transaction
    is opened lazily before the first statement after each commit/rollback.
    """

    placeholder = "?"
    driver_errors = (duckdb.Error,)

    def __init__(self, conn: Any, **kwargs: Any) -> None:
        super().__init__(conn, **kwargs)
        self._in_transaction = False

    def _execute(self, sql: str, params: Sequence[Any]) -> Any:
        if not self._in_transaction:
            self._conn.begin()
            self._in_transaction = True
        return self._conn.execute(sql, list(params))

    def _rows_affected(self, cur: Any) -> int:
        row = cur.fetchone()
        return int(row[0]) if row else 0

    def _commit(self) -> None:
        if self._in_transaction:
            self._conn.commit()
            self._in_transaction = False

    def _rollback(self) -> None:
        if self._in_transaction:
            self._conn.rollback()
            self._in_transaction = False

    def close(self) -> None:
        self._rollback()
        self._conn.close()


# ---------------------------------------------------------------------------
# Pools
# ---------------------------------------------------------------------------


class ConnectionPool(ABC):
    """Bounded pool of sink sessions. Shared across worker threads."""

    backend: str = "unknown"

    def __init__(
        self,
        *,
        max_connections: int,
        timeout: float,
        individual_table: str,
        aggregate_table: str,
    ) -> None:
        self.max_connections = max_connections
        self.individual_table = individual_table
        self.aggregate_table = aggregate_table
        self._timeout = timeout
        self._slots = threading.BoundedSemaphore(max_connections)

    @contextmanager
    def session(self) -> Iterator[SinkSession]:
        """Check out a session for the duration of the block."""
        if not self._slots.acquire(timeout=self._timeout):
            raise PoolError(
                "Timed out waiting for a pooled connection",
                backend=self.backend,
                max_connections=self.max_connections,
                timeout_s=self._timeout,
            )
        try:
            session = self._checkout()
            try:
                yield session
            finally:
                self._checkin(session)
        finally:
            self._slots.release()

    @abstractmethod
    def _checkout(self) -> SinkSession: ...

    @abstractmethod
    def _checkin(self, session: SinkSession) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    def _session_kwargs(self) -> dict[str, str]:
        return {
            "individual_table": self.individual_table,
            "aggregate_table": self.aggregate_table,
        }


class PostgresPool(ConnectionPool):
    backend = "postgres"

    def __init__(self, dsn: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=self.max_connections,
                dsn=dsn,
            )
        except psycopg2.Error as exc:
            raise PoolError(
                "Unable to create connection pool",
                backend=self.backend,
                cause=str(exc).strip(),
            ) from exc
        logger.info("sink_pool_created", backend=self.backend, max_connections=self.max_connections)

    def _checkout(self) -> SinkSession:
        try:
            conn = self._pool.getconn()
        except psycopg2.Error as exc:
            raise PoolError(
                "Unable to check out a connection",
                backend=self.backend,
                cause=str(exc).strip(),
            ) from exc
        return PostgresSession(conn, **self._session_kwargs())

    def _checkin(self, session: SinkSession) -> None:
        if not isinstance(session, PostgresSession):
            raise TypeError(f"Cannot check in {type(session).__name__} to a PostgreSQL pool")
        session.close()
        # putconn rolls back anything left uncommitted
        self._pool.putconn(session._conn)

    def close(self) -> None:
        self._pool.closeall()
        logger.info("sink_pool_closed", backend=self.backend)


_DUCKDB_SCHEMA = {
    "individual": (
        "CREATE TABLE IF NOT EXISTS {table} ("
        "locationid INTEGER NOT NULL, countdate TIMESTAMP NOT NULL, "
        "total INTEGER, pedin INTEGER, pedout INTEGER, bikein INTEGER, bikeout INTEGER, "
        "counttime TIMESTAMP NOT NULL)"
    ),
    "aggregate": (
        "CREATE TABLE IF NOT EXISTS {table} ("
        "locationid INTEGER NOT NULL, countdate DATE NOT NULL, "
        "totalped INTEGER, totalbike INTEGER, total INTEGER)"
    ),
}


class DuckDBPool(ConnectionPool):
    """
    Local sink. Every checkout is a cursor on one shared DuckDB database;
    the tables are created on first use.
    """

    backend = "duckdb"

    def __init__(self, path: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = duckdb.connect(path)
            self._db.execute(_DUCKDB_SCHEMA["individual"].format(table=self.individual_table))
            self._db.execute(_DUCKDB_SCHEMA["aggregate"].format(table=self.aggregate_table))
        except duckdb.Error as exc:
            raise PoolError(
                "Unable to open DuckDB sink",
                backend=self.backend,
                path=path,
                cause=str(exc).strip(),
            ) from exc
        self._lock = threading.Lock()
        logger.info("sink_pool_created", backend=self.backend, path=path)

    def _checkout(self) -> SinkSession:
        with self._lock:
            cursor = self._db.cursor()
        return DuckDBSession(cursor, **self._session_kwargs())

    def _checkin(self, session: SinkSession) -> None:
        if not isinstance(session, DuckDBSession):
            raise TypeError(f"Cannot check in {type(session).__name__} to a DuckDB pool")
        session.close()

    def close(self) -> None:
        self._db.close()
        logger.info("sink_pool_closed", backend=self.backend)


def build_connection_pool(cfg: Settings | None = None) -> ConnectionPool:
    """
    Build the configured sink pool.

    Args:
        cfg: Settings to use (default: module singleton).

    Returns:
        PostgresPool or DuckDBPool.

    Raises:
        PoolError: the pool could not be created.
    """
    cfg = cfg or default_settings
    common: dict[str, Any] = {
        "max_connections": cfg.pool_max_connections,
        "timeout": cfg.pool_timeout_seconds,
        "individual_table": cfg.individual_table,
        "aggregate_table": cfg.aggregate_table,
    }
    if cfg.sink_backend == "duckdb":
        return DuckDBPool(cfg.duckdb_path, **common)
    if not cfg.database_url:
        raise PoolError("DATABASE_URL is not set", backend="postgres")
    return PostgresPool(cfg.database_url, **common)
