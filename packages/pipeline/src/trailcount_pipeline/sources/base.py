"""
sources/base.py — Abstract base class for export source adapters.

Each concrete source must implement:
  extract()      — read raw data, return polars DataFrame
  transform()    — validate and decode the raw DataFrame
  get_metadata() — return dict with source info for run summaries

The run() method orchestrates extract → transform → return and handles
timing/logging automatically. Pipelines call run() rather than the
individual methods.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import polars as pl
import structlog

log = structlog.get_logger(__name__)


class BaseSource(ABC):
    """Abstract base for trail count export sources."""

    # Override in subclass; used for logging and run summaries
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Read the raw export.

        Implementations should return every field as a string, with the
        original column order preserved; nothing is parsed here.
        """
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> Any:
        """
        Validate and decode a raw DataFrame.

        Must raise (never skip) on structural problems so a malformed file
        is never partially imported. The result must support len().
        """
        ...

    @abstractmethod
    def get_metadata(self) -> dict[str, Any]:
        """Return source-level metadata for logging / run summaries."""
        ...

    # ------------------------------------------------------------------
    # Orchestration: pipelines call this
    # ------------------------------------------------------------------

    def run(self, **kwargs: Any) -> Any:
        """
        Extract + transform in sequence with timing and structured logging.

        Args:
            **kwargs: Forwarded to extract().

        Returns:
            Result of transform().

        Raises:
            Any exception from extract() or transform() after logging it.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        run_log.info("source_run_start")

        t0 = time.monotonic()
        try:
            raw = self.extract(**kwargs)
            extract_ms = int((time.monotonic() - t0) * 1000)
            run_log.info(
                "extract_complete",
                raw_rows=len(raw),
                raw_cols=raw.width,
                duration_ms=extract_ms,
            )

            t1 = time.monotonic()
            result = self.transform(raw)
            transform_ms = int((time.monotonic() - t1) * 1000)
            run_log.info(
                "transform_complete",
                result_rows=len(result),
                duration_ms=transform_ms,
            )
            return result

        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise
