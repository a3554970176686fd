"""
trailcount_shared.models — Pydantic models matching each sink table.

These models are used by:
- the row decoder and aggregator, which produce them
- the sink adapters, which write them

All models provide:
  .to_insert_dict() -> dict
  .identity() -> dict   (for logs and errors)

AggregatedCount also reads back with .from_db_row(row) for status reports.
"""

from trailcount_shared.models.counts import AggregatedCount, IndividualCount

__all__ = [
    "IndividualCount",
    "AggregatedCount",
]
