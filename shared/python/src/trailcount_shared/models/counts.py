"""
models/counts.py — Pydantic models for the two count tables.

IndividualCount  — one 15-minute reading for one station  (individual table)
AggregatedCount  — one daily rollup for one station        (aggregate table)

Every count field is optional: None means the counter reported nothing,
which is not the same as a reading of zero.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class IndividualCount(BaseModel):
    """Matches the individual count table row."""

    model_config = ConfigDict(frozen=True)

    location_id: int
    count_time: datetime
    total: int | None = None
    ped_in: int | None = None
    ped_out: int | None = None
    bike_in: int | None = None
    bike_out: int | None = None

    def identity(self) -> dict[str, Any]:
        """Fields that identify this record in logs and errors."""
        return {"location_id": self.location_id, "count_time": self.count_time.isoformat()}

    def to_insert_dict(self) -> dict[str, Any]:
        # countdate and counttime both carry the full reading timestamp
        return {
            "locationid": self.location_id,
            "countdate": self.count_time,
            "total": self.total,
            "pedin": self.ped_in,
            "pedout": self.ped_out,
            "bikein": self.bike_in,
            "bikeout": self.bike_out,
            "counttime": self.count_time,
        }


class AggregatedCount(BaseModel):
    """Matches the daily aggregate table row."""

    model_config = ConfigDict(frozen=True)

    location_id: int
    count_date: date
    total_ped: int | None = None
    total_bike: int | None = None
    total: int | None = None

    def identity(self) -> dict[str, Any]:
        return {"location_id": self.location_id, "count_date": self.count_date.isoformat()}

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "AggregatedCount":
        countdate = row["countdate"]
        if isinstance(countdate, datetime):
            countdate = countdate.date()
        return cls(
            location_id=row["locationid"],
            count_date=countdate,
            total_ped=row.get("totalped"),
            total_bike=row.get("totalbike"),
            total=row.get("total"),
        )

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "locationid": self.location_id,
            "countdate": self.count_date,
            "totalped": self.total_ped,
            "totalbike": self.total_bike,
            "total": self.total,
        }
