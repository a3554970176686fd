"""
constants.py — Fixed reference data for the counter export.

The export is one wide CSV: a ``Time`` column, then one column group per
counting station, then a trailing empty column (the exporter ends every line
with a comma). Each group starts with the station total, followed by the
in/out pairs the station can count:

    span 5: total, ped in, ped out, bike in, bike out
    span 3: total, in, out          (one capability only)

Pine St and Spruce St are one-way bike lanes. The exporter labels their pair
"Pedestrian IN/OUT" and leaves it empty; the total is the figure that matters.

Usage:
    from trailcount_shared.constants import STATIONS, TIME_COLUMN
"""

from __future__ import annotations

from typing import Any

TIME_COLUMN = "Time"
TRAILING_COLUMNS: tuple[str, ...] = ("",)

# Export timestamp, e.g. "May 6, 2023 12:30 PM"
TIMESTAMP_FORMAT = "%b %d, %Y %I:%M %p"


def _both(location_id: int, name: str, start: int, *pairs: str) -> dict[str, Any]:
    return {
        "location_id": location_id,
        "name": name,
        "start": start,
        "columns": [name, *pairs],
        "has_pedestrian": True,
        "has_bicycle": True,
    }


def _bike_only(location_id: int, name: str, start: int, *pair: str) -> dict[str, Any]:
    return {
        "location_id": location_id,
        "name": name,
        "start": start,
        "columns": [name, *pair],
        "has_pedestrian": False,
        "has_bicycle": True,
    }


# ---------------------------------------------------------------------------
# Station layout, in export column order.
# `start` is the 0-based column index of the station total.
# ---------------------------------------------------------------------------
STATIONS: list[dict[str, Any]] = [
    _both(
        16, "Bartram's Garden", 1,
        "Bartram's Garden Pedestrians NB - Bartram's Garden",
        "Bartram's Garden Pedestrians SB - Bartram's Garden",
        "Bartram's Garden Cyclists NB - Bartram's Garden",
        "Bartram's Garden Cyclists SB - Bartram's Garden",
    ),
    _both(
        1, "Chester Valley Trail - East Whiteland Twp", 6,
        "Chester Valley Trail - East Whiteland Twp CVT - EB - Pedestrian",
        "Chester Valley Trail - East Whiteland Twp CVT - WB - Pedestrian",
        "Chester Valley Trail - East Whiteland Twp CVT - EB - Bicycle",
        "Chester Valley Trail - East Whiteland Twp CVT - WB - Bicycle",
    ),
    _both(
        11, "Cooper River Trail", 11,
        "Cooper River Trail - EB Pedestrian",
        "Cooper River Trail - WB Pedestrian",
        "Cooper River Trail - EB Bicycle",
        "Cooper River Trail - WB Bicycle",
    ),
    _both(
        3, "Cynwyd Heritage Trail", 16,
        "Cynwyd Heritage Trail Pedestrian IN",
        "Cynwyd Heritage Trail Pedestrian OUT",
        "Cynwyd Heritage Trail CHT - WB - Bicycle",
        "Cynwyd Heritage Trail CHT - EB - Bicycle",
    ),
    _both(
        12, "Darby Creek Trail", 21,
        "Darby Creek Trail - Pedestrians - SB",
        "Darby Creek Trail - Pedestrians - NB",
        "Darby Creek Trail - Bicycle - SB",
        "Darby Creek Trail - Bicycle - NB",
    ),
    _both(
        5, "Kelly Dr - Schuylkill River Trail", 26,
        "Kelly Dr - Schuylkill River Trail Kelly Drive - Pedestrians - NB",
        "Kelly Dr - Schuylkill River Trail Kelly Drive - Pedestrians - SB",
        "Kelly Dr - Schuylkill River Trail Kelly Drive - Bicycle - NB",
        "Kelly Dr - Schuylkill River Trail Kelly Drive - Bicycle - SB",
    ),
    _both(
        8, "Lawrence - Hopewell Trail", 31,
        "Lawrence - Hopewell Trail LHT - Pedestrian - NB",
        "Lawrence - Hopewell Trail LHT - Pedestrian - SB",
        "Lawrence - Hopewell Trail LHT - Bicycle - NB",
        "Lawrence - Hopewell Trail LHT - Bicycle - SB",
    ),
    _both(
        10, "Monroe Twp", 36,
        "Monroe Twp Pedestrian IN",
        "Monroe Twp Pedestrian OUT",
        "Monroe Twp Monroe - Bicycle - EB",
        "Monroe Twp Monroe - Bicycle - WB",
    ),
    _both(
        2, "Pawlings Rd - Schuylkill River Trail", 41,
        "Pawlings Rd - Schuylkill River Trail Pawlings Rd - WB Pedestrian",
        "Pawlings Rd - Schuylkill River Trail Pawlings Rd - EB Pedestrian",
        "Pawlings Rd - Schuylkill River Trail Pawlings Rd - WB - Bicycle",
        "Pawlings Rd - Schuylkill River Trail Pawlings Rd - EB - Bicycle",
    ),
    # Pine St Bike Lanes: one-way, east-bound
    _bike_only(
        24, "Pine St", 46,
        "Pine St Pedestrian IN",
        "Pine St Pedestrian OUT",
    ),
    _both(
        7, "Port Richmond", 49,
        "Port Richmond - WB - Pedestrian",
        "Port Richmond - EB - Pedestrian",
        "Port Richmond - WB - Bicycle",
        "Port Richmond - EB - Bicycle",
    ),
    _both(
        6, "Schuylkill Banks", 54,
        "Schuylkill Banks - Pedestrian - NB",
        "Schuylkill Banks - Pedestrian - SB",
        "Schuylkill Banks - Bicycle - NB",
        "Schuylkill Banks - Bicycle - SB",
    ),
    _both(
        13, "Spring Mill Station", 59,
        "Spring Mill Station Pedestrians EB - To Philadelphia",
        "Spring Mill Station Pedestrians WB - To Conshohocken",
        "Spring Mill Station Cyclists EB - To Philadelphia",
        "Spring Mill Station Cyclists WB - To Conshohocken",
    ),
    # Spruce St Bike Lanes: one-way, west-bound
    _bike_only(
        25, "Spruce St", 64,
        "Spruce St Pedestrian IN",
        "Spruce St Pedestrian OUT",
    ),
    _both(
        23, "Tinicum Park - D&L Trail", 67,
        "Tinicum Park - D&L Trail Hugh Moore Park - D&L Trail Pedestrians Wilkes-Barre (Bethlehem)",
        "Tinicum Park - D&L Trail Pedestrians Bristol (New Hope)",
        "Tinicum Park - D&L Trail Hugh Moore Park - D&L Trail Cyclists Wilkes-Barre (Bethlehem)",
        "Tinicum Park - D&L Trail Cyclists Bristol (New Hope)",
    ),
    _both(
        14, "Tullytown", 72,
        "Tullytown Pedestrians NB - Towards Trenton - IN",
        "Tullytown Pedestrians SB - Towards Tullytown - OUT",
        "Tullytown Cyclists NB - Towards Trenton - IN",
        "Tullytown Cyclists SB - Towards Tullytown - OUT",
    ),
    _both(
        9, "US 202 Parkway Trail", 77,
        "US 202 Parkway Trail US 202 Parkway - SB - Pedestrian",
        "US 202 Parkway Trail US 202 Parkway - NB - Pedestrian",
        "US 202 Parkway Trail US 202 Parkway - SB - Bicycle",
        "US 202 Parkway Trail US 202 Parkway - NB - Bicycle",
    ),
    _both(
        15, "Washington Crossing", 82,
        "Washington Crossing Pedestrians NB - To New Hope - IN",
        "Washington Crossing Pedestrians SB - To Yardley - OUT",
        "Washington Crossing Cyclists NB - To New Hope - IN",
        "Washington Crossing Cyclists SB - To Yardley - OUT",
    ),
    _both(
        26, "Waterfront Display", 87,
        "Waterfront Display Pedestrian IN",
        "Waterfront Display Pedestrian OUT",
        "Waterfront Display Cyclist IN",
        "Waterfront Display Cyclist OUT",
    ),
    _both(
        4, "Wissahickon Trail", 92,
        "Wissahickon Trail - Pedestrians - SB",
        "Wissahickon Trail - Pedestrians - NB",
        "Wissahickon Trail - Bicycles - SB",
        "Wissahickon Trail - Bicycles - NB",
    ),
]

# ---------------------------------------------------------------------------
# Sink schema
# ---------------------------------------------------------------------------
INDIVIDUAL_COLUMNS: tuple[str, ...] = (
    "locationid", "countdate", "total", "pedin", "pedout", "bikein", "bikeout", "counttime",
)
AGGREGATE_COLUMNS: tuple[str, ...] = (
    "locationid", "countdate", "totalped", "totalbike", "total",
)
