"""
trailcount_shared — shared configuration, models, layout and sink adapters
for the trail count importer.

Usage:
    from trailcount_shared.config import settings
    from trailcount_shared.db import build_connection_pool
    from trailcount_shared.layout import load_station_layout
    from trailcount_shared.models import IndividualCount, AggregatedCount
    from trailcount_shared.errors import ParseError, HeaderMismatch, LayoutMismatch
"""

__version__ = "0.1.0"
