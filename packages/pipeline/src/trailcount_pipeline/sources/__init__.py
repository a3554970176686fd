"""
trailcount_pipeline.sources — export source adapters.

  CounterExportSource — the counter vendor's wide CSV export
"""

from trailcount_pipeline.sources.counter_export import CounterExportSource, DecodedExport

__all__ = [
    "CounterExportSource",
    "DecodedExport",
]
