"""
Aggregate query layer.

Responsibilities:
- Define the read-only aggregate queries the recommendation engine relies on.
- Provide a pandas-backed implementation over menu, order and preference tables.
- Load those tables lazily from CSV files in the configured data directory.
"""
from .frames import FrameQueryLayer, get_query_layer
from .queries import AggregateQueryLayer, QueryLayerUnavailable, UnavailableQueryLayer

__all__ = [
    "AggregateQueryLayer",
    "FrameQueryLayer",
    "QueryLayerUnavailable",
    "UnavailableQueryLayer",
    "get_query_layer",
]
