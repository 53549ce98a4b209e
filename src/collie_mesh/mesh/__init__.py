from __future__ import annotations

from .aggregate import AggregateResult, AggregatingMeshAdapter, PlatformFailure
from .factory import MeshAdapterFactory, build_aggregator
from .statistics import QueryStatistics

__all__ = [
    "AggregateResult",
    "AggregatingMeshAdapter",
    "MeshAdapterFactory",
    "PlatformFailure",
    "QueryStatistics",
    "build_aggregator",
]
