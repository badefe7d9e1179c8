"""Data records for traversability queries.

- EstimationParameters: Thresholds and defaults for queries
- Pose2D: Planar robot pose for footprint paths
- FootprintTraversability: Result of a footprint polygon query
- FootprintPathResult: Result of a footprint path check
- TraversabilitySnapshot: Published traversability map with generation
"""

from traversability_estimation.model.parameters import EstimationParameters
from traversability_estimation.model.pose import Pose2D
from traversability_estimation.model.results import (
    FootprintPathResult,
    FootprintTraversability,
    TraversabilitySnapshot,
)

__all__ = [
    "EstimationParameters",
    "Pose2D",
    "FootprintTraversability",
    "FootprintPathResult",
    "TraversabilitySnapshot",
]
