"""EstimationParameters - thresholds and defaults supplied to every query.

The values are plain configuration, not state of the engine: queries treat
them as immutable inputs.
"""

from dataclasses import dataclass
from math import radians

from traversability_estimation.constants import LayerNames, TraversabilityConfig


@dataclass(frozen=True)
class EstimationParameters:
    """Thresholds for footprint and inclination queries.

    Attributes:
        traversability_default: Score used for regions without known data [0, 1]
        pass_threshold: Minimum mean score for a footprint to pass [0, 1]
        max_inclination_deg: Steepest allowed straight-line inclination (degrees)
        traversability_layer: Layer aggregated by footprint queries
        elevation_layer: Layer sampled by inclination checks

    Example:
        params = EstimationParameters(pass_threshold=0.8, max_inclination_deg=20.0)
    """

    traversability_default: float = TraversabilityConfig.TRAVERSABILITY_DEFAULT
    pass_threshold: float = TraversabilityConfig.PASS_THRESHOLD
    max_inclination_deg: float = TraversabilityConfig.MAX_INCLINATION_DEG
    traversability_layer: str = LayerNames.TRAVERSABILITY
    elevation_layer: str = LayerNames.ELEVATION

    def __post_init__(self) -> None:
        """Validate value ranges."""
        if not 0.0 <= self.traversability_default <= 1.0:
            raise ValueError(f"traversability_default must be within [0, 1], got {self.traversability_default}")
        if not 0.0 <= self.pass_threshold <= 1.0:
            raise ValueError(f"pass_threshold must be within [0, 1], got {self.pass_threshold}")
        if not 0.0 <= self.max_inclination_deg <= 90.0:
            raise ValueError(f"max_inclination_deg must be within [0, 90], got {self.max_inclination_deg}")

    @property
    def max_inclination_rad(self) -> float:
        return radians(self.max_inclination_deg)
