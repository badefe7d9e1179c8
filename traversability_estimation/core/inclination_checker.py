"""Inclination check of straight-line motions over an elevation layer."""

import logging
from math import atan2, hypot
from typing import Optional

from traversability_estimation.constants import LayerNames, TraversabilityConfig
from traversability_estimation.core.grid_map import GridMap

logger = logging.getLogger(__name__)


class InclinationChecker:
    """Checks whether the net inclination between two points is feasible.

    Elevation is sampled at the cell containing each endpoint (nearest-cell
    sampling). The check looks at the endpoints only; callers needing a
    finer check split the motion into sub-segments.

    Example:
        checker = InclinationChecker(max_inclination_rad=radians(30))
        feasible = checker.check(start=(0.0, 1.0), end=(2.0, 1.0), grid_map=elevation_map)
    """

    def __init__(
        self,
        max_inclination_rad: float,
        layer: str = LayerNames.ELEVATION,
        tolerance_rad: float = TraversabilityConfig.INCLINATION_TOLERANCE_RAD,
    ):
        """Initialize with the inclination limit.

        Args:
            max_inclination_rad: Steepest feasible inclination (inclusive)
            layer: Elevation layer to sample
            tolerance_rad: Float tolerance added to the limit
        """
        self.max_inclination_rad = max_inclination_rad
        self.layer = layer
        self.tolerance_rad = tolerance_rad

    def inclination(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        grid_map: GridMap,
    ) -> Optional[float]:
        """Absolute inclination angle of the line from start to end.

        Returns:
            Angle in radians (0 for coincident points), or None if an
            endpoint is outside the map or has unknown elevation.
        """
        distance = hypot(end[0] - start[0], end[1] - start[1])
        if distance == 0.0:
            return 0.0

        start_elevation = grid_map.at(self.layer, start[0], start[1])
        end_elevation = grid_map.at(self.layer, end[0], end[1])
        if start_elevation is None or end_elevation is None:
            return None

        return atan2(abs(end_elevation - start_elevation), distance)

    def check(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        grid_map: GridMap,
    ) -> bool:
        """Check if the straight line from start to end is not too steep.

        Coincident points are always feasible. An endpoint off the map or
        with unknown elevation makes the line infeasible.

        Args:
            start: (x, y) of the first point
            end: (x, y) of the second point
            grid_map: Map holding the elevation layer

        Returns:
            True if the inclination is at most the limit.
        """
        angle = self.inclination(start, end, grid_map)
        if angle is None:
            logger.warning(f"Inclination check {start} -> {end}: endpoint off the map or unknown, rejecting")
            return False
        return angle <= self.max_inclination_rad + self.tolerance_rad
