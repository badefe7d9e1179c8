"""Pose2D - planar robot pose in the grid map frame."""

from dataclasses import dataclass
from math import hypot


@dataclass(frozen=True)
class Pose2D:
    """Robot pose on the terrain.

    Attributes:
        x: Position along the map x axis (meters)
        y: Position along the map y axis (meters)
        yaw: Heading in radians, counter-clockwise from +x
    """

    x: float
    y: float
    yaw: float = 0.0

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Pose2D") -> float:
        """Planar distance to another pose in meters."""
        return hypot(other.x - self.x, other.y - self.y)

    def __repr__(self) -> str:
        return f"Pose2D(x={self.x:.2f}, y={self.y:.2f}, yaw={self.yaw:.2f})"
