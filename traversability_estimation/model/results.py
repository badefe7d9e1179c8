"""Result records returned by traversability queries and map updates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from traversability_estimation.core.grid_map import GridMap


@dataclass(frozen=True)
class FootprintTraversability:
    """Traversability of a footprint polygon.

    Attributes:
        is_traversable: True if traversability >= the pass threshold
        traversability: Mean score of the cells inside the footprint [0, 1]
        cell_count: Number of cells aggregated (0 if the footprint is off the map)
        unknown_count: Number of aggregated cells without a known score
    """

    is_traversable: bool
    traversability: float
    cell_count: int
    unknown_count: int

    @property
    def is_unknown(self) -> bool:
        """True if no known cell contributed to the score."""
        return self.unknown_count == self.cell_count


@dataclass(frozen=True)
class FootprintPathResult:
    """Safety of a robot following a path of poses.

    Attributes:
        is_safe: True if every footprint passed and every inclination is feasible
        traversability: Mean footprint score along the path [0, 1]
        segments: Per-footprint results in path order
    """

    is_safe: bool
    traversability: float
    segments: tuple[FootprintTraversability, ...]


@dataclass(frozen=True)
class TraversabilitySnapshot:
    """A published, read-only traversability map.

    Attributes:
        grid_map: Frozen map holding the elevation and all filter layers
        generation: Publication counter, increases by one per computed map
        computed_at: Unix timestamp of publication
    """

    grid_map: GridMap
    generation: int
    computed_at: float
