"""Shared pytest fixtures for traversability_estimation tests.

Provides small synthetic elevation and traversability maps with explicit
values so that expected results can be computed by hand.

COORDINATE SYSTEM:
    Cell (row, col) of a map with resolution r and lower-left corner
    (x_min, y_min) has its center at (x_min + (col + 0.5) r, y_min + (row + 0.5) r).
    Rows run along +y, columns along +x.
"""

import numpy as np
import pytest

from traversability_estimation.constants import LayerNames
from traversability_estimation.core.grid_map import GridMap


# =============================================================================
# ELEVATION MAP FIXTURES
# =============================================================================


@pytest.fixture
def flat_elevation_map() -> GridMap:
    """5m x 5m flat terrain at 0.1m resolution centered at the origin.

    Bounds: x, y in [-2.5, 2.5]. Every filter rates flat terrain 1.0.
    """
    return GridMap.from_array(LayerNames.ELEVATION, np.zeros((50, 50)), resolution=0.1)


@pytest.fixture
def spike_elevation_map() -> GridMap:
    """3x3 map at 1m resolution, all zero except a 2m spike in the center cell.

    Centered at (1, 1) so cell centers are at x, y in {0, 1, 2}:
    the spike cell is centered at (1, 1).
    """
    heights = np.zeros((3, 3))
    heights[1, 1] = 2.0
    return GridMap.from_array(LayerNames.ELEVATION, heights, resolution=1.0, position=(1.0, 1.0))


@pytest.fixture
def ramp_elevation_map() -> GridMap:
    """5x5 map at 1m resolution rising 1m per meter along +x (45° ramp).

    Centered at (2, 2) so cell centers are at x, y in {0, ..., 4}
    and elevation equals x at every cell center.
    """
    heights = np.tile(np.arange(5, dtype=np.float64), (5, 1))
    return GridMap.from_array(LayerNames.ELEVATION, heights, resolution=1.0, position=(2.0, 2.0))


@pytest.fixture
def wall_elevation_map() -> GridMap:
    """5m x 5m map at 0.1m resolution with a 2m high plateau for x > 1m."""
    grid_map = GridMap(resolution=0.1, size=(50, 50))
    xs, _ = grid_map.cell_centers()
    grid_map.add(LayerNames.ELEVATION, np.where(xs > 1.0, 2.0, 0.0))
    return grid_map


# =============================================================================
# TRAVERSABILITY MAP FIXTURES
# =============================================================================


@pytest.fixture
def free_traversability_map() -> GridMap:
    """1m x 1m map at 0.1m resolution with traversability 1.0 everywhere.

    Bounds: x, y in [-0.5, 0.5]; cell centers at -0.45, -0.35, ..., 0.45.
    """
    grid_map = GridMap(resolution=0.1, size=(10, 10))
    grid_map.add(LayerNames.TRAVERSABILITY, 1.0)
    return grid_map


@pytest.fixture
def unit_traversability_map() -> GridMap:
    """3x3 map at 1m resolution centered at (1, 1), traversability 1.0 everywhere.

    Cell centers at x, y in {0, 1, 2}.
    """
    grid_map = GridMap(resolution=1.0, size=(3, 3), position=(1.0, 1.0))
    grid_map.add(LayerNames.TRAVERSABILITY, 1.0)
    return grid_map
