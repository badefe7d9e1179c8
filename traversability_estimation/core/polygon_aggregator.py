"""Polygon aggregation of a traversability layer.

Reduces the traversability of every cell covered by a footprint polygon to a
single mean score and a pass/fail verdict:
- Cells are selected by their center (boundary-inclusive containment)
- Footprints smaller than a cell fall back to the cell containing the centroid
- Unknown cells are left out of the mean; all-unknown footprints get the default
- Footprints off the map, or whose centroid lies off the map, fail with the
  default score
"""

import logging
from math import ceil, floor
from typing import Sequence, Union

import numpy as np
import shapely
from shapely.geometry import MultiPoint, Polygon, box
from shapely.geometry.base import BaseGeometry

from traversability_estimation.constants import LayerNames, TraversabilityConfig
from traversability_estimation.core.grid_map import GridMap
from traversability_estimation.model.results import FootprintTraversability

logger = logging.getLogger(__name__)

PolygonLike = Union[Polygon, Sequence[tuple[float, float]]]


def as_vertices(polygon: PolygonLike) -> list[tuple[float, float]]:
    """Vertex list of a polygon given as shapely Polygon or point sequence.

    Raises:
        ValueError: If the polygon has no vertices.
    """
    if isinstance(polygon, Polygon):
        vertices = [(float(x), float(y)) for x, y in polygon.exterior.coords]
    else:
        vertices = [(float(point[0]), float(point[1])) for point in polygon]
    if not vertices:
        raise ValueError("Footprint polygon has no vertices")
    return vertices


class PolygonAggregator:
    """Computes the mean traversability inside footprint polygons.

    The aggregator holds configuration only; evaluate() is a pure function of
    its arguments and may be called concurrently on a frozen map.

    Example:
        aggregator = PolygonAggregator(pass_threshold=0.6, traversability_default=0.5)
        result = aggregator.evaluate([(0, 0), (1, 0), (1, 1), (0, 1)], traversability_map)
        if result.is_traversable: ...
    """

    def __init__(
        self,
        pass_threshold: float = TraversabilityConfig.PASS_THRESHOLD,
        traversability_default: float = TraversabilityConfig.TRAVERSABILITY_DEFAULT,
        layer: str = LayerNames.TRAVERSABILITY,
    ):
        """Initialize with query thresholds.

        Args:
            pass_threshold: Minimum mean score for a footprint to pass
            traversability_default: Score for footprints without known cells
            layer: Layer to aggregate
        """
        self.pass_threshold = pass_threshold
        self.traversability_default = traversability_default
        self.layer = layer

    def evaluate(self, polygon: PolygonLike, grid_map: GridMap) -> FootprintTraversability:
        """Aggregate the traversability layer over a footprint polygon.

        Args:
            polygon: Footprint as shapely Polygon or (x, y) vertex sequence
            grid_map: Map holding the traversability layer

        Returns:
            FootprintTraversability with mean score and verdict.

        Raises:
            ValueError: If the polygon has no vertices.
            KeyError: If the map lacks the traversability layer.
        """
        values = grid_map.get(self.layer)
        vertices = as_vertices(polygon)
        hull = MultiPoint(vertices).convex_hull
        if hull.area == 0:
            region: BaseGeometry = hull
        elif isinstance(polygon, Polygon):
            # Keeps interior rings
            region = polygon
        else:
            region = Polygon(vertices)

        if grid_map.is_empty or not region.intersects(box(*grid_map.bounds)):
            logger.warning(f"Footprint {region.bounds} lies outside the map {grid_map.bounds}")
            return self._outside_result()

        rows, cols = self._covered_cells(region, grid_map)
        if rows.size == 0:
            # Too small to cover a cell center: use the cell containing the centroid
            centroid = (region if region.area > 0 else hull).centroid
            index = grid_map.index_of(centroid.x, centroid.y)
            if index is None:
                logger.warning(f"Footprint {region.bounds} only touches the map {grid_map.bounds}")
                return self._outside_result()
            rows, cols = np.array([index[0]]), np.array([index[1]])

        cell_values = values[rows, cols]
        known = np.isfinite(cell_values)
        unknown_count = int(np.count_nonzero(~known))
        if known.any():
            traversability = float(np.mean(cell_values[known]))
        else:
            logger.warning(f"Footprint {region.bounds} covers only unknown cells, using default")
            traversability = self.traversability_default

        return FootprintTraversability(
            is_traversable=traversability >= self.pass_threshold,
            traversability=traversability,
            cell_count=int(cell_values.size),
            unknown_count=unknown_count,
        )

    def _outside_result(self) -> FootprintTraversability:
        """Failing result with the default score for footprints off the map."""
        return FootprintTraversability(
            is_traversable=False,
            traversability=self.traversability_default,
            cell_count=0,
            unknown_count=0,
        )

    @staticmethod
    def _covered_cells(region: BaseGeometry, grid_map: GridMap) -> tuple[np.ndarray, np.ndarray]:
        """Row and column indices of the cells whose center lies in the region.

        Only polygons cover cell centers; points and lines return no cells.
        """
        if region.area == 0:
            return np.empty(0, dtype=int), np.empty(0, dtype=int)

        # Restrict the containment test to the cells under the bounding box
        min_x, min_y, max_x, max_y = region.bounds
        x_min, y_min, _, _ = grid_map.bounds
        n_rows, n_cols = grid_map.size
        resolution = grid_map.resolution
        r0 = max(0, int(floor((min_y - y_min) / resolution - 0.5)))
        r1 = min(n_rows, int(ceil((max_y - y_min) / resolution + 0.5)))
        c0 = max(0, int(floor((min_x - x_min) / resolution - 0.5)))
        c1 = min(n_cols, int(ceil((max_x - x_min) / resolution + 0.5)))
        if r0 >= r1 or c0 >= c1:
            return np.empty(0, dtype=int), np.empty(0, dtype=int)

        xs, ys = grid_map.cell_centers(row_range=(r0, r1), col_range=(c0, c1))
        inside = shapely.intersects_xy(region, xs, ys)
        local_rows, local_cols = np.nonzero(inside)
        return local_rows + r0, local_cols + c0
