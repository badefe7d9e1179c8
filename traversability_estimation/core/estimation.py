"""Traversability estimation engine.

Coordinates the filter chain and the traversability queries:
- Builds (and rebuilds) the filter chain from descriptors or a parameter file
- Computes traversability maps and publishes them as read-only snapshots
- Answers footprint, inclination and footprint-path queries

Publication model:
    Compute cycles are serialized by a lock and run to completion before the
    result is published. Publishing swaps a single snapshot attribute, so
    readers see either the previous or the new map, never a partial one. Each
    snapshot carries a generation number that increases by one per cycle.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from shapely import affinity
from shapely.geometry import Point, Polygon
from shapely.ops import unary_union

from traversability_estimation.constants import DEFAULT_FILTER_CHAIN
from traversability_estimation.core.filter_chain import ConfigurationError, FilterChain, read_parameter_file
from traversability_estimation.core.filters import MinimumCombinationFilter
from traversability_estimation.core.grid_map import GridMap
from traversability_estimation.core.inclination_checker import InclinationChecker
from traversability_estimation.core.polygon_aggregator import PolygonAggregator, PolygonLike, as_vertices
from traversability_estimation.model.parameters import EstimationParameters
from traversability_estimation.model.pose import Pose2D
from traversability_estimation.model.results import (
    FootprintPathResult,
    FootprintTraversability,
    TraversabilitySnapshot,
)

logger = logging.getLogger(__name__)


class TraversabilityEstimation:
    """Computes traversability maps and answers traversability queries.

    Example:
        estimation = TraversabilityEstimation()
        traversability_map = estimation.compute_traversability(elevation_map)
        result = estimation.query_footprint([(0, 0), (1, 0), (1, 1), (0, 1)])
        feasible = estimation.check_path(start=(0, 0), end=(2, 0))
    """

    def __init__(
        self,
        filter_descriptors: Optional[Iterable[dict[str, Any]]] = None,
        parameters: Optional[EstimationParameters] = None,
    ):
        """Initialize and configure the filter chain.

        An invalid configuration does not raise here; it is reported through
        is_configured / configuration_error and blocks compute_traversability.

        Args:
            filter_descriptors: Filter chain descriptors (DEFAULT_FILTER_CHAIN if None)
            parameters: Query thresholds (defaults if None)
        """
        self._parameters = parameters or EstimationParameters()
        self._filter_chain: Optional[FilterChain] = None
        self._configuration_error: Optional[ConfigurationError] = None
        self._snapshot: Optional[TraversabilitySnapshot] = None
        self._update_lock = threading.Lock()
        self.configure(filter_descriptors if filter_descriptors is not None else DEFAULT_FILTER_CHAIN)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def parameters(self) -> EstimationParameters:
        return self._parameters

    @property
    def filter_chain(self) -> Optional[FilterChain]:
        return self._filter_chain

    @property
    def is_configured(self) -> bool:
        return self._filter_chain is not None

    @property
    def configuration_error(self) -> Optional[ConfigurationError]:
        """Error of the last failed configuration, None if configured."""
        return self._configuration_error

    def configure(self, filter_descriptors: Iterable[dict[str, Any]]) -> bool:
        """Rebuild the filter chain.

        MinimumCombinationFilter stages without an explicit default_value use
        parameters.traversability_default for cells without known risk.

        On failure the error is logged and stored, the engine refuses to
        compute until a successful configure(), and the last published
        snapshot stays available to queries.

        Returns:
            True if the chain was built.
        """
        try:
            chain = _build_chain(filter_descriptors, self._parameters)
        except ConfigurationError as e:
            return self._reject_configuration(e)

        self._install_chain(chain)
        return True

    def load_parameters(self, path: Path) -> bool:
        """Reload filters and query parameters from a JSON parameter file.

        The file holds {"filters": [descriptors], "parameters": {...}} where
        "parameters" optionally overrides EstimationParameters fields. The
        parameters only take effect together with a valid filter chain; on
        failure the previous parameters stay in place.

        Returns:
            True if the file was read and the chain was built.
        """
        try:
            data = read_parameter_file(path)
            try:
                parameters = EstimationParameters(**data.get("parameters", {}))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid parameters in {path}: {e}") from e
            chain = _build_chain(data["filters"], parameters)
        except ConfigurationError as e:
            return self._reject_configuration(e)

        self._parameters = parameters
        logger.info(f"Loaded parameters from {path}: {parameters}")
        self._install_chain(chain)
        return True

    def _install_chain(self, chain: FilterChain) -> None:
        self._filter_chain = chain
        self._configuration_error = None
        logger.info(f"Filter chain configured: {chain}")

    def _reject_configuration(self, error: ConfigurationError) -> bool:
        """Record a failed configuration and stop computing until reconfigured."""
        logger.error(f"Filter chain configuration failed: {error}")
        self._filter_chain = None
        self._configuration_error = error
        return False

    # -------------------------------------------------------------------------
    # Map computation
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[TraversabilitySnapshot]:
        """Latest published snapshot, None before the first computation."""
        return self._snapshot

    @property
    def traversability_map(self) -> Optional[GridMap]:
        snapshot = self._snapshot
        return snapshot.grid_map if snapshot is not None else None

    def compute_traversability(self, elevation_map: GridMap) -> GridMap:
        """Run the filter chain on an elevation map and publish the result.

        Args:
            elevation_map: Map holding at least the elevation layer (not modified)

        Returns:
            The published, frozen traversability map.

        Raises:
            ConfigurationError: If the filter chain is not configured.
            KeyError: If the elevation map lacks a base layer.
        """
        with self._update_lock:
            chain = self._filter_chain
            if chain is None:
                raise ConfigurationError(
                    f"Traversability estimation is not configured: {self._configuration_error}"
                )

            start_time = time.time()
            traversability_map = chain.update(elevation_map).freeze()

            previous = self._snapshot
            generation = previous.generation + 1 if previous is not None else 1
            self._snapshot = TraversabilitySnapshot(
                grid_map=traversability_map,
                generation=generation,
                computed_at=time.time(),
            )

        logger.info(
            f"Traversability map #{generation} computed in {time.time() - start_time:.3f}s "
            f"(size: {traversability_map.size}, resolution: {traversability_map.resolution})"
        )
        return traversability_map

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _query_map(self, grid_map: Optional[GridMap]) -> Optional[GridMap]:
        if grid_map is not None:
            return grid_map
        current = self.traversability_map
        if current is None:
            logger.warning("No traversability map computed yet, answering conservatively")
        return current

    def _aggregator(self) -> PolygonAggregator:
        return PolygonAggregator(
            pass_threshold=self._parameters.pass_threshold,
            traversability_default=self._parameters.traversability_default,
            layer=self._parameters.traversability_layer,
        )

    def _inclination_checker(self) -> InclinationChecker:
        return InclinationChecker(
            max_inclination_rad=self._parameters.max_inclination_rad,
            layer=self._parameters.elevation_layer,
        )

    def query_footprint(
        self,
        polygon: PolygonLike,
        traversability_map: Optional[GridMap] = None,
    ) -> FootprintTraversability:
        """Mean traversability and verdict of a footprint polygon.

        Args:
            polygon: Footprint as shapely Polygon or (x, y) vertices
            traversability_map: Map to query (latest snapshot if None)

        Returns:
            FootprintTraversability; not traversable with the default score if
            no map is available.
        """
        return _evaluate_footprint(self._aggregator(), polygon, self._query_map(traversability_map))

    def check_path(
        self,
        start: tuple[float, float],
        end: tuple[float, float],
        grid_map: Optional[GridMap] = None,
    ) -> bool:
        """Check the inclination of the straight line from start to end.

        Args:
            start: (x, y) of the first point
            end: (x, y) of the second point
            grid_map: Map with the elevation layer (latest snapshot if None)

        Returns:
            True if feasible. Coincident points are always feasible; without
            any map other paths are rejected.
        """
        if _coincident(start, end):
            return True
        return _check_inclination(self._inclination_checker(), start, end, self._query_map(grid_map))

    def check_footprint_path(
        self,
        poses: Sequence[Pose2D],
        footprint: Optional[PolygonLike] = None,
        radius: Optional[float] = None,
        traversability_map: Optional[GridMap] = None,
    ) -> FootprintPathResult:
        """Check if the robot can follow a path of poses.

        The robot footprint is either a circle of the given radius or a
        polygon in the robot frame, rotated by each pose's yaw. A single pose
        is checked with its own footprint; for each pair of consecutive poses
        the convex hull of both footprints must pass and the inclination
        between the two positions must be feasible.

        All segments are checked against the same map and parameters, even
        if a new map is published while the path is being checked.

        Args:
            poses: Path in the map frame (at least one pose)
            footprint: Footprint polygon in the robot frame
            radius: Radius of a circular footprint (meters, > 0)
            traversability_map: Map to query (latest snapshot if None)

        Returns:
            FootprintPathResult with the mean score of all footprints.

        Raises:
            ValueError: If poses is empty or not exactly one of footprint/radius is given.
        """
        if not poses:
            raise ValueError("Footprint path has no poses")
        if (footprint is None) == (radius is None):
            raise ValueError("Specify exactly one of footprint or radius")
        if radius is not None and not radius > 0:
            raise ValueError(f"Footprint radius must be positive, got {radius}")

        grid_map = self._query_map(traversability_map)
        aggregator = self._aggregator()
        checker = self._inclination_checker()

        robot_footprint = None
        if footprint is not None:
            vertices = as_vertices(footprint)
            robot_footprint = footprint if isinstance(footprint, Polygon) else Polygon(vertices)
        placed = [_place_footprint(pose, robot_footprint, radius) for pose in poses]

        if len(poses) == 1:
            regions = [placed[0]]
        else:
            regions = [unary_union([a, b]).convex_hull for a, b in zip(placed[:-1], placed[1:])]

        segments = tuple(_evaluate_footprint(aggregator, region, grid_map) for region in regions)
        inclinations_ok = all(
            _check_inclination(checker, a.position, b.position, grid_map) for a, b in zip(poses[:-1], poses[1:])
        )

        traversability = sum(segment.traversability for segment in segments) / len(segments)
        is_safe = inclinations_ok and all(segment.is_traversable for segment in segments)
        if not is_safe:
            length = sum(a.distance_to(b) for a, b in zip(poses[:-1], poses[1:]))
            logger.info(
                f"Footprint path of {len(poses)} poses ({length:.2f} m) rejected "
                f"(traversability {traversability:.2f}, inclinations ok: {inclinations_ok})"
            )
        return FootprintPathResult(is_safe=is_safe, traversability=traversability, segments=segments)


def _build_chain(filter_descriptors: Iterable[dict[str, Any]], parameters: EstimationParameters) -> FilterChain:
    """Build a filter chain whose combination stages default to the query default score."""
    descriptors = []
    for descriptor in filter_descriptors:
        if isinstance(descriptor, dict) and descriptor.get("type") == MinimumCombinationFilter.__name__:
            params = descriptor.get("params") or {}
            if isinstance(params, dict) and "default_value" not in params:
                descriptor = {**descriptor, "params": {**params, "default_value": parameters.traversability_default}}
        descriptors.append(descriptor)
    return FilterChain.from_descriptors(descriptors, required_output=parameters.traversability_layer)


def _coincident(start: tuple[float, float], end: tuple[float, float]) -> bool:
    return start[0] == end[0] and start[1] == end[1]


def _evaluate_footprint(
    aggregator: PolygonAggregator,
    polygon: PolygonLike,
    grid_map: Optional[GridMap],
) -> FootprintTraversability:
    if grid_map is None:
        return FootprintTraversability(
            is_traversable=False,
            traversability=aggregator.traversability_default,
            cell_count=0,
            unknown_count=0,
        )
    return aggregator.evaluate(polygon, grid_map)


def _check_inclination(
    checker: InclinationChecker,
    start: tuple[float, float],
    end: tuple[float, float],
    grid_map: Optional[GridMap],
) -> bool:
    if grid_map is None:
        return _coincident(start, end)
    return checker.check(start, end, grid_map)


def _place_footprint(pose: Pose2D, footprint: Optional[Polygon], radius: Optional[float]) -> Polygon:
    """Footprint polygon of the robot at a pose in the map frame."""
    if footprint is None:
        return Point(pose.x, pose.y).buffer(radius)
    rotated = affinity.rotate(footprint, pose.yaw, origin=(0.0, 0.0), use_radians=True)
    return affinity.translate(rotated, xoff=pose.x, yoff=pose.y)
