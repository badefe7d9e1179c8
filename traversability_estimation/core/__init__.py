"""Core classes for traversability estimation.

This module provides the computation engine and its building blocks:
- GridMap: Raster of named layers sharing one geometry
- Filters: Terrain filter stages and the filter registry
- FilterChain: Validated, ordered filter stages
- PolygonAggregator: Footprint traversability
- InclinationChecker: Straight-line inclination limits
- TraversabilityEstimation: Engine publishing traversability snapshots
- load_elevation_map / save_layer: GeoTIFF input/output
"""

from traversability_estimation.core.grid_map import GridMap
from traversability_estimation.core.filters import (
    FILTER_TYPES,
    FilterStage,
    MinimumCombinationFilter,
    RobotSlopeFilter,
    RoughnessFilter,
    SlopeFilter,
    StepFilter,
    create_filter,
)
from traversability_estimation.core.filter_chain import ConfigurationError, FilterChain
from traversability_estimation.core.polygon_aggregator import PolygonAggregator
from traversability_estimation.core.inclination_checker import InclinationChecker
from traversability_estimation.core.estimation import TraversabilityEstimation
from traversability_estimation.core.grid_map_io import load_elevation_map, save_layer

__all__ = [
    # Grid map
    "GridMap",
    # Filters
    "FilterStage",
    "SlopeFilter",
    "StepFilter",
    "RoughnessFilter",
    "RobotSlopeFilter",
    "MinimumCombinationFilter",
    "FILTER_TYPES",
    "create_filter",
    # Filter chain
    "FilterChain",
    "ConfigurationError",
    # Queries
    "PolygonAggregator",
    "InclinationChecker",
    # Engine
    "TraversabilityEstimation",
    # IO
    "load_elevation_map",
    "save_layer",
]
