"""Configuration constants for Traversability Estimation.

All configurable parameters are centralized here for easy tuning.

Classes:
    LayerNames: Names of the grid map layers produced by the filter chain
    TraversabilityConfig: Footprint and inclination query defaults
    FilterConfig: Critical values and window sizes of the terrain filters
    MapFileConfig: Default raster paths of the offline map script
"""

from math import radians
from pathlib import Path

# Package root directory (where traversability_estimation/ lives)
PACKAGE_DIR = Path(__file__).parent

# Project root directory (parent of traversability_estimation/)
PROJECT_ROOT = PACKAGE_DIR.parent

# Data directory outside package (elevation maps, not shipped with package)
DATA_DIR = PROJECT_ROOT / "data"

# Output directory for computed traversability maps
OUTPUT_DIR = PROJECT_ROOT / "output"

# Filter chain and query parameters (JSON, see TraversabilityEstimation.load_parameters)
PARAMETER_FILE = PROJECT_ROOT / "config" / "traversability_parameters.json"


class LayerNames:
    """Grid map layer names shared by filters, queries and IO."""

    ELEVATION = "elevation"
    SLOPE = "slope"
    STEP = "step"
    ROUGHNESS = "roughness"
    ROBOT_SLOPE = "robot_slope"
    TRAVERSABILITY = "traversability"

    # Risk layers combined into the traversability layer (order is irrelevant)
    RISK_LAYERS = (SLOPE, STEP, ROUGHNESS, ROBOT_SLOPE)


class TraversabilityConfig:
    """Defaults for footprint aggregation and inclination checks."""

    # Traversability assigned to regions without known data.
    # Below PASS_THRESHOLD so unknown terrain fails footprint queries by default.
    TRAVERSABILITY_DEFAULT = 0.5

    # A footprint passes if its mean traversability is at least this value
    PASS_THRESHOLD = 0.6

    # Maximum inclination of a straight line between two poses
    MAX_INCLINATION_DEG = 30.0

    # Float tolerance for the inclusive inclination comparison
    INCLINATION_TOLERANCE_RAD = 1e-9

    assert 0.0 <= TRAVERSABILITY_DEFAULT <= 1.0
    assert 0.0 <= PASS_THRESHOLD <= 1.0


class FilterConfig:
    """Critical values and window sizes of the terrain filters.

    Each filter maps its terrain measure linearly onto [0, 1]:
    1.0 for a perfectly flat/smooth cell, 0.0 at or beyond the critical value.
    Window sizes are in cells and must be odd.
    """

    # Slope angle at which terrain becomes impassable
    SLOPE_CRITICAL_RAD = radians(30.0)

    # Height of an impassable step (meters)
    STEP_CRITICAL_M = 0.3
    STEP_WINDOW_SIZE = 3

    # Standard deviation of the plane-fit residual for impassable roughness (meters)
    ROUGHNESS_CRITICAL_M = 0.05
    ROUGHNESS_WINDOW_SIZE = 5

    # Slope of the surface averaged over the robot footprint
    ROBOT_SLOPE_CRITICAL_RAD = radians(25.0)
    ROBOT_SLOPE_WINDOW_SIZE = 5


class MapFileConfig:
    """Default raster paths of scripts/compute_traversability_map.py."""

    ELEVATION_MAP_PATH = DATA_DIR / "elevation.tif"
    TRAVERSABILITY_MAP_PATH = OUTPUT_DIR / "traversability.tif"


# Ordered filter chain descriptors. Later stages may read earlier outputs.
# The combination stage takes its default_value from EstimationParameters.traversability_default.
DEFAULT_FILTER_CHAIN = [
    {
        "name": "slope",
        "type": "SlopeFilter",
        "params": {
            "input_layer": LayerNames.ELEVATION,
            "output_layer": LayerNames.SLOPE,
            "critical_value": FilterConfig.SLOPE_CRITICAL_RAD,
        },
    },
    {
        "name": "step",
        "type": "StepFilter",
        "params": {
            "input_layer": LayerNames.ELEVATION,
            "output_layer": LayerNames.STEP,
            "critical_value": FilterConfig.STEP_CRITICAL_M,
            "window_size": FilterConfig.STEP_WINDOW_SIZE,
        },
    },
    {
        "name": "roughness",
        "type": "RoughnessFilter",
        "params": {
            "input_layer": LayerNames.ELEVATION,
            "output_layer": LayerNames.ROUGHNESS,
            "critical_value": FilterConfig.ROUGHNESS_CRITICAL_M,
            "window_size": FilterConfig.ROUGHNESS_WINDOW_SIZE,
        },
    },
    {
        "name": "robot_slope",
        "type": "RobotSlopeFilter",
        "params": {
            "input_layer": LayerNames.ELEVATION,
            "output_layer": LayerNames.ROBOT_SLOPE,
            "critical_value": FilterConfig.ROBOT_SLOPE_CRITICAL_RAD,
            "window_size": FilterConfig.ROBOT_SLOPE_WINDOW_SIZE,
        },
    },
    {
        "name": "traversability",
        "type": "MinimumCombinationFilter",
        "params": {
            "input_layers": list(LayerNames.RISK_LAYERS),
            "output_layer": LayerNames.TRAVERSABILITY,
        },
    },
]
