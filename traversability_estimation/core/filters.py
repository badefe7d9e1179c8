"""Terrain filters that turn an elevation layer into traversability layers.

Every filter reads one or more layers of a GridMap and returns the values of
its output layer. Risk filters map a terrain measure linearly onto [0, 1]:
1.0 is flat/smooth terrain, 0.0 is at or beyond the filter's critical value.

Filters:
- SlopeFilter: local slope angle from central differences
- StepFilter: largest height difference inside a window
- RoughnessFilter: residual of a plane fitted to a window
- RobotSlopeFilter: slope of the surface averaged over the robot footprint
- MinimumCombinationFilter: worst (minimum) of several risk layers

Unknown cells (NaN) stay unknown in risk layers. Window computations ignore
unknown neighbours.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Any

import numpy as np
from scipy.ndimage import generic_filter, maximum_filter, minimum_filter, uniform_filter

from traversability_estimation.constants import FilterConfig, LayerNames, TraversabilityConfig
from traversability_estimation.core.grid_map import GridMap

logger = logging.getLogger(__name__)


# =============================================================================
# NaN-aware raster helpers
# =============================================================================


def nan_gradient(heights: np.ndarray, resolution: float, axis: int) -> np.ndarray:
    """Height gradient along one axis, ignoring unknown neighbours.

    Uses the mean of the forward and backward differences (central difference)
    where both neighbours are known and a one-sided difference where only one
    is. Cells without a known neighbour along the axis are unknown, except
    along an axis of length 1 where the gradient is zero.

    Args:
        heights: 2D height array, NaN for unknown
        resolution: Cell size in meters
        axis: 0 for the row (y) direction, 1 for the column (x) direction

    Returns:
        Gradient array (rise over run), same shape as heights.
    """
    moved = np.moveaxis(heights, axis, 0)
    if moved.shape[0] < 2:
        return np.where(np.isfinite(heights), 0.0, np.nan)

    difference = np.diff(moved, axis=0) / resolution
    forward = np.full(moved.shape, np.nan)
    backward = np.full(moved.shape, np.nan)
    forward[:-1] = difference
    backward[1:] = difference

    stacked = np.stack([forward, backward])
    known = np.isfinite(stacked)
    count = known.sum(axis=0)
    total = np.where(known, stacked, 0.0).sum(axis=0)

    gradient = np.full(moved.shape, np.nan)
    np.divide(total, count, out=gradient, where=count > 0)
    return np.moveaxis(gradient, 0, axis)


def nan_window_mean(values: np.ndarray, window_size: int) -> np.ndarray:
    """Mean of the known values inside a square window around each cell.

    Returns NaN where the window holds no known value.
    """
    known = np.isfinite(values)
    total = uniform_filter(np.where(known, values, 0.0), size=window_size, mode="constant", cval=0.0)
    share = uniform_filter(known.astype(np.float64), size=window_size, mode="constant", cval=0.0)

    # share is a fraction of the window; half a cell separates "none" from rounding noise
    mean = np.full(values.shape, np.nan)
    np.divide(total, share, out=mean, where=share > 0.5 / window_size**2)
    return mean


def _plane_residual_std(values: np.ndarray, design: np.ndarray) -> float:
    """Standard deviation of the residuals of a plane fit to one window."""
    known = np.isfinite(values)
    if np.count_nonzero(known) < 3:
        return np.nan
    a = design[known]
    z = values[known]
    coefficients, *_ = np.linalg.lstsq(a, z, rcond=None)
    residuals = z - a @ coefficients
    return float(np.sqrt(np.mean(residuals**2)))


# =============================================================================
# Filter stages
# =============================================================================


@dataclass(frozen=True)
class FilterStage(ABC):
    """Abstract base class for filter chain stages.

    Subclasses declare the layers they read (input_layers) and the layer they
    write (output_layer field). The chain checks these declarations when it
    is built and writes the array returned by compute() to output_layer.
    """

    @property
    @abstractmethod
    def input_layers(self) -> tuple[str, ...]:
        """Layers read by this stage."""

    @abstractmethod
    def compute(self, grid_map: GridMap) -> np.ndarray:
        """Compute the output layer values from the grid map's input layers."""


@dataclass(frozen=True)
class TerrainFilter(FilterStage):
    """Risk filter mapping one terrain measure of a height layer onto [0, 1].

    risk = 1 - measure / critical_value, clipped to [0, 1].
    """

    input_layer: str = LayerNames.ELEVATION
    output_layer: str = ""
    critical_value: float = 1.0

    def __post_init__(self) -> None:
        if not self.output_layer:
            raise ValueError(f"{type(self).__name__} requires an output_layer")
        if not self.critical_value > 0:
            raise ValueError(f"{type(self).__name__} critical_value must be positive, got {self.critical_value}")

    @property
    def input_layers(self) -> tuple[str, ...]:
        return (self.input_layer,)

    @abstractmethod
    def measure(self, heights: np.ndarray, resolution: float) -> np.ndarray:
        """Terrain measure per cell (same unit as critical_value)."""

    def compute(self, grid_map: GridMap) -> np.ndarray:
        heights = grid_map.get(self.input_layer)
        if heights.size == 0:
            return np.empty(heights.shape)

        measure = self.measure(heights, grid_map.resolution)
        with np.errstate(invalid="ignore"):
            risk = np.clip(1.0 - measure / self.critical_value, 0.0, 1.0)
        risk[~np.isfinite(heights)] = np.nan
        return risk


@dataclass(frozen=True)
class WindowedTerrainFilter(TerrainFilter):
    """Terrain filter evaluated over a square window of window_size cells."""

    window_size: int = 3

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.window_size < 1 or self.window_size % 2 == 0:
            raise ValueError(f"{type(self).__name__} window_size must be a positive odd number, got {self.window_size}")


@dataclass(frozen=True)
class SlopeFilter(TerrainFilter):
    """Slope angle (radians) of the terrain at each cell."""

    output_layer: str = LayerNames.SLOPE
    critical_value: float = FilterConfig.SLOPE_CRITICAL_RAD

    def measure(self, heights: np.ndarray, resolution: float) -> np.ndarray:
        gradient_y = nan_gradient(heights, resolution, axis=0)
        gradient_x = nan_gradient(heights, resolution, axis=1)
        return np.arctan(np.hypot(gradient_x, gradient_y))


@dataclass(frozen=True)
class StepFilter(WindowedTerrainFilter):
    """Largest height difference (meters) inside the window around each cell."""

    output_layer: str = LayerNames.STEP
    critical_value: float = FilterConfig.STEP_CRITICAL_M
    window_size: int = FilterConfig.STEP_WINDOW_SIZE

    def measure(self, heights: np.ndarray, resolution: float) -> np.ndarray:
        known = np.isfinite(heights)
        highest = maximum_filter(
            np.where(known, heights, -np.inf), size=self.window_size, mode="constant", cval=-np.inf
        )
        lowest = minimum_filter(
            np.where(known, heights, np.inf), size=self.window_size, mode="constant", cval=np.inf
        )
        return highest - lowest


@dataclass(frozen=True)
class RoughnessFilter(WindowedTerrainFilter):
    """Deviation (meters) of the heights from a plane fitted to the window."""

    output_layer: str = LayerNames.ROUGHNESS
    critical_value: float = FilterConfig.ROUGHNESS_CRITICAL_M
    window_size: int = FilterConfig.ROUGHNESS_WINDOW_SIZE

    def measure(self, heights: np.ndarray, resolution: float) -> np.ndarray:
        # Window offsets in generic_filter's (C-order) footprint order
        offsets = (np.arange(self.window_size) - self.window_size // 2) * resolution
        dy, dx = np.meshgrid(offsets, offsets, indexing="ij")
        design = np.column_stack([dx.ravel(), dy.ravel(), np.ones(dx.size)])
        return generic_filter(
            heights,
            _plane_residual_std,
            size=self.window_size,
            mode="constant",
            cval=np.nan,
            extra_arguments=(design,),
        )


@dataclass(frozen=True)
class RobotSlopeFilter(WindowedTerrainFilter):
    """Slope angle (radians) of the terrain averaged over the robot footprint.

    Small bumps that SlopeFilter sees as steep average out over a footprint
    the size of the robot.
    """

    output_layer: str = LayerNames.ROBOT_SLOPE
    critical_value: float = FilterConfig.ROBOT_SLOPE_CRITICAL_RAD
    window_size: int = FilterConfig.ROBOT_SLOPE_WINDOW_SIZE

    def measure(self, heights: np.ndarray, resolution: float) -> np.ndarray:
        gradient_y = nan_window_mean(nan_gradient(heights, resolution, axis=0), self.window_size)
        gradient_x = nan_window_mean(nan_gradient(heights, resolution, axis=1), self.window_size)
        return np.arctan(np.hypot(gradient_x, gradient_y))


@dataclass(frozen=True)
class MinimumCombinationFilter(FilterStage):
    """Combines risk layers into one layer by taking the cellwise minimum.

    The worst single risk dominates. Unknown inputs are ignored; a cell where
    every input is unknown gets default_value, so the output has no unknown
    cells.
    """

    input_layers: tuple[str, ...] = LayerNames.RISK_LAYERS
    output_layer: str = LayerNames.TRAVERSABILITY
    default_value: float = TraversabilityConfig.TRAVERSABILITY_DEFAULT

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_layers", tuple(self.input_layers))
        if not self.input_layers:
            raise ValueError("MinimumCombinationFilter requires at least one input layer")
        if not self.output_layer:
            raise ValueError("MinimumCombinationFilter requires an output_layer")
        if not 0.0 <= self.default_value <= 1.0:
            raise ValueError(f"default_value must be within [0, 1], got {self.default_value}")

    def compute(self, grid_map: GridMap) -> np.ndarray:
        stacked = np.stack([grid_map.get(layer) for layer in self.input_layers])
        known = np.isfinite(stacked)
        worst = np.where(known, stacked, np.inf).min(axis=0)
        combined = np.where(known.any(axis=0), worst, self.default_value)
        return np.clip(combined, 0.0, 1.0)


# =============================================================================
# Registry
# =============================================================================

FILTER_TYPES: dict[str, type[FilterStage]] = {
    cls.__name__: cls
    for cls in (
        SlopeFilter,
        StepFilter,
        RoughnessFilter,
        RobotSlopeFilter,
        MinimumCombinationFilter,
    )
}


def create_filter(filter_type: str, params: dict[str, Any]) -> FilterStage:
    """Instantiate a registered filter from its type name and parameters.

    Args:
        filter_type: Key of FILTER_TYPES (the filter class name)
        params: Keyword arguments of the filter dataclass

    Returns:
        Configured filter stage.

    Raises:
        ValueError: If the type is unknown, a parameter is not accepted or a
            value is invalid.
    """
    if filter_type not in FILTER_TYPES:
        raise ValueError(f"Unknown filter type '{filter_type}' (known: {sorted(FILTER_TYPES)})")
    cls = FILTER_TYPES[filter_type]

    accepted = {field.name for field in fields(cls)}
    unknown = set(params) - accepted
    if unknown:
        raise ValueError(f"{filter_type} does not accept parameters {sorted(unknown)} (accepted: {sorted(accepted)})")

    return cls(**params)
