"""Grid map - a 2D raster of named scalar layers sharing one geometry.

Provides the data structure every other component works on:
- Geometry (resolution, size, center position, frame id) fixed at creation
- Named float64 layers, all shaped like the grid
- Position <-> index conversion with inclusive map bounds
- NaN marks unknown cells

Cell convention:
    Rows run along +y and columns along +x. Cell (row, col) has its center at
    (x_min + (col + 0.5) * resolution, y_min + (row + 0.5) * resolution),
    where (x_min, y_min) is the lower-left corner of the map.
"""

from math import floor
from typing import Iterator, Optional

import numpy as np


class GridMap:
    """Regular 2D raster with named layers.

    Geometry is immutable; layer contents may be written until the map is
    frozen. Frozen maps are used as published snapshots and reject writes.

    Example:
        grid_map = GridMap(resolution=0.1, size=(40, 60), position=(2.0, 0.0))
        grid_map.add("elevation", heights)
        z = grid_map.at("elevation", x=1.2, y=0.3)
    """

    def __init__(
        self,
        resolution: float,
        size: tuple[int, int],
        position: tuple[float, float] = (0.0, 0.0),
        frame_id: str = "map",
    ):
        """Initialize an empty grid map.

        Args:
            resolution: Cell edge length in meters (must be > 0)
            size: (rows, cols), both >= 0
            position: Geometric center (x, y) of the map in meters
            frame_id: Name of the frame the map is expressed in

        Raises:
            ValueError: If resolution or size are invalid.
        """
        if not resolution > 0:
            raise ValueError(f"GridMap resolution must be positive, got {resolution}")
        rows, cols = (int(size[0]), int(size[1]))
        if rows < 0 or cols < 0:
            raise ValueError(f"GridMap size must be non-negative, got {size}")

        self._resolution = float(resolution)
        self._size = (rows, cols)
        self._position = (float(position[0]), float(position[1]))
        self._frame_id = frame_id
        self._layers: dict[str, np.ndarray] = {}
        self._frozen = False

    @classmethod
    def from_array(
        cls,
        layer: str,
        data: np.ndarray,
        resolution: float,
        position: tuple[float, float] = (0.0, 0.0),
        frame_id: str = "map",
    ) -> "GridMap":
        """Create a grid map whose size is taken from a single layer array.

        Args:
            layer: Name of the layer to create
            data: 2D array of values, row 0 at the lowest y
            resolution: Cell edge length in meters
            position: Geometric center (x, y) of the map
            frame_id: Frame name

        Returns:
            New GridMap holding a copy of data.
        """
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 2:
            raise ValueError(f"Layer '{layer}' must be 2D, got shape {data.shape}")
        grid_map = cls(resolution=resolution, size=data.shape, position=position, frame_id=frame_id)
        grid_map.add(layer, data)
        return grid_map

    # -------------------------------------------------------------------------
    # Geometry
    # -------------------------------------------------------------------------

    @property
    def resolution(self) -> float:
        return self._resolution

    @property
    def size(self) -> tuple[int, int]:
        """(rows, cols)."""
        return self._size

    @property
    def position(self) -> tuple[float, float]:
        return self._position

    @property
    def frame_id(self) -> str:
        return self._frame_id

    @property
    def length(self) -> tuple[float, float]:
        """Map extent (length_x, length_y) in meters."""
        rows, cols = self._size
        return cols * self._resolution, rows * self._resolution

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Return (x_min, y_min, x_max, y_max) of the map area."""
        length_x, length_y = self.length
        x_min = self._position[0] - length_x / 2
        y_min = self._position[1] - length_y / 2
        return x_min, y_min, x_min + length_x, y_min + length_y

    @property
    def is_empty(self) -> bool:
        return self._size[0] == 0 or self._size[1] == 0

    def is_inside(self, x: float, y: float) -> bool:
        """Check if a position lies within the map bounds (edges inclusive)."""
        if self.is_empty:
            return False
        x_min, y_min, x_max, y_max = self.bounds
        return x_min <= x <= x_max and y_min <= y <= y_max

    def index_of(self, x: float, y: float) -> Optional[tuple[int, int]]:
        """Convert a position to the (row, col) of the containing cell.

        Positions on the upper map edges belong to the last row/column.

        Returns:
            (row, col), or None if the position is outside the map.
        """
        if not self.is_inside(x, y):
            return None
        x_min, y_min, _, _ = self.bounds
        rows, cols = self._size
        col = min(int(floor((x - x_min) / self._resolution)), cols - 1)
        row = min(int(floor((y - y_min) / self._resolution)), rows - 1)
        return row, col

    def position_of(self, row: int, col: int) -> tuple[float, float]:
        """Center position (x, y) of a cell."""
        x_min, y_min, _, _ = self.bounds
        return (
            x_min + (col + 0.5) * self._resolution,
            y_min + (row + 0.5) * self._resolution,
        )

    def cell_centers(
        self,
        row_range: Optional[tuple[int, int]] = None,
        col_range: Optional[tuple[int, int]] = None,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Center coordinates of a block of cells.

        Args:
            row_range: Half-open (start, stop) rows, all rows if None
            col_range: Half-open (start, stop) cols, all cols if None

        Returns:
            (xs, ys) arrays shaped like the selected block.
        """
        rows, cols = self._size
        r0, r1 = row_range if row_range is not None else (0, rows)
        c0, c1 = col_range if col_range is not None else (0, cols)
        x_min, y_min, _, _ = self.bounds
        xs = x_min + (np.arange(c0, c1) + 0.5) * self._resolution
        ys = y_min + (np.arange(r0, r1) + 0.5) * self._resolution
        return np.meshgrid(xs, ys)

    # -------------------------------------------------------------------------
    # Layers
    # -------------------------------------------------------------------------

    @property
    def layers(self) -> tuple[str, ...]:
        return tuple(self._layers)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def exists(self, layer: str) -> bool:
        return layer in self._layers

    def __contains__(self, layer: str) -> bool:
        return self.exists(layer)

    def __iter__(self) -> Iterator[str]:
        return iter(self._layers)

    def add(self, layer: str, data=np.nan) -> None:
        """Add or overwrite a layer.

        Args:
            layer: Layer name
            data: Array shaped like the grid, or a scalar fill value
                (default NaN, i.e. all cells unknown)

        Raises:
            ValueError: If the shape does not match the grid size.
            RuntimeError: If the map is frozen.
        """
        if self._frozen:
            raise RuntimeError(f"Cannot write layer '{layer}' of a frozen grid map")
        if np.isscalar(data):
            values = np.full(self._size, data, dtype=np.float64)
        else:
            values = np.array(data, dtype=np.float64)
            if values.shape != self._size:
                raise ValueError(
                    f"Layer '{layer}' has shape {values.shape}, grid map size is {self._size}"
                )
        self._layers[layer] = values

    def get(self, layer: str) -> np.ndarray:
        """Return the array of a layer.

        Raises:
            KeyError: If the layer does not exist.
        """
        try:
            return self._layers[layer]
        except KeyError:
            raise KeyError(f"Grid map has no layer '{layer}' (layers: {list(self._layers)})") from None

    def __getitem__(self, layer: str) -> np.ndarray:
        return self.get(layer)

    def erase(self, layer: str) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot erase layer '{layer}' of a frozen grid map")
        self._layers.pop(layer, None)

    def is_valid(self, layer: str, row: int, col: int) -> bool:
        """Check if a cell of a layer holds a known (finite) value."""
        return bool(np.isfinite(self.get(layer)[row, col]))

    def at(self, layer: str, x: float, y: float) -> float | None:
        """Value of a layer at a position.

        Returns:
            Value of the containing cell, or None if outside or unknown.
        """
        index = self.index_of(x, y)
        if index is None:
            return None
        value = self.get(layer)[index]
        if not np.isfinite(value):
            return None
        return float(value)

    # -------------------------------------------------------------------------
    # Copies and snapshots
    # -------------------------------------------------------------------------

    def copy(self, layers: Optional[list[str]] = None) -> "GridMap":
        """Deep copy with the same geometry; the copy is never frozen.

        Args:
            layers: Layers to copy (all if None)
        """
        duplicate = GridMap(
            resolution=self._resolution,
            size=self._size,
            position=self._position,
            frame_id=self._frame_id,
        )
        for name in layers if layers is not None else self._layers:
            duplicate.add(name, self.get(name))
        return duplicate

    def freeze(self) -> "GridMap":
        """Make the map and all layer arrays read-only. Returns self."""
        for values in self._layers.values():
            values.flags.writeable = False
        self._frozen = True
        return self

    def __repr__(self) -> str:
        return (
            f"GridMap(size={self._size}, resolution={self._resolution}, "
            f"position={self._position}, frame='{self._frame_id}', layers={list(self._layers)})"
        )
