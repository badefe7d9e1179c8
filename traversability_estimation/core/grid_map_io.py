"""GeoTIFF input/output for grid maps.

Loads elevation rasters into GridMaps and writes computed layers back out:
- Band 1 of the raster becomes the elevation layer
- Raster nodata values become NaN (unknown cells)
- North-up rasters with square pixels only (no rotation/shear)

Raster rows run from north to south while GridMap rows run along +y, so rows
are flipped on read and write.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import numpy as np
import rasterio
from rasterio.transform import from_origin

from traversability_estimation.constants import LayerNames
from traversability_estimation.core.grid_map import GridMap

logger = logging.getLogger(__name__)


def load_elevation_map(path: Path, layer: str = LayerNames.ELEVATION) -> GridMap:
    """Load a GeoTIFF elevation raster as a GridMap.

    Args:
        path: Raster file path
        layer: Name of the layer to store band 1 in

    Returns:
        GridMap centered on the raster, frame id set to the raster CRS.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the raster is rotated or has non-square pixels.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Elevation raster not found at {path}")

    logger.info(f"Loading elevation raster from {path}...")
    start_time = time.time()

    with rasterio.open(path) as src:
        transform = src.transform
        if transform.b != 0 or transform.d != 0:
            raise ValueError(f"Raster {path} is rotated; only north-up rasters are supported")
        if not np.isclose(abs(transform.a), abs(transform.e)):
            raise ValueError(f"Raster {path} has non-square pixels ({transform.a}, {transform.e})")

        heights = src.read(1).astype(np.float64)
        if src.nodata is not None and not np.isnan(src.nodata):
            heights[heights == src.nodata] = np.nan

        bounds = src.bounds
        frame_id = src.crs.to_string() if src.crs else "map"

    grid_map = GridMap(
        resolution=abs(transform.a),
        size=heights.shape,
        position=((bounds.left + bounds.right) / 2, (bounds.bottom + bounds.top) / 2),
        frame_id=frame_id,
    )
    grid_map.add(layer, heights[::-1] if transform.e < 0 else heights)

    elapsed = time.time() - start_time
    logger.info(f"Elevation raster loaded in {elapsed:.2f}s (size: {grid_map.size}, frame: {frame_id})")
    return grid_map


def save_layer(grid_map: GridMap, layer: str, path: Path, crs: Optional[str] = None) -> Path:
    """Write one layer of a GridMap as a single-band float GeoTIFF.

    Unknown cells are written as NaN and flagged as nodata.

    Args:
        grid_map: Map holding the layer
        layer: Layer to write
        path: Output file path (parent directories are created)
        crs: Coordinate reference system of the map, e.g. "EPSG:32632"

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    x_min, _, _, y_max = grid_map.bounds
    rows, cols = grid_map.size
    meta = {
        "driver": "GTiff",
        "height": rows,
        "width": cols,
        "count": 1,
        "dtype": "float64",
        "nodata": np.nan,
        "transform": from_origin(x_min, y_max, grid_map.resolution, grid_map.resolution),
        "compress": "lzw",  # Lossless compression
    }
    if crs is not None:
        meta["crs"] = crs

    with rasterio.open(path, "w", **meta) as dest:
        dest.write(np.ascontiguousarray(grid_map.get(layer)[::-1]), 1)

    logger.info(f"Saved layer '{layer}' to {path}")
    return path
