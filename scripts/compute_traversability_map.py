"""Compute a traversability map from an elevation GeoTIFF.

Offline utility: reads the elevation raster, runs the filter chain and writes
the traversability layer next to the other outputs. Uses the parameter file if
present, the built-in default filter chain otherwise.

Usage:
1. Place an elevation raster at data/elevation.tif (north-up, square pixels, meters)
2. Optionally edit config/traversability_parameters.json
3. Run: python scripts/compute_traversability_map.py
"""

import logging

import numpy as np

from traversability_estimation.constants import PARAMETER_FILE, LayerNames, MapFileConfig
from traversability_estimation.core.estimation import TraversabilityEstimation
from traversability_estimation.core.grid_map_io import load_elevation_map, save_layer

logging.basicConfig(level=logging.INFO)


def compute_traversability_map() -> None:
    """Load the elevation raster, compute traversability and save it."""
    estimation = TraversabilityEstimation()
    if PARAMETER_FILE.exists() and not estimation.load_parameters(PARAMETER_FILE):
        raise SystemExit(f"Invalid parameter file {PARAMETER_FILE}: {estimation.configuration_error}")

    elevation_map = load_elevation_map(MapFileConfig.ELEVATION_MAP_PATH)
    traversability_map = estimation.compute_traversability(elevation_map)

    traversability = traversability_map.get(LayerNames.TRAVERSABILITY)
    print(f"Map size: {traversability_map.size} cells at {traversability_map.resolution} m")
    print(f"Mean traversability: {np.mean(traversability):.2f}")
    print(f"Impassable cells: {np.count_nonzero(traversability == 0.0)}")

    crs = traversability_map.frame_id if traversability_map.frame_id != "map" else None
    save_layer(traversability_map, LayerNames.TRAVERSABILITY, MapFileConfig.TRAVERSABILITY_MAP_PATH, crs=crs)
    print(f"Saved traversability map to {MapFileConfig.TRAVERSABILITY_MAP_PATH}")


if __name__ == "__main__":
    compute_traversability_map()
