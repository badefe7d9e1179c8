"""Tests for grid_map_io.py - GeoTIFF elevation input and layer output.

Rasters are written to pytest's tmp_path. Raster row 0 is the northern
edge, GridMap row 0 the southern one.
"""

from pathlib import Path

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from traversability_estimation.constants import LayerNames
from traversability_estimation.core.grid_map import GridMap
from traversability_estimation.core.grid_map_io import load_elevation_map, save_layer


def write_raster(path: Path, data: np.ndarray, transform, nodata=None, crs=None) -> Path:
    """Write a single-band float32 GeoTIFF."""
    meta = {
        "driver": "GTiff",
        "height": data.shape[0],
        "width": data.shape[1],
        "count": 1,
        "dtype": "float32",
        "transform": transform,
    }
    if nodata is not None:
        meta["nodata"] = nodata
    if crs is not None:
        meta["crs"] = crs
    with rasterio.open(path, "w", **meta) as dest:
        dest.write(data.astype(np.float32), 1)
    return path


class TestLoadElevationMap:
    """Reading elevation rasters."""

    def test_north_up_orientation(self, tmp_path: Path) -> None:
        """The raster's first row ends up at the top (largest y) of the map."""
        data = np.array([[1.0, 2.0], [3.0, -9999.0]])
        path = write_raster(tmp_path / "dem.tif", data, from_origin(0.0, 2.0, 1.0, 1.0), nodata=-9999.0)

        grid_map = load_elevation_map(path)
        assert grid_map.size == (2, 2)
        assert grid_map.resolution == 1.0
        assert grid_map.bounds == (0.0, 0.0, 2.0, 2.0)
        assert grid_map.at(LayerNames.ELEVATION, 0.5, 1.5) == 1.0
        assert grid_map.at(LayerNames.ELEVATION, 1.5, 1.5) == 2.0
        assert grid_map.at(LayerNames.ELEVATION, 0.5, 0.5) == 3.0

    def test_nodata_becomes_unknown(self, tmp_path: Path) -> None:
        """Nodata cells are NaN in the elevation layer."""
        data = np.array([[1.0, 2.0], [3.0, -9999.0]])
        path = write_raster(tmp_path / "dem.tif", data, from_origin(0.0, 2.0, 1.0, 1.0), nodata=-9999.0)

        grid_map = load_elevation_map(path)
        assert grid_map.at(LayerNames.ELEVATION, 1.5, 0.5) is None
        assert np.count_nonzero(np.isnan(grid_map[LayerNames.ELEVATION])) == 1

    def test_crs_becomes_frame_id(self, tmp_path: Path) -> None:
        """The raster CRS names the map frame; rasters without CRS use 'map'."""
        data = np.zeros((2, 2))
        with_crs = write_raster(tmp_path / "a.tif", data, from_origin(0.0, 2.0, 1.0, 1.0), crs="EPSG:32632")
        without_crs = write_raster(tmp_path / "b.tif", data, from_origin(0.0, 2.0, 1.0, 1.0))

        assert load_elevation_map(with_crs).frame_id == "EPSG:32632"
        assert load_elevation_map(without_crs).frame_id == "map"

    def test_custom_layer_name(self, tmp_path: Path) -> None:
        """Band 1 can be stored under another layer name."""
        path = write_raster(tmp_path / "dem.tif", np.ones((2, 3)), from_origin(0.0, 2.0, 1.0, 1.0))
        assert load_elevation_map(path, layer="height").layers == ("height",)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing rasters raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_elevation_map(tmp_path / "missing.tif")

    def test_non_square_pixels(self, tmp_path: Path) -> None:
        """Rasters with rectangular pixels are rejected."""
        path = write_raster(tmp_path / "dem.tif", np.zeros((2, 2)), from_origin(0.0, 10.0, 1.0, 2.0))
        with pytest.raises(ValueError, match="non-square"):
            load_elevation_map(path)


class TestSaveLayer:
    """Writing layers as GeoTIFF."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """A saved layer loads back with the same geometry, values and unknown cells."""
        values = np.arange(24, dtype=np.float64).reshape(4, 6)
        values[1, 2] = np.nan
        grid_map = GridMap.from_array(LayerNames.TRAVERSABILITY, values, resolution=0.5, position=(10.0, 20.0))

        path = save_layer(grid_map, LayerNames.TRAVERSABILITY, tmp_path / "out" / "traversability.tif")
        assert path.exists()

        loaded = load_elevation_map(path)
        assert loaded.size == grid_map.size
        assert loaded.resolution == grid_map.resolution
        assert loaded.position == pytest.approx(grid_map.position)
        assert np.array_equal(loaded[LayerNames.ELEVATION], values, equal_nan=True)

    def test_crs_written(self, tmp_path: Path) -> None:
        """The given CRS is stored in the raster."""
        grid_map = GridMap.from_array(LayerNames.TRAVERSABILITY, np.ones((2, 2)), resolution=1.0)
        path = save_layer(grid_map, LayerNames.TRAVERSABILITY, tmp_path / "t.tif", crs="EPSG:32632")
        with rasterio.open(path) as src:
            assert src.crs.to_string() == "EPSG:32632"
            assert np.isnan(src.nodata)

    def test_frozen_map(self, tmp_path: Path) -> None:
        """Published maps can be saved."""
        grid_map = GridMap.from_array(LayerNames.TRAVERSABILITY, np.ones((3, 2)), resolution=1.0).freeze()
        path = save_layer(grid_map, LayerNames.TRAVERSABILITY, tmp_path / "t.tif")
        assert load_elevation_map(path).size == (3, 2)
