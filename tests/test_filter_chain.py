"""Tests for filter_chain.py - chain validation, ordering and execution.

Configuration errors must surface when the chain is built, never halfway
through a map update.
"""

import copy
import json
from pathlib import Path

import numpy as np
import pytest

from traversability_estimation.constants import DEFAULT_FILTER_CHAIN, LayerNames
from traversability_estimation.core.filter_chain import (
    ConfigurationError,
    FilterChain,
    read_parameter_file,
)
from traversability_estimation.core.grid_map import GridMap


def slope_only_chain() -> list[dict]:
    """Two-stage chain: slope, then traversability from the slope layer alone."""
    return [
        {"name": "slope", "type": "SlopeFilter", "params": {}},
        {
            "name": "traversability",
            "type": "MinimumCombinationFilter",
            "params": {"input_layers": ["slope"], "default_value": 0.5},
        },
    ]


# =============================================================================
# VALIDATION
# =============================================================================


class TestChainValidation:
    """Invalid chains raise ConfigurationError when built."""

    def test_default_chain_builds(self) -> None:
        """The shipped default chain is valid and writes every layer."""
        chain = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN)
        assert [stage.name for stage in chain.stages] == [
            "slope",
            "step",
            "roughness",
            "robot_slope",
            "traversability",
        ]
        assert chain.output_layers == (*LayerNames.RISK_LAYERS, LayerNames.TRAVERSABILITY)
        assert chain.base_layers == (LayerNames.ELEVATION,)

    def test_configuration_error_is_value_error(self) -> None:
        """Callers catching ValueError also catch configuration errors."""
        assert issubclass(ConfigurationError, ValueError)

    def test_empty_chain(self) -> None:
        """A chain needs at least one stage."""
        with pytest.raises(ConfigurationError, match="no stages"):
            FilterChain.from_descriptors([])

    def test_missing_type(self) -> None:
        """Every descriptor names its type."""
        with pytest.raises(ConfigurationError, match="missing"):
            FilterChain.from_descriptors([{"name": "slope"}])

    def test_descriptor_must_be_mapping(self) -> None:
        """Descriptors are JSON objects."""
        with pytest.raises(ConfigurationError, match="mapping"):
            FilterChain.from_descriptors(["SlopeFilter"])

    def test_unknown_type(self) -> None:
        """Unregistered filter types are rejected with the stage name."""
        descriptors = slope_only_chain()
        descriptors[0]["type"] = "BlurFilter"
        with pytest.raises(ConfigurationError, match="'slope'.*Unknown filter type"):
            FilterChain.from_descriptors(descriptors)

    def test_invalid_parameter(self) -> None:
        """Invalid filter parameters are reported as configuration errors."""
        descriptors = slope_only_chain()
        descriptors[0]["params"] = {"critical_value": -1.0}
        with pytest.raises(ConfigurationError):
            FilterChain.from_descriptors(descriptors)

    def test_duplicate_names(self) -> None:
        """Stage names are unique."""
        descriptors = slope_only_chain()
        descriptors.insert(1, {"name": "slope", "type": "StepFilter"})
        with pytest.raises(ConfigurationError, match="Duplicate"):
            FilterChain.from_descriptors(descriptors)

    def test_out_of_order_dependency(self) -> None:
        """A stage reading a layer written only by a later stage is rejected."""
        descriptors = list(reversed(slope_only_chain()))
        with pytest.raises(ConfigurationError, match="cyclic or out-of-order"):
            FilterChain.from_descriptors(descriptors)

    def test_self_dependency(self) -> None:
        """A stage reading its own output is a cycle."""
        descriptors = slope_only_chain()
        descriptors[0]["params"] = {"input_layer": "slope"}
        with pytest.raises(ConfigurationError, match="cyclic or out-of-order"):
            FilterChain.from_descriptors(descriptors)

    def test_unconfigured_input(self) -> None:
        """A stage reading a layer nobody writes is rejected."""
        descriptors = slope_only_chain()
        descriptors[1]["params"]["input_layers"] = ["slope", "curvature"]
        with pytest.raises(ConfigurationError, match="unconfigured layer 'curvature'"):
            FilterChain.from_descriptors(descriptors)

    def test_missing_required_output(self) -> None:
        """The chain must write the traversability layer."""
        with pytest.raises(ConfigurationError, match="required output"):
            FilterChain.from_descriptors(slope_only_chain()[:1])

    def test_no_required_output(self) -> None:
        """Partial chains are allowed when no output is required."""
        chain = FilterChain.from_descriptors(slope_only_chain()[:1], required_output=None)
        assert chain.output_layers == (LayerNames.SLOPE,)

    def test_extra_base_layer(self) -> None:
        """Stages may read any declared base layer."""
        descriptors = slope_only_chain()
        descriptors[1]["params"]["input_layers"] = ["slope", "semantic"]
        chain = FilterChain.from_descriptors(descriptors, base_layers=(LayerNames.ELEVATION, "semantic"))
        assert chain.base_layers == (LayerNames.ELEVATION, "semantic")


# =============================================================================
# EXECUTION
# =============================================================================


class TestChainUpdate:
    """Running a chain over an elevation map."""

    def test_writes_all_layers_to_a_copy(self, flat_elevation_map: GridMap) -> None:
        """The result holds every layer; the input map is not modified."""
        chain = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN)
        result = chain.update(flat_elevation_map)

        assert result is not flat_elevation_map
        assert flat_elevation_map.layers == (LayerNames.ELEVATION,)
        assert set(result.layers) == {LayerNames.ELEVATION, *chain.output_layers}
        assert np.allclose(result[LayerNames.TRAVERSABILITY], 1.0)

    def test_later_stage_reads_earlier_output(self, ramp_elevation_map: GridMap) -> None:
        """The combination sees the slope layer written before it."""
        result = FilterChain.from_descriptors(slope_only_chain()).update(ramp_elevation_map)
        assert np.array_equal(result[LayerNames.TRAVERSABILITY], result[LayerNames.SLOPE])

    def test_missing_base_layer(self) -> None:
        """Input maps must provide the base layers."""
        grid_map = GridMap(resolution=1.0, size=(3, 3))
        grid_map.add("height", 0.0)
        with pytest.raises(KeyError, match="base layers"):
            FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN).update(grid_map)

    def test_frozen_input_is_accepted(self, flat_elevation_map: GridMap) -> None:
        """Published snapshots can be fed back into a chain."""
        result = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN).update(flat_elevation_map.freeze())
        assert not result.is_frozen

    def test_deterministic(self) -> None:
        """The same elevation map always yields identical layers."""
        rng = np.random.default_rng(7)
        heights = rng.normal(scale=0.05, size=(20, 20))
        heights[3:6, 10:14] = np.nan
        grid_map = GridMap.from_array(LayerNames.ELEVATION, heights, resolution=0.1)
        chain = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN)

        first = chain.update(grid_map)
        second = chain.update(grid_map)
        for layer in chain.output_layers:
            assert np.array_equal(first[layer], second[layer], equal_nan=True)

    def test_traversability_bounded_by_risk_layers(self) -> None:
        """Traversability is within [0, 1], known everywhere and <= every risk layer."""
        rng = np.random.default_rng(11)
        heights = np.cumsum(rng.normal(scale=0.03, size=(30, 30)), axis=1)
        heights[10:15, 10:15] = np.nan
        grid_map = GridMap.from_array(LayerNames.ELEVATION, heights, resolution=0.1)

        result = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN).update(grid_map)
        traversability = result[LayerNames.TRAVERSABILITY]
        assert np.isfinite(traversability).all()
        assert ((traversability >= 0.0) & (traversability <= 1.0)).all()
        for layer in LayerNames.RISK_LAYERS:
            known = np.isfinite(result[layer])
            assert (traversability[known] <= result[layer][known]).all()
        assert traversability[12, 12] == 0.5

    def test_empty_map(self) -> None:
        """A map without cells passes through the chain."""
        grid_map = GridMap(resolution=0.1, size=(0, 5))
        grid_map.add(LayerNames.ELEVATION)
        result = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN).update(grid_map)
        assert result[LayerNames.TRAVERSABILITY].shape == (0, 5)


# =============================================================================
# PARAMETER FILES
# =============================================================================


class TestParameterFiles:
    """Reading chains from JSON files."""

    def test_from_file(self, tmp_path: Path) -> None:
        """A chain is built from the 'filters' list of a JSON file."""
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"filters": slope_only_chain()}))
        chain = FilterChain.from_file(path)
        assert [stage.name for stage in chain.stages] == ["slope", "traversability"]

    def test_shipped_parameter_file(self) -> None:
        """The parameter file in config/ matches the default chain."""
        from traversability_estimation.constants import PARAMETER_FILE

        data = read_parameter_file(PARAMETER_FILE)
        chain = FilterChain.from_descriptors(data["filters"])
        assert chain.output_layers == FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN).output_layers

    def test_missing_file(self, tmp_path: Path) -> None:
        """Unreadable files raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Cannot read"):
            FilterChain.from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Malformed JSON raises ConfigurationError."""
        path = tmp_path / "params.json"
        path.write_text("{filters: [")
        with pytest.raises(ConfigurationError):
            FilterChain.from_file(path)

    @pytest.mark.parametrize(
        "content",
        [
            [],
            {"filters": {"slope": "SlopeFilter"}},
            {"parameters": {}},
            {"filters": [], "parameters": [0.5]},
        ],
    )
    def test_wrong_structure(self, tmp_path: Path, content) -> None:
        """The file must be an object with a 'filters' list and an optional 'parameters' object."""
        path = tmp_path / "params.json"
        path.write_text(json.dumps(content))
        with pytest.raises(ConfigurationError):
            read_parameter_file(path)

    def test_descriptors_not_mutated(self) -> None:
        """Building a chain leaves the descriptors untouched."""
        descriptors = copy.deepcopy(DEFAULT_FILTER_CHAIN)
        FilterChain.from_descriptors(descriptors)
        assert descriptors == DEFAULT_FILTER_CHAIN
