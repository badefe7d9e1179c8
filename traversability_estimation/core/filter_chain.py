"""Filter chain - ordered, validated sequence of filter stages.

A chain is built from stage descriptors:

    {"name": "slope", "type": "SlopeFilter", "params": {"critical_value": 0.5}}

Building validates the whole chain up front so that a bad configuration is
reported once, at configuration time, instead of failing halfway through a
map update:
- every descriptor names a registered filter type with accepted parameters
- stage names are unique
- every input layer is a base layer or written by an earlier stage
- the required output layer is written by some stage

Running the chain applies the stages in order to a copy of the input map.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from traversability_estimation.constants import LayerNames
from traversability_estimation.core.filters import FilterStage, create_filter
from traversability_estimation.core.grid_map import GridMap

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised for malformed, incomplete or cyclic filter chain configurations."""


@dataclass(frozen=True)
class ChainStage:
    """A named stage of a filter chain."""

    name: str
    stage: FilterStage

    @property
    def input_layers(self) -> tuple[str, ...]:
        return self.stage.input_layers

    @property
    def output_layer(self) -> str:
        return self.stage.output_layer


class FilterChain:
    """Ordered filter stages with declared layer dependencies.

    Example:
        chain = FilterChain.from_descriptors(DEFAULT_FILTER_CHAIN)
        traversability_map = chain.update(elevation_map)
    """

    def __init__(
        self,
        stages: list[ChainStage],
        base_layers: tuple[str, ...] = (LayerNames.ELEVATION,),
        required_output: Optional[str] = LayerNames.TRAVERSABILITY,
    ):
        """Create a chain from already constructed stages and validate it.

        Args:
            stages: Stages in execution order
            base_layers: Layers the input map must provide
            required_output: Layer the chain must produce (None for no requirement)

        Raises:
            ConfigurationError: If the stage dependencies are not satisfiable.
        """
        self._stages = tuple(stages)
        self._base_layers = tuple(base_layers)
        self._required_output = required_output
        self._validate()

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Iterable[dict[str, Any]],
        base_layers: tuple[str, ...] = (LayerNames.ELEVATION,),
        required_output: Optional[str] = LayerNames.TRAVERSABILITY,
    ) -> "FilterChain":
        """Build a chain from stage descriptors.

        Args:
            descriptors: Ordered dicts with "name", "type" and optional "params"
            base_layers: Layers the input map must provide
            required_output: Layer the chain must produce

        Raises:
            ConfigurationError: If any descriptor or dependency is invalid.
        """
        stages: list[ChainStage] = []
        for position, descriptor in enumerate(descriptors):
            if not isinstance(descriptor, dict):
                raise ConfigurationError(f"Filter #{position} must be a mapping, got {type(descriptor).__name__}")
            missing = [key for key in ("name", "type") if key not in descriptor]
            if missing:
                raise ConfigurationError(f"Filter #{position} is missing {missing}")

            name = descriptor["name"]
            params = descriptor.get("params") or {}
            try:
                stage = create_filter(descriptor["type"], dict(params))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Filter '{name}': {e}") from e
            stages.append(ChainStage(name=name, stage=stage))

        return cls(stages=stages, base_layers=base_layers, required_output=required_output)

    @classmethod
    def from_file(cls, path: Path) -> "FilterChain":
        """Build a chain from a JSON file holding {"filters": [descriptors]}.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid.
        """
        return cls.from_descriptors(read_filter_descriptors(path))

    def _validate(self) -> None:
        if not self._stages:
            raise ConfigurationError("Filter chain has no stages")

        names = [chain_stage.name for chain_stage in self._stages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate filter names: {duplicates}")

        available = set(self._base_layers)
        for position, chain_stage in enumerate(self._stages):
            for layer in chain_stage.input_layers:
                if layer in available:
                    continue
                producers = [
                    later.name for later in self._stages[position:] if later.output_layer == layer
                ]
                if producers:
                    raise ConfigurationError(
                        f"Filter '{chain_stage.name}' reads layer '{layer}' before it is written "
                        f"by {producers} (cyclic or out-of-order dependency)"
                    )
                raise ConfigurationError(
                    f"Filter '{chain_stage.name}' reads unconfigured layer '{layer}' "
                    f"(available: {sorted(available)})"
                )
            available.add(chain_stage.output_layer)

        if self._required_output is not None and self._required_output not in available:
            raise ConfigurationError(f"No filter writes the required output layer '{self._required_output}'")

    @property
    def stages(self) -> tuple[ChainStage, ...]:
        return self._stages

    @property
    def base_layers(self) -> tuple[str, ...]:
        return self._base_layers

    @property
    def output_layers(self) -> tuple[str, ...]:
        """Layers written by the chain, in execution order without repeats."""
        return tuple(dict.fromkeys(chain_stage.output_layer for chain_stage in self._stages))

    def update(self, grid_map: GridMap) -> GridMap:
        """Apply all stages to a copy of a grid map.

        Args:
            grid_map: Input map holding the base layers (not modified)

        Returns:
            New GridMap with the input layers plus every stage output.

        Raises:
            KeyError: If the input map lacks a base layer.
        """
        missing = [layer for layer in self._base_layers if not grid_map.exists(layer)]
        if missing:
            raise KeyError(f"Input grid map lacks base layers {missing} (layers: {list(grid_map.layers)})")

        result = grid_map.copy()
        for chain_stage in self._stages:
            start_time = time.time()
            result.add(chain_stage.output_layer, chain_stage.stage.compute(result))
            logger.debug(
                f"Filter '{chain_stage.name}' wrote '{chain_stage.output_layer}' "
                f"in {time.time() - start_time:.3f}s"
            )
        return result

    def __repr__(self) -> str:
        return f"FilterChain({[chain_stage.name for chain_stage in self._stages]})"


def read_filter_descriptors(path: Path) -> list[dict[str, Any]]:
    """Read the "filters" descriptor list of a JSON parameter file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or has no filter list.
    """
    return read_parameter_file(path)["filters"]


def read_parameter_file(path: Path) -> dict[str, Any]:
    """Read a JSON parameter file with a "filters" list and optional "parameters".

    Raises:
        ConfigurationError: If the file is missing, not JSON, or malformed.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read filter parameters from {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("filters"), list):
        raise ConfigurationError(f"Parameter file {path} must hold an object with a 'filters' list")
    if not isinstance(data.get("parameters", {}), dict):
        raise ConfigurationError(f"'parameters' in {path} must be an object")
    return data
