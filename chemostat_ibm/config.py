"""Configuration system for chemostat-ibm.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Parameters can also be supplied as a flat mapping using the conventional
chemostat names (D, r_max, k_s, Y, S_0, DELTAT, N_0, S_init) through
`params_from_mapping()`.

All validation happens here, before any simulation step runs.
"""

from __future__ import annotations

import dataclasses
import math
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml


VALID_SAMPLING = ("expected", "binomial")
VALID_OBSERVERS = ("default", "age", "full")


class ParameterError(ValueError):
    """Invalid parameter value, raised before any simulation step runs.

    Attributes:
        name: Offending parameter name.
        value: Offending value.
    """

    def __init__(self, name: str, value: Any, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"{name} {reason}, got {value!r}")


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ChemostatParams:
    """Vessel, kinetic and numerical parameters. Immutable for one run."""
    D: float = 0.1               # Dilution rate (per time unit); washout scale
    r_max: float = 0.5           # Maximum specific growth (division) rate
    k_s: float = 0.1             # Monod half-saturation constant
    Y: float = 1.0               # Yield: biomass produced per unit resource
    S_0: float = 0.5             # Inflow resource concentration
    DELTAT: float = 1.0          # Step size
    volume: float = 200.0        # Culture volume; biomass X = N / volume
    sampling: str = "expected"   # 'expected' (rounded counts) or 'binomial'

    def replace(self, **changes) -> 'ChemostatParams':
        """Return a copy with some fields changed."""
        return dataclasses.replace(self, **changes)


@dataclass
class SimulationSection:
    """Run length, timing and replication."""
    n_steps: int = 100
    t0: float = 0.0
    seed: int = 42
    n_replicates: int = 1
    workers: int = 1             # >1 runs replicates in a process pool


@dataclass
class InitialSection:
    """Initial state."""
    N_0: int = 100               # Initial number of individuals
    S_init: float = 0.5          # Initial resource concentration in the vessel


@dataclass
class OutputSection:
    """Output control."""
    directory: str = "results/"
    filename: str = "timeseries.csv"
    observer: str = "default"    # 'default', 'age' or 'full'


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    chemostat: ChemostatParams = field(default_factory=ChemostatParams)
    initial: InitialSection = field(default_factory=InitialSection)
    output: OutputSection = field(default_factory=OutputSection)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain nested dict, suitable for YAML dumping or deep_merge."""
        return dataclasses.asdict(self)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'chemostat': ChemostatParams,
    'initial': InitialSection,
    'output': OutputSection,
}


def config_from_dict(data: Dict) -> SimulationConfig:
    """Convert a merged (YAML-shaped) dict to a SimulationConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


# ═══════════════════════════════════════════════════════════════════════
# FLAT PARAMETER MAPPINGS
# ═══════════════════════════════════════════════════════════════════════

PARAM_KEYS = ("D", "r_max", "k_s", "Y", "S_0", "DELTAT", "volume", "sampling")
INITIAL_KEYS = ("N_0", "S_init")


def params_from_mapping(
    mapping: Mapping[str, Any],
    strict: bool = False,
    base: Optional[ChemostatParams] = None,
) -> Tuple[ChemostatParams, InitialSection]:
    """Build validated parameters and initial values from a flat mapping.

    Args:
        mapping: Parameter name → value, e.g. ``{'D': 0.1, 'r_max': 0.5}``.
        strict: If True, unrecognized keys raise; otherwise they are ignored.
        base: Parameters to start from (defaults if None).

    Returns:
        (ChemostatParams, InitialSection)

    Raises:
        ValueError: Unrecognized key with strict=True.
        ParameterError: Invalid value.
    """
    unknown = set(mapping) - set(PARAM_KEYS) - set(INITIAL_KEYS)
    if strict and unknown:
        raise ValueError(f"Unrecognized parameter(s): {sorted(unknown)}")

    params = (base or ChemostatParams()).replace(
        **{k: mapping[k] for k in PARAM_KEYS if k in mapping}
    )
    initial = InitialSection(
        **{k: mapping[k] for k in INITIAL_KEYS if k in mapping}
    )
    validate_params(params)
    validate_initial(initial)
    return params, initial


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def validate_params(params: ChemostatParams) -> None:
    """Validate chemostat parameters. Raises ParameterError on failure.

    Step sizes large enough to push D*DELTAT or r_max*DELTAT above 1 are
    accepted with a warning; the engine clamps the probabilities.
    """
    for name in ("D", "r_max", "k_s", "S_0", "Y", "DELTAT", "volume"):
        value = getattr(params, name)
        if not math.isfinite(value):
            raise ParameterError(name, value, "must be finite")
    for name in ("D", "r_max", "k_s", "S_0"):
        value = getattr(params, name)
        if value < 0:
            raise ParameterError(name, value, "must be non-negative")
    for name in ("Y", "DELTAT", "volume"):
        value = getattr(params, name)
        if value <= 0:
            raise ParameterError(name, value, "must be positive")
    if params.sampling not in VALID_SAMPLING:
        raise ParameterError(
            "sampling", params.sampling, f"must be one of {VALID_SAMPLING}"
        )

    if params.D * params.DELTAT > 1.0 or params.r_max * params.DELTAT > 1.0:
        warnings.warn(
            f"DELTAT={params.DELTAT} gives per-step probabilities above 1 "
            f"(D*DELTAT={params.D * params.DELTAT:.3g}, "
            f"r_max*DELTAT={params.r_max * params.DELTAT:.3g}); "
            f"they will be clamped to 1.",
            UserWarning,
            stacklevel=2,
        )


def validate_initial(initial: InitialSection) -> None:
    """Validate initial values. Raises ParameterError on failure."""
    N_0 = initial.N_0
    if not math.isfinite(N_0) or int(N_0) != N_0 or N_0 < 0:
        raise ParameterError("N_0", initial.N_0, "must be a non-negative integer")
    if not math.isfinite(initial.S_init) or initial.S_init < 0:
        raise ParameterError("S_init", initial.S_init, "must be non-negative")


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure."""
    validate_params(config.chemostat)
    validate_initial(config.initial)

    sim = config.simulation
    if sim.seed < 0:
        raise ParameterError("simulation.seed", sim.seed, "must be non-negative")
    if sim.n_steps < 0:
        raise ParameterError("simulation.n_steps", sim.n_steps, "must be non-negative")
    if sim.n_replicates < 1:
        raise ParameterError("simulation.n_replicates", sim.n_replicates, "must be >= 1")
    if sim.workers < 1:
        raise ParameterError("simulation.workers", sim.workers, "must be >= 1")

    if config.output.observer not in VALID_OBSERVERS:
        raise ParameterError(
            "output.observer", config.output.observer,
            f"must be one of {VALID_OBSERVERS}",
        )


def _read_yaml(path: Path) -> Dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(
    base_path: Optional[Union[str, Path]] = None,
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies. Without a base file
    the built-in defaults are the base layer.

    Raises:
        FileNotFoundError: If base_path or scenario_path doesn't exist.
        ValueError: If validation fails.
    """
    if base_path is None:
        config_dict = SimulationConfig().to_dict()
    else:
        base_path = Path(base_path)
        if not base_path.exists():
            raise FileNotFoundError(f"Config file not found: {base_path}")
        config_dict = _read_yaml(base_path)

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        deep_merge(config_dict, _read_yaml(scenario_path))

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = config_from_dict(config_dict)
    validate_config(config)
    return config


def apply_overrides(
    config: SimulationConfig,
    overrides: Dict,
) -> SimulationConfig:
    """Return a new validated config with nested overrides merged in."""
    merged = deep_merge(config.to_dict(), overrides)
    new_config = config_from_dict(merged)
    validate_config(new_config)
    return new_config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
