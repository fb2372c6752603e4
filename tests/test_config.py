"""Tests for chemostat_ibm.config — configuration loading and validation."""

import pytest
import yaml

from chemostat_ibm.config import (
    ChemostatParams,
    InitialSection,
    OutputSection,
    ParameterError,
    SimulationConfig,
    SimulationSection,
    apply_overrides,
    deep_merge,
    default_config,
    load_config,
    params_from_mapping,
    validate_config,
    validate_params,
)


def _write_yaml(path, data):
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_simple_override(self):
        assert deep_merge({'a': 1, 'b': 2}, {'b': 3}) == {'a': 1, 'b': 3}

    def test_nested_merge(self):
        base = {'x': {'a': 1, 'b': 2}, 'y': 10}
        result = deep_merge(base, {'x': {'b': 3, 'c': 4}})
        assert result == {'x': {'a': 1, 'b': 3, 'c': 4}, 'y': 10}

    def test_override_dict_with_scalar(self):
        assert deep_merge({'a': {'nested': 1}}, {'a': 'replaced'}) == {'a': 'replaced'}

    def test_empty_override(self):
        assert deep_merge({'a': 1}, {}) == {'a': 1}


# ── default_config tests ─────────────────────────────────────────────

class TestDefaultConfig:
    def test_creates_valid_config(self):
        assert isinstance(default_config(), SimulationConfig)

    def test_default_values(self):
        config = default_config()
        assert config.simulation.n_steps == 100
        assert config.simulation.seed == 42
        assert config.chemostat.D == 0.1
        assert config.chemostat.r_max == 0.5
        assert config.chemostat.k_s == 0.1
        assert config.chemostat.Y == 1.0
        assert config.chemostat.S_0 == 0.5
        assert config.chemostat.DELTAT == 1.0
        assert config.chemostat.sampling == "expected"
        assert config.initial.N_0 == 100
        assert config.initial.S_init == 0.5
        assert config.output.observer == "default"

    def test_params_frozen(self):
        params = ChemostatParams()
        with pytest.raises(Exception):
            params.D = 0.3

    def test_replace(self):
        params = ChemostatParams().replace(D=0.3)
        assert params.D == 0.3
        assert params.r_max == 0.5


# ── Validation tests ─────────────────────────────────────────────────

class TestValidation:
    @pytest.mark.parametrize("name", ["D", "r_max", "k_s", "S_0"])
    def test_negative_rejected(self, name):
        params = ChemostatParams().replace(**{name: -0.01})
        with pytest.raises(ParameterError) as exc:
            validate_params(params)
        assert exc.value.name == name
        assert exc.value.value == -0.01
        assert name in str(exc.value)

    @pytest.mark.parametrize("name", ["Y", "DELTAT", "volume"])
    def test_non_positive_rejected(self, name):
        with pytest.raises(ParameterError, match=name):
            validate_params(ChemostatParams().replace(**{name: 0.0}))

    @pytest.mark.parametrize("name", ["D", "r_max", "k_s", "S_0", "Y", "DELTAT", "volume"])
    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_non_finite_rejected(self, name, value):
        with pytest.raises(ParameterError, match="finite") as exc:
            validate_params(ChemostatParams().replace(**{name: value}))
        assert exc.value.name == name

    def test_zero_rates_allowed(self):
        validate_params(ChemostatParams(D=0.0, r_max=0.0, k_s=0.0, S_0=0.0))

    def test_parameter_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_params(ChemostatParams(D=-1.0))

    def test_bad_sampling(self):
        with pytest.raises(ParameterError, match="sampling"):
            validate_params(ChemostatParams(sampling="poisson"))

    def test_large_step_warns(self):
        with pytest.warns(UserWarning, match="clamped"):
            validate_params(ChemostatParams(D=0.1, r_max=0.5, DELTAT=4.0))

    def test_initial_values(self):
        cfg = SimulationConfig(initial=InitialSection(N_0=-1))
        with pytest.raises(ParameterError, match="N_0"):
            validate_config(cfg)
        cfg = SimulationConfig(initial=InitialSection(S_init=-0.2))
        with pytest.raises(ParameterError, match="S_init"):
            validate_config(cfg)
        cfg = SimulationConfig(initial=InitialSection(N_0=2.5))
        with pytest.raises(ParameterError):
            validate_config(cfg)
        cfg = SimulationConfig(initial=InitialSection(S_init=float("nan")))
        with pytest.raises(ParameterError, match="S_init"):
            validate_config(cfg)

    def test_simulation_section(self):
        for section in (
            SimulationSection(seed=-1),
            SimulationSection(n_steps=-5),
            SimulationSection(n_replicates=0),
            SimulationSection(workers=0),
        ):
            with pytest.raises(ParameterError):
                validate_config(SimulationConfig(simulation=section))

    def test_bad_observer(self):
        cfg = SimulationConfig(output=OutputSection(observer="nope"))
        with pytest.raises(ParameterError, match="observer"):
            validate_config(cfg)


# ── Flat mapping tests ───────────────────────────────────────────────

class TestParamsFromMapping:
    def test_recognized_keys(self):
        params, initial = params_from_mapping({
            'D': 0.2, 'r_max': 0.6, 'k_s': 0.05, 'Y': 2.0, 'S_0': 1.0,
            'DELTAT': 0.5, 'N_0': 50, 'S_init': 0.1,
        })
        assert params.D == 0.2
        assert params.DELTAT == 0.5
        assert initial.N_0 == 50
        assert initial.S_init == 0.1

    def test_unknown_ignored_by_default(self):
        params, _ = params_from_mapping({'D': 0.2, 'colour': 'blue'})
        assert params.D == 0.2

    def test_unknown_rejected_when_strict(self):
        with pytest.raises(ValueError, match="colour"):
            params_from_mapping({'D': 0.2, 'colour': 'blue'}, strict=True)

    def test_invalid_value(self):
        with pytest.raises(ParameterError) as exc:
            params_from_mapping({'Y': -1})
        assert exc.value.name == 'Y'

    def test_base(self):
        params, _ = params_from_mapping({'D': 0.3}, base=ChemostatParams(r_max=0.9))
        assert params.r_max == 0.9
        assert params.D == 0.3


# ── YAML loading tests ───────────────────────────────────────────────

class TestLoadConfig:
    def test_base_only(self, tmp_path):
        path = _write_yaml(tmp_path / "base.yaml", {
            'simulation': {'n_steps': 20, 'seed': 7},
            'chemostat': {'D': 0.2},
        })
        config = load_config(path)
        assert config.simulation.n_steps == 20
        assert config.simulation.seed == 7
        assert config.chemostat.D == 0.2
        assert config.chemostat.r_max == 0.5  # default retained

    def test_scenario_override(self, tmp_path):
        base = _write_yaml(tmp_path / "base.yaml", {'chemostat': {'D': 0.2, 'Y': 2.0}})
        scen = _write_yaml(tmp_path / "scen.yaml", {'chemostat': {'D': 0.0}})
        config = load_config(base, scen)
        assert config.chemostat.D == 0.0
        assert config.chemostat.Y == 2.0

    def test_scenario_without_base(self, tmp_path):
        scen = _write_yaml(tmp_path / "scen.yaml", {'chemostat': {'D': 0.8}})
        config = load_config(None, scen)
        assert config.chemostat.D == 0.8
        assert config.chemostat.r_max == ChemostatParams().r_max
        assert config.simulation == SimulationSection()

    def test_no_files_gives_defaults(self):
        assert load_config() == default_config()

    def test_sweep_overrides_last(self, tmp_path):
        base = _write_yaml(tmp_path / "base.yaml", {'chemostat': {'D': 0.2}})
        config = load_config(base, sweep_overrides={'chemostat': {'D': 0.4}})
        assert config.chemostat.D == 0.4

    def test_unknown_keys_ignored(self, tmp_path):
        path = _write_yaml(tmp_path / "base.yaml", {
            'chemostat': {'D': 0.2, 'colour': 'blue'},
            'unknown_section': {'x': 1},
        })
        assert load_config(path).chemostat.D == 0.2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).chemostat == ChemostatParams()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_missing_scenario(self, tmp_path):
        base = _write_yaml(tmp_path / "base.yaml", {})
        with pytest.raises(FileNotFoundError):
            load_config(base, tmp_path / "nope.yaml")

    def test_validation_on_load(self, tmp_path):
        path = _write_yaml(tmp_path / "base.yaml", {'chemostat': {'k_s': -1.0}})
        with pytest.raises(ParameterError, match="k_s"):
            load_config(path)

    def test_shipped_configs(self):
        from pathlib import Path
        root = Path(__file__).resolve().parent.parent / "configs"
        base = load_config(root / "base.yaml")
        assert base.chemostat == ChemostatParams()
        no_flow = load_config(root / "base.yaml", root / "scenarios" / "no_flow.yaml")
        assert no_flow.chemostat.D == 0.0
        washout = load_config(root / "base.yaml", root / "scenarios" / "washout.yaml")
        assert washout.chemostat.D > washout.chemostat.r_max


class TestApplyOverrides:
    def test_returns_new_config(self):
        config = default_config()
        new = apply_overrides(config, {'chemostat': {'D': 0.25}})
        assert new.chemostat.D == 0.25
        assert config.chemostat.D == 0.1

    def test_validates(self):
        with pytest.raises(ParameterError):
            apply_overrides(default_config(), {'chemostat': {'Y': 0}})
