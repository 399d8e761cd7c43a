"""Tests for configuration system."""

import pytest
from pathlib import Path

from pkcov.config import AppConfig, load_config, default_config, validate_config
from pkcov.contracts.errors import ConfigError, InvalidConfigurationError


class TestAppConfig:
    """Test configuration model."""

    def test_default_config(self):
        """Reference scenario values."""
        config = default_config()

        assert config.pk.ka == 0.5
        assert config.pk.cl == 4.0
        assert config.pk.v == 10.0
        assert config.pk.clwt == 0.75
        assert config.pk.vwt == 1.0
        assert config.dose.amount == 100.0
        assert config.dose.compartment == "Gut"
        assert config.sampling.seed == 678549
        assert config.variability.zeroed is True
        assert config.run.threads == 1
        assert config.run.integrator == "analytic"

    def test_required_sections(self, sample_config_dict):
        del sample_config_dict["pk"]
        with pytest.raises(ValueError):
            AppConfig.model_validate(sample_config_dict)

    def test_solver_config_validation(self, sample_config_dict):
        sample_config_dict["solver"] = {"method": "INVALID"}
        with pytest.raises(ValueError, match="method must be one of"):
            AppConfig.model_validate(sample_config_dict)

    def test_threads_validation(self, sample_config_dict):
        sample_config_dict["run"]["threads"] = 0
        with pytest.raises(ValueError, match="threads must be positive"):
            AppConfig.model_validate(sample_config_dict)

    def test_omega_must_be_2x2(self, sample_config_dict):
        sample_config_dict["variability"]["omega"] = [[0.1]]
        with pytest.raises(ValueError, match="2x2"):
            AppConfig.model_validate(sample_config_dict)

    def test_omega_must_be_psd(self, sample_config_dict):
        sample_config_dict["variability"]["omega"] = [[0.1, 0.5], [0.5, 0.1]]
        with pytest.raises(ValueError, match="positive semi-definite"):
            AppConfig.model_validate(sample_config_dict)

    def test_ci_probs_validation(self, sample_config_dict):
        sample_config_dict["analysis"]["ci_probs"] = [0.6, 0.9]
        with pytest.raises(ValueError, match="ci_probs"):
            AppConfig.model_validate(sample_config_dict)

    def test_dose_compartment(self, sample_config_dict):
        sample_config_dict["dose"]["compartment"] = "Central"
        with pytest.raises(ValueError):
            AppConfig.model_validate(sample_config_dict)

    def test_grid_bounds(self, sample_config_dict):
        sample_config_dict["grid"]["end_h"] = 0.0
        with pytest.raises(ValueError, match="end_h must be greater"):
            AppConfig.model_validate(sample_config_dict)

    def test_name_helpers(self, sample_config: AppConfig):
        assert [c.value for c in sample_config.analysis.covariate_names()] == ["Weight", "Age", "Sex"]
        assert [m.value for m in sample_config.analysis.metric_names()] == ["Cmax", "AUC"]
        assert sample_config.sampling.sex_filter() is None


class TestConfigLoading:
    """Test configuration loading."""

    def test_load_from_toml_file(self, sample_toml_config: Path):
        config = AppConfig.from_toml_file(sample_toml_config)

        assert config.sampling.seed == 42
        assert config.run.threads == 2
        assert config.run.integrator == "rk4"
        assert config.analysis.standardize_by == "Sex"
        assert config.solver.rtol == 1e-10

    def test_load_config_path(self, sample_toml_config: Path):
        config = load_config(sample_toml_config)
        assert config.sampling.n_per_cell == 5

    def test_load_nonexistent_file(self):
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_config("nonexistent.toml")

    def test_load_invalid_toml(self, temp_dir: Path):
        bad_config = temp_dir / "bad.toml"
        bad_config.write_text("invalid toml content [[[")

        with pytest.raises(ConfigError, match="Failed to load config"):
            load_config(bad_config)

    def test_env_override(self, sample_toml_config: Path, monkeypatch):
        monkeypatch.setenv("PKCOV_SAMPLING_SEED", "7")
        monkeypatch.setenv("PKCOV_RUN_FAIL_FAST", "true")

        config = load_config(sample_toml_config)

        assert config.sampling.seed == 7
        assert config.run.fail_fast is True

    def test_invalid_env_override_without_file(self, temp_dir: Path, monkeypatch):
        monkeypatch.delenv("PKCOV_CONFIG", raising=False)
        monkeypatch.chdir(temp_dir)
        monkeypatch.setenv("HOME", str(temp_dir))
        monkeypatch.setenv("PKCOV_RUN_THREADS", "0")

        with pytest.raises(ConfigError, match="Invalid environment override"):
            load_config()

    def test_env_override_without_file(self, temp_dir: Path, monkeypatch):
        monkeypatch.delenv("PKCOV_CONFIG", raising=False)
        monkeypatch.chdir(temp_dir)
        monkeypatch.setenv("HOME", str(temp_dir))
        monkeypatch.setenv("PKCOV_SAMPLING_SEED", "11")

        assert load_config().sampling.seed == 11

    def test_env_config_path(self, sample_toml_config: Path, monkeypatch):
        monkeypatch.setenv("PKCOV_CONFIG", str(sample_toml_config))
        config = load_config()
        assert config.sampling.seed == 42


class TestConfigValidation:
    """Test configuration validation."""

    def test_valid_config(self, sample_config: AppConfig):
        validate_config(sample_config)

    def test_dose_after_grid_end(self, sample_config: AppConfig):
        sample_config.dose.time_h = 48.0

        with pytest.raises(InvalidConfigurationError, match="Dose time"):
            validate_config(sample_config)

    def test_errors_in_details(self, sample_config: AppConfig):
        sample_config.dose.time_h = 48.0

        with pytest.raises(InvalidConfigurationError) as exc_info:
            validate_config(sample_config)
        assert len(exc_info.value.details["errors"]) == 1

    def test_coarse_rk4_warning(self, sample_config: AppConfig):
        """Warnings are logged, not raised."""
        sample_config.run.integrator = "rk4"
        sample_config.run.rk4_max_step = 0.5
        validate_config(sample_config)

    def test_high_thread_count_warning(self, sample_config: AppConfig):
        sample_config.run.threads = 32
        validate_config(sample_config)
