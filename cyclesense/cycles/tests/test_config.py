"""Tests for engine_config.yaml loading and validation, and app settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from cyclesense.config import Settings
from cyclesense.cycles.config_loader import (
    ConfigValidationError,
    EngineConfig,
    _validate_and_build,
    get_engine_config,
    load_engine_config,
    reload_engine_config,
)


class TestConfigLoading:
    """Tests for loading the bundled engine_config.yaml."""

    def test_load_default_config(self, engine_config: EngineConfig) -> None:
        assert engine_config.version == "1.0"

    def test_population_columns(self, engine_config: EngineConfig) -> None:
        pc = engine_config.population
        assert pc.column("cycle_length") == "LengthofCycle"
        assert pc.column("subject_id") == "ClientID"
        assert pc.cycle_length_bounds == (0, 50)
        assert pc.distribution_bin_width == 3

    def test_prediction_constants(self, engine_config: EngineConfig) -> None:
        pr = engine_config.prediction
        assert pr.base_confidence == 0.7
        assert pr.max_confidence == 0.95
        assert pr.personal_weight == 0.7
        assert pr.cohort_min_count == 10
        assert pr.luteal_phase_days == 14
        assert pr.clamp_negative_offsets
        assert not pr.seed_first_cycle_placeholder

    def test_insight_thresholds(self, engine_config: EngineConfig) -> None:
        assert engine_config.insights.min_periods == 3
        assert engine_config.insights.irregularity_std_ratio == 1.5

    def test_regularity_tiers(self, engine_config: EngineConfig) -> None:
        rg = engine_config.regularity
        assert (rg.very_regular_max_range, rg.regular_max_range, rg.somewhat_irregular_max_range) == (
            2,
            7,
            14,
        )


class TestConfigValidation:
    """Tests for config validation logic."""

    def test_empty_config_uses_defaults(self) -> None:
        config = _validate_and_build({})
        assert config.prediction.default_cycle_length == 28
        assert config.population.column("age") == "Age"

    def test_custom_column_names(self) -> None:
        config = _validate_and_build({"population": {"columns": {"age": "age_years"}}})
        assert config.population.column("age") == "age_years"
        assert config.population.column("cycle_length") == "LengthofCycle"

    def test_unknown_column_key_raises(self) -> None:
        with pytest.raises(ConfigValidationError, match="not a recognised column"):
            _validate_and_build({"population": {"columns": {"height": "Height"}}})

    def test_out_of_range_weight_raises(self) -> None:
        with pytest.raises(ConfigValidationError, match="out of range"):
            _validate_and_build({"prediction": {"personal_weight": 1.5}})

    def test_non_numeric_value_raises(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be a number"):
            _validate_and_build({"insights": {"min_periods": "three"}})

    def test_inverted_bounds_raise(self) -> None:
        with pytest.raises(ConfigValidationError, match="low bound"):
            _validate_and_build({"population": {"cycle_length_bounds": [50, 0]}})

    def test_inverted_fertile_offsets_raise(self) -> None:
        with pytest.raises(ConfigValidationError, match="fertile_window_start_offset"):
            _validate_and_build(
                {"prediction": {"fertile_window_start_offset": 10, "fertile_window_end_offset": 12}}
            )

    def test_decreasing_regularity_tiers_raise(self) -> None:
        with pytest.raises(ConfigValidationError, match="non-decreasing"):
            _validate_and_build({"regularity": {"very_regular_max_range": 9}})

    def test_hot_reload(self, tmp_path: Path) -> None:
        """reload_engine_config() should replace the global singleton."""
        config_file = tmp_path / "engine_config.yaml"
        config_file.write_text('version: "2.0-test"\nprediction:\n  personal_weight: 0.6\n')
        try:
            new_config = reload_engine_config(path=config_file)
            assert new_config.version == "2.0-test"
            assert get_engine_config() is new_config
            assert get_engine_config().prediction.personal_weight == 0.6
        finally:
            reload_engine_config()

    def test_invalid_reload_keeps_old_config(self, tmp_path: Path) -> None:
        before = get_engine_config()
        config_file = tmp_path / "engine_config.yaml"
        config_file.write_text("prediction:\n  max_confidence: 2\n")
        with pytest.raises(ConfigValidationError):
            reload_engine_config(path=config_file)
        assert get_engine_config() is before

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        config_file = tmp_path / "engine_config.yaml"
        config_file.write_text("prediction: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_engine_config(path=config_file)

    def test_load_nonexistent_file_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_engine_config(path=Path("/nonexistent/path/config.yaml"))


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TRAINING_DATA_SOURCE", raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_name == "CycleSense"
        assert settings.default_user_age == 25
        assert settings.training_data_source is None

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRAINING_DATA_SOURCE", "https://data.example.org/cycles.csv")
        monkeypatch.setenv("DEFAULT_USER_AGE", "31")
        settings = Settings(_env_file=None)
        assert settings.training_data_source == "https://data.example.org/cycles.csv"
        assert settings.default_user_age == 31
