"""
Tests for Configuration Module

Tests for sceneflow/core/config.py and sceneflow/core/settings.py
"""

import json

import pytest

from sceneflow.core.config import OrchestratorConfig, load_config, save_config
from sceneflow.core.exceptions import InvalidConfigError
from sceneflow.core.settings import Settings


class TestOrchestratorConfig:
    """Tests for OrchestratorConfig class."""

    def test_default_config(self):
        """Test default tuning values."""
        config = OrchestratorConfig()

        assert config.concurrency == 5
        assert config.max_attempts == 4
        assert config.backoff_seconds == 3.0
        assert config.early_phase_seconds == 9.0
        assert config.eta_min_completed == 3

    def test_config_from_dict(self, sample_config):
        """Test creating config from dictionary."""
        config = OrchestratorConfig.from_dict(sample_config)

        assert config.concurrency == 3
        assert config.max_attempts == 2
        assert config.backoff_seconds == 0.5
        assert config.early_step_seconds == 3.0

    def test_config_ignores_unknown_keys(self):
        """Test unknown keys are ignored."""
        config = OrchestratorConfig.from_dict({"concurrency": 2, "theme": "dark"})

        assert config.concurrency == 2

    def test_config_to_dict(self):
        """Test converting config to dictionary."""
        config_dict = OrchestratorConfig().to_dict()

        assert config_dict["concurrency"] == 5
        assert "lock_timeout_seconds" in config_dict

    @pytest.mark.parametrize("field, value", [
        ("concurrency", 0),
        ("max_attempts", 0),
        ("backoff_seconds", -1.0),
        ("lock_timeout_seconds", 0),
        ("chain_step_timeout_seconds", 0),
        ("early_phase_steps", 0),
    ])
    def test_invalid_values_rejected(self, field, value):
        """Test out-of-range values raise InvalidConfigError."""
        with pytest.raises(InvalidConfigError):
            OrchestratorConfig(**{field: value})


class TestLoadSaveConfig:
    """Tests for config loading and saving."""

    def test_load_config_from_file(self, temp_dir, sample_config):
        """Test loading config from JSON file."""
        config_path = temp_dir / "sceneflow_config.json"
        with open(config_path, 'w') as f:
            json.dump(sample_config, f)

        config = load_config(str(config_path))

        assert config.concurrency == 3
        assert config.lock_timeout_seconds == 60.0

    def test_load_missing_file_returns_defaults(self, temp_dir):
        """Test a missing file falls back to defaults."""
        config = load_config(temp_dir / "missing.json")

        assert config == OrchestratorConfig()

    def test_load_invalid_json(self, temp_dir):
        """Test invalid JSON raises InvalidConfigError."""
        config_path = temp_dir / "broken.json"
        config_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            load_config(config_path)

    def test_load_non_object(self, temp_dir):
        """Test a JSON array is rejected."""
        config_path = temp_dir / "list.json"
        config_path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            load_config(config_path)

    def test_load_out_of_range_value(self, temp_dir):
        """Test validation applies to loaded files."""
        config_path = temp_dir / "zero.json"
        config_path.write_text(json.dumps({"concurrency": 0}), encoding="utf-8")

        with pytest.raises(InvalidConfigError):
            load_config(config_path)

    def test_save_config(self, temp_dir):
        """Test saving config to file."""
        config_path = temp_dir / "nested" / "saved.json"

        save_config(OrchestratorConfig(concurrency=7), config_path)

        assert config_path.exists()
        assert load_config(config_path).concurrency == 7


class TestSettings:
    """Tests for service settings."""

    def test_functions_url(self):
        """Test edge functions URL is derived from the Supabase URL."""
        settings = Settings(supabase_url="https://project.supabase.co/")

        assert settings.functions_url == "https://project.supabase.co/functions/v1"

    def test_overrides(self):
        """Test explicit values override defaults."""
        settings = Settings(port=9100, resume_on_startup=False)

        assert settings.port == 9100
        assert settings.resume_on_startup is False
