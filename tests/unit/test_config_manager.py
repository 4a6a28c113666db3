"""Unit tests for recurbot.core.config_manager."""

import os
from pathlib import Path
from types import SimpleNamespace

import pytest

from recurbot.core.config_manager import (
    ConfigManager,
    EngineConfig,
    get_config_value,
    parse_env_file,
)
from recurbot.exceptions import ConfigurationError

pytestmark = pytest.mark.unit


def _track_env(monkeypatch, *names):
    """Register variables with monkeypatch so values loaded from .env files are undone."""
    for name in names:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)


class TestParseEnvFile:
    """Tests for parse_env_file."""

    def test_parse_when_missing_then_empty(self, tmp_path: Path):
        assert parse_env_file(tmp_path / "absent.env") == {}

    def test_parse_when_comments_quotes_and_export_then_clean_pairs(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# engine tuning\n"
            "RECURBOT_BATCH_SIZE=3\n"
            "export RECURBOT_REDUCED_CAP='15'\n"
            'RECURBOT_STORAGE_PATH="/tmp/tasks.json"\n'
            "not a pair\n"
            "\n",
            encoding="utf-8",
        )

        assert parse_env_file(env_file) == {
            "RECURBOT_BATCH_SIZE": "3",
            "RECURBOT_REDUCED_CAP": "15",
            "RECURBOT_STORAGE_PATH": "/tmp/tasks.json",
        }


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_build_config_when_env_set_then_converted(self, monkeypatch):
        monkeypatch.setenv("RECURBOT_BATCH_SIZE", "8")
        monkeypatch.setenv("RECURBOT_BATCH_PAUSE_SECONDS", "0.5")

        cfg = ConfigManager().build_config_from_env()

        assert cfg["batch_size"] == 8
        assert cfg["batch_pause_seconds"] == 0.5

    def test_build_config_when_invalid_int_then_ignored(self, monkeypatch, caplog):
        monkeypatch.setenv("RECURBOT_DEFAULT_CAP", "lots")

        cfg = ConfigManager().build_config_from_env()

        assert "default_cap" not in cfg
        assert "RECURBOT_DEFAULT_CAP" in caplog.text

    def test_load_env_file_when_variable_already_set_then_not_overridden(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("RECURBOT_BATCH_SIZE=2\nRECURBOT_REDUCED_CAP=12\n", encoding="utf-8")
        _track_env(monkeypatch, "RECURBOT_REDUCED_CAP")
        monkeypatch.setenv("RECURBOT_BATCH_SIZE", "9")

        loaded = ConfigManager(env_file).load_env_file()

        assert loaded == ["RECURBOT_REDUCED_CAP"]
        assert os.environ["RECURBOT_BATCH_SIZE"] == "9"


class TestEngineConfig:
    """Tests for EngineConfig construction and validation."""

    def test_defaults(self):
        config = EngineConfig()

        assert (config.batch_size, config.default_cap, config.complexity_threshold) == (5, 50, 7)
        assert (config.reduced_cap, config.look_ahead_days, config.horizon_years) == (20, 30, 5)
        assert config.sweep_interval_minutes == 60

    def test_from_settings_when_namespace_then_missing_fields_default(self):
        config = EngineConfig.from_settings(SimpleNamespace(batch_size=2, reduced_cap=10))

        assert config.batch_size == 2
        assert config.reduced_cap == 10
        assert config.default_cap == 50

    def test_from_settings_when_dict_then_values_used(self):
        assert EngineConfig.from_settings({"look_ahead_days": 7}).look_ahead_days == 7

    def test_from_env_when_env_file_then_merged(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("RECURBOT_BATCH_SIZE=4\n", encoding="utf-8")
        _track_env(monkeypatch, "RECURBOT_BATCH_SIZE")
        monkeypatch.setenv("RECURBOT_REDUCED_CAP", "10")

        config = EngineConfig.from_env(env_file)

        assert config.batch_size == 4
        assert config.reduced_cap == 10

    @pytest.mark.parametrize(
        "overrides",
        [
            {"batch_size": 0},
            {"reduced_cap": 60},
            {"complexity_threshold": 11},
            {"sweep_interval_minutes": 0},
            {"batch_pause_seconds": -1},
        ],
    )
    def test_validate_when_out_of_range_then_configuration_error(self, overrides):
        with pytest.raises(ConfigurationError):
            EngineConfig(**overrides).validate()


def test_get_config_value_when_dict_or_object_then_value_or_default():
    assert get_config_value({"a": 1}, "a") == 1
    assert get_config_value(SimpleNamespace(a=2), "a") == 2
    assert get_config_value({}, "missing", 3) == 3
