"""
Unit tests for configuration layering: defaults, settings file, environment.
"""
import json
from pathlib import Path

import pytest

from config import Config, DEFAULT_DB_PATH

_ENV_VARS = (
    "DB_PATH", "DB_TIMEOUT", "API_HOST", "API_PORT",
    "LOG_LEVEL", "EXPOSE_ERRORS", "CORS_ORIGINS",
)


@pytest.fixture
def clean_env(temp_dir, monkeypatch) -> Path:
    """No registry env vars set; CONFIG_DIR points at an empty temp dir."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config_dir = temp_dir / "config"
    config_dir.mkdir()
    monkeypatch.setenv("CONFIG_DIR", str(config_dir))
    return config_dir


def _write_settings(config_dir: Path, settings: dict) -> None:
    (config_dir / "app_settings.json").write_text(json.dumps(settings), encoding="utf-8")


@pytest.mark.unit
class TestConfig:
    """Tests for Config."""

    def test_defaults(self, clean_env):
        config = Config()

        assert config.db_path == DEFAULT_DB_PATH
        assert config.db_timeout == 30.0
        assert config.api_host == "127.0.0.1"
        assert config.api_port == 8000
        assert config.log_level == "INFO"
        assert config.expose_errors is True
        assert config.cors_origins == ["*"]

    def test_environment_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("DB_PATH", "/tmp/elsewhere.db")
        monkeypatch.setenv("API_PORT", "9001")
        monkeypatch.setenv("EXPOSE_ERRORS", "false")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = Config()

        assert config.db_path == Path("/tmp/elsewhere.db")
        assert config.api_port == 9001
        assert config.expose_errors is False
        assert config.cors_origins == ["http://a.test", "http://b.test"]
        assert config.log_level == "DEBUG"

    def test_settings_file_overlay(self, clean_env):
        _write_settings(clean_env, {
            "api_port": "8100",
            "db_timeout": 2,
            "cors_origins": ["http://intranet.test"],
            "_comment": "ignored",
            "unknown_key": 1,
        })

        config = Config()

        assert config.api_port == 8100
        assert config.db_timeout == 2.0
        assert config.cors_origins == ["http://intranet.test"]

    def test_environment_beats_settings_file(self, clean_env, monkeypatch):
        _write_settings(clean_env, {"api_port": 8100, "api_host": "0.0.0.0"})
        monkeypatch.setenv("API_PORT", "9002")

        config = Config()

        assert config.api_port == 9002
        assert config.api_host == "0.0.0.0"

    def test_broken_settings_file_keeps_defaults(self, clean_env):
        (clean_env / "app_settings.json").write_text("{not json", encoding="utf-8")

        config = Config()

        assert config.api_port == 8000

    @pytest.mark.parametrize("value,expected", [
        ("false", False),
        ("Off", False),
        ("0", False),
        (False, False),
        ("true", True),
        (True, True),
    ])
    def test_settings_file_expose_errors(self, clean_env, value, expected):
        _write_settings(clean_env, {"expose_errors": value})

        assert Config().expose_errors is expected
