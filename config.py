"""
Central configuration for the asset registry backend.

Database location, server binding and error exposure are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/app_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB_PATH  = DEFAULT_DATA_DIR / "registry.db"

SETTINGS_FILE_NAME = "app_settings.json"


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "off")
    return bool(value)


def _env_bool(name: str, default: str) -> bool:
    return _to_bool(os.getenv(name, default))


def _split_origins(value) -> list[str]:
    if isinstance(value, str):
        return [o.strip() for o in value.split(",") if o.strip()]
    return [str(o).strip() for o in value if str(o).strip()]


@dataclass
class Config:
    # --- Storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )
    db_timeout: float = field(
        default_factory=lambda: float(os.getenv("DB_TIMEOUT", "30"))
    )
    # Seconds a connection waits on the SQLite write lock before failing.

    # --- HTTP server ---
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "127.0.0.1"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))
    cors_origins: list[str] = field(
        default_factory=lambda: _split_origins(os.getenv("CORS_ORIGINS", "*"))
    )

    # --- Logging / errors ---
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    expose_errors: bool = field(default_factory=lambda: _env_bool("EXPOSE_ERRORS", "true"))
    # expose_errors=False replaces storage driver messages in responses
    # with a generic one (use for externally reachable deployments).

    def __post_init__(self) -> None:
        """Overlay settings from app_settings.json for keys not set in the environment."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / SETTINGS_FILE_NAME
        if not settings_file.exists():
            return
        _type_map: dict[str, tuple[str, object]] = {
            "db_path":       ("DB_PATH",       Path),
            "db_timeout":    ("DB_TIMEOUT",    float),
            "api_host":      ("API_HOST",      str),
            "api_port":      ("API_PORT",      int),
            "cors_origins":  ("CORS_ORIGINS",  _split_origins),
            "log_level":     ("LOG_LEVEL",     lambda v: str(v).upper()),
            "expose_errors": ("EXPOSE_ERRORS", _to_bool),
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key not in _type_map:
                    continue
                env_name, convert = _type_map[key]
                if env_name in os.environ:
                    continue
                setattr(self, key, convert(val))
        except Exception as exc:
            logger.warning("Failed to load %s: %s", SETTINGS_FILE_NAME, exc)
