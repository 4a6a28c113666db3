"""Configuration management for the recurring task engine."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs. Empty if the file is missing or unreadable.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips single and double quotes from values
        - Accepts an optional leading ``export``
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


# Environment variable -> (config key, converter)
ENV_SETTINGS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "RECURBOT_BATCH_SIZE": ("batch_size", int),
    "RECURBOT_DEFAULT_CAP": ("default_cap", int),
    "RECURBOT_COMPLEXITY_THRESHOLD": ("complexity_threshold", int),
    "RECURBOT_REDUCED_CAP": ("reduced_cap", int),
    "RECURBOT_LOOK_AHEAD_DAYS": ("look_ahead_days", int),
    "RECURBOT_SWEEP_INTERVAL_MINUTES": ("sweep_interval_minutes", float),
    "RECURBOT_HORIZON_YEARS": ("horizon_years", int),
    "RECURBOT_BATCH_PAUSE_SECONDS": ("batch_pause_seconds", float),
    "RECURBOT_MIN_FUTURE_INSTANCES": ("min_future_instances", int),
    "RECURBOT_CLEANUP_MAX_AGE_DAYS": ("cleanup_max_age_days", int),
    "RECURBOT_QUEUE_BACKLOG_WARNING": ("queue_backlog_warning", int),
}


class ConfigManager:
    """Loads engine settings from the environment and an optional .env file."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load the .env file without overriding variables already set.

        Returns:
            Keys that were loaded from the file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a settings dict from RECURBOT_* environment variables.

        Invalid numbers are logged and ignored so defaults apply.
        """
        cfg: dict[str, Any] = {}
        for env_name, (key, convert) in ENV_SETTINGS.items():
            raw = os.environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                cfg[key] = convert(raw.strip())
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)

        storage_path = os.environ.get("RECURBOT_STORAGE_PATH")
        if storage_path:
            cfg["storage_path"] = storage_path
        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load the .env file, then build configuration from the environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get a configuration value from a dict or an attribute-style object."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)


@dataclass
class EngineConfig:
    """Tunables of the generation engine with explicit defaults."""

    batch_size: int = 5
    default_cap: int = 50
    complexity_threshold: int = 7
    reduced_cap: int = 20
    look_ahead_days: int = 30
    sweep_interval_minutes: float = 60
    horizon_years: int = 5
    batch_pause_seconds: float = 0.05
    min_future_instances: int = 5
    cleanup_max_age_days: int = 365
    queue_backlog_warning: int = 50
    storage_path: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "EngineConfig":
        """Extract engine configuration from a settings object or dict.

        Args:
            settings: dict or object carrying any subset of the fields

        Returns:
            EngineConfig with values from settings or defaults
        """
        defaults = cls()
        values = {
            name: get_config_value(settings, name, default)
            for name, default in asdict(defaults).items()
        }
        return cls(**values)

    @classmethod
    def from_env(cls, env_file_path: Path | None = None) -> "EngineConfig":
        """Build configuration from RECURBOT_* variables (and .env defaults)."""
        config = cls.from_settings(ConfigManager(env_file_path).load_full_config())
        config.validate()
        return config

    def validate(self) -> "EngineConfig":
        """Check ranges and cross-field consistency.

        Raises:
            ConfigurationError: describing the first inconsistent setting
        """
        minimums = {
            "batch_size": 1,
            "default_cap": 1,
            "reduced_cap": 1,
            "horizon_years": 1,
            "look_ahead_days": 0,
            "min_future_instances": 0,
            "cleanup_max_age_days": 0,
            "queue_backlog_warning": 1,
        }
        for name, minimum in minimums.items():
            if getattr(self, name) < minimum:
                raise ConfigurationError(f"{name} must be at least {minimum}")
        if self.reduced_cap > self.default_cap:
            raise ConfigurationError("reduced_cap must not exceed default_cap")
        if not 0 <= self.complexity_threshold <= 10:
            raise ConfigurationError("complexity_threshold must be between 0 and 10")
        if self.sweep_interval_minutes <= 0:
            raise ConfigurationError("sweep_interval_minutes must be positive")
        if self.batch_pause_seconds < 0:
            raise ConfigurationError("batch_pause_seconds must not be negative")
        return self
