"""Configuration management for the grain bin tracker."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml

logger = logging.getLogger(__name__)


@dataclass
class GrainbinConfig:
    """Process configuration.

    Operator-editable rates (elevator speed, tons per foot, load sizes,
    notification preferences) are not here: they live in SystemSettings
    and are persisted through the store.

    All intervals are in seconds unless noted.
    """

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Accrual tick and persistence flush cadence
    tick_interval: float = 1.0
    flush_interval: float = 5.0

    # Persistence: "file", "http" or "memory"
    store_backend: str = "file"
    data_dir: str = "data"
    store_url: str = "http://localhost:3000"
    store_timeout: float = 10.0
    store_retries: int = 3

    # Notifications: "log" or "broadcast"
    notifier_backend: str = "broadcast"
    periodic_reminder_minutes: float = 10.0

    # Ledger and bootstrap
    activity_log_limit: int = 50
    default_bin_count: int = 2
    default_capacity_feet: float = 130.0


# YAML section -> {key: config attribute}; None is the top level
_YAML_KEYS: dict[str | None, dict[str, str]] = {
    None: {
        "log_level": "log_level",
        "tick_interval": "tick_interval",
        "flush_interval": "flush_interval",
    },
    "api": {
        "host": "api_host",
        "port": "api_port",
    },
    "store": {
        "backend": "store_backend",
        "data_dir": "data_dir",
        "url": "store_url",
        "timeout": "store_timeout",
        "retries": "store_retries",
    },
    "notifications": {
        "backend": "notifier_backend",
        "periodic_minutes": "periodic_reminder_minutes",
    },
    "bins": {
        "default_count": "default_bin_count",
        "default_capacity_feet": "default_capacity_feet",
        "activity_log_limit": "activity_log_limit",
    },
}

# Environment variable -> (config attribute, converter)
_ENV_OVERRIDES: dict[str, tuple[str, Callable[[str], Any]]] = {
    "GRAINBIN_API_HOST": ("api_host", str),
    "GRAINBIN_API_PORT": ("api_port", int),
    "GRAINBIN_LOG_LEVEL": ("log_level", str),
    "GRAINBIN_TICK_INTERVAL": ("tick_interval", float),
    "GRAINBIN_FLUSH_INTERVAL": ("flush_interval", float),
    "GRAINBIN_STORE_BACKEND": ("store_backend", str),
    "GRAINBIN_DATA_DIR": ("data_dir", str),
    "GRAINBIN_STORE_URL": ("store_url", str),
    "GRAINBIN_STORE_TIMEOUT": ("store_timeout", float),
    "GRAINBIN_STORE_RETRIES": ("store_retries", int),
    "GRAINBIN_NOTIFIER": ("notifier_backend", str),
    "GRAINBIN_PERIODIC_MINUTES": ("periodic_reminder_minutes", float),
    "GRAINBIN_ACTIVITY_LOG_LIMIT": ("activity_log_limit", int),
    "GRAINBIN_DEFAULT_BIN_COUNT": ("default_bin_count", int),
    "GRAINBIN_DEFAULT_CAPACITY_FEET": ("default_capacity_feet", float),
}


def _read_dotenv(path: Path) -> dict[str, str]:
    """Parse ``KEY=value`` lines, ignoring blanks and comments."""
    values: dict[str, str] = {}
    if not path.is_file():
        return values

    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip("\"'")
    return values


def _default_config_dir() -> Path:
    # src/grainbin/config.py -> <project>/config, else ./config
    candidate = Path(__file__).resolve().parent.parent.parent / "config"
    return candidate if candidate.exists() else Path.cwd() / "config"


def load_config(
    config_path: Path | None = None,
    env: str | None = None,
) -> GrainbinConfig:
    """Load configuration from YAML files and environment variables.

    Later sources win:
    1. Hardcoded defaults
    2. ``default.yaml``
    3. ``<env>.yaml`` (development, production, ...)
    4. ``GRAINBIN_*`` environment variables, including a ``.env`` file
       next to the config directory (real environment takes precedence)

    Args:
        config_path: Path to config directory. Defaults to project config/.
        env: Environment name. Defaults to GRAINBIN_ENV or "development".

    Returns:
        Loaded GrainbinConfig instance.
    """
    config_dir = Path(config_path) if config_path is not None else _default_config_dir()

    for key, value in _read_dotenv(config_dir.parent / ".env").items():
        os.environ.setdefault(key, value)

    env = env or os.environ.get("GRAINBIN_ENV", "development")

    config = GrainbinConfig()
    for name in ("default", env):
        path = config_dir / f"{name}.yaml"
        if path.exists():
            _merge_yaml(config, path)
            logger.debug("Loaded %s config from %s", name, path)

    _apply_env_overrides(config)

    logger.info("Configuration loaded for environment: %s", env)
    return config


def _merge_yaml(config: GrainbinConfig, path: Path) -> None:
    """Copy recognized keys from a YAML file onto ``config``."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    for section, keys in _YAML_KEYS.items():
        source = data if section is None else data.get(section) or {}
        for key, attr in keys.items():
            if key in source:
                setattr(config, attr, source[key])


def _apply_env_overrides(config: GrainbinConfig) -> None:
    """Apply GRAINBIN_* environment variables, skipping invalid values."""
    for env_var, (attr, converter) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        try:
            setattr(config, attr, converter(value))
        except (ValueError, TypeError) as e:
            logger.warning("Invalid env var %s=%s: %s", env_var, value, e)
            continue
        logger.debug("Applied env override: %s=%s", env_var, value)
