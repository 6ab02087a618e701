"""CLI configuration management.

Handles persistent CLI configuration stored in ~/.meshzone/config.yaml.
Supports environment variable overrides; CLI flags take precedence over both.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .shared.logging import get_logger
from .shared.paths import CONFIG_FILE, DEFAULT_TEMPLATES_DIR

logger = get_logger(__name__)

# Default values
DEFAULT_REGION = "us-east-2"
DEFAULT_SETTLE_SECONDS = 30
DEFAULT_LOG_LEVEL = "warning"

# Environment variable mappings
ENV_VARS = {
    "region": "MESHZONE_REGION",
    "kds_address": "MESHZONE_KDS_ADDRESS",
    "cp_id": "MESHZONE_CP_ID",
    "connectivity_token": "MESHZONE_CONNECTIVITY_TOKEN",
    "templates_dir": "MESHZONE_TEMPLATES_DIR",
    "settle_seconds": "MESHZONE_SETTLE_SECONDS",
    "log_level": "MESHZONE_LOG_LEVEL",
}

# Keys that may be read from the config file. The connectivity token is
# not one of them: it is read from the environment only.
FILE_KEYS = ("region", "kds_address", "cp_id", "templates_dir", "settle_seconds", "log_level")


@dataclass
class CLIConfig:
    """CLI configuration."""

    region: str = DEFAULT_REGION
    kds_address: str | None = None
    cp_id: str | None = None
    connectivity_token: str | None = None
    templates_dir: Path = DEFAULT_TEMPLATES_DIR
    settle_seconds: int = DEFAULT_SETTLE_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL


def get_config_path() -> Path:
    """Get the CLI config file path.

    Returns:
        Path to ~/.meshzone/config.yaml (or MESHZONE_CONFIG when set)
    """
    override = os.environ.get("MESHZONE_CONFIG")
    return Path(override) if override else CONFIG_FILE


def _apply(config: CLIConfig, key: str, value: Any) -> None:
    if key == "templates_dir":
        config.templates_dir = Path(str(value))
    elif key == "settle_seconds":
        config.settle_seconds = int(value)
    else:
        setattr(config, key, str(value))


def load_config(path: str | Path | None = None) -> CLIConfig:
    """Load CLI configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.meshzone/config.yaml)
    3. Defaults

    Args:
        path: Optional explicit config file path

    Returns:
        Populated CLIConfig
    """
    config = CLIConfig()
    sources: dict[str, str] = {key: "default" for key in ENV_VARS}

    config_path = Path(path) if path else get_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
            if not isinstance(file_config, dict):
                raise ValueError("config file must contain a mapping")

            for key in FILE_KEYS:
                if key in file_config and file_config[key] is not None:
                    _apply(config, key, file_config[key])
                    sources[key] = "config file"
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("config_file_ignored", path=str(config_path), error=str(e))

    for key, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if not value:
            continue
        try:
            _apply(config, key, value)
            sources[key] = "environment"
        except ValueError:
            logger.warning("config_env_ignored", variable=env_var, value=value)

    logger.debug("config_loaded", path=str(config_path), sources=sources)
    return config
