"""
Configuration management for the grp CLI.

Settings live in $GRP_HOME/config.yaml (default ~/.config/grp):

    plugin_dir: ./plugins
    log_level: INFO
    log_format: pretty        # or structured (JSON)
    log_file: logs/grp-{date}.log
    max_workers: 8
    approval_timeout: 600     # seconds
    env_file: ~/.config/grp/.env

Environment overrides: GRP_PLUGIN_DIR, GRP_LOG_LEVEL.
"""

import os
from dataclasses import dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from grpcli.errors import ConfigError

LOG_FORMATS = ("pretty", "structured")


def get_grp_home() -> Path:
    """Return the grp home directory ($GRP_HOME or ~/.config/grp)."""
    home = os.environ.get("GRP_HOME")
    if home:
        return Path(home)
    return Path("~/.config/grp").expanduser()


@dataclass
class GrpConfig:
    """CLI settings."""
    plugin_dir: str = "./plugins"
    log_level: str = "INFO"
    log_format: str = "pretty"
    log_file: Optional[str] = None
    max_workers: Optional[int] = None
    approval_timeout: Optional[float] = None
    env_file: Optional[str] = None

    def __post_init__(self) -> None:
        self.log_level = str(self.log_level).upper()
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(
                f"log_format must be one of {', '.join(LOG_FORMATS)}, got {self.log_format!r}"
            )
        if self.max_workers is not None:
            if not isinstance(self.max_workers, int) or isinstance(self.max_workers, bool) or self.max_workers < 1:
                raise ConfigError(f"max_workers must be a positive integer, got {self.max_workers!r}")
        if self.approval_timeout is not None:
            if not isinstance(self.approval_timeout, (int, float)) or isinstance(self.approval_timeout, bool):
                raise ConfigError(
                    f"approval_timeout must be a number of seconds, got {self.approval_timeout!r}"
                )

    def get_log_file_path(self) -> Optional[Path]:
        """Log file path with {date} interpolated, or None when file logging is off."""
        if not self.log_file:
            return None
        log_file = self.log_file.replace("{date}", datetime.now().strftime("%Y-%m-%d"))
        return Path(log_file).expanduser()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GrpConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config: GrpConfig) -> GrpConfig:
    if os.environ.get("GRP_PLUGIN_DIR"):
        config.plugin_dir = os.environ["GRP_PLUGIN_DIR"]
    if os.environ.get("GRP_LOG_LEVEL"):
        config.log_level = os.environ["GRP_LOG_LEVEL"].upper()
    return config


def load_config(config_path: Optional[Path] = None) -> GrpConfig:
    """
    Load grp configuration.

    Args:
        config_path: Explicit config file. Defaults to $GRP_HOME/config.yaml

    Returns:
        GrpConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If the file is not valid YAML or has bad values
    """
    if config_path is None:
        config_path = get_grp_home() / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"grp config.yaml not found at {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")

    config = GrpConfig.from_dict(data)

    if config.env_file:
        env_path = Path(config.env_file).expanduser()
        if env_path.exists():
            load_dotenv(env_path)

    return _apply_env_overrides(config)


def load_config_or_default(config_path: Optional[Path] = None) -> GrpConfig:
    """Load configuration, falling back to defaults when no file exists."""
    try:
        return load_config(config_path)
    except FileNotFoundError:
        return _apply_env_overrides(GrpConfig())
