"""Configuration management for rust-forest.

Supports loading configuration from:
1. Default values
2. Config file (forest.yaml in the analyzed project, or an explicit path)
3. Environment variables (FOREST_JOBS, FOREST_MAX_FILE_SIZE)

Configuration precedence: env vars > config file > defaults
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .logging import get_logger

logger = get_logger("config")

# Default values
CONFIG_FILE_NAME = "forest.yaml"
DEFAULT_EXTENSIONS = (".rs",)
DEFAULT_EXCLUDE_DIRS = ("target", ".git", "node_modules", "vendor")
DEFAULT_MAX_FILE_SIZE = 2 * 1024 * 1024  # 2MB
DEFAULT_JOBS = min(8, os.cpu_count() or 1)
MAX_JOBS = 64


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class DiscoveryConfig:
    """Source discovery configuration."""

    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def validate(self) -> None:
        """Validate configuration.

        Raises ConfigError if validation fails.
        """
        if not self.extensions:
            raise ConfigError("extensions must not be empty")

        for ext in self.extensions:
            if not ext.startswith(".") or len(ext) < 2:
                raise ConfigError(f"extension must look like '.rs', got {ext!r}")

        for name in self.exclude_dirs:
            if "/" in name or "\\" in name:
                raise ConfigError(f"exclude_dirs entries must be plain names, got {name!r}")

        if self.max_file_size < 1:
            raise ConfigError(f"max_file_size must be >= 1, got {self.max_file_size}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "extensions": list(self.extensions),
            "exclude_dirs": list(self.exclude_dirs),
            "max_file_size": self.max_file_size,
        }


@dataclass
class AnalysisConfig:
    """Analysis run configuration."""

    jobs: int = DEFAULT_JOBS

    def validate(self) -> None:
        """Validate configuration.

        Raises ConfigError if validation fails.
        """
        if self.jobs < 1:
            raise ConfigError(f"jobs must be >= 1, got {self.jobs}")

        if self.jobs > MAX_JOBS:
            raise ConfigError(f"jobs must be <= {MAX_JOBS}, got {self.jobs}")

    def to_dict(self) -> dict[str, int]:
        return {"jobs": self.jobs}


@dataclass
class Config:
    """Main configuration container."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    def validate(self) -> None:
        """Validate all configuration."""
        self.discovery.validate()
        self.analysis.validate()


def load_config(config_path: Path | None = None, project_dir: Path | None = None) -> Config:
    """
    Load configuration from file and environment.

    Args:
        config_path: Explicit path to config file (optional)
        project_dir: Project directory to look for forest.yaml (optional)

    Returns:
        Validated Config object
    """
    config = Config()

    # Determine config file path
    if config_path is None and project_dir is not None:
        config_path = project_dir / CONFIG_FILE_NAME

    # Load from file if exists
    if config_path and config_path.exists():
        try:
            config = _load_config_file(config_path)
            logger.debug("Loaded config from %s", config_path)
        except (OSError, yaml.YAMLError, ConfigError, TypeError, ValueError) as e:
            logger.warning("Failed to load config from %s: %s", config_path, e)
            config = Config()

    # Override with environment variables
    config = _apply_env_overrides(config)

    # Validate
    config.validate()

    return config


def _load_config_file(config_path: Path) -> Config:
    """Load configuration from YAML file."""
    max_size = 1024 * 1024  # 1MB
    if config_path.stat().st_size > max_size:
        raise ConfigError(f"Config file too large: {config_path.stat().st_size} > {max_size}")

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return Config()

    if not isinstance(data, dict):
        raise ConfigError("Config file must be a YAML mapping")

    # Validate keys
    allowed_keys = {"discovery", "analysis"}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        logger.warning("Unknown config keys ignored: %s", unknown_keys)

    discovery_data = data.get("discovery", {})
    if not isinstance(discovery_data, dict):
        raise ConfigError("'discovery' must be a mapping")

    extensions = discovery_data.get("extensions", list(DEFAULT_EXTENSIONS))
    exclude_dirs = discovery_data.get("exclude_dirs", list(DEFAULT_EXCLUDE_DIRS))
    if not isinstance(extensions, list) or not isinstance(exclude_dirs, list):
        raise ConfigError("'extensions' and 'exclude_dirs' must be lists")

    discovery = DiscoveryConfig(
        extensions=[str(ext) for ext in extensions],
        exclude_dirs=[str(name) for name in exclude_dirs],
        max_file_size=int(discovery_data.get("max_file_size", DEFAULT_MAX_FILE_SIZE)),
    )

    analysis_data = data.get("analysis", {})
    if not isinstance(analysis_data, dict):
        raise ConfigError("'analysis' must be a mapping")

    analysis = AnalysisConfig(jobs=int(analysis_data.get("jobs", DEFAULT_JOBS)))

    return Config(discovery=discovery, analysis=analysis)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    env_jobs = os.environ.get("FOREST_JOBS")
    if env_jobs:
        try:
            config.analysis.jobs = int(env_jobs)
            logger.debug("Using %s worker threads from env", env_jobs)
        except ValueError:
            logger.warning("Invalid FOREST_JOBS: %s", env_jobs)

    env_max_size = os.environ.get("FOREST_MAX_FILE_SIZE")
    if env_max_size:
        try:
            config.discovery.max_file_size = int(env_max_size)
        except ValueError:
            logger.warning("Invalid FOREST_MAX_FILE_SIZE: %s", env_max_size)

    return config


def save_config(config: Config, config_path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        config_path: Path to write config file
    """
    data = {
        "discovery": config.discovery.to_dict(),
        "analysis": config.analysis.to_dict(),
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info("Saved config to %s", config_path)
