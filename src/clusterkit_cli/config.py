"""CLI configuration management.

Handles persistent configuration stored in ~/.clusterkit/config.yaml.
Supports environment variable overrides and CLI flag precedence.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .bootstrap.types import BootstrapConfig
from .errors import ConfigError
from .shared.paths import CONFIG_FILE, DEFAULT_KUBECONFIG

# Default values
DEFAULT_REGION = "us-central1"
DEFAULT_CLUSTER_NAME = "clusterkit"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_FORMAT = "text"

VALID_LOG_LEVELS = ("debug", "info", "warn", "error")
VALID_LOG_FORMATS = ("text", "json")

ENV_PREFIX = "CLUSTERKIT_"

# Keys readable from the config file and from CLUSTERKIT_<KEY> variables
CONFIG_KEYS = (
    "project_id",
    "region",
    "cluster_name",
    "domain",
    "cloudflare_token",
    "kubeconfig",
    "context",
    "log_level",
    "log_format",
)


@dataclass
class ClusterKitConfig:
    """Persistent ClusterKit configuration."""

    project_id: str = ""
    region: str = DEFAULT_REGION
    cluster_name: str = DEFAULT_CLUSTER_NAME
    domain: str = ""
    cloudflare_token: str = field(default="", repr=False)
    kubeconfig: str = str(DEFAULT_KUBECONFIG)
    context: str = ""
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = DEFAULT_LOG_FORMAT

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def set(self, key: str, value: Any, source: str) -> None:
        """Set a value and record where it came from."""
        if key not in CONFIG_KEYS:
            raise ConfigError(f"unknown config key: {key}")
        setattr(self, key, "" if value is None else str(value))
        self._sources[key] = source

    def validate(self) -> None:
        """Check enumerated settings.

        Raises:
            ConfigError: If log_level or log_format is not recognised.
        """
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigError(
                f"invalid log_level: {self.log_level} (must be debug, info, warn, or error)"
            )
        if self.log_format not in VALID_LOG_FORMATS:
            raise ConfigError(f"invalid log_format: {self.log_format} (must be text or json)")

    def to_bootstrap_config(self, **overrides: Any) -> BootstrapConfig:
        """Freeze this configuration into the parameters of one run.

        Args:
            **overrides: BootstrapConfig fields taken from CLI flags. None
                values are ignored so unset flags keep the configured value.

        Returns:
            Immutable BootstrapConfig.
        """
        values: dict[str, Any] = {
            "project_id": self.project_id,
            "region": self.region,
            "cluster_name": self.cluster_name,
            "domain": self.domain,
            "cloudflare_token": self.cloudflare_token,
            "kubeconfig": self.kubeconfig or None,
            "context": self.context or None,
        }
        known = {f.name for f in fields(BootstrapConfig)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"unknown bootstrap option: {key}")
            if value is not None:
                values[key] = value
        return BootstrapConfig(**values)


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.clusterkit/config.yaml
    """
    return CONFIG_FILE


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def load_config(
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> ClusterKitConfig:
    """Load configuration.

    Precedence (highest to lowest):
    1. Environment variables (CLUSTERKIT_<KEY>)
    2. Config file (explicit path, else ~/.clusterkit/config.yaml)
    3. Defaults

    CLI flags are applied later, when the config is frozen into a
    BootstrapConfig.

    Args:
        config_path: Explicit config file; it must exist when given.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Validated ClusterKitConfig with values and sources

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    config = ClusterKitConfig()
    environ = os.environ if environ is None else environ

    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
    else:
        path = get_config_path()

    if path.exists():
        for key, value in _read_config_file(path).items():
            if key in CONFIG_KEYS:
                config.set(key, value, "config file")

    for key in CONFIG_KEYS:
        value = environ.get(ENV_PREFIX + key.upper())
        if value:
            config.set(key, value, "environment")

    config.kubeconfig = str(Path(config.kubeconfig).expanduser()) if config.kubeconfig else ""
    config.validate()
    return config
