"""Configuration management for the smoker harness.

This module handles YAML/JSON configuration loading, validation, deep
merging and environment variable overrides. Reference resolution happens
before a Configuration is built, see smoker.resolution.sources.
"""

import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from smoker.core.errors import ConfigurationError, ERR_CONFIG_MISSING


# Default file locations probed when no path is given
DEFAULT_CONFIG_PATHS = ("smoker.yaml", "config/smoker.yaml")

# Environment variable -> dot-separated configuration key
ENVIRONMENT_OVERRIDES = {
    "AWS_REGION": "aws.region",
    "AWS_PROFILE": "aws.profile",
    "SMOKER_LOG_LEVEL": "logging.level",
}

SENSITIVE_KEY_MARKERS = ("password", "secret", "token", "accesskeyid", "apikey")

REDACTED = "********"


def deep_merge(target: Mapping, source: Mapping) -> Dict[str, Any]:
    """Deep merge two mappings into a new dictionary.

    Nested mappings are merged recursively, lists and scalars from
    ``source`` replace those in ``target`` and a None value in ``source``
    removes the key.

    Args:
        target: Mapping to merge into
        source: Mapping whose values take precedence

    Returns:
        New merged dictionary; neither input is modified
    """
    result = copy.deepcopy(dict(target))

    for key, value in source.items():
        if value is None:
            result.pop(key, None)
            continue

        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)

    return result


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML or JSON configuration file.

    Args:
        path: Path to the file

    Returns:
        Parsed configuration dictionary (empty for an empty file)

    Raises:
        ConfigurationError: When the file is unreadable or not a mapping
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")
    except IOError as e:
        raise ConfigurationError(f"Unable to read configuration file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping at the top level"
        )
    return data


def _is_sensitive(key: str) -> bool:
    normalized = key.replace("_", "").replace("-", "").lower()
    return any(marker in normalized for marker in SENSITIVE_KEY_MARKERS)


def redact(value: Any) -> Any:
    """Copy of a configuration tree with credential-like values masked."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if _is_sensitive(str(key)) and item is not None else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class Configuration:
    """Resolved configuration with dot-notation access.

    A Configuration wraps an already merged and resolved dictionary,
    applies environment variable overrides and validates the structure
    that the rest of the harness relies on.
    """

    def __init__(self, data: Optional[Mapping] = None,
                 apply_environment: bool = True) -> None:
        """Initialize configuration.

        Args:
            data: Configuration dictionary (copied)
            apply_environment: Whether to apply environment overrides

        Raises:
            ConfigurationError: When configuration structure is invalid
        """
        self._config: Dict[str, Any] = copy.deepcopy(dict(data or {}))
        if apply_environment:
            self._apply_environment_overrides()
        self._validate_configuration()

    @classmethod
    def from_file(cls, config_path: Optional[str] = None) -> "Configuration":
        """Load configuration from a YAML or JSON file.

        Args:
            config_path: Optional path to configuration file.
                        If None, auto-detects smoker.yaml in current directory.

        Returns:
            Loaded Configuration

        Raises:
            ConfigurationError: When configuration file is missing or invalid
        """
        return cls(load_config_file(cls._resolve_config_path(config_path)))

    @staticmethod
    def _resolve_config_path(config_path: Optional[str]) -> Path:
        """Resolve configuration file path.

        Args:
            config_path: Optional path to configuration file

        Returns:
            Resolved Path object to configuration file

        Raises:
            ConfigurationError: When configuration file not found
        """
        if config_path:
            path = Path(config_path)
        else:
            path = Path(DEFAULT_CONFIG_PATHS[0])
            for candidate in DEFAULT_CONFIG_PATHS:
                if Path(candidate).exists():
                    path = Path(candidate)
                    break

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}. "
                "Please create a configuration file or specify a valid path.",
                code=ERR_CONFIG_MISSING,
            )

        return path

    def _validate_configuration(self) -> None:
        """Validate configuration sections used by the harness.

        Raises:
            ConfigurationError: When a section has the wrong shape
        """
        clients = self._config.get("clients")
        if clients is not None and not isinstance(clients, Mapping):
            raise ConfigurationError("Section 'clients' must be a mapping")

        aws_config = self._config.get("aws")
        if aws_config is not None:
            if not isinstance(aws_config, Mapping):
                raise ConfigurationError("Section 'aws' must be a mapping")
            region = aws_config.get("region")
            if region is not None and (not isinstance(region, str) or not region):
                raise ConfigurationError("Field 'aws.region' must be a non-empty string")

    def _apply_environment_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        for variable, key_path in ENVIRONMENT_OVERRIDES.items():
            if variable in os.environ:
                self._set_nested_value(key_path, os.environ[variable])

    def _set_nested_value(self, key_path: str, value: Any) -> None:
        """Set nested configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.region')
            value: Value to set
        """
        keys = key_path.split(".")
        current = self._config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'aws.region')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        current = self._config

        try:
            for key in keys:
                current = current[key]
            return current
        except (KeyError, TypeError):
            return default

    def get_client_configs(self) -> Dict[str, Any]:
        """Get the client configuration section.

        Returns:
            Mapping of 'type' or 'type:id' keys to client configurations
        """
        return copy.deepcopy(self._config.get("clients", {}))

    def get_region(self) -> Optional[str]:
        """Get the configured AWS region, if any."""
        return self.get("aws.region")

    def get_profile(self) -> Optional[str]:
        """Get the configured AWS profile, if any."""
        return self.get("aws.profile")

    def get_log_level(self) -> str:
        """Get the configured log level (default INFO)."""
        return str(self.get("logging.level", "INFO")).upper()

    def redacted(self) -> Dict[str, Any]:
        """Get configuration with credential-like values masked."""
        return redact(self._config)

    def to_dict(self) -> Dict[str, Any]:
        """Get complete configuration as dictionary.

        Returns:
            Deep copy of the configuration dictionary
        """
        return copy.deepcopy(self._config)
