# ipi_forecaster_src/config_utils.py

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "forecaster.yaml"
CONFIG_ENV_VAR = "IPI_FORECASTER_CONFIG"

# Initialize the global configuration manager
config_manager = None


class ConfigurationManager:
    """
    Read-only view over a YAML configuration file with dot-notation access.

    Example
    -------
    >>> cm = ConfigurationManager.from_dict({"outliers": {"critical_value": 4.0}})
    >>> cm.get("outliers.critical_value")
    4.0
    """

    # Top-level sections understood by the workflow
    KNOWN_SECTIONS = ("data", "model", "calendar", "outliers", "forecast", "grid_search", "output", "logging")

    def __init__(self, data: Optional[Dict[str, Any]] = None, source: Optional[Path] = None):
        self._data = data or {}
        self.source = source

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ConfigurationManager":
        path = Path(path)
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping at top level")
        logger.debug("Loaded configuration from %s", path)
        return cls(data, source=path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConfigurationManager":
        return cls(dict(data))

    def get(self, key_path: str, default=None):
        """Look up 'section.key' (any depth); missing keys return `default`."""
        node: Any = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def validate_configuration(self) -> List[str]:
        """Return human-readable warnings for suspicious settings."""
        warnings: List[str] = []
        for section in self._data:
            if section not in self.KNOWN_SECTIONS:
                warnings.append(f"Unknown configuration section '{section}'")
        cval = self.get("outliers.critical_value")
        if cval is not None and float(cval) <= 0:
            warnings.append("outliers.critical_value must be positive")
        delta = self.get("outliers.delta")
        if delta is not None and not 0.0 < float(delta) < 1.0:
            warnings.append("outliers.delta must lie strictly between 0 and 1")
        alpha = self.get("forecast.alpha")
        if alpha is not None and not 0.0 < float(alpha) < 1.0:
            warnings.append("forecast.alpha must lie strictly between 0 and 1")
        return warnings


def initialize_config(path: Optional[Union[str, Path]] = None):
    """
    Initializes the global configuration manager.
    The file is taken from `path`, then the IPI_FORECASTER_CONFIG environment
    variable, then config/forecaster.yaml. If no file is found or it fails to
    load, the error is logged and coded defaults are used.
    """
    global config_manager
    candidate = Path(path) if path else Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))
    if not candidate.exists():
        logger.warning("Configuration file %s not found - using defaults", candidate)
        config_manager = None
        return None
    try:
        config_manager = ConfigurationManager.from_file(candidate)
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Failed to initialize configuration: %s. Using defaults.", e)
        config_manager = None
    return config_manager


def reset_config() -> None:
    """Drop the global configuration (coded defaults apply afterwards)."""
    global config_manager
    config_manager = None


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager:
        config_value = config_manager.get(key_path, default)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
