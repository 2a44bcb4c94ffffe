"""
Configuration Management Module

This module provides a centralized way to load and access configuration settings
from the config.yaml file. It uses the Singleton pattern to ensure only one
configuration instance exists throughout the application.

config.yaml is looked up from the package directory upwards, which works for
source checkouts and editable installs. Other installs pass config_path
explicitly.

It also defines RegistryConfiguration, the thresholds a single registry uses
for its match decisions.

Usage:
    from template_registry.config import get_config, get_registry_config
    config = get_config()
    registry_config = get_registry_config()
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# Store the singleton instance (module-level variable)
_config_instance: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RegistryConfiguration:
    """
    Thresholds used by a face template registry.

    All thresholds are scores on the scale of the registry's recognition
    capability.

    Attributes:
        authentication_threshold: Minimum score to accept an authentication and
                                  to flag a registration as conflicting with
                                  another identifier.
        identification_threshold: Minimum score for a template to appear in
                                  identification results.
        auto_enrolment_threshold: Minimum score for a successful identification
                                  or authentication to trigger auto-enrolment
                                  into other registries.
        verify_existing_identifier: If True, registering a face under an
                                    identifier that already owns templates
                                    requires the face to match one of them.
    """

    authentication_threshold: float = 0.5
    identification_threshold: float = 0.5
    auto_enrolment_threshold: float = 0.6
    verify_existing_identifier: bool = False

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "RegistryConfiguration":
        """
        Create a configuration from a dictionary (e.g. a config.yaml section).

        Args:
            values: Mapping of field names to values. Missing keys use defaults.

        Returns:
            RegistryConfiguration instance.

        Raises:
            ValueError: If the mapping contains unknown keys.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(
                f"Unknown registry configuration keys: {sorted(unknown)}. "
                f"Valid keys: {sorted(known)}"
            )

        kwargs = {}
        for key, value in values.items():
            if key == "verify_existing_identifier":
                kwargs[key] = bool(value)
            else:
                kwargs[key] = float(value)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration as a plain dictionary."""
        return asdict(self)


def get_project_root() -> Path:
    """
    Find the project root directory.

    The project root is identified by the presence of config.yaml file.
    This function walks up the directory tree from this file's location
    until it finds config.yaml.

    Returns:
        Path: The absolute path to the project root directory.

    Raises:
        FileNotFoundError: If config.yaml cannot be found in any parent directory.
    """
    # Start from the directory containing this file
    current_dir = Path(__file__).resolve().parent

    # Walk up the directory tree to find config.yaml
    while current_dir != current_dir.parent:
        config_path = current_dir / "config.yaml"
        if config_path.exists():
            return current_dir
        current_dir = current_dir.parent

    raise FileNotFoundError(
        "Could not find config.yaml in any parent directory. "
        "Make sure you're running from within the project directory."
    )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Optional path to the config file.
                     If not provided, uses the default config.yaml in project root.

    Returns:
        Dict containing all configuration values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the config file contains invalid YAML.
    """
    if config_path is None:
        config_path = get_project_root() / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    return config or {}


def get_config(reload: bool = False) -> Dict[str, Any]:
    """
    Get the configuration singleton.

    Args:
        reload: If True, forces reloading the configuration from disk.

    Returns:
        Dict containing all configuration values.
    """
    global _config_instance

    if _config_instance is None or reload:
        _config_instance = load_config()

    return _config_instance


def get_section(section_name: str, config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Get a specific section from the configuration.

    Args:
        section_name: Name of the configuration section (e.g., "registry", "logging")
        config_path: Optional config file to read instead of the project
                     config.yaml singleton.

    Returns:
        Dict containing the section's configuration values.

    Raises:
        KeyError: If the section doesn't exist in the configuration.
    """
    config = get_config() if config_path is None else load_config(config_path)

    if section_name not in config:
        raise KeyError(
            f"Configuration section '{section_name}' not found. "
            f"Available sections: {list(config.keys())}"
        )

    return config[section_name]


def get_registry_config(config_path: Optional[str] = None) -> RegistryConfiguration:
    """Get the default registry thresholds."""
    return RegistryConfiguration.from_dict(get_section("registry", config_path))


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration."""
    return get_section("logging")


def get_multi_registry_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Get multi-registry configuration."""
    return get_section("multi_registry", config_path)
