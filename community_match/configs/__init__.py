"""Configuration loading and validation."""

from .loader import (
    load_config,
    load_default_config,
    load_config_with_defaults,
    validate_config,
    get_config_value,
)

__all__ = [
    "load_config",
    "load_default_config",
    "load_config_with_defaults",
    "validate_config",
    "get_config_value",
]
