"""
Configuration package.

This package contains environment settings, validation, and the YAML
settings store.
"""

from perpbot.config.config import Settings
from perpbot.config.config_validator import ConfigValidator, validate_and_log
from perpbot.config.settings_store import YamlSettingsStore

__all__ = [
    "Settings",
    "ConfigValidator",
    "validate_and_log",
    "YamlSettingsStore",
]
