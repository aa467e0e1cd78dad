"""Configuration management for Birdwatch."""

from .duration import DurationParseError, parse_duration, validate_duration_range
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_app_config, load_config
from .models import AppConfig, CatalogConfig, EmailConfig, LogFormat, LoggingConfig, LogLevel

__all__ = [
    "load_config",
    "load_app_config",
    "load_environment_config",
    "parse_duration",
    "validate_duration_range",
    "AppConfig",
    "CatalogConfig",
    "EmailConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    "LogLevel",
    "LogFormat",
    "ConfigurationError",
    "DurationParseError",
]
