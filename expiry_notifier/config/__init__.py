"""Configuration management module for the Expiry Notifier."""

from .duration import DurationParseError, parse_duration, validate_duration_range
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import build_app_config, load_config, validate_config_file
from .models import (
    ApiConfig,
    AppConfig,
    EmailConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    NotificationsConfig,
    TierBreakpoint,
)
from .validators import check_config_warnings

__all__ = [
    # Main loader functions
    "load_config",
    "build_app_config",
    "validate_config_file",
    "load_environment_config",
    "check_config_warnings",
    # Configuration models
    "AppConfig",
    "NotificationsConfig",
    "TierBreakpoint",
    "EmailConfig",
    "LoggingConfig",
    "ApiConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Duration helpers
    "parse_duration",
    "validate_duration_range",
    "DurationParseError",
    # Exceptions
    "ConfigurationError",
]
