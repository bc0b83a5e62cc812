"""Configuration for gini-api.

Settings come from a YAML file (with ${VAR} and ${VAR:-default}
interpolation) and ``GINI_*`` environment variables.

Example:
    >>> from gini_api.config import load_settings
    >>> settings = load_settings("gini.yaml")
    >>> settings.timeouts.upload
    90.0
"""

from __future__ import annotations

from gini_api.config.exceptions import (
    ConfigurationError,
    ConfigurationFileNotFoundError,
    ConfigurationValidationError,
)
from gini_api.config.schema import (
    ApiConfig,
    ClientConfig,
    ConfigBaseModel,
    CredentialsConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    OAuthConfig,
    ObservabilityConfig,
    PollingConfig,
    TimeoutsConfig,
)
from gini_api.config.settings import (
    Settings,
    clear_settings_cache,
    find_config_file,
    get_settings,
    load_settings,
)


__all__ = [
    "ApiConfig",
    "ClientConfig",
    "ConfigBaseModel",
    "ConfigurationError",
    "ConfigurationFileNotFoundError",
    "ConfigurationValidationError",
    "CredentialsConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "OAuthConfig",
    "ObservabilityConfig",
    "PollingConfig",
    "Settings",
    "TimeoutsConfig",
    "clear_settings_cache",
    "find_config_file",
    "get_settings",
    "load_settings",
]
