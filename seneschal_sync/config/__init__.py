"""
Configuration loading and validation.
"""

from .settings import SyncSettings, GoogleConfig, ServerConfig, LogLevel, DEFAULT_PROJECT_DOMAINS
from .environment import EnvironmentLoader
from .validation import ConfigValidator, ValidationError

__all__ = [
    "SyncSettings",
    "GoogleConfig",
    "ServerConfig",
    "LogLevel",
    "DEFAULT_PROJECT_DOMAINS",
    "EnvironmentLoader",
    "ConfigValidator",
    "ValidationError",
]
