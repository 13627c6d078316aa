"""
Configuration validation for Seneschal Sync.
"""

import re
from typing import List

from .settings import SyncSettings

DOMAIN_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_]*$')


class ConfigValidator:
    """Validates configuration settings."""

    @staticmethod
    def validate_config(config: SyncSettings) -> List[str]:
        """Validate the entire sync configuration."""
        errors = []

        errors.extend(ConfigValidator._validate_domain(config.domain, "domain"))
        for domain in config.project_domains:
            errors.extend(ConfigValidator._validate_domain(domain, "project domain"))

        errors.extend(ConfigValidator._validate_google(config))

        if not 1 <= config.server.port <= 65535:
            errors.append(f"Server port must be between 1 and 65535, got {config.server.port}")

        return errors

    @staticmethod
    def _validate_domain(domain: str, label: str) -> List[str]:
        """Domains become file names; the first dash separates attachment ids."""
        if not domain:
            return [f"The {label} must not be empty"]
        if not DOMAIN_PATTERN.match(domain):
            return [
                f"Invalid {label} '{domain}': use lowercase letters, digits and underscores"
            ]
        return []

    @staticmethod
    def _validate_google(config: SyncSettings) -> List[str]:
        errors = []

        # A missing client ID only disables sync; see create_app()
        if not ConfigValidator._is_valid_url(config.google.redirect_uri):
            errors.append(f"Invalid OAuth redirect URI: {config.google.redirect_uri}")

        return errors

    @staticmethod
    def _is_valid_url(url: str) -> bool:
        """Basic URL validation."""
        url_pattern = r'^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$'
        return bool(re.match(url_pattern, url or ''))


class ValidationError(Exception):
    """Exception raised for configuration validation errors."""

    def __init__(self, message: str, errors: List[str]):
        super().__init__(message)
        self.errors = errors
