"""
Environment variable handling for Seneschal Sync configuration.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .settings import (
    DEFAULT_PROJECT_DOMAINS,
    GoogleConfig,
    LogLevel,
    ServerConfig,
    SyncSettings,
)


class EnvironmentLoader:
    """Loads configuration from environment variables."""

    @staticmethod
    def load_config() -> SyncSettings:
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        domain = os.getenv('SENESCHAL_DOMAIN', 'seneschal')

        google = GoogleConfig(
            client_id=os.getenv('GOOGLE_OAUTH_CLIENT_ID', ''),
            client_secret=os.getenv('GOOGLE_OAUTH_CLIENT_SECRET') or None,
            api_key=os.getenv('GOOGLE_API_KEY') or None,
            redirect_uri=os.getenv(
                'GOOGLE_OAUTH_REDIRECT_URI',
                'http://localhost:8080/sync/oauth/google/callback'
            ),
        )

        server = ServerConfig(
            host=os.getenv('SENESCHAL_HOST', '0.0.0.0'),
            port=int(os.getenv('SENESCHAL_PORT', '8080')),
        )

        # Log level
        log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
        log_level = LogLevel.INFO  # default
        try:
            log_level = LogLevel(log_level_str)
        except ValueError:
            pass  # Use default

        project_domains = EnvironmentLoader._parse_list(
            os.getenv('SENESCHAL_PROJECT_DOMAINS', '')
        ) or list(DEFAULT_PROJECT_DOMAINS)

        return SyncSettings(
            domain=domain,
            google=google,
            data_path=EnvironmentLoader._get_path('SENESCHAL_DATA_PATH'),
            store_path=EnvironmentLoader._get_path('SENESCHAL_STORE_PATH'),
            encryption_key=os.getenv('SENESCHAL_ENCRYPTION_KEY') or None,
            project_domains=project_domains,
            server=server,
            log_level=log_level,
        )

    @staticmethod
    def _get_path(key: str) -> Optional[Path]:
        value = os.getenv(key)
        return Path(value) if value else None

    @staticmethod
    def _parse_list(value: str, delimiter: str = ',') -> List[str]:
        """Parse a comma-separated string into a list."""
        if not value:
            return []
        return [item.strip() for item in value.split(delimiter) if item.strip()]
