"""
Configuration settings for Seneschal Sync.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

DEFAULT_PROJECT_DOMAINS = ["gardener", "trainer", "soapmaker"]


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class GoogleConfig:
    """Google OAuth client credentials."""
    client_id: str = ""
    client_secret: Optional[str] = None
    api_key: Optional[str] = None
    redirect_uri: str = "http://localhost:8080/sync/oauth/google/callback"

    def is_configured(self) -> bool:
        """Check if OAuth is configured."""
        return bool(self.client_id)


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class SyncSettings:
    """Top-level configuration for one domain's sync."""
    domain: str = "seneschal"
    google: GoogleConfig = field(default_factory=GoogleConfig)
    data_path: Optional[Path] = None
    store_path: Optional[Path] = None
    encryption_key: Optional[str] = None
    project_domains: List[str] = field(default_factory=lambda: list(DEFAULT_PROJECT_DOMAINS))
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: LogLevel = LogLevel.INFO

    def __post_init__(self):
        if self.data_path is None:
            self.data_path = Path("data") / f"{self.domain}-data.json"
        if self.store_path is None:
            self.store_path = Path("data") / f"{self.domain}-store.json"
