"""
Application entry point for Seneschal Sync.

Builds the FastAPI app that hosts the OAuth redirect target and the sync
endpoints for one domain.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api import router, set_domain_sync
from .app import DomainSync
from .config import (
    ConfigValidator,
    EnvironmentLoader,
    LogLevel,
    SyncSettings,
    ValidationError,
)
from .local import JsonFileDataSource
from .storage import EncryptedFileStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: LogLevel = LogLevel.INFO) -> None:
    """Send log records to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.value),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def create_domain_sync(settings: SyncSettings) -> DomainSync:
    """Wire the default file-backed stores for a domain."""
    return DomainSync(
        settings=settings,
        data_source=JsonFileDataSource(settings.data_path),
        store=EncryptedFileStore(settings.store_path, settings.encryption_key),
    )


def create_app(
    settings: Optional[SyncSettings] = None,
    domain_sync: Optional[DomainSync] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Configuration (default: loaded from the environment)
        domain_sync: Pre-built sync facade (default: file-backed)

    Returns:
        FastAPI app

    Raises:
        ValidationError: If the configuration is invalid
    """
    settings = settings or (domain_sync.settings if domain_sync else EnvironmentLoader.load_config())

    errors = ConfigValidator.validate_config(settings)
    if errors:
        raise ValidationError("Invalid configuration", errors)

    if not settings.google.is_configured():
        logger.warning(
            "GOOGLE_OAUTH_CLIENT_ID not set. "
            "Google Drive sync will not work."
        )

    domain_sync = domain_sync or create_domain_sync(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        set_domain_sync(domain_sync)
        logger.info(f"Sync API ready for domain {settings.domain}")
        yield
        await domain_sync.close()
        set_domain_sync(None)

    app = FastAPI(title="Seneschal Sync", lifespan=lifespan)
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "domain": settings.domain}

    return app
