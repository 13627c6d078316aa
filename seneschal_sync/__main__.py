"""
Package entry point: ``python -m seneschal_sync`` serves the sync API.
"""

import logging
import sys

import uvicorn

from .config import EnvironmentLoader, ValidationError
from .main import configure_logging, create_app

logger = logging.getLogger(__name__)


def run_main():
    settings = EnvironmentLoader.load_config()
    configure_logging(settings.log_level)

    try:
        app = create_app(settings)
    except ValidationError as e:
        for error in e.errors:
            logger.error(f"Configuration error: {error}")
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    run_main()
