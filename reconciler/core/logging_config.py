# reconciler/core/logging_config.py
"""
Centralized logging configuration for the application.

Keeps reconciler logs visible while quieting database drivers and HTTP
clients.
"""

import logging

from reconciler.core.config import get_settings


def configure_logging(level: str = None):
    """
    Configure logging for the application.

    - App code: LOG_LEVEL from settings (INFO by default)
    - Database drivers and HTTP clients: WARNING only
    """
    log_level = (level or get_settings().LOG_LEVEL).upper()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    # Quiet database loggers
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    # Quiet HTTP client loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("reconciler").setLevel(getattr(logging, log_level, logging.INFO))

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at level: {log_level}")
