# storefront/core/logging_config.py
"""
Logging setup for the API process.

Application loggers (everything under ``storefront``) follow LOG_LEVEL;
driver and SQLAlchemy loggers are held at WARNING so order and stock
messages stay readable.
"""

import logging
from typing import Optional

from storefront.core.config import get_settings

QUIET_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "asyncpg",
    "aiosqlite",
    "httpx",
    "httpcore",
)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root handler and per-library levels.

    Args:
        level: Overrides the LOG_LEVEL setting (e.g. "DEBUG")
    """
    log_level = (level or get_settings().LOG_LEVEL).upper()
    numeric_level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("storefront").setLevel(numeric_level)
    logging.getLogger("__main__").setLevel(numeric_level)

    logging.getLogger(__name__).info("Logging configured at level: %s", log_level)
