"""
Logging setup.

Configures loguru sinks for the web process and the worker.
"""

import sys

from loguru import logger

from app.config.settings import settings


def setup_logging(component: str = "app") -> None:
    """
    Configure logger with stderr output and file rotation.

    Args:
        component: Log file name prefix ("web", "worker", ...)
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        f"logs/{component}.log",
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )
    logger.info(f"Logging configured for {component} ({settings.environment})")
