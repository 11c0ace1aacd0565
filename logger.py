"""
Logging configuration
"""
from loguru import logger
import sys

from config import LOG_LEVEL, LOG_FILE


def setup_logger():
    """Configure logger with appropriate settings"""
    logger.remove()  # Remove default handler

    # Console logging
    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=LOG_LEVEL
    )

    # File logging
    if LOG_FILE:
        logger.add(
            LOG_FILE,
            rotation="00:00",
            retention="30 days",
            level="INFO"
        )

    return logger


# Initialize logger
log = setup_logger()
