"""Logging configuration for the scheduling engine."""
import logging

from calendar_cpm.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(name: str = 'calendar_cpm') -> logging.Logger:
    """
    Configure console logging for a logger.

    Args:
        name: Logger name (typically 'calendar_cpm' or __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)

    # Calling twice must not duplicate output
    if not any(getattr(h, '_calendar_cpm', False) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        console_handler._calendar_cpm = True
        logger.addHandler(console_handler)

    return logger
