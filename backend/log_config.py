"""
Logging setup for the tempctl backend

Loguru is the only sink. Records from the tempctl core (stdlib logging) are
routed into it by an intercept handler.
"""

import logging
import sys

from loguru import logger

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {name} - <level>{message}</level>"


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller that issued the record, skipping logging internals
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "info") -> None:
    """Send everything at `level` and above to stderr."""
    level = level.upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    logging.basicConfig(handlers=[InterceptHandler()], level=logging.getLevelName(level), force=True)
    # python-kasa and urllib3 are chatty at debug level
    for noisy in ("kasa", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.INFO)


setup_logging()
