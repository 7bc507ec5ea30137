"""Utility for consistent logging across Travello modules."""
import logging
import os
import sys

from loguru import logger

_CONFIGURED = False

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> [<level>{level}</level>] "
    "<cyan>{name}</cyan>: {message}"
)


class InterceptHandler(logging.Handler):
    """Route stdlib log records (uvicorn, SQLAlchemy) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None, force: bool = False) -> None:
    """Configure loguru once for the whole process.

    Log level can be controlled via TRAVELLO_LOG_LEVEL env var. Default INFO.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    level_str = (level or os.getenv("TRAVELLO_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    logger.add(sys.stderr, level=level_str, format=_FORMAT, backtrace=False)
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    _CONFIGURED = True
