# model_repo/core/logging_config.py
import logging
import os
import sys

from loguru import logger

from .config import Settings


class InterceptHandler(logging.Handler):
    """Forward stdlib log records (uvicorn, SQLAlchemy) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())

    if settings.LOG_FILE:
        log_dir = os.path.dirname(os.path.abspath(settings.LOG_FILE))
        os.makedirs(log_dir, exist_ok=True)
        logger.add(
            settings.LOG_FILE,
            level=settings.LOG_LEVEL.upper(),
            rotation="10 MB",
            retention="10 days",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
