"""
Logging configuration with rotating file handlers.

Module loggers are children of the ``vidtransfer`` logger. Handlers live on
that one logger: console output from import time, file output once the
application applies its ``LoggingConfig``.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from vidtransfer.core.config import LoggingConfig

ROOT_LOGGER_NAME = "vidtransfer"

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 10MB per file, keep 10 backups
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 10


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int = logging.INFO,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_dir: Optional[Path] = None
) -> logging.Logger:
    """
    Replace a logger's handlers with a console handler and, optionally, files.

    Args:
        name: Logger name
        level: Logging level
        log_format: Format string for every handler
        log_dir: Directory for ``app.log`` and ``error.log``; None logs to stdout only

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)
    formatter = logging.Formatter(log_format, DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_rotating_handler(log_dir / "app.log", level, formatter))
        logger.addHandler(_rotating_handler(log_dir / "error.log", logging.ERROR, formatter))

    return logger


def configure_logging(config: "LoggingConfig") -> logging.Logger:
    """Apply a ``LoggingConfig`` to the package logger."""
    log_dir = Path(config.log_dir) if config.enable_file else None
    logger = setup_logger(
        ROOT_LOGGER_NAME,
        level=getattr(logging, config.level.value),
        log_format=config.format,
        log_dir=log_dir
    )
    logger.debug(f"Logging configured: level={config.level.value}, files={log_dir or 'disabled'}")
    return logger


# Console-only until the application applies its settings
app_logger = setup_logger(ROOT_LOGGER_NAME)


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (if None, returns default app logger)

    Returns:
        Logger instance; module loggers inherit the package handlers
    """
    if name is None or name == ROOT_LOGGER_NAME:
        return app_logger
    return logging.getLogger(name)
