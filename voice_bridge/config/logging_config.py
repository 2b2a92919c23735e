"""
Logging setup for the voice bridge.

Everything the bridge logs goes through the ``voice_bridge`` logger, which writes
to stdout. Setting ``LOG_FILE`` additionally mirrors records into a size-rotated
file, which is useful when the bridge runs detached from a terminal.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from voice_bridge.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LEVEL = "INFO"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def resolve_level(name: Optional[str]) -> int:
    """Map a level name such as ``"debug"`` to its numeric value, INFO when unknown."""
    level = logging.getLevelName((name or DEFAULT_LEVEL).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _file_handler(path: Path, formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
        )
    except OSError as e:
        logging.getLogger(LOGGER_NAME).warning(f"File logging disabled for {path}: {e}")
        return None
    handler.setFormatter(formatter)
    return handler


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    (Re)configure the bridge logger.

    Safe to call repeatedly: previously attached handlers are closed and replaced,
    so every call leaves exactly one console handler behind.

    Args:
        level: Level name; falls back to the LOG_LEVEL environment variable

    Returns:
        logging.Logger: The bridge logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_level(level or os.getenv("LOG_LEVEL")))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    log_file = os.getenv("LOG_FILE")
    if log_file:
        file_handler = _file_handler(Path(log_file), formatter)
        if file_handler is not None:
            logger.addHandler(file_handler)

    # Records stop at the bridge logger; uvicorn configures the root logger itself
    logger.propagate = False

    logger.debug(f"Logging configured at {logging.getLevelName(logger.level)}")
    return logger
