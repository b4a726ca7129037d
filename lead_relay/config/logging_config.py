"""
Logging setup for the relay's application logger.

Every module logs through ``logging.getLogger(LOGGER_NAME)``. Severity follows
one policy across the code base:

- INFO: turn lifecycle, duplicate and rate-limited webhooks, call start/stop
- WARNING: relay webhook failures, dropped or malformed stream frames
- ERROR: failed turns (completion or delivery), failed extractions
- DEBUG: per-frame audio traffic

Records go to stdout and to a size-rotated file under ``logs/``. A read-only
working directory only costs the file handler.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from lead_relay.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "lead_relay.log"
MAX_LOG_SIZE = 10 * 1024 * 1024
BACKUP_COUNT = 5


def _rotating_file_handler(formatter: logging.Formatter) -> Optional[logging.Handler]:
    try:
        LOG_DIR.mkdir(exist_ok=True)
        handler = RotatingFileHandler(LOG_FILE, maxBytes=MAX_LOG_SIZE, backupCount=BACKUP_COUNT)
    except OSError:
        return None
    handler.setFormatter(formatter)
    return handler


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """
    Install the console and file handlers on the ``lead_relay`` logger.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        level: Log level name; unknown names fall back to INFO

    Returns:
        logging.Logger: The application logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = _rotating_file_handler(formatter)
    if file_handler is None:
        logger.warning(f"File logging disabled, could not open {LOG_FILE}")
    else:
        logger.addHandler(file_handler)

    logger.info(f"Logging configured at {logging.getLevelName(logger.level)}")
    return logger
