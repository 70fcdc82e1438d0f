"""Centralized logging configuration for thoughtcheck.

All modules should import their logger via:
    from thoughtcheck.logging_config import get_logger
    logger = get_logger(__name__)

Logs are written to a rotating file at:
    ~/.thoughtcheck/thoughtcheck.log   (default)
    or $THOUGHTCHECK_LOG_FILE          (override)

Console output of the CLI stays on Rich. The file logger keeps the
verification decisions and every recovered tool or memory failure.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path.home() / ".thoughtcheck"
LOG_FILE = os.environ.get(
    "THOUGHTCHECK_LOG_FILE",
    str(LOG_DIR / "thoughtcheck.log"),
)
LOG_LEVEL = os.environ.get("THOUGHTCHECK_LOG_LEVEL", "INFO")
MAX_BYTES = 10 * 1024 * 1024  # 10 MB per file
BACKUP_COUNT = 3

_NAMESPACES = ("thoughtcheck", "api")

_initialized = False


def setup_logging() -> None:
    """Initialize the rotating file logger for both package namespaces (idempotent)."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)

    try:
        Path(LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError:
        # Read-only home (containers, CI): keep logger levels, skip the file
        logging.getLogger(_NAMESPACES[0]).warning(
            "Could not open log file %s, file logging disabled", LOG_FILE
        )
        for namespace in _NAMESPACES:
            logging.getLogger(namespace).setLevel(level)
        return

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    for namespace in _NAMESPACES:
        logger = logging.getLogger(namespace)
        logger.setLevel(level)
        if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
            logger.addHandler(file_handler)

    logging.getLogger(_NAMESPACES[0]).info(
        "Logging initialized -> %s (level=%s)", LOG_FILE, LOG_LEVEL
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger for the given module name.

    Usage:
        logger = get_logger(__name__)
        logger.info("Something happened")
        logger.warning("Tool failed", exc_info=True)
    """
    setup_logging()
    return logging.getLogger(name)
