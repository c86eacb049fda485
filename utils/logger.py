"""
Logging configuration for the application.
Level and optional log file come from LOG_LEVEL / LOG_FILE.
"""
import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "motor": logging.WARNING,
    "pymongo": logging.WARNING,
    "cloudinary": logging.WARNING,
    "urllib3": logging.WARNING,
}


def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration for the application.

    Args:
        log_level: Logging level name; defaults to $LOG_LEVEL or INFO
        log_file: Optional path to log file; defaults to $LOG_FILE. Console only when unset.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")
    level = getattr(logging, log_level, logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT, handlers=handlers)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logger = logging.getLogger("eventure")
    logger.info(f"Logging configured with level: {log_level}")
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
