"""Logging infrastructure setup."""

import logging
import os
from pathlib import Path


def setup_logger(name: str = "marketpulse", log_file: str | None = None) -> logging.Logger:
    """
    Configure and return a standard logger that writes to a log file and the console.

    Args:
        name (str): The name of the logger.
        log_file (str | None): Path to the log file. Defaults to ``$MARKETPULSE_LOG_FILE``
            or ``output/pipeline.log``.

    Returns:
        logging.Logger: The configured logger instance.
    """
    log_path = Path(log_file or os.getenv("MARKETPULSE_LOG_FILE", "output/pipeline.log"))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)

    # Avoid adding multiple handlers if setup is called multiple times
    if logger.hasHandlers():
        return logger

    level_name = os.getenv("MARKETPULSE_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(module)s.%(funcName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger

# Create a default logger instance
logger = setup_logger()
