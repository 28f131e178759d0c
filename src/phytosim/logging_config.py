"""
Logging Configuration
=====================
Handlers for the ``phytosim`` logger.

Every module logs through ``logging.getLogger(__name__)``, so records from the
framework, the solvers and the module library all end up under the
``phytosim`` namespace configured here. Integrator progress is logged at INFO,
rejected adaptive steps and evaluation order at DEBUG.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "phytosim"
RECORD_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
TIME_FORMAT = '%H:%M:%S'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Send ``phytosim`` records to stdout and, optionally, to a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Threshold for the logger and its handlers, e.g. ``logging.DEBUG``
            to see every rejected step.
        log_file: Path of a run log, overwritten on each call.

    Returns:
        The package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(RECORD_FORMAT, datefmt=TIME_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info(f"Logging {logging.getLevelName(level)} and above for '{PACKAGE_LOGGER}'.")
    return logger
