"""
logging_config.py — Centralized Logging Configuration for the Redemption Service

This module configures unified logging behavior for the entire application.
It ensures that all modules log messages consistently to the console and,
when configured, to a file.

Features:
    • Console output (stdout) plus an optional persistent log file
    • Process ID tagging for multi-worker visibility
    • Standardized log format for all modules
    • Reduced verbosity for external dependencies (httpx, pymongo)
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Configures the global logging system for the application.

    Args:
        level (str): Root log level name, e.g. "INFO" or "DEBUG".
        log_file (str, optional): Path of a persistent log file. When omitted,
            logs only go to stdout (Docker/Kubernetes compatible).
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
    )

    # Reduce verbosity from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name):
    """
    Returns a logger instance for a given module or component name.

    Args:
        name (str): The logger name, typically the module's __name__.

    Returns:
        logging.Logger: A logger that follows the global format and handlers.
    """
    return logging.getLogger(name)
