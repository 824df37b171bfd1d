"""Logging utilities for cliforge."""

import logging
import os
import sys
from pathlib import Path


def setup_logging(log_level: str | None = None, log_file: Path | None = None) -> None:
    """
    Setup logging with configurable level.

    Priority: argument > CLIFORGE_LOG_LEVEL env var > default (WARNING)
    """
    # Determine log level: argument > env var > default
    if log_level is None:
        log_level = os.environ.get("CLIFORGE_LOG_LEVEL", "WARNING")

    # Parse log level
    level = getattr(logging, log_level.upper(), logging.WARNING)

    # Console handler - configurable level
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    # File handler - always DEBUG level for file
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)

    logging.getLogger("cliforge").setLevel(logging.DEBUG if log_file else level)
