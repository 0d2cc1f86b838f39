"""Logging configuration for StockAlerts."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "stockalerts"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach handlers to the package logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Level name, e.g. 'INFO' or 'DEBUG'.
        log_file: Optional file that receives the same records.
        console: Rich console for terminal output (stderr by default).

    Returns:
        The configured ``stockalerts`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
    )
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger
