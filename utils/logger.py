"""
Logger Configuration
Shared logging setup for the pipeline
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console


console = Console()

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER_NAME = "story_pipeline"


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Configure a logger.

    Args:
        name: logger name
        level: log level
        log_file: optional file name written under LOG_DIR
        use_rich: pretty console output through Rich

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # handlers are only attached once per logger
    if logger.handlers:
        return logger

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_path = LOG_DIR / log_file

        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger, configuring it with defaults on first use.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def configure_pipeline_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Attach handlers for every package logger of the pipeline."""
    numeric_level = logging.getLevelName(str(level or "INFO").upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    for package in ("config", "newsroom", "analysis", "storage", "intelligence", "delivery", "orchestrator", "webapp"):
        setup_logger(package, level=numeric_level, log_file=log_file)
    return setup_logger(ROOT_LOGGER_NAME, level=numeric_level, log_file=log_file)
