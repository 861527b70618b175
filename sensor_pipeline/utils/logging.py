"""
Logging configuration for the sensor data pipeline.

Provides consistent logging setup across the producer, consumer and aggregator
processes, plus a helper for the statistics blocks components emit.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FORMAT_NO_TIME = '%(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    include_timestamp: bool = True
) -> None:
    """
    Set up logging configuration for a pipeline process.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging output
        include_timestamp: Whether to include timestamps in log messages
    """
    if include_timestamp:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT_NO_TIME)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers.clear()

    # Console output goes to stdout, the report writes to the same stream
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific component.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_summary(logger: logging.Logger, title: str, stats: Dict[str, Any]) -> None:
    """Log a statistics dictionary as a titled block."""
    logger.info(f"=== {title} Summary ===")
    for key, value in stats.items():
        logger.info(f"{key.replace('_', ' ').title()}: {value}")
