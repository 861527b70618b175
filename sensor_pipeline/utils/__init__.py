"""Utility modules for the sensor data pipeline."""

from .logging import setup_logging, get_logger, log_summary
from .exceptions import (
    PipelineError,
    ValidationError,
    TransientStoreError,
    ProducerError,
    ConfigurationError
)
from .timeutil import EPOCH, utc_now, to_naive_utc, as_datetime

__all__ = [
    "setup_logging",
    "get_logger",
    "log_summary",
    "PipelineError",
    "ValidationError",
    "TransientStoreError",
    "ProducerError",
    "ConfigurationError",
    "EPOCH",
    "utc_now",
    "to_naive_utc",
    "as_datetime"
]
