"""
Custom exceptions for the sensor data pipeline.

These provide specific error types that can be caught and handled appropriately
by the consumer loop, the aggregation entry points and the CLI.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""
    pass


class ValidationError(PipelineError):
    """
    Raised when a raw message payload is missing required fields or is
    structurally malformed for its declared sensor type.

    A validation failure aborts the whole batch the message belongs to.
    """

    def __init__(self, message: str, message_id: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message_id = message_id
        self.field = field

    def __str__(self) -> str:
        details = []
        if self.message_id is not None:
            details.append(f"message_id={self.message_id}")
        if self.field is not None:
            details.append(f"field={self.field}")
        base = super().__str__()
        return f"{base} ({', '.join(details)})" if details else base


class TransientStoreError(PipelineError):
    """Raised when the backing store fails for reasons unrelated to payload content."""
    pass


class ProducerError(PipelineError):
    """Raised when a generated message cannot be written."""
    pass


class ConfigurationError(PipelineError):
    """Raised when configuration or request parameters are invalid or missing."""
    pass
