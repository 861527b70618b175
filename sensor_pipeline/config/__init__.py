"""Configuration models for the sensor data pipeline."""

from .models import (
    PipelineConfig,
    DatabaseSettings,
    ConsumerSettings,
    ProducerSettings,
    SensorSpec,
    AggregationSettings,
    LoggingSettings,
    AggregationRequest,
    MIN_POLLING_INTERVAL_SECONDS,
    REQUEST_DATETIME_FORMAT
)

__all__ = [
    "PipelineConfig",
    "DatabaseSettings",
    "ConsumerSettings",
    "ProducerSettings",
    "SensorSpec",
    "AggregationSettings",
    "LoggingSettings",
    "AggregationRequest",
    "MIN_POLLING_INTERVAL_SECONDS",
    "REQUEST_DATETIME_FORMAT"
]
