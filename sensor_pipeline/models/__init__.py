"""Data models for the sensor data pipeline."""

from .data import (
    SensorType,
    TimeInterval,
    RawSensorMessage,
    SensorDevice,
    ProcessingState,
    AggregatedResult,
    RunResult
)
from .metrics import (
    MetricHeader,
    LightMetric,
    BarometerMetric,
    LocationMetric,
    AccelerometerMetric,
    SensorMetric,
    MetricVariant,
    METRIC_VARIANTS,
    variant_for
)

__all__ = [
    "SensorType",
    "TimeInterval",
    "RawSensorMessage",
    "SensorDevice",
    "ProcessingState",
    "AggregatedResult",
    "RunResult",
    "MetricHeader",
    "LightMetric",
    "BarometerMetric",
    "LocationMetric",
    "AccelerometerMetric",
    "SensorMetric",
    "MetricVariant",
    "METRIC_VARIANTS",
    "variant_for"
]
