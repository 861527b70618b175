"""
Pydantic models for data structures used throughout the pipeline.

These models ensure type safety and validation for data flowing between the
stores and the producer, consumer and aggregator components.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sensor_pipeline.utils.timeutil import to_naive_utc


class SensorType(str, Enum):
    """Kinds of sensors; each kind maps to exactly one metric variant."""
    LIGHT = "LIGHT"
    BAROMETER = "BAROMETER"
    LOCATION = "LOCATION"
    ACCELEROMETER = "ACCELEROMETER"


class TimeInterval(str, Enum):
    """Calendar bucket widths supported by the aggregation engine."""
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAY = "DAY"
    WEEK = "WEEK"


class RawSensorMessage(BaseModel):
    """Raw reading as written by a producer, before classification."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(None, description="Store-assigned identifier")
    sensor_id: UUID = Field(..., description="Unique sensor identifier")
    sensor_type: SensorType = Field(..., description="Declared sensor kind")
    device_name: str = Field(..., max_length=32, description="Name of the device hosting the sensor")
    measured_at: datetime = Field(..., description="Sensor-reported measurement time")
    saved_at: Optional[datetime] = Field(None, description="Arrival time, assigned by the store when absent")
    json_value: Optional[str] = Field(None, description="JSON payload with the reading values")

    @field_validator('measured_at', 'saved_at')
    @classmethod
    def normalize_timestamp(cls, v):
        return to_naive_utc(v) if v is not None else v

    def __str__(self) -> str:
        return f"RawSensorMessage(id={self.id}, sensor_type={self.sensor_type.value}, sensor_id={self.sensor_id})"


class SensorDevice(BaseModel):
    """Latest known state of a sensor, keyed by sensor id."""
    sensor_id: UUID = Field(..., description="Unique sensor identifier")
    device_name: str = Field(..., description="Last reported device name")
    sensor_type: SensorType = Field(..., description="Last reported sensor kind")
    last_seen: datetime = Field(..., description="Latest measurement time observed")

    @field_validator('last_seen')
    @classmethod
    def normalize_timestamp(cls, v):
        return to_naive_utc(v)


class ProcessingState(BaseModel):
    """Checkpoint row of a named consumer."""
    component_name: str = Field(..., description="Consumer name")
    last_processed_time: datetime = Field(..., description="Watermark: highest consumed arrival time")


class AggregatedResult(BaseModel):
    """One aggregated bucket for one device."""
    model_config = ConfigDict(frozen=True)

    device_name: str = Field(..., description="Device name")
    interval_start: datetime = Field(..., description="Start of the calendar bucket")
    values: Tuple[Optional[float], ...] = Field(..., description="Per-column averages in variant column order")

    @property
    def value(self) -> Optional[float]:
        """First value, for single-value sensors."""
        return self.values[0] if self.values else None


class RunResult(BaseModel):
    """Overall result of one CLI command run."""
    command: str = Field(..., description="Command that was executed")
    success: bool = Field(..., description="Whether the command completed successfully")
    records_processed: int = Field(0, description="Messages produced, consumed or rows aggregated")
    execution_time_seconds: float = Field(..., description="Total execution time")
    errors: List[str] = Field(default_factory=list, description="Any errors encountered")
