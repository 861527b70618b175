"""
Pydantic models for pipeline configuration.

These models provide type-safe parsing and validation of the YAML configuration file
and of the aggregation request parameters given on the command line. Any problem is
reported as a ConfigurationError before processing starts.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union
from uuid import UUID

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from sensor_pipeline.models.data import SensorType, TimeInterval
from sensor_pipeline.utils.exceptions import ConfigurationError

PROJECT_ROOT = Path(__file__).parent.parent.parent

MIN_POLLING_INTERVAL_SECONDS = 0.1
REQUEST_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_path(v):
    """Resolve a relative path against the project root, leaving ':memory:' alone."""
    if isinstance(v, str) and v != ":memory:":
        path = Path(v)
        if not path.is_absolute():
            path = (PROJECT_ROOT / v).resolve()
        return str(path)
    return v


class PipelineInfo(BaseModel):
    """Basic pipeline metadata."""
    name: str = Field(..., description="Pipeline name")
    version: str = Field(..., description="Pipeline version")


class DatabaseSettings(BaseModel):
    """Backing store selection."""
    backend: str = Field("duckdb", description="Storage backend: duckdb or sqlite")
    path: str = Field(":memory:", description="Database file path or ':memory:'")

    @field_validator('backend')
    @classmethod
    def check_backend(cls, v):
        v = v.lower()
        if v not in ("duckdb", "sqlite"):
            raise ValueError(f"unsupported backend '{v}', expected duckdb or sqlite")
        return v

    @field_validator('path', mode='before')
    @classmethod
    def resolve_db_path(cls, v):
        return _resolve_path(v)


class ConsumerSettings(BaseModel):
    """Batch consumer parameters."""
    component_name: str = Field("consumer", min_length=1, description="Checkpoint name of this consumer")
    batch_size: int = Field(1000, ge=1, description="Maximum messages per batch transaction")
    polling_interval_seconds: float = Field(1.0, description="Sleep between empty or failed polls")

    @field_validator('polling_interval_seconds')
    @classmethod
    def clamp_polling_interval(cls, v):
        """Clamp to a minimum so an idle consumer never spins."""
        return max(MIN_POLLING_INTERVAL_SECONDS, v)


class SensorSpec(BaseModel):
    """Virtual sensor simulated by the producer."""
    sensor_id: Optional[UUID] = Field(None, description="Fixed sensor id, random when omitted")
    sensor_type: SensorType = Field(..., description="Sensor kind")
    device_name: str = Field(..., max_length=32, description="Device name")


class ProducerSettings(BaseModel):
    """Random data producer parameters."""
    min_delay_ms: int = Field(10, description="Minimum delay between messages")
    max_delay_ms: int = Field(100, description="Maximum delay between messages")
    seed: Optional[int] = Field(None, description="Random seed for reproducible runs")
    sensors: List[SensorSpec] = Field(default_factory=list, description="Sensor fleet, default fleet when empty")

    @model_validator(mode='after')
    def clamp_delays(self):
        self.min_delay_ms = max(0, self.min_delay_ms)
        self.max_delay_ms = max(self.min_delay_ms, self.max_delay_ms)
        return self


class AggregationSettings(BaseModel):
    """Aggregation report parameters."""
    page_size: int = Field(16, ge=1, description="Rows per report page")
    date_format: str = Field(REQUEST_DATETIME_FORMAT, description="Interval start display format")


class LoggingSettings(BaseModel):
    """Logging parameters."""
    level: str = Field("INFO", description="Root log level")
    file: Optional[str] = Field(None, description="Optional log file")
    include_timestamp: bool = Field(True, description="Prefix messages with timestamps")

    @field_validator('level')
    @classmethod
    def check_level(cls, v):
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level '{v}'")
        return v

    @field_validator('file', mode='before')
    @classmethod
    def resolve_log_path(cls, v):
        return _resolve_path(v)


class PipelineConfig(BaseModel):
    """Complete pipeline configuration model."""
    model_config = ConfigDict(extra='forbid')

    pipeline: PipelineInfo = Field(..., description="Pipeline metadata")
    database: DatabaseSettings = Field(default_factory=DatabaseSettings, description="Storage backend")
    consumer: ConsumerSettings = Field(default_factory=ConsumerSettings, description="Consumer settings")
    producer: ProducerSettings = Field(default_factory=ProducerSettings, description="Producer settings")
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings, description="Report settings")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Logging settings")

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "PipelineConfig":
        """
        Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed YAML in {config_path}: {e}") from e

        return cls.from_dict(config_data or {})

    @classmethod
    def from_dict(cls, config_data: dict) -> "PipelineConfig":
        """Build configuration from a plain dictionary."""
        try:
            return cls(**config_data)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


class AggregationRequest(BaseModel):
    """Parameters of one aggregation query."""
    sensor_type: SensorType
    start_time: datetime
    end_time: datetime
    interval: TimeInterval
    device_name: Optional[str] = None

    @field_validator('sensor_type', 'interval', mode='before')
    @classmethod
    def upper_case_names(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        if isinstance(v, str):
            return datetime.strptime(v, REQUEST_DATETIME_FORMAT)
        return v

    @field_validator('device_name')
    @classmethod
    def empty_means_all(cls, v):
        return v or None

    @model_validator(mode='after')
    def check_range(self):
        if self.end_time < self.start_time:
            raise ValueError("end time must not be before start time")
        return self

    @classmethod
    def parse(cls, sensor_type: str, start_time: str, end_time: str, interval: str,
              device_name: Optional[str] = None) -> "AggregationRequest":
        """
        Build a request from command-line strings.

        Raises:
            ConfigurationError: On unknown sensor type or interval, malformed
                timestamps, or an end time before the start time
        """
        try:
            return cls(
                sensor_type=sensor_type,
                start_time=start_time,
                end_time=end_time,
                interval=interval,
                device_name=device_name
            )
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid aggregation request: {e}") from e
