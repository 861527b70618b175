"""
Typed metric variants and the registry that drives dispatch on sensor type.

Every variant embeds the same ``MetricHeader`` and declares its own payload
schema, table, columns and report headers in ``METRIC_VARIANTS``. Parsing,
storage and aggregation all look the variant up here instead of branching on
sensor type themselves.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Tuple, Type, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, TypeAdapter

from sensor_pipeline.models.data import SensorType


class MetricHeader(BaseModel):
    """Fields shared by every metric variant."""
    model_config = ConfigDict(frozen=True)

    sensor_id: UUID
    measured_at: datetime


# Payload schemas: the JSON object a raw message must carry for its kind.
# Extra keys are ignored, missing keys and wrong types are rejected. Values
# must fit the metric columns: light is a 32-bit INTEGER, the other readings
# are finite DOUBLEs.

INT32_MIN = -2**31
INT32_MAX = 2**31 - 1

Reading = Union[StrictInt, StrictFloat]


class LightPayload(BaseModel):
    light: StrictInt = Field(..., ge=INT32_MIN, le=INT32_MAX)


class BarometerPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    air_pressure: Reading


class LocationPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    latitude: Reading
    longitude: Reading


class AccelerometerPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    x: Reading
    y: Reading
    z: Reading


class LightMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    sensor_type: Literal[SensorType.LIGHT] = SensorType.LIGHT
    header: MetricHeader
    light_value: int

    def column_values(self) -> Tuple:
        return (self.light_value,)


class BarometerMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    sensor_type: Literal[SensorType.BAROMETER] = SensorType.BAROMETER
    header: MetricHeader
    air_pressure: float

    def column_values(self) -> Tuple:
        return (self.air_pressure,)


class LocationMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    sensor_type: Literal[SensorType.LOCATION] = SensorType.LOCATION
    header: MetricHeader
    latitude: float
    longitude: float

    def column_values(self) -> Tuple:
        return (self.latitude, self.longitude)


class AccelerometerMetric(BaseModel):
    model_config = ConfigDict(frozen=True)

    sensor_type: Literal[SensorType.ACCELEROMETER] = SensorType.ACCELEROMETER
    header: MetricHeader
    x: float
    y: float
    z: float

    def column_values(self) -> Tuple:
        return (self.x, self.y, self.z)


SensorMetric = Annotated[
    Union[LightMetric, BarometerMetric, LocationMetric, AccelerometerMetric],
    Field(discriminator="sensor_type")
]

SENSOR_METRIC_ADAPTER: TypeAdapter = TypeAdapter(SensorMetric)


@dataclass(frozen=True)
class MetricVariant:
    """Static description of one sensor kind."""
    sensor_type: SensorType
    table: str
    payload_model: Type[BaseModel]
    payload_fields: Tuple[str, ...]
    metric_fields: Tuple[str, ...]
    columns: Tuple[str, ...]
    column_types: Tuple[str, ...]
    headers: Tuple[str, ...]

    def metric_from_values(self, header: MetricHeader, values: Dict[str, Any]) -> SensorMetric:
        """Validate metric field values into the member of SensorMetric for this kind."""
        return SENSOR_METRIC_ADAPTER.validate_python(
            {"sensor_type": self.sensor_type, "header": header, **values}
        )

    def build_metric(self, header: MetricHeader, payload: BaseModel) -> SensorMetric:
        """Map a validated payload onto this variant's metric."""
        values = {
            metric_field: getattr(payload, payload_field)
            for payload_field, metric_field in zip(self.payload_fields, self.metric_fields)
        }
        return self.metric_from_values(header, values)


METRIC_VARIANTS: Dict[SensorType, MetricVariant] = {
    SensorType.LIGHT: MetricVariant(
        sensor_type=SensorType.LIGHT,
        table="metric_light",
        payload_model=LightPayload,
        payload_fields=("light",),
        metric_fields=("light_value",),
        columns=("light_value",),
        column_types=("INTEGER",),
        headers=("LIGHT",),
    ),
    SensorType.BAROMETER: MetricVariant(
        sensor_type=SensorType.BAROMETER,
        table="metric_barometer",
        payload_model=BarometerPayload,
        payload_fields=("air_pressure",),
        metric_fields=("air_pressure",),
        columns=("air_pressure",),
        column_types=("DOUBLE",),
        headers=("AIR_PRESSURE",),
    ),
    SensorType.LOCATION: MetricVariant(
        sensor_type=SensorType.LOCATION,
        table="metric_location",
        payload_model=LocationPayload,
        payload_fields=("latitude", "longitude"),
        metric_fields=("latitude", "longitude"),
        columns=("latitude", "longitude"),
        column_types=("DOUBLE", "DOUBLE"),
        headers=("LATITUDE", "LONGITUDE"),
    ),
    SensorType.ACCELEROMETER: MetricVariant(
        sensor_type=SensorType.ACCELEROMETER,
        table="metric_accelerometer",
        payload_model=AccelerometerPayload,
        payload_fields=("x", "y", "z"),
        metric_fields=("x", "y", "z"),
        columns=("val_x", "val_y", "val_z"),
        column_types=("DOUBLE", "DOUBLE", "DOUBLE"),
        headers=("X", "Y", "Z"),
    ),
}


def variant_for(sensor_type: SensorType) -> MetricVariant:
    """Look up the variant of a sensor type."""
    return METRIC_VARIANTS[SensorType(sensor_type)]
