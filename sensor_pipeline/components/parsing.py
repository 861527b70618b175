"""
Raw message classification and payload validation.

Turns a RawSensorMessage into the typed metric of its sensor type. Any problem
with the payload raises ValidationError naming the message and the field.
"""

import json

from pydantic import ValidationError as PydanticValidationError

from sensor_pipeline.models import MetricHeader, RawSensorMessage, SensorMetric, variant_for
from sensor_pipeline.utils import ValidationError


class MessageParser:
    """Parser for raw sensor messages."""

    def parse_message(self, message: RawSensorMessage) -> SensorMetric:
        """
        Parse a raw message into its typed metric.

        Args:
            message: Raw message with a JSON payload

        Returns:
            The SensorMetric member of the message's sensor type

        Raises:
            ValidationError: If the payload is absent, not a JSON object, or
                misses, mistypes or overflows a field required by the sensor type
        """
        if message is None:
            raise ValidationError("Message cannot be None")

        if not message.json_value:
            raise ValidationError("JSON value cannot be empty", message.id, "json_value")

        try:
            data = json.loads(message.json_value)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON: {e}", message.id, "json_value") from e

        if not isinstance(data, dict):
            raise ValidationError(
                f"Payload must be a JSON object, got {type(data).__name__}", message.id, "json_value"
            )

        variant = variant_for(message.sensor_type)
        try:
            payload = variant.payload_model.model_validate(data)
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else "json_value"
            raise ValidationError(
                f"{variant.sensor_type.value} payload invalid: {error['msg']}", message.id, field
            ) from e

        header = MetricHeader(sensor_id=message.sensor_id, measured_at=message.measured_at)
        try:
            return variant.build_metric(header, payload)
        except PydanticValidationError as e:
            error = e.errors()[0]
            raise ValidationError(
                f"{variant.sensor_type.value} metric invalid: {error['msg']}", message.id, "json_value"
            ) from e
