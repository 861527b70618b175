"""
Random sensor data producer.

Simulates a fleet of virtual sensors and appends one raw message per reading
to the record store, each in its own transaction. Used to feed the consumer
with realistic traffic during development and demos.
"""

import json
import threading
import uuid
from typing import Callable, Dict, List, Optional

import numpy as np

from sensor_pipeline.components.base import ProducerComponent
from sensor_pipeline.config import PipelineConfig, SensorSpec
from sensor_pipeline.models import RawSensorMessage, SensorType
from sensor_pipeline.storage import SensorStore
from sensor_pipeline.utils import ProducerError, get_logger, log_summary, utc_now

ERROR_BACKOFF_SECONDS = 1.0
PROGRESS_LOG_EVERY = 1000

DEFAULT_FLEET = [
    (SensorType.LIGHT, "SmallRice Pro99"),
    (SensorType.LIGHT, "MyHome ZZZ"),
    (SensorType.BAROMETER, "SmallRice Pro99"),
    (SensorType.BAROMETER, "WeatherStation"),
    (SensorType.LOCATION, "SmallRice Pro99"),
    (SensorType.LOCATION, "GPSTracker"),
    (SensorType.ACCELEROMETER, "SmallRice Pro99"),
    (SensorType.ACCELEROMETER, "FitnessBand"),
]


def _light(rng: np.random.Generator) -> Dict:
    return {"light": int(rng.integers(0, 1024))}


def _barometer(rng: np.random.Generator) -> Dict:
    return {"air_pressure": float(rng.uniform(95000.0, 110000.0))}


def _location(rng: np.random.Generator) -> Dict:
    return {
        "latitude": float(rng.uniform(-90.0, 90.0)),
        "longitude": float(rng.uniform(-180.0, 180.0))
    }


def _accelerometer(rng: np.random.Generator) -> Dict:
    x, y, z = rng.uniform(-10.0, 10.0, size=3)
    return {"x": float(x), "y": float(y), "z": float(z)}


PAYLOAD_GENERATORS: Dict[SensorType, Callable[[np.random.Generator], Dict]] = {
    SensorType.LIGHT: _light,
    SensorType.BAROMETER: _barometer,
    SensorType.LOCATION: _location,
    SensorType.ACCELEROMETER: _accelerometer,
}


class SensorDataGenerator:
    """Generator of random raw messages for a fleet of virtual sensors."""

    def __init__(self, sensors: Optional[List[SensorSpec]] = None, seed: Optional[int] = None):
        """
        Initialize generator.

        Args:
            sensors: Fleet to simulate; the default fleet when empty or None
            seed: Random seed for reproducible values
        """
        self.rng = np.random.default_rng(seed)
        fleet = sensors or [
            SensorSpec(sensor_type=sensor_type, device_name=device_name)
            for sensor_type, device_name in DEFAULT_FLEET
        ]
        # Sensors without a configured id get a random one per process
        self.sensors = [
            spec if spec.sensor_id is not None
            else spec.model_copy(update={"sensor_id": uuid.uuid4()})
            for spec in fleet
        ]

    def generate_payload(self, sensor_type: SensorType) -> str:
        """JSON payload with random readings for one sensor kind."""
        return json.dumps(PAYLOAD_GENERATORS[SensorType(sensor_type)](self.rng))

    def generate_message(self, sensor: SensorSpec) -> RawSensorMessage:
        """Raw message from a specific sensor, measured now."""
        return RawSensorMessage(
            sensor_id=sensor.sensor_id,
            sensor_type=sensor.sensor_type,
            device_name=sensor.device_name,
            measured_at=utc_now(),
            json_value=self.generate_payload(sensor.sensor_type)
        )

    def generate_random_message(self) -> RawSensorMessage:
        """Raw message from a randomly chosen sensor of the fleet."""
        sensor = self.sensors[int(self.rng.integers(0, len(self.sensors)))]
        return self.generate_message(sensor)


class RandomProducerComponent(ProducerComponent):
    """Producer writing random readings until stopped."""

    def __init__(self, config: PipelineConfig, store: SensorStore,
                 generator: Optional[SensorDataGenerator] = None):
        super().__init__(config, store)
        self.logger = get_logger(__name__)

        settings = config.producer
        self.generator = generator or SensorDataGenerator(settings.sensors, settings.seed)
        self.min_delay_ms = settings.min_delay_ms
        self.max_delay_ms = settings.max_delay_ms
        self.delay_rng = np.random.default_rng(settings.seed)

        self.message_count = 0
        self.stats = {
            "messages_produced": 0,
            "errors": 0
        }

    def produce_one(self) -> RawSensorMessage:
        """
        Generate one message and save it in its own transaction.

        Returns:
            The stored message with its id and saved_at set

        Raises:
            ProducerError: If the message cannot be saved
        """
        message = self.generator.generate_random_message()
        try:
            with self.store.transaction() as session:
                stored = session.insert_raw_message(message)
        except Exception as e:
            raise ProducerError(f"Failed to save message {message}: {e}") from e

        self.message_count += 1
        self.stats["messages_produced"] += 1
        self.logger.debug(f"Saved message: {stored}")
        return stored

    def next_delay_seconds(self) -> float:
        """Random pause before the next message."""
        delay_ms = self.delay_rng.integers(self.min_delay_ms, self.max_delay_ms, endpoint=True)
        return float(delay_ms) / 1000.0

    def execute(self, stop_event: Optional[threading.Event] = None,
                max_messages: Optional[int] = None) -> int:
        """
        Produce messages until stopped or until max_messages were written.

        Returns:
            Number of messages written during this run
        """
        stop_event = stop_event or threading.Event()
        produced_at_start = self.message_count
        self.logger.info(
            f"Producer started with {len(self.generator.sensors)} sensors "
            f"(delay {self.min_delay_ms}-{self.max_delay_ms} ms)"
        )

        while not stop_event.is_set():
            if max_messages is not None and self.message_count - produced_at_start >= max_messages:
                break

            try:
                self.produce_one()
            except ProducerError as e:
                self.stats["errors"] += 1
                self.logger.warning(f"Error producing message: {e}")
                stop_event.wait(ERROR_BACKOFF_SECONDS)
                continue

            if self.message_count % PROGRESS_LOG_EVERY == 0:
                self.logger.info(f"Produced {self.message_count} messages")

            stop_event.wait(self.next_delay_seconds())

        produced = self.message_count - produced_at_start
        self.logger.info(f"Producer stopped. Total messages: {self.message_count}")
        log_summary(self.logger, "Producer", self.stats)
        return produced
