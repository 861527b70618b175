"""Pipeline components for sensor data ingestion and aggregation."""

from .base import (
    PipelineComponent,
    ProducerComponent,
    ConsumerComponent,
    AggregatorComponent
)

from .parsing import MessageParser
from .consumer import BatchConsumerComponent
from .aggregation import AggregationComponent
from .reporting import AggregationReport
from .producer import SensorDataGenerator, RandomProducerComponent

__all__ = [
    "PipelineComponent",
    "ProducerComponent",
    "ConsumerComponent",
    "AggregatorComponent",
    "MessageParser",
    "BatchConsumerComponent",
    "AggregationComponent",
    "AggregationReport",
    "SensorDataGenerator",
    "RandomProducerComponent"
]
