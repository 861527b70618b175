"""
Abstract base classes for pipeline components.

These define the interfaces that the producer, consumer and aggregator must
implement. Every component receives the configuration and an explicitly owned
store handle, which keeps them testable through dependency injection.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional

from sensor_pipeline.config import PipelineConfig
from sensor_pipeline.models import AggregatedResult, RawSensorMessage, SensorType, TimeInterval
from sensor_pipeline.storage import SensorStore


class PipelineComponent(ABC):
    """Base class for all pipeline components."""

    def __init__(self, config: PipelineConfig, store: SensorStore):
        """Initialize component with pipeline configuration and store handle."""
        self.config = config
        self.store = store

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Execute the component's main functionality."""
        pass


class ProducerComponent(PipelineComponent):
    """Abstract base for components appending raw messages."""

    @abstractmethod
    def produce_one(self) -> RawSensorMessage:
        """Generate and persist a single raw message."""
        pass

    @abstractmethod
    def execute(self, stop_event: Optional[threading.Event] = None,
                max_messages: Optional[int] = None) -> int:
        """
        Produce messages until stopped.

        Args:
            stop_event: Cooperative stop signal
            max_messages: Optional bound on messages produced in this run

        Returns:
            Number of messages written
        """
        pass


class ConsumerComponent(PipelineComponent):
    """Abstract base for checkpointed raw message consumers."""

    @abstractmethod
    def process_batch(self) -> int:
        """
        Consume one batch atomically.

        Returns:
            Number of messages processed, 0 when nothing new arrived
        """
        pass

    @abstractmethod
    def execute(self, stop_event: Optional[threading.Event] = None, once: bool = False) -> int:
        """
        Poll for batches until stopped.

        Args:
            stop_event: Cooperative stop signal, checked between batches
            once: Stop as soon as a poll finds nothing new

        Returns:
            Number of messages processed in this run
        """
        pass


class AggregatorComponent(PipelineComponent):
    """Abstract base for time-bucket aggregation."""

    @abstractmethod
    def fetch_aggregated_data(
        self,
        sensor_type: SensorType,
        start_time: datetime,
        end_time: datetime,
        interval: TimeInterval,
        device_name: Optional[str] = None
    ) -> List[AggregatedResult]:
        """
        Average readings per device and calendar bucket.

        Returns:
            Results ordered by device name ascending, then bucket start descending
        """
        pass
