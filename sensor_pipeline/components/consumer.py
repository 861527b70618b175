"""
Checkpointed batch consumer for raw sensor messages.

Each batch reads the watermark of this consumer, selects the next messages by
arrival time, registers their devices, writes their typed metrics and advances
the watermark, all in one store transaction. A failure anywhere in the batch
rolls the whole batch back and leaves the watermark where it was, so the same
batch is selected again on the next poll.

Only one consumer may poll a given component name at a time.
"""

import threading
from typing import Optional

from sensor_pipeline.components.base import ConsumerComponent
from sensor_pipeline.components.parsing import MessageParser
from sensor_pipeline.config import PipelineConfig
from sensor_pipeline.models import RawSensorMessage, SensorDevice
from sensor_pipeline.storage import SensorStore, StoreSession
from sensor_pipeline.utils import (
    EPOCH,
    TransientStoreError,
    ValidationError,
    get_logger,
    log_summary
)


class BatchConsumerComponent(ConsumerComponent):
    """Concrete consumer moving raw messages into devices and metrics."""

    def __init__(self, config: PipelineConfig, store: SensorStore,
                 parser: Optional[MessageParser] = None):
        """
        Initialize consumer component.

        Args:
            config: Pipeline configuration
            store: Connected store handle
            parser: Message parser, a default one when omitted
        """
        super().__init__(config, store)
        self.logger = get_logger(__name__)
        self.parser = parser or MessageParser()

        self.component_name = config.consumer.component_name
        self.batch_size = config.consumer.batch_size
        self.polling_interval = config.consumer.polling_interval_seconds

        self.processed_count = 0
        self.stats = {
            "batches_committed": 0,
            "batches_failed": 0,
            "messages_processed": 0,
            "empty_polls": 0
        }

    def process_batch(self) -> int:
        """
        Consume the next batch of messages in one transaction.

        Returns:
            Number of messages committed, 0 when nothing new arrived

        Raises:
            ValidationError: If any message of the batch has an invalid payload;
                nothing from the batch is committed
            TransientStoreError: If the store fails; nothing is committed
        """
        with self.store.transaction() as session:
            watermark = session.get_checkpoint(self.component_name) or EPOCH
            messages = session.select_messages_since(watermark, self.batch_size)

            if not messages:
                return 0

            new_watermark = watermark
            for message in messages:
                metric = self.parser.parse_message(message)
                self._update_or_create_device(session, message)
                session.insert_metric(metric)
                if message.saved_at > new_watermark:
                    new_watermark = message.saved_at

            session.set_checkpoint(self.component_name, new_watermark)

        self.processed_count += len(messages)
        self.stats["batches_committed"] += 1
        self.stats["messages_processed"] += len(messages)
        self.logger.debug(f"Watermark of '{self.component_name}' advanced to {new_watermark}")
        return len(messages)

    def _update_or_create_device(self, session: StoreSession, message: RawSensorMessage) -> None:
        """
        Register the device of a message.

        Name and sensor type always take the values of the message being
        processed, even when it was measured before the stored state; only
        last_seen is protected against moving backwards.
        """
        device = session.get_device(message.sensor_id)

        if device is None:
            device = SensorDevice(
                sensor_id=message.sensor_id,
                device_name=message.device_name,
                sensor_type=message.sensor_type,
                last_seen=message.measured_at
            )
        else:
            device = device.model_copy(update={
                "device_name": message.device_name,
                "sensor_type": message.sensor_type,
                "last_seen": max(device.last_seen, message.measured_at)
            })

        session.upsert_device(device)

    def execute(self, stop_event: Optional[threading.Event] = None, once: bool = False) -> int:
        """
        Run the polling loop.

        Sleeps for the polling interval after an empty poll or a failed batch.
        The stop event is honoured at the top of each iteration and during the
        sleep; a batch in flight always runs to commit or rollback first.

        Args:
            stop_event: Cooperative stop signal
            once: Return when a poll finds no new messages

        Returns:
            Number of messages processed during this run
        """
        stop_event = stop_event or threading.Event()
        processed_at_start = self.processed_count
        self.logger.info(
            f"Consumer '{self.component_name}' started "
            f"(batch size {self.batch_size}, polling every {self.polling_interval}s)"
        )

        while not stop_event.is_set():
            try:
                processed = self.process_batch()
            except ValidationError as e:
                # Retried like any other failure: the batch stays blocked until the record is fixed
                self.stats["batches_failed"] += 1
                self.logger.error(f"Batch rejected, watermark unchanged: {e}")
                stop_event.wait(self.polling_interval)
                continue
            except TransientStoreError as e:
                self.stats["batches_failed"] += 1
                self.logger.warning(f"Store error while processing batch: {e}")
                stop_event.wait(self.polling_interval)
                continue
            except Exception:
                self.stats["batches_failed"] += 1
                self.logger.exception("Unexpected error while processing batch")
                stop_event.wait(self.polling_interval)
                continue

            if processed > 0:
                self.logger.info(f"Processed {processed} messages, total: {self.processed_count}")
                continue

            self.stats["empty_polls"] += 1
            if once:
                break
            stop_event.wait(self.polling_interval)

        self.logger.info(f"Consumer '{self.component_name}' stopped")
        log_summary(self.logger, "Consumer", self.stats)
        return self.processed_count - processed_at_start
