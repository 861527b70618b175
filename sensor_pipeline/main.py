"""
Main entry point and orchestrator for the sensor data pipeline.

Each command builds the configuration, logging and an explicitly owned store
handle, then runs one component until it finishes or a stop signal arrives:

    produce   -> random raw messages into the record store
    consume   -> checkpointed batches into devices and metrics
    aggregate -> time-bucketed averages rendered as a paged report
    run       -> producer and consumer side by side in one process
    status    -> counts, devices and checkpoints of the store
"""

import argparse
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from sensor_pipeline import __version__
from sensor_pipeline.components import (
    AggregationComponent,
    AggregationReport,
    BatchConsumerComponent,
    RandomProducerComponent
)
from sensor_pipeline.config import AggregationRequest, PipelineConfig
from sensor_pipeline.models import METRIC_VARIANTS, RunResult
from sensor_pipeline.storage import SensorStore, create_store
from sensor_pipeline.utils import ConfigurationError, PipelineError, get_logger, setup_logging

DEFAULT_CONFIG_PATH = Path("config/default.yaml")

# Commands that loop until a stop signal; Ctrl-C sets the stop event instead
# of raising KeyboardInterrupt
LONG_RUNNING_COMMANDS = ("produce", "consume", "run")

logger = get_logger(__name__)


class SensorDataPipeline:
    """Pipeline orchestrator that wires components to one store handle."""

    def __init__(self, config: PipelineConfig, store: SensorStore):
        """
        Initialize pipeline.

        Args:
            config: Pipeline configuration loaded from YAML
            store: Connected store handle shared by all components
        """
        self.config = config
        self.store = store

        # Components can be injected, otherwise they are built on first use
        self.producer: Optional[RandomProducerComponent] = None
        self.consumer: Optional[BatchConsumerComponent] = None
        self.aggregator: Optional[AggregationComponent] = None

    def _producer(self) -> RandomProducerComponent:
        if self.producer is None:
            self.producer = RandomProducerComponent(self.config, self.store)
        return self.producer

    def _consumer(self) -> BatchConsumerComponent:
        if self.consumer is None:
            self.consumer = BatchConsumerComponent(self.config, self.store)
        return self.consumer

    def _run(self, command: str, action: Callable[[], int]) -> RunResult:
        start_time = time.time()
        try:
            records = action()
            return RunResult(
                command=command,
                success=True,
                records_processed=records,
                execution_time_seconds=time.time() - start_time
            )
        except PipelineError as e:
            logger.error(f"{command} failed: {e}")
            return RunResult(
                command=command,
                success=False,
                execution_time_seconds=time.time() - start_time,
                errors=[str(e)]
            )

    def produce(self, stop_event: threading.Event, max_messages: Optional[int] = None) -> RunResult:
        """Run the producer until stopped or until max_messages were written."""
        return self._run("produce", lambda: self._producer().execute(stop_event, max_messages))

    def consume(self, stop_event: threading.Event, once: bool = False) -> RunResult:
        """Run the consumer polling loop."""
        return self._run("consume", lambda: self._consumer().execute(stop_event, once))

    def aggregate(self, request: AggregationRequest, report: AggregationReport) -> RunResult:
        """Run one aggregation request and render it."""
        if self.aggregator is None:
            self.aggregator = AggregationComponent(self.config, self.store, report)
        report.print_request(request)
        return self._run("aggregate", lambda: len(self.aggregator.execute(request)))

    def run(self, stop_event: threading.Event, max_messages: Optional[int] = None) -> RunResult:
        """
        Run producer and consumer concurrently against the same store.

        The consumer polls on a background thread while the producer runs on
        the calling thread. When the producer ends without a stop signal the
        consumer drains the remaining messages before returning.
        """
        def action() -> int:
            producer = self._producer()
            consumer = self._consumer()
            consumer_stop = threading.Event()

            consumer_thread = threading.Thread(
                target=consumer.execute, args=(consumer_stop,), name="consumer", daemon=True
            )
            consumer_thread.start()
            try:
                producer.execute(stop_event, max_messages)
            finally:
                consumer_stop.set()
                consumer_thread.join()

            if not stop_event.is_set():
                consumer.execute(stop_event, once=True)
            return consumer.processed_count

        return self._run("run", action)

    def status(self) -> Dict:
        """Snapshot of store contents: counts, devices and checkpoints."""
        with self.store.read() as session:
            return {
                "raw_messages": session.count_raw_messages(),
                "metrics": {
                    sensor_type.value: session.count_metrics(sensor_type)
                    for sensor_type in METRIC_VARIANTS
                },
                "devices": session.list_devices(),
                "checkpoints": session.list_states()
            }


def build_parser() -> argparse.ArgumentParser:
    """Command line interface definition."""
    parser = argparse.ArgumentParser(
        prog="sensor-pipeline",
        description="Sensor data ingestion and aggregation pipeline"
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH,
                        help="Path to YAML configuration (default: %(default)s)")
    parser.add_argument("--log-level", default=None,
                        help="Override the configured log level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    produce = subparsers.add_parser("produce", help="Generate random sensor messages")
    produce.add_argument("--count", type=int, default=None,
                         help="Stop after this many messages (default: run until interrupted)")

    consume = subparsers.add_parser("consume", help="Consume raw messages into metrics")
    consume.add_argument("--once", action="store_true",
                         help="Exit as soon as no new messages are found")

    aggregate = subparsers.add_parser(
        "aggregate",
        help="Aggregate metrics by time interval",
        epilog=(
            "example: sensor-pipeline aggregate LIGHT "
            "\"2025-12-01 00:00:00\" \"2025-12-31 23:59:59\" HOUR \"MyHome ZZZ\""
        )
    )
    aggregate.add_argument("sensor_type", help="LIGHT, BAROMETER, LOCATION or ACCELEROMETER")
    aggregate.add_argument("start_time", help="Start of period, format \"yyyy-MM-dd HH:mm:ss\"")
    aggregate.add_argument("end_time", help="End of period, format \"yyyy-MM-dd HH:mm:ss\"")
    aggregate.add_argument("interval", help="MINUTE, HOUR, DAY or WEEK")
    aggregate.add_argument("device_name", nargs="?", default=None,
                           help="Optional exact device name filter")
    aggregate.add_argument("--no-pause", action="store_true",
                           help="Print all pages without waiting for Enter")

    run = subparsers.add_parser("run", help="Run producer and consumer in one process")
    run.add_argument("--count", type=int, default=None,
                     help="Stop producing after this many messages")

    subparsers.add_parser("status", help="Show store contents and checkpoint")
    return parser


def install_signal_handlers(stop_event: threading.Event) -> None:
    """
    Set the stop event on SIGINT and SIGTERM.

    Only the long-running commands install these; one-shot commands keep the
    default KeyboardInterrupt so Ctrl-C ends them at once.
    """
    def handle(signum, frame):
        logger.info(f"Received signal {signal.Signals(signum).name}, stopping after the current step")
        stop_event.set()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def print_status(status: Dict) -> None:
    print(f"Raw messages: {status['raw_messages']}")
    for sensor_type, count in status["metrics"].items():
        print(f"Metrics {sensor_type}: {count}")
    if not status["checkpoints"]:
        print("Checkpoints: none")
    for state in status["checkpoints"]:
        print(f"Checkpoint '{state.component_name}': {state.last_processed_time}")
    print(f"Devices: {len(status['devices'])}")
    for device in status["devices"]:
        print(f"   {device.device_name:<32} {device.sensor_type.value:<14} "
              f"{device.sensor_id} last seen {device.last_seen}")


def print_result(result: RunResult) -> None:
    print(f"\nPipeline Execution Summary ({result.command}):")
    print(f"   Success: {result.success}")
    print(f"   Records processed: {result.records_processed}")
    print(f"   Execution time: {result.execution_time_seconds:.2f} seconds")
    if result.errors:
        print(f"   Errors: {', '.join(result.errors)}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for pipeline execution."""
    args = build_parser().parse_args(argv)

    try:
        config = PipelineConfig.from_yaml(args.config)
        request = None
        if args.command == "aggregate":
            request = AggregationRequest.parse(
                args.sensor_type, args.start_time, args.end_time, args.interval, args.device_name
            )
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        level=args.log_level or config.logging.level,
        log_file=config.logging.file,
        include_timestamp=config.logging.include_timestamp
    )
    logger.info(f"Starting {config.pipeline.name} v{config.pipeline.version}: {args.command}")

    stop_event = threading.Event()
    if args.command in LONG_RUNNING_COMMANDS:
        install_signal_handlers(stop_event)

    try:
        with create_store(config.database) as store:
            pipeline = SensorDataPipeline(config, store)

            if args.command == "status":
                print_status(pipeline.status())
                return 0

            if args.command == "produce":
                result = pipeline.produce(stop_event, args.count)
            elif args.command == "consume":
                result = pipeline.consume(stop_event, args.once)
            elif args.command == "run":
                result = pipeline.run(stop_event, args.count)
            else:
                interactive = sys.stdin.isatty() and not args.no_pause
                report = AggregationReport(
                    config.aggregation,
                    input_fn=input if interactive else (lambda: "")
                )
                result = pipeline.aggregate(request, report)
    except PipelineError as e:
        logger.error(f"Failed to initialize pipeline: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info(f"{args.command} interrupted")
        return 130

    if args.command != "aggregate":
        print_result(result)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
