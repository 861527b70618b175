"""
Time-bucket aggregation over the metric store.

Readings of one sensor kind are grouped per device and calendar bucket and
averaged column by column. Bucket truncation is delegated to the store's SQL
dialect, so MINUTE, HOUR, DAY and WEEK buckets line up the same way on every
backend (weeks start on Monday 00:00).
"""

import time
from datetime import datetime
from typing import List, Optional

import pandas as pd

from sensor_pipeline.components.base import AggregatorComponent
from sensor_pipeline.config import AggregationRequest, PipelineConfig
from sensor_pipeline.models import AggregatedResult, SensorType, TimeInterval, variant_for
from sensor_pipeline.storage import SensorStore
from sensor_pipeline.utils import ConfigurationError, get_logger, log_summary


class AggregationComponent(AggregatorComponent):
    """Read-only aggregation engine."""

    def __init__(self, config: PipelineConfig, store: SensorStore, report=None):
        """
        Initialize aggregation component.

        Args:
            config: Pipeline configuration
            store: Connected store handle
            report: Optional AggregationReport used by execute()
        """
        super().__init__(config, store)
        self.logger = get_logger(__name__)
        self.report = report
        self.stats = {
            "queries_run": 0,
            "rows_returned": 0,
            "last_query_seconds": 0.0
        }

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

        Args:
            sensor_type: Kind of sensor to aggregate
            start_time: Inclusive lower bound on measured_at
            end_time: Inclusive upper bound on measured_at
            interval: Bucket width
            device_name: Exact device name filter; empty or None selects all devices

        Returns:
            Results ordered by device name ascending, then bucket start
            descending; empty when nothing matches

        Raises:
            ConfigurationError: If end_time is before start_time
            TransientStoreError: If the query fails
        """
        sensor_type = SensorType(sensor_type)
        interval = TimeInterval(interval)
        if end_time < start_time:
            raise ConfigurationError(
                f"End time {end_time} is before start time {start_time}"
            )

        self.logger.info(
            f"Aggregating {sensor_type.value} by {interval.value} "
            f"from {start_time} to {end_time}"
            + (f" for device '{device_name}'" if device_name else "")
        )

        started = time.time()
        with self.store.read() as session:
            rows = session.query_bucketed(sensor_type, start_time, end_time, interval, device_name or None)

        results = [
            AggregatedResult(device_name=name, interval_start=bucket_start, values=values)
            for name, bucket_start, values in rows
        ]

        self.stats["queries_run"] += 1
        self.stats["rows_returned"] += len(results)
        self.stats["last_query_seconds"] = round(time.time() - started, 4)
        self.logger.info(f"Aggregation returned {len(results)} rows")
        return results

    def to_frame(self, sensor_type: SensorType, results: List[AggregatedResult]) -> pd.DataFrame:
        """
        Convert results into a DataFrame.

        Columns are 'device_name', 'interval_start' and one column per metric
        field of the sensor kind (e.g. 'latitude', 'longitude').
        """
        variant = variant_for(sensor_type)
        columns = ["device_name", "interval_start"] + list(variant.metric_fields)
        records = [
            (result.device_name, result.interval_start) + tuple(result.values)
            for result in results
        ]
        return pd.DataFrame.from_records(records, columns=columns)

    def execute(self, request: AggregationRequest) -> List[AggregatedResult]:
        """
        Run an aggregation request and render it through the report, if any.

        Returns:
            The aggregated rows
        """
        results = self.fetch_aggregated_data(
            request.sensor_type,
            request.start_time,
            request.end_time,
            request.interval,
            request.device_name
        )
        if self.report is not None:
            self.report.render(request.sensor_type, results)
        log_summary(self.logger, "Aggregation", self.stats)
        return results
