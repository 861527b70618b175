"""
Tests for the time-bucket aggregation engine.

Data is loaded through the consumer so the tests exercise the same device
join and metric tables as production, on every storage backend.
"""

import uuid
from datetime import datetime, timedelta

import pytest

from sensor_pipeline.components.aggregation import AggregationComponent
from sensor_pipeline.components.consumer import BatchConsumerComponent
from sensor_pipeline.config import AggregationRequest
from sensor_pipeline.models import AggregatedResult, SensorType, TimeInterval
from sensor_pipeline.utils.exceptions import ConfigurationError

# Monday
BASE_TIME = datetime(2025, 12, 1, 10, 0, 0)
DAY_START = datetime(2025, 12, 1, 0, 0, 0)
DAY_END = datetime(2025, 12, 1, 23, 59, 59)


@pytest.fixture
def ingest(sample_config, store, add_messages):
    """Store raw messages and consume them into metrics."""
    def _ingest(*messages):
        add_messages(*messages)
        BatchConsumerComponent(sample_config, store).execute(once=True)

    return _ingest


@pytest.fixture
def aggregator(sample_config, store):
    return AggregationComponent(sample_config, store)


class TestAggregationComponent:
    """Test suite for AggregationComponent."""

    def test_light_hour_average(self, aggregator, ingest, make_message):
        """Two light readings in one hour average to 150.0."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.LIGHT, {"light": 100}, sensor_id, "MyHome ZZZ", BASE_TIME),
            make_message(SensorType.LIGHT, {"light": 200}, sensor_id, "MyHome ZZZ",
                         BASE_TIME + timedelta(minutes=30))
        )

        results = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR
        )

        assert results == [
            AggregatedResult(device_name="MyHome ZZZ", interval_start=BASE_TIME, values=(150.0,))
        ]
        assert results[0].value == 150.0

    def test_barometer_hour_average(self, aggregator, ingest, make_message):
        """Barometer readings average to 101337.5."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.BAROMETER, {"air_pressure": 101325.0}, sensor_id, "WeatherStation",
                         BASE_TIME + timedelta(minutes=5)),
            make_message(SensorType.BAROMETER, {"air_pressure": 101350.0}, sensor_id, "WeatherStation",
                         BASE_TIME + timedelta(minutes=45))
        )

        result, = aggregator.fetch_aggregated_data(
            SensorType.BAROMETER, DAY_START, DAY_END, TimeInterval.HOUR
        )

        assert result.interval_start == BASE_TIME
        assert result.value == pytest.approx(101337.5)

    def test_location_averages_each_coordinate(self, aggregator, ingest, make_message):
        """Location buckets average latitude and longitude separately."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.LOCATION, {"latitude": 55.7558, "longitude": 37.6173},
                         sensor_id, "GPSTracker", BASE_TIME),
            make_message(SensorType.LOCATION, {"latitude": 55.7600, "longitude": 37.6200},
                         sensor_id, "GPSTracker", BASE_TIME + timedelta(minutes=10))
        )

        result, = aggregator.fetch_aggregated_data(
            SensorType.LOCATION, DAY_START, DAY_END, TimeInterval.HOUR
        )

        assert result.values == pytest.approx((55.7579, 37.61865))

    def test_accelerometer_averages_each_axis(self, aggregator, ingest, make_message):
        """Accelerometer buckets average x, y and z separately."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.ACCELEROMETER, {"x": 1.0, "y": -2.0, "z": 9.0},
                         sensor_id, "FitnessBand", BASE_TIME),
            make_message(SensorType.ACCELEROMETER, {"x": 3.0, "y": 2.0, "z": 10.0},
                         sensor_id, "FitnessBand", BASE_TIME + timedelta(seconds=20))
        )

        result, = aggregator.fetch_aggregated_data(
            SensorType.ACCELEROMETER, DAY_START, DAY_END, TimeInterval.MINUTE
        )

        assert result.values == pytest.approx((2.0, 0.0, 9.5))

    def test_ordering_by_device_then_bucket_descending(self, aggregator, ingest, make_message):
        """Rows are sorted by device name ascending, then bucket start descending."""
        beta, alpha = uuid.uuid4(), uuid.uuid4()
        ingest(
            make_message(SensorType.LIGHT, {"light": 1}, beta, "Beta", BASE_TIME),
            make_message(SensorType.LIGHT, {"light": 2}, beta, "Beta", BASE_TIME + timedelta(hours=1)),
            make_message(SensorType.LIGHT, {"light": 3}, alpha, "Alpha", BASE_TIME),
            make_message(SensorType.LIGHT, {"light": 4}, alpha, "Alpha", BASE_TIME + timedelta(hours=1))
        )

        results = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR
        )

        assert [(r.device_name, r.interval_start.hour, r.value) for r in results] == [
            ("Alpha", 11, 4.0),
            ("Alpha", 10, 3.0),
            ("Beta", 11, 2.0),
            ("Beta", 10, 1.0),
        ]

    def test_device_filter(self, aggregator, ingest, make_message):
        """A device name restricts results to that device; empty means all devices."""
        ingest(
            make_message(SensorType.LIGHT, {"light": 10}, uuid.uuid4(), "SmallRice Pro99", BASE_TIME),
            make_message(SensorType.LIGHT, {"light": 20}, uuid.uuid4(), "MyHome ZZZ", BASE_TIME)
        )

        filtered = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR, "MyHome ZZZ"
        )
        assert [r.device_name for r in filtered] == ["MyHome ZZZ"]

        for no_filter in (None, ""):
            everything = aggregator.fetch_aggregated_data(
                SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR, no_filter
            )
            assert [r.device_name for r in everything] == ["MyHome ZZZ", "SmallRice Pro99"]

    def test_device_filter_is_exact(self, aggregator, ingest, make_message):
        """The device filter does not match prefixes or other cases."""
        ingest(make_message(SensorType.LIGHT, {"light": 10}, uuid.uuid4(), "MyHome ZZZ", BASE_TIME))

        for name in ("MyHome", "myhome zzz"):
            assert aggregator.fetch_aggregated_data(
                SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR, name
            ) == []

    def test_range_is_inclusive(self, aggregator, ingest, make_message):
        """Readings exactly on the range bounds are included."""
        sensor_id = uuid.uuid4()
        start, end = BASE_TIME, BASE_TIME + timedelta(hours=2)
        ingest(
            make_message(SensorType.LIGHT, {"light": 10}, sensor_id, "Lamp", start),
            make_message(SensorType.LIGHT, {"light": 30}, sensor_id, "Lamp", end),
            make_message(SensorType.LIGHT, {"light": 99}, sensor_id, "Lamp", end + timedelta(seconds=1))
        )

        results = aggregator.fetch_aggregated_data(SensorType.LIGHT, start, end, TimeInterval.DAY)

        assert [r.value for r in results] == [20.0]

    def test_empty_results(self, aggregator, ingest, make_message):
        """No readings in range, or no readings at all, give an empty list."""
        assert aggregator.fetch_aggregated_data(
            SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR
        ) == []

        ingest(make_message(SensorType.LIGHT, {"light": 10}, uuid.uuid4(), "Lamp", BASE_TIME))

        assert aggregator.fetch_aggregated_data(
            SensorType.LIGHT, datetime(2020, 1, 1), datetime(2020, 1, 2), TimeInterval.HOUR
        ) == []
        assert aggregator.fetch_aggregated_data(
            SensorType.BAROMETER, DAY_START, DAY_END, TimeInterval.HOUR
        ) == []

    def test_end_before_start_rejected(self, aggregator):
        """An inverted range is a configuration error."""
        with pytest.raises(ConfigurationError):
            aggregator.fetch_aggregated_data(SensorType.LIGHT, DAY_END, DAY_START, TimeInterval.HOUR)

    def test_minute_bucket_drops_seconds(self, aggregator, ingest, make_message):
        """Minute buckets zero seconds and microseconds."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.LIGHT, {"light": 1}, sensor_id, "Lamp",
                         BASE_TIME.replace(minute=15, second=30, microsecond=123456)),
            make_message(SensorType.LIGHT, {"light": 3}, sensor_id, "Lamp",
                         BASE_TIME.replace(minute=15, second=59))
        )

        result, = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.MINUTE
        )

        assert result.interval_start == datetime(2025, 12, 1, 10, 15, 0)
        assert result.value == 2.0

    def test_day_bucket(self, aggregator, ingest, make_message):
        """Day buckets start at midnight."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.LIGHT, {"light": 10}, sensor_id, "Lamp", datetime(2025, 12, 2, 0, 0, 0)),
            make_message(SensorType.LIGHT, {"light": 20}, sensor_id, "Lamp", datetime(2025, 12, 2, 23, 59, 59)),
            make_message(SensorType.LIGHT, {"light": 90}, sensor_id, "Lamp", datetime(2025, 12, 3, 0, 0, 0))
        )

        results = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, datetime(2025, 12, 1), datetime(2025, 12, 31), TimeInterval.DAY
        )

        assert [(r.interval_start, r.value) for r in results] == [
            (datetime(2025, 12, 3), 90.0),
            (datetime(2025, 12, 2), 15.0),
        ]

    def test_week_bucket_starts_on_monday(self, aggregator, ingest, make_message):
        """Week buckets start on Monday 00:00, Sunday belongs to the preceding Monday."""
        sensor_id = uuid.uuid4()
        ingest(
            # Wednesday and Sunday of the week starting Monday 2025-12-01
            make_message(SensorType.LIGHT, {"light": 10}, sensor_id, "Lamp", datetime(2025, 12, 3, 8, 0, 0)),
            make_message(SensorType.LIGHT, {"light": 30}, sensor_id, "Lamp", datetime(2025, 12, 7, 23, 0, 0)),
            # Last microsecond of that Sunday
            make_message(SensorType.LIGHT, {"light": 20}, sensor_id, "Lamp",
                         datetime(2025, 12, 7, 23, 59, 59, 999999)),
            # Monday midnight opens the next week
            make_message(SensorType.LIGHT, {"light": 50}, sensor_id, "Lamp", datetime(2025, 12, 8, 0, 0, 0))
        )

        results = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, datetime(2025, 12, 1), datetime(2025, 12, 31), TimeInterval.WEEK
        )

        assert [(r.interval_start, r.value) for r in results] == [
            (datetime(2025, 12, 8), 50.0),
            (datetime(2025, 12, 1), 20.0),
        ]

    def test_buckets_use_current_device_name(self, aggregator, ingest, make_message):
        """Readings are grouped under the latest known name of their device."""
        sensor_id = uuid.uuid4()
        ingest(
            make_message(SensorType.LIGHT, {"light": 10}, sensor_id, "Old Name", BASE_TIME),
            make_message(SensorType.LIGHT, {"light": 20}, sensor_id, "New Name", BASE_TIME)
        )

        result, = aggregator.fetch_aggregated_data(
            SensorType.LIGHT, DAY_START, DAY_END, TimeInterval.HOUR
        )

        assert result.device_name == "New Name"
        assert result.value == 15.0

    def test_to_frame(self, aggregator, ingest, make_message):
        """Results convert to a DataFrame with one column per metric field."""
        ingest(
            make_message(SensorType.LOCATION, {"latitude": 10.0, "longitude": 20.0},
                         uuid.uuid4(), "GPSTracker", BASE_TIME)
        )
        results = aggregator.fetch_aggregated_data(
            SensorType.LOCATION, DAY_START, DAY_END, TimeInterval.HOUR
        )

        frame = aggregator.to_frame(SensorType.LOCATION, results)

        assert list(frame.columns) == ["device_name", "interval_start", "latitude", "longitude"]
        assert frame.iloc[0]["device_name"] == "GPSTracker"
        assert frame.iloc[0]["latitude"] == 10.0

    def test_execute_renders_report(self, sample_config, store, ingest, make_message):
        """execute() runs the request and hands the rows to the report."""
        ingest(make_message(SensorType.LIGHT, {"light": 10}, uuid.uuid4(), "Lamp", BASE_TIME))

        class RecordingReport:
            def __init__(self):
                self.calls = []

            def render(self, sensor_type, results):
                self.calls.append((sensor_type, results))
                return 1

        report = RecordingReport()
        aggregator = AggregationComponent(sample_config, store, report)
        request = AggregationRequest.parse("light", "2025-12-01 00:00:00", "2025-12-01 23:59:59", "hour")

        results = aggregator.execute(request)

        assert len(results) == 1
        assert report.calls == [(SensorType.LIGHT, results)]
        assert aggregator.stats["queries_run"] == 1
        assert aggregator.stats["rows_returned"] == 1
