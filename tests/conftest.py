"""
Pytest configuration and shared fixtures for testing.

Provides configuration, stores for every backend and raw message factories.
"""

import itertools
import json
import tempfile
import uuid
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from sensor_pipeline.config import PipelineConfig
from sensor_pipeline.models import RawSensorMessage, SensorType
from sensor_pipeline.storage import STORE_BACKENDS

# Monday
BASE_TIME = datetime(2025, 12, 1, 10, 0, 0)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def config_data():
    """Raw configuration dictionary with an in-memory database."""
    return {
        "pipeline": {
            "name": "test_sensor_pipeline",
            "version": "1.0.0"
        },
        "database": {
            "backend": "duckdb",
            "path": ":memory:"
        },
        "consumer": {
            "component_name": "test_consumer",
            "batch_size": 1000,
            "polling_interval_seconds": 0.1
        },
        "producer": {
            "min_delay_ms": 0,
            "max_delay_ms": 0,
            "seed": 42
        },
        "aggregation": {
            "page_size": 16
        },
        "logging": {
            "level": "DEBUG",
            "file": None,
            "include_timestamp": False
        }
    }


@pytest.fixture
def sample_config(config_data):
    """Create a test configuration."""
    return PipelineConfig.from_dict(config_data)


@pytest.fixture(params=sorted(STORE_BACKENDS))
def store(request):
    """Connected in-memory store, once per backend."""
    store = STORE_BACKENDS[request.param](":memory:")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def make_message():
    """Factory for raw messages with distinct, increasing arrival times."""
    arrival = itertools.count(1)

    def _make(sensor_type=SensorType.LIGHT, payload=None, sensor_id=None,
              device_name="Test Device", measured_at=None, saved_at=None, json_value=None):
        if json_value is None:
            json_value = json.dumps(payload if payload is not None else {"light": 100})
        return RawSensorMessage(
            sensor_id=sensor_id or uuid.uuid4(),
            sensor_type=sensor_type,
            device_name=device_name,
            measured_at=measured_at or BASE_TIME,
            saved_at=saved_at or BASE_TIME + timedelta(seconds=next(arrival)),
            json_value=json_value
        )

    return _make


@pytest.fixture
def add_messages(store):
    """Insert raw messages in one transaction and return the stored copies."""
    def _add(*messages):
        with store.transaction() as session:
            return [session.insert_raw_message(message) for message in messages]

    return _add
