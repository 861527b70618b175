"""Storage backends for raw messages, devices, metrics and checkpoints."""

from sensor_pipeline.config import DatabaseSettings

from .base import SensorStore
from .dialects import SqlDialect, DuckDBDialect, SQLiteDialect
from .duckdb_store import DuckDBSensorStore
from .sqlite_store import SQLiteSensorStore
from .session import StoreSession

STORE_BACKENDS = {
    "duckdb": DuckDBSensorStore,
    "sqlite": SQLiteSensorStore,
}


def create_store(settings: DatabaseSettings) -> SensorStore:
    """Build an unconnected store handle for the configured backend."""
    return STORE_BACKENDS[settings.backend](settings.path)


__all__ = [
    "SensorStore",
    "StoreSession",
    "SqlDialect",
    "DuckDBDialect",
    "SQLiteDialect",
    "DuckDBSensorStore",
    "SQLiteSensorStore",
    "STORE_BACKENDS",
    "create_store"
]
