"""DuckDB-backed sensor store."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import duckdb

from sensor_pipeline.storage.base import SensorStore
from sensor_pipeline.storage.dialects import DuckDBDialect


class DuckDBSensorStore(SensorStore):
    """
    Sensor store on a DuckDB database.

    Each session runs on its own cursor, a duplicate connection to the same
    database with an independent transaction context, so readers can query
    while a batch transaction is open. A DuckDB file can only be opened by one
    process at a time; run producer and consumer in one process (``run``
    command) or use the SQLite backend for separate processes.
    """

    dialect = DuckDBDialect()
    driver_errors = (duckdb.Error,)

    def _open(self):
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        return duckdb.connect(self.path)

    @contextmanager
    def _acquire(self) -> Iterator[duckdb.DuckDBPyConnection]:
        cursor = self._connection.cursor()
        try:
            yield cursor
        finally:
            cursor.close()
