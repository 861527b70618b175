"""SQLite-backed sensor store."""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sensor_pipeline.storage.base import SensorStore
from sensor_pipeline.storage.dialects import SQLiteDialect


class SQLiteSensorStore(SensorStore):
    """
    Sensor store on a SQLite database.

    One connection in autocommit mode is shared by all sessions; a re-entrant
    lock serialises sessions so a transaction never interleaves with another
    session's statements. Separate processes may open the same file.
    """

    dialect = SQLiteDialect()
    driver_errors = (sqlite3.Error,)

    def __init__(self, path: str = ":memory:", timeout: float = 5.0):
        super().__init__(path)
        self.timeout = timeout
        self._lock = threading.RLock()

    def _open(self):
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(
            self.path,
            timeout=self.timeout,
            isolation_level=None,
            check_same_thread=False
        )

    @contextmanager
    def _acquire(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._connection
