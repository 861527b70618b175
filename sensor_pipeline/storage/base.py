"""
Abstract store handle shared by the DuckDB and SQLite backends.

A store is constructed explicitly, connected, and passed into every component
that needs it. Work happens inside scoped sessions:

- ``transaction()`` opens a transaction, commits on normal exit and rolls back
  on any exception, so no partial batch is ever visible;
- ``read()`` runs statements in autocommit mode for read-only queries.

Driver exceptions raised inside either scope surface as TransientStoreError.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import ContextManager, Iterator, List, Tuple, Type

from sensor_pipeline.models.metrics import METRIC_VARIANTS
from sensor_pipeline.storage.dialects import SqlDialect
from sensor_pipeline.storage.session import StoreSession
from sensor_pipeline.utils import TransientStoreError, get_logger

logger = get_logger(__name__)


class SensorStore(ABC):
    """Connection owner and transaction boundary for all four stores."""

    dialect: SqlDialect
    driver_errors: Tuple[Type[BaseException], ...] = ()

    def __init__(self, path: str = ":memory:"):
        """
        Initialize store handle.

        Args:
            path: Database file path, or ':memory:' for a private in-memory database
        """
        self.path = path
        self._connection = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def connect(self) -> "SensorStore":
        """Open the database and create the schema if needed."""
        if self._connection is not None:
            return self
        logger.info(f"Connecting to {self.dialect.name} store: {self.path}")
        try:
            self._connection = self._open()
            self.initialize_schema()
        except self.driver_errors as e:
            raise TransientStoreError(f"Cannot open {self.dialect.name} store at {self.path}: {e}") from e
        return self

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info(f"{self.dialect.name} store closed")

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @abstractmethod
    def _open(self):
        """Open and return the underlying driver connection."""

    @abstractmethod
    def _acquire(self) -> ContextManager:
        """Context manager yielding a connection usable by one session."""

    def _schema_statements(self) -> List[str]:
        ts = self.dialect.timestamp_type
        statements: List[str] = []

        prelude, id_column = self.dialect.id_column("raw_sensor_messages")
        statements += prelude
        statements.append(f"""
            CREATE TABLE IF NOT EXISTS raw_sensor_messages (
                {id_column},
                sensor_id VARCHAR(36) NOT NULL,
                sensor_type VARCHAR(32) NOT NULL,
                device_name VARCHAR(32) NOT NULL,
                measured_at {ts} NOT NULL,
                saved_at {ts} NOT NULL,
                json_value TEXT
            )
        """)
        statements.append(
            "CREATE INDEX IF NOT EXISTS idx_raw_sensor_messages_saved_at ON raw_sensor_messages (saved_at)"
        )
        statements.append(f"""
            CREATE TABLE IF NOT EXISTS sensor_devices (
                sensor_id VARCHAR(36) PRIMARY KEY,
                device_name VARCHAR(32),
                sensor_type VARCHAR(32),
                last_seen {ts}
            )
        """)
        statements.append(f"""
            CREATE TABLE IF NOT EXISTS processing_state (
                component_name VARCHAR(64) PRIMARY KEY,
                last_processed_time {ts}
            )
        """)

        for variant in METRIC_VARIANTS.values():
            prelude, id_column = self.dialect.id_column(variant.table)
            statements += prelude
            value_columns = ",\n".join(
                f"                {column} {column_type}"
                for column, column_type in zip(variant.columns, variant.column_types)
            )
            statements.append(f"""
            CREATE TABLE IF NOT EXISTS {variant.table} (
                {id_column},
                sensor_id VARCHAR(36) NOT NULL,
                measured_at {ts} NOT NULL,
{value_columns}
            )
            """)
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{variant.table}_measured_at ON {variant.table} (measured_at)"
            )
        return statements

    def initialize_schema(self) -> None:
        """Create tables, sequences and indexes that do not exist yet."""
        with self._acquire() as conn:
            for statement in self._schema_statements():
                conn.execute(statement)
        logger.info(f"{self.dialect.name} schema created/verified")

    def _require_connection(self) -> None:
        if self._connection is None:
            raise TransientStoreError("Store is not connected")

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """
        Run a unit of work atomically.

        Commits when the block exits normally; rolls back and re-raises on any
        exception. Driver errors are re-raised as TransientStoreError.
        """
        self._require_connection()
        with self._acquire() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
            except self.driver_errors as e:
                raise TransientStoreError(f"Cannot begin transaction: {e}") from e

            try:
                yield StoreSession(conn, self.dialect)
            except BaseException as e:
                self._rollback(conn)
                if isinstance(e, self.driver_errors):
                    raise TransientStoreError(f"Transaction failed: {e}") from e
                raise

            try:
                conn.execute("COMMIT")
            except self.driver_errors as e:
                self._rollback(conn)
                raise TransientStoreError(f"Commit failed: {e}") from e

    @contextmanager
    def read(self) -> Iterator[StoreSession]:
        """Run read-only statements outside an explicit transaction."""
        self._require_connection()
        with self._acquire() as conn:
            try:
                yield StoreSession(conn, self.dialect)
            except self.driver_errors as e:
                raise TransientStoreError(f"Query failed: {e}") from e

    def _rollback(self, conn) -> None:
        try:
            conn.execute("ROLLBACK")
        except self.driver_errors as e:
            # The triggering error is re-raised by the caller
            logger.warning(f"Rollback failed: {e}")
