"""
Store session: the record, checkpoint, device and metric operations.

A session wraps one acquired DB-API connection (or DuckDB cursor). Inside
``SensorStore.transaction()`` every call made through the session belongs to the
same transaction; the session itself never commits or rolls back.
"""

from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from sensor_pipeline.models.data import (
    ProcessingState,
    RawSensorMessage,
    SensorDevice,
    SensorType,
    TimeInterval
)
from sensor_pipeline.models.metrics import MetricHeader, SensorMetric, variant_for
from sensor_pipeline.storage.dialects import SqlDialect
from sensor_pipeline.utils.exceptions import ValidationError
from sensor_pipeline.utils.timeutil import utc_now

RAW_COLUMNS = "id, sensor_id, sensor_type, device_name, measured_at, saved_at, json_value"

BucketRow = Tuple[str, datetime, Tuple[Optional[float], ...]]


class StoreSession:
    """Operations of the four stores over one connection."""

    def __init__(self, connection, dialect: SqlDialect):
        self._conn = connection
        self.dialect = dialect

    def _execute(self, sql: str, params: Sequence[Any] = ()):
        return self._conn.execute(sql, list(params))

    def _ts(self, value: datetime) -> Any:
        return self.dialect.encode_timestamp(value)

    # Record store

    def insert_raw_message(self, message: RawSensorMessage) -> RawSensorMessage:
        """Append a raw message, stamping its arrival time when absent."""
        saved_at = message.saved_at or utc_now()
        row = self._execute(
            """
            INSERT INTO raw_sensor_messages
                (sensor_id, sensor_type, device_name, measured_at, saved_at, json_value)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                str(message.sensor_id),
                message.sensor_type.value,
                message.device_name,
                self._ts(message.measured_at),
                self._ts(saved_at),
                message.json_value,
            )
        ).fetchone()
        return message.model_copy(update={"id": int(row[0]), "saved_at": saved_at})

    def select_messages_since(self, watermark: datetime, limit: int) -> List[RawSensorMessage]:
        """
        Select up to ``limit`` messages that arrived after ``watermark``, oldest first.

        When the limit cuts through a group of messages sharing the last arrival
        time, the rest of that group is appended so the next watermark cannot
        skip them.
        """
        rows = self._execute(
            f"""
            SELECT {RAW_COLUMNS}
            FROM raw_sensor_messages
            WHERE saved_at > ?
            ORDER BY saved_at ASC, id ASC
            LIMIT {int(limit)}
            """,
            (self._ts(watermark),)
        ).fetchall()

        if rows and len(rows) >= limit:
            last_saved_at, last_id = rows[-1][5], rows[-1][0]
            rows += self._execute(
                f"""
                SELECT {RAW_COLUMNS}
                FROM raw_sensor_messages
                WHERE saved_at = ? AND id > ?
                ORDER BY id ASC
                """,
                (last_saved_at, last_id)
            ).fetchall()

        return [self._to_message(row) for row in rows]

    def _to_message(self, row) -> RawSensorMessage:
        """Decode a raw row, rejecting rows no producer could have written."""
        message_id = int(row[0])
        timestamps = {}
        for field, value in (("measured_at", row[4]), ("saved_at", row[5])):
            try:
                timestamps[field] = self.dialect.decode_timestamp(value)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Raw message timestamp cannot be decoded: {e}", message_id, field) from e

        try:
            return RawSensorMessage(
                id=message_id,
                sensor_id=str(row[1]),
                sensor_type=row[2],
                device_name=row[3],
                json_value=row[6],
                **timestamps
            )
        except PydanticValidationError as e:
            error = e.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else None
            raise ValidationError(f"Raw message cannot be decoded: {error['msg']}", message_id, field) from e

    def count_raw_messages(self) -> int:
        return int(self._execute("SELECT COUNT(*) FROM raw_sensor_messages").fetchone()[0])

    # Checkpoint store

    def get_state(self, component_name: str) -> Optional[ProcessingState]:
        row = self._execute(
            "SELECT component_name, last_processed_time FROM processing_state WHERE component_name = ?",
            (component_name,)
        ).fetchone()
        return self._to_state(row) if row is not None and row[1] is not None else None

    def list_states(self) -> List[ProcessingState]:
        """Checkpoints of every consumer that has committed a batch."""
        rows = self._execute(
            "SELECT component_name, last_processed_time FROM processing_state "
            "WHERE last_processed_time IS NOT NULL ORDER BY component_name"
        ).fetchall()
        return [self._to_state(row) for row in rows]

    def _to_state(self, row) -> ProcessingState:
        return ProcessingState(
            component_name=row[0],
            last_processed_time=self.dialect.decode_timestamp(row[1])
        )

    def get_checkpoint(self, component_name: str) -> Optional[datetime]:
        state = self.get_state(component_name)
        return state.last_processed_time if state is not None else None

    def set_checkpoint(self, component_name: str, watermark: datetime) -> None:
        if self.get_checkpoint(component_name) is None:
            self._execute(
                "INSERT INTO processing_state (component_name, last_processed_time) VALUES (?, ?)",
                (component_name, self._ts(watermark))
            )
        else:
            self._execute(
                "UPDATE processing_state SET last_processed_time = ? WHERE component_name = ?",
                (self._ts(watermark), component_name)
            )

    # Device registry

    def get_device(self, sensor_id: UUID) -> Optional[SensorDevice]:
        row = self._execute(
            "SELECT sensor_id, device_name, sensor_type, last_seen FROM sensor_devices WHERE sensor_id = ?",
            (str(sensor_id),)
        ).fetchone()
        return self._to_device(row) if row is not None else None

    def upsert_device(self, device: SensorDevice) -> None:
        params = (
            device.device_name,
            device.sensor_type.value,
            self._ts(device.last_seen),
            str(device.sensor_id),
        )
        exists = self._execute(
            "SELECT 1 FROM sensor_devices WHERE sensor_id = ?", (str(device.sensor_id),)
        ).fetchone()
        if exists:
            self._execute(
                "UPDATE sensor_devices SET device_name = ?, sensor_type = ?, last_seen = ? WHERE sensor_id = ?",
                params
            )
        else:
            self._execute(
                "INSERT INTO sensor_devices (device_name, sensor_type, last_seen, sensor_id) VALUES (?, ?, ?, ?)",
                params
            )

    def list_devices(self) -> List[SensorDevice]:
        rows = self._execute(
            "SELECT sensor_id, device_name, sensor_type, last_seen FROM sensor_devices ORDER BY device_name, sensor_id"
        ).fetchall()
        return [self._to_device(row) for row in rows]

    def _to_device(self, row) -> SensorDevice:
        return SensorDevice(
            sensor_id=UUID(str(row[0])),
            device_name=row[1],
            sensor_type=SensorType(row[2]),
            last_seen=self.dialect.decode_timestamp(row[3]),
        )

    # Metric store

    def insert_metric(self, metric) -> None:
        variant = variant_for(metric.sensor_type)
        columns = ("sensor_id", "measured_at") + variant.columns
        placeholders = ", ".join("?" for _ in columns)
        self._execute(
            f"INSERT INTO {variant.table} ({', '.join(columns)}) VALUES ({placeholders})",
            (str(metric.header.sensor_id), self._ts(metric.header.measured_at)) + metric.column_values()
        )

    def fetch_metrics(self, sensor_type: SensorType) -> List[SensorMetric]:
        """All stored metrics of one kind, in insertion order."""
        variant = variant_for(sensor_type)
        rows = self._execute(
            f"SELECT sensor_id, measured_at, {', '.join(variant.columns)} FROM {variant.table} ORDER BY id"
        ).fetchall()
        metrics = []
        for row in rows:
            header = MetricHeader(
                sensor_id=UUID(str(row[0])),
                measured_at=self.dialect.decode_timestamp(row[1])
            )
            values = dict(zip(variant.metric_fields, row[2:]))
            metrics.append(variant.metric_from_values(header, values))
        return metrics

    def count_metrics(self, sensor_type: SensorType) -> int:
        table = variant_for(sensor_type).table
        return int(self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])

    def query_bucketed(
        self,
        sensor_type: SensorType,
        start_time: datetime,
        end_time: datetime,
        interval: TimeInterval,
        device_name: Optional[str] = None
    ) -> List[BucketRow]:
        """
        Average every metric column per (device, bucket) within [start_time, end_time].

        Returns:
            Rows of (device name, bucket start, averages) ordered by device name
            ascending, then bucket start descending
        """
        variant = variant_for(sensor_type)
        bucket = self.dialect.bucket_expression(interval, "m.measured_at")
        averages = ", ".join(f"AVG(m.{column})" for column in variant.columns)

        sql = (
            f"SELECT d.device_name, {bucket} AS interval_start, {averages} "
            f"FROM {variant.table} m "
            "JOIN sensor_devices d ON m.sensor_id = d.sensor_id "
            "WHERE m.measured_at >= ? AND m.measured_at <= ? "
        )
        params: List[Any] = [self._ts(start_time), self._ts(end_time)]
        if device_name:
            sql += "AND d.device_name = ? "
            params.append(device_name)
        sql += (
            f"GROUP BY d.device_name, {bucket} "
            "ORDER BY d.device_name ASC, interval_start DESC"
        )

        rows = self._execute(sql, params).fetchall()
        return [
            (
                row[0],
                self.dialect.decode_timestamp(row[1]),
                tuple(float(v) if v is not None else None for v in row[2:]),
            )
            for row in rows
        ]
