"""
SQL dialect differences between the supported backends.

The aggregation query needs ``floor(measured_at, interval)``. DuckDB has a native
``date_trunc``; SQLite has no truncation function, so buckets are rebuilt by
reformatting the timestamp with ``strftime`` and, for weeks, stepping back to the
preceding Monday with date modifiers. Timestamps are stored natively by DuckDB and
as fixed-width ISO text by SQLite, which keeps text comparison chronological.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Tuple

from sensor_pipeline.models.data import TimeInterval
from sensor_pipeline.utils.timeutil import as_datetime, to_naive_utc


class SqlDialect(ABC):
    """Backend-specific SQL fragments and value conversions."""

    name: str = ""
    timestamp_type: str = "TIMESTAMP"

    @abstractmethod
    def bucket_expression(self, interval: TimeInterval, column: str) -> str:
        """SQL expression flooring ``column`` to the start of its bucket."""

    @abstractmethod
    def id_column(self, table: str) -> Tuple[List[str], str]:
        """Statements to run before creating ``table`` and the DDL of its id column."""

    def encode_timestamp(self, value: datetime) -> Any:
        return to_naive_utc(value)

    def decode_timestamp(self, value: Any) -> datetime:
        return as_datetime(value)


class DuckDBDialect(SqlDialect):
    name = "duckdb"
    timestamp_type = "TIMESTAMP"

    _UNITS = {
        TimeInterval.MINUTE: "minute",
        TimeInterval.HOUR: "hour",
        TimeInterval.DAY: "day",
        TimeInterval.WEEK: "week",  # ISO weeks, Monday start
    }

    def bucket_expression(self, interval: TimeInterval, column: str) -> str:
        unit = self._UNITS[TimeInterval(interval)]
        return f"CAST(date_trunc('{unit}', {column}) AS TIMESTAMP)"

    def id_column(self, table: str) -> Tuple[List[str], str]:
        sequence = f"{table}_id_seq"
        return (
            [f"CREATE SEQUENCE IF NOT EXISTS {sequence}"],
            f"id BIGINT PRIMARY KEY DEFAULT nextval('{sequence}')"
        )


class SQLiteDialect(SqlDialect):
    name = "sqlite"
    timestamp_type = "TEXT"

    _FORMATS = {
        TimeInterval.MINUTE: "strftime('%Y-%m-%d %H:%M:00', {column})",
        TimeInterval.HOUR: "strftime('%Y-%m-%d %H:00:00', {column})",
        TimeInterval.DAY: "strftime('%Y-%m-%d 00:00:00', {column})",
        # Date part only, so date arithmetic cannot round fractional seconds.
        # Back six days, then forward to the next Monday (weekday 1), which is
        # the same day when the date already falls on a Monday
        TimeInterval.WEEK: "strftime('%Y-%m-%d 00:00:00', substr({column}, 1, 10), '-6 days', 'weekday 1')",
    }

    def bucket_expression(self, interval: TimeInterval, column: str) -> str:
        return self._FORMATS[TimeInterval(interval)].format(column=column)

    def id_column(self, table: str) -> Tuple[List[str], str]:
        return [], "id INTEGER PRIMARY KEY AUTOINCREMENT"

    def encode_timestamp(self, value: datetime) -> Any:
        return to_naive_utc(value).isoformat(sep=' ', timespec='microseconds')
