"""
Sensor Data Pipeline

Ingests raw sensor readings, maintains a device registry, converts payloads into
typed metrics with a checkpointed batch consumer, and serves time-bucketed
aggregates over DuckDB or SQLite.
"""

__version__ = "1.0.0"
