"""
Console rendering of aggregation results.

Results are laid out as a table with pandas and printed in pages; between
pages the report waits for the reader to press Enter.
"""

import sys
from typing import Callable, List, Optional, TextIO

import pandas as pd

from sensor_pipeline.config import AggregationRequest, AggregationSettings
from sensor_pipeline.models import AggregatedResult, SensorType, variant_for

NO_DATA_MESSAGE = "No data for the requested period."
MISSING_VALUE = "N/A"


class AggregationReport:
    """Paged console table of aggregated rows."""

    def __init__(self, settings: Optional[AggregationSettings] = None,
                 output: Optional[TextIO] = None,
                 input_fn: Optional[Callable[[], str]] = None):
        """
        Initialize report.

        Args:
            settings: Page size and date format
            output: Stream to print to, stdout by default
            input_fn: Callable blocking until the reader asks for the next page
        """
        settings = settings or AggregationSettings()
        self.page_size = settings.page_size
        self.date_format = settings.date_format
        self.output = output or sys.stdout
        self.input_fn = input_fn or input

    def _print(self, text: str = "") -> None:
        print(text, file=self.output)

    def headers(self, sensor_type: SensorType) -> List[str]:
        """Column headers for one sensor kind."""
        return ["DEVICE", "DATE"] + list(variant_for(sensor_type).headers)

    def build_frame(self, sensor_type: SensorType, results: List[AggregatedResult]) -> pd.DataFrame:
        """Format results into a DataFrame of display strings."""
        rows = []
        for result in results:
            row = [result.device_name, result.interval_start.strftime(self.date_format)]
            row += [f"{v:.2f}" if v is not None else MISSING_VALUE for v in result.values]
            rows.append(row)
        return pd.DataFrame(rows, columns=self.headers(sensor_type))

    def print_request(self, request: AggregationRequest) -> None:
        """Print the banner describing a request."""
        self._print("=" * 60)
        self._print("Sensor data aggregation")
        self._print("=" * 60)
        self._print(f"Sensor type: {request.sensor_type.value}")
        self._print(
            f"Period: {request.start_time.strftime(self.date_format)} - "
            f"{request.end_time.strftime(self.date_format)}"
        )
        self._print(f"Interval: {request.interval.value}")
        if request.device_name:
            self._print(f"Device: {request.device_name}")
        self._print("=" * 60)
        self._print()

    def render(self, sensor_type: SensorType, results: List[AggregatedResult]) -> int:
        """
        Print results page by page.

        Returns:
            Number of pages printed
        """
        if not results:
            self._print(NO_DATA_MESSAGE)
            return 0

        frame = self.build_frame(sensor_type, results)
        total = len(frame)
        pages = 0

        for page_start in range(0, total, self.page_size):
            page = frame.iloc[page_start:page_start + self.page_size]
            self._print(page.to_string(index=False))
            pages += 1

            shown = page_start + len(page)
            if shown >= total:
                self._print(f"Displayed {shown} of {total} rows. End of table")
            else:
                self._print(f"Displayed {shown} of {total} rows. Press Enter to continue...")
                self.input_fn()

        return pages
