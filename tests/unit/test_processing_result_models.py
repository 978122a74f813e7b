from __future__ import annotations

from datetime import UTC, datetime

import pytest

from sales_recon.models.processing_result import FileStat, ProcessingResult


def _result(records: int, elapsed: float) -> ProcessingResult:
    start = datetime(2025, 11, 1, 10, 0, 0, tzinfo=UTC)
    return ProcessingResult(
        total_files=2,
        skipped_files=1,
        total_records=records,
        rates_applied=True,
        start_time=start,
        end_time=start,
        elapsed_seconds=elapsed,
    )


def test_file_stat_creation():
    stat = FileStat(
        file_name="nov.xlsx",
        file_type="spreadsheet",
        sheet_count=2,
        row_count=120,
        elapsed_seconds=0.5,
    )
    assert stat.sheet_count == 2
    with pytest.raises(AttributeError):
        stat.row_count = 1  # type: ignore[misc]


def test_throughput():
    assert _result(1000, 2.0).throughput_rows_per_sec == 500.0
    assert _result(1000, 0.0).throughput_rows_per_sec == 0.0
    assert _result(0, 1.0).file_stats is None
