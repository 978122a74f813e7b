from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Processing result models.

Run-level bookkeeping for process_files(): what was read, how long it took
and whether currency conversion was applied. Independent of the KPI
snapshot in models.metrics.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file read statistics."""
    file_name: str
    file_type: str  # csv / spreadsheet
    sheet_count: int  # CSV は常に 1
    row_count: int
    elapsed_seconds: float


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of one successful processing run."""
    total_files: int
    skipped_files: int  # unsupported extensions filtered before parsing
    total_records: int
    rates_applied: bool
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.total_records / self.elapsed_seconds
