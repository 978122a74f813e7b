from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per file-level failure or rate fetch failure seen during a
processing run. ``row=-1`` marks failures that are not tied to a single row.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_SHEET",
]

FILE_LEVEL_SHEET = "<FILE_LEVEL>"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: input filename ("<RATES>" for the rate provider, "<SESSION>"
            for failures after all files were read)
        sheet: worksheet name, FILE_LEVEL_SHEET when not sheet specific
        row: 1-based data row number, -1 when unknown
        error_type: classification in UPPER_SNAKE_CASE
        message: human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    sheet: str
    row: int  # 不明な場合 -1
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
