from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .record import SourceType

"""Parser output models.

ParsedFile is the result of reading one input file: one SheetRows per
worksheet (a CSV file has exactly one, untagged).
"""

__all__ = [
    "FileType",
    "SheetRows",
    "ParsedFile",
]


class FileType(Enum):
    """Input type detected from the file extension."""
    CSV = "csv"
    SPREADSHEET = "spreadsheet"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SheetRows:
    """Raw rows of one worksheet (or of a whole CSV file)."""
    sheet_name: str | None  # None for CSV
    source_type: SourceType
    columns: list[str]  # header row, in sheet order
    rows: list[dict[str, Any]] = field(default_factory=list)  # 列名 -> 生の値

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class ParsedFile:
    path: Path
    file_type: FileType
    sheets: list[SheetRows]

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def total_rows(self) -> int:
        return sum(len(s) for s in self.sheets)
