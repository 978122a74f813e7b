from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.parsed_file import FileType, ParsedFile, SheetRows
from ..models.record import SourceType

"""Tabular reader for sales-report exports (CSV and Excel workbooks).

- CSV: 1行目をヘッダとして扱い、空行はスキップ。全セルを文字列として読む。
  Malformed lines are collected and raised together as one ParseFailure.
- Workbook: every worksheet is read with its own first row as header, empty
  cells become None, and each sheet is tagged merchant/channel/unknown from
  its name.
"""

__all__ = [
    "ParseFailure",
    "ReadError",
    "UnsupportedFileTypeError",
    "SUPPORTED_EXTENSIONS",
    "detect_file_type",
    "classify_sheet",
    "read_csv_file",
    "read_workbook",
    "parse_file",
]

SUPPORTED_EXTENSIONS = {
    ".csv": FileType.CSV,
    ".xlsx": FileType.SPREADSHEET,
    ".xls": FileType.SPREADSHEET,
}


class ParseFailure(Exception):
    """Raised when a file's contents cannot be turned into rows."""


class ReadError(ParseFailure):
    """Raised when a file cannot be opened or decoded at all."""


class UnsupportedFileTypeError(Exception):
    """Raised for extensions other than .csv / .xlsx / .xls."""


def detect_file_type(path: Path | str) -> FileType:
    return SUPPORTED_EXTENSIONS.get(Path(path).suffix.lower(), FileType.UNKNOWN)


def classify_sheet(sheet_name: str) -> SourceType:
    """Classify a worksheet by name; "merchant" wins over "channel"."""
    lowered = sheet_name.lower()
    if "merchant" in lowered:
        return SourceType.MERCHANT
    if "channel" in lowered:
        return SourceType.CHANNEL
    return SourceType.UNKNOWN


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def read_csv_file(path: Path | str) -> SheetRows:
    """Read a comma-delimited file with a header row.

    Every line-level problem is reported in a single ParseFailure; no
    partial result is ever returned.
    """
    path = Path(path)
    errors: list[str] = []

    def _collect_bad_line(bad_line: list[str]) -> None:
        errors.append(f"Too many fields: saw {len(bad_line)} ({','.join(bad_line)})")
        return None  # skip line, reported below

    try:
        # header=None: 1行目で列数を確定させ、以降の超過行を bad line として扱う
        raw = pd.read_csv(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,  # "NA" / "N/A" などの文字列はそのまま保持
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_collect_bad_line,
        )
    except pd.errors.EmptyDataError:
        return SheetRows(sheet_name=None, source_type=SourceType.UNKNOWN, columns=[], rows=[])
    except UnicodeDecodeError as e:
        raise ReadError(f"cannot decode {path.name}: {e}") from e
    except OSError as e:
        raise ReadError(f"cannot read {path.name}: {e}") from e
    except pd.errors.ParserError as e:
        raise ParseFailure(f"CSV parsing errors: {e}") from e

    columns = _dedupe_columns(str(c) for c in raw.iloc[0].tolist())
    body = raw.iloc[1:].copy()
    body.columns = columns
    # short lines are padded with NaN (real empty cells stay "")
    for position, (_, row) in enumerate(body.iterrows(), start=1):
        if row.isna().any():
            filled = int(row.notna().sum())
            errors.append(
                f"Too few fields: expected {len(columns)} fields but parsed {filled} (row {position})"
            )
    if errors:
        raise ParseFailure(f"CSV parsing errors: {', '.join(errors)}")

    rows: list[dict[str, Any]] = body.to_dict(orient="records")
    return SheetRows(sheet_name=None, source_type=SourceType.UNKNOWN, columns=columns, rows=rows)


def _dedupe_columns(names: Iterable[str]) -> list[str]:
    # 重複ヘッダは pandas と同じく "name.1", "name.2" ...
    seen: dict[str, int] = {}
    result: list[str] = []
    for name in names:
        if name in seen:
            seen[name] += 1
            result.append(f"{name}.{seen[name]}")
        else:
            seen[name] = 0
            result.append(name)
    return result


def _sheet_rows(df: pd.DataFrame, sheet_name: str) -> SheetRows:
    columns = [str(c) for c in df.columns]
    df.columns = columns
    rows: list[dict[str, Any]] = []
    for raw in df.to_dict(orient="records"):
        row = {col: (None if _is_missing(val) else val) for col, val in raw.items()}
        # 全セル空の行はスキップ
        if all(v is None for v in row.values()):
            continue
        rows.append(row)
    return SheetRows(
        sheet_name=sheet_name,
        source_type=classify_sheet(sheet_name),
        columns=columns,
        rows=rows,
    )


def read_workbook(path: Path | str) -> list[SheetRows]:
    """Read every worksheet of an .xlsx/.xls workbook, in workbook order."""
    path = Path(path)
    try:
        with pd.ExcelFile(path) as xls:
            sheets: list[SheetRows] = []
            for name in xls.sheet_names:
                # keep_default_na=False: 'NA' 等の文字列を欠損扱いしない
                df = xls.parse(name, header=0, keep_default_na=False, na_values=[""])
                sheets.append(_sheet_rows(df, str(name)))
    except Exception as e:
        raise ReadError(f"Failed to read workbook {path.name}: {e}") from e
    return sheets


def parse_file(path: Path | str) -> ParsedFile:
    """Read one input file into a ParsedFile.

    Raises:
        UnsupportedFileTypeError: extension is not csv/xlsx/xls
        ReadError: file cannot be opened or decoded
        ParseFailure: CSV content is malformed
    """
    path = Path(path)
    file_type = detect_file_type(path)
    if file_type == FileType.CSV:
        sheets = [read_csv_file(path)]
    elif file_type == FileType.SPREADSHEET:
        sheets = read_workbook(path)
    else:
        raise UnsupportedFileTypeError(f"Unsupported file type: {path.name}")
    return ParsedFile(path=path, file_type=file_type, sheets=sheets)
