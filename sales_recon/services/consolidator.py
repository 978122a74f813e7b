from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from numbers import Real
from typing import Any

from ..models.parsed_file import ParsedFile, SheetRows
from ..models.record import MONETARY_FIELDS, NUMERIC_FIELDS, CanonicalRecord
from .currency import ExchangeRates, convert_to_usd
from .normalizer import normalize_headers

"""Record consolidation: parsed files -> one flat list of CanonicalRecord.

Every file, and every worksheet inside a workbook, gets its own header
mapping, so exports with differently spelled headers reconcile before they
are concatenated. The output keeps file -> sheet -> row order; rows are never
joined or de-duplicated.
"""

__all__ = [
    "parse_number",
    "map_columns",
    "consolidate_sheet",
    "consolidate",
]

logger = logging.getLogger(__name__)

_NON_NUMERIC_RE = re.compile(r"[^\d.\-]")


def parse_number(value: Any) -> float:
    """Coerce a cell to a finite float; anything unparsable becomes 0.0.

    Strings lose every character except digits, '-' and '.' first, so
    "$1,234.50" -> 1234.5 and "(MYR) 12" -> 12.0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, Real):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if isinstance(value, str):
        cleaned = _NON_NUMERIC_RE.sub("", value)
        try:
            number = float(cleaned)
        except ValueError:
            return _leading_float(cleaned)
        return number if math.isfinite(number) else 0.0
    return 0.0


_LEADING_FLOAT_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)")


def _leading_float(text: str) -> float:
    # "12-3" / "1.2.3" のような残骸は先頭の数値部分のみ採用
    match = _LEADING_FLOAT_RE.match(text)
    return float(match.group(0)) if match else 0.0


def map_columns(row: Mapping[str, Any], header_mapping: Mapping[str, str]) -> dict[str, Any]:
    """Rename a raw row's columns through ``header_mapping``.

    Numeric canonical fields are parsed with parse_number(); other mapped
    fields are copied as-is; columns missing from the mapping are kept under
    their original name. Numeric fields absent from the row are set to 0.0.
    """
    mapped: dict[str, Any] = {name: 0.0 for name in NUMERIC_FIELDS}
    for original, value in row.items():
        canonical = header_mapping.get(original, original)
        if canonical in NUMERIC_FIELDS:
            mapped[canonical] = parse_number(value)
        else:
            mapped[canonical] = value
    return mapped


def _apply_conversion(values: dict[str, Any], rates: ExchangeRates) -> None:
    currency = values.get("currency")
    code = currency if isinstance(currency, str) else None
    for name in MONETARY_FIELDS:
        values[name] = convert_to_usd(values[name], code, rates)


def consolidate_sheet(sheet: SheetRows, rates: ExchangeRates | None = None) -> list[CanonicalRecord]:
    """Normalize one sheet's rows using a mapping built from its own header."""
    if not sheet.rows:
        return []
    headers = sheet.columns or list(sheet.rows[0].keys())
    header_mapping = normalize_headers(headers)
    records: list[CanonicalRecord] = []
    for row in sheet.rows:
        values = map_columns(row, header_mapping)
        if rates:
            _apply_conversion(values, rates)
        records.append(
            CanonicalRecord.from_mapping(
                values,
                source_type=sheet.source_type,
                sheet_name=sheet.sheet_name,
            )
        )
    return records


def consolidate(
    parsed_files: Iterable[ParsedFile], rates: ExchangeRates | None = None
) -> list[CanonicalRecord]:
    """Concatenate every file's normalized rows in file -> sheet -> row order.

    Args:
        parsed_files: parser output, in the order the files were supplied
        rates: USD rate table; None (or empty) disables conversion
    """
    records: list[CanonicalRecord] = []
    for parsed in parsed_files:
        before = len(records)
        for sheet in parsed.sheets:
            records.extend(consolidate_sheet(sheet, rates))
        logger.debug(f"consolidated {parsed.name}: {len(records) - before} records")
    return records
