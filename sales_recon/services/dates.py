from __future__ import annotations

import calendar
import math
import re
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from numbers import Real
from typing import Any

import pandas as pd

from ..models.record import CanonicalRecord

"""Date resolution for report rows.

Report exports carry the period in a ``month`` (or ``date``) column as a
spreadsheet serial, a real date cell, an ISO-ish string or a label such as
"Nov-25" / "November 2025". resolve_date() tries an ordered chain of
strategies and returns the first hit, or None when the value cannot be
resolved. Results are always naive datetimes (aware inputs are moved to UTC).
"""

__all__ = [
    "SERIAL_EPOCH_OFFSET",
    "DATE_STRATEGIES",
    "resolve_date",
    "resolve_record_date",
    "month_key",
]

# Spreadsheet serial of 1970-01-01 (serial epoch is 1899-12-30)
SERIAL_EPOCH_OFFSET = 25569
_UNIX_EPOCH = datetime(1970, 1, 1)

_GENERAL_FORMATS = (
    "%Y-%m",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %Y",
    "%b %Y",
)

_MONTH_YEAR_RE = re.compile(r"([a-zA-Z]+)[- ](\d{2,4})")

# "jan" -> 1 ... "dec" -> 12 (month names are matched on their first 3 letters)
_MONTH_PREFIXES = {abbr.lower(): i for i, abbr in enumerate(calendar.month_abbr) if abbr}


def _from_datetime(value: Any) -> datetime | None:
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def _from_serial(value: Any) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    serial = float(value)
    if not math.isfinite(serial):
        return None
    try:
        return _UNIX_EPOCH + timedelta(days=serial - SERIAL_EPOCH_OFFSET)
    except OverflowError:
        return None


def _from_general_string(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _GENERAL_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _from_month_year(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    match = _MONTH_YEAR_RE.search(value.strip())
    if match is None:
        return None
    name, year_text = match.groups()
    month = _MONTH_PREFIXES.get(name[:3].lower()) if len(name) >= 3 else None
    if month is None:
        return None
    year = int(year_text)
    if year < 100:
        year += 2000  # 2桁年は 20xx とみなす
    try:
        return datetime(year, month, 1)
    except ValueError:
        return None


DATE_STRATEGIES: tuple[Callable[[Any], datetime | None], ...] = (
    _from_datetime,
    _from_serial,
    _from_general_string,
    _from_month_year,
)


def resolve_date(value: Any) -> datetime | None:
    """Resolve a raw month/date cell; None when no strategy succeeds."""
    if value is None:
        return None
    for strategy in DATE_STRATEGIES:
        resolved = strategy(value)
        if resolved is not None:
            if resolved.tzinfo is not None:
                resolved = resolved.astimezone(UTC).replace(tzinfo=None)
            return resolved
    return None


def resolve_record_date(record: CanonicalRecord) -> datetime | None:
    """Resolve a record's period from ``month``, falling back to ``date``."""
    return resolve_date(record.month or record.date)


def month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"
