from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

"""CanonicalRecord model and SourceType enum.

A CanonicalRecord is one input row after header normalization and currency
conversion. The numeric core is always present as a finite float; descriptive
fields are optional; any column the normalizer did not recognise survives
verbatim in ``additional_fields``.
"""

__all__ = [
    "SourceType",
    "CanonicalRecord",
    "NUMERIC_FIELDS",
    "MONETARY_FIELDS",
    "DESCRIPTIVE_FIELDS",
]


class SourceType(Enum):
    """Provenance tag derived from the worksheet name.

    - MERCHANT: sheet name contains "merchant"
    - CHANNEL: sheet name contains "channel"
    - UNKNOWN: anything else, and every CSV row
    """
    MERCHANT = "merchant"
    CHANNEL = "channel"
    UNKNOWN = "unknown"


# 固定の数値フィールド (欠損/解析不能は 0)
NUMERIC_FIELDS: tuple[str, ...] = (
    "tpv",
    "net_revenue",
    "direct_cost",
    "scheme_fees",
    "mra_cost",
    "gross_profit",
    "transaction_count",
)

# Currency conversion applies to these only (transaction_count is a count)
MONETARY_FIELDS: tuple[str, ...] = NUMERIC_FIELDS[:-1]

DESCRIPTIVE_FIELDS: tuple[str, ...] = (
    "month",
    "date",
    "company",
    "channel",
    "currency",
    "country",
)


def _frozen_mapping(values: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class CanonicalRecord:
    """Normalized sales-report row.

    Created once during consolidation and never mutated afterwards.
    """
    tpv: float = 0.0
    net_revenue: float = 0.0
    direct_cost: float = 0.0
    scheme_fees: float = 0.0
    mra_cost: float = 0.0
    gross_profit: float = 0.0
    transaction_count: float = 0.0
    month: Any = None  # raw value: string, spreadsheet serial or datetime
    date: Any = None
    company: Any = None
    channel: Any = None
    currency: Any = None
    country: Any = None
    source_type: SourceType = SourceType.UNKNOWN
    sheet_name: str | None = None  # worksheet name (None for CSV input)
    additional_fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # read-only view so pass-through columns cannot be mutated in place
        object.__setattr__(self, "additional_fields", _frozen_mapping(self.additional_fields))

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        *,
        source_type: SourceType = SourceType.UNKNOWN,
        sheet_name: str | None = None,
    ) -> CanonicalRecord:
        """Build a record from a canonical-name mapping.

        Keys that are neither numeric nor descriptive fields end up in
        ``additional_fields``.
        """
        core: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in values.items():
            if key in NUMERIC_FIELDS or key in DESCRIPTIVE_FIELDS:
                core[key] = value
            else:
                extra[key] = value
        return cls(**core, source_type=source_type, sheet_name=sheet_name, additional_fields=extra)

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a canonical field first, then a pass-through column."""
        if name in NUMERIC_FIELDS or name in DESCRIPTIVE_FIELDS:
            return getattr(self, name)
        return self.additional_fields.get(name, default)

    def numeric_values(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in NUMERIC_FIELDS}
