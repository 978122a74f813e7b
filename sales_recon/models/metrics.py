from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Derived, read-only views over the canonical record set.

Metrics is the KPI snapshot recomputed whenever the record set changes;
the aggregation rows below are computed on demand and never cached.
"""


@dataclass(frozen=True)
class ProfitValidation:
    """Cross-check between reported and recomputed gross profit.

    calculated = net revenue - direct cost - scheme fees - MRA cost
    from_file  = summed gross profit column
    """
    calculated: float
    from_file: float
    matches: bool


@dataclass(frozen=True)
class Metrics:
    """Scalar KPI snapshot over the full record set."""
    total_tpv: float
    total_net_revenue: float
    total_gross_profit: float
    blended_take_rate: float  # percentage
    blended_gpm: float  # percentage
    total_transactions: float
    average_ticket_size: float
    gross_profit_validation: ProfitValidation
    total_direct_cost: float = 0.0
    total_scheme_fees: float = 0.0
    total_mra_cost: float = 0.0
    record_count: int = 0

    @staticmethod
    def empty() -> Metrics:
        """All-zero snapshot used for an empty record set."""
        return Metrics(
            total_tpv=0.0,
            total_net_revenue=0.0,
            total_gross_profit=0.0,
            blended_take_rate=0.0,
            blended_gpm=0.0,
            total_transactions=0.0,
            average_ticket_size=0.0,
            gross_profit_validation=ProfitValidation(calculated=0.0, from_file=0.0, matches=False),
        )


@dataclass(frozen=True)
class MonthlyAggregation:
    month: str  # YYYY-MM
    tpv: float
    net_revenue: float
    gross_profit: float


@dataclass(frozen=True)
class EntityPerformance:
    name: str
    tpv: float
    net_revenue: float


@dataclass(frozen=True)
class DistributionEntry:
    name: str
    value: float


@dataclass(frozen=True)
class DateRange:
    """Earliest / latest resolved record date (None when nothing resolved)."""
    min: datetime | None = None
    max: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return self.min is None
