from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any, Literal

from ..models.metrics import (
    DateRange,
    DistributionEntry,
    EntityPerformance,
    Metrics,
    MonthlyAggregation,
    ProfitValidation,
)
from ..models.record import CanonicalRecord, SourceType
from .dates import month_key, resolve_record_date

"""KPI calculations over the canonical record set.

All functions are pure reductions over a record sequence and are recomputed
on every call; nothing here caches or updates incrementally.
"""

__all__ = [
    "DEFAULT_PROFIT_TOLERANCE",
    "DEFAULT_ENTITY_LIMIT",
    "EntityScope",
    "calculate_metrics",
    "validate_gross_profit",
    "monthly_aggregations",
    "peak_month",
    "lowest_month",
    "top_entities",
    "tpv_distribution",
    "date_range",
]

DEFAULT_PROFIT_TOLERANCE = 0.01
DEFAULT_ENTITY_LIMIT = 10

# Legacy column spellings checked when the canonical field is empty
_DISTRIBUTION_ALIASES: dict[str, tuple[str, ...]] = {
    "currency": (
        "Entity Reporting Currency",
        "Reporting Currency",
        "entity reporting currency",
        "reporting currency",
        "Currency",
    ),
    "country": (
        "Merchant Country",
        "merchant country",
        "Country",
    ),
}


class EntityScope(Enum):
    """Which rows feed an entity ranking and which field names the entity.

    - MERCHANT: merchant-sheet rows, keyed by company
    - CHANNEL: channel-sheet rows, keyed by channel
    - COMBINED: every row, keyed by company, else channel
    """
    MERCHANT = "merchant"
    CHANNEL = "channel"
    COMBINED = "combined"


def validate_gross_profit(
    net_revenue: float,
    direct_cost: float,
    scheme_fees: float,
    mra_cost: float,
    gross_profit: float,
    tolerance: float = DEFAULT_PROFIT_TOLERANCE,
) -> ProfitValidation:
    """Recompute gross profit from its cost components and compare."""
    calculated = net_revenue - direct_cost - scheme_fees - mra_cost
    return ProfitValidation(
        calculated=calculated,
        from_file=gross_profit,
        matches=abs(calculated - gross_profit) < tolerance,
    )


def calculate_metrics(
    records: Sequence[CanonicalRecord], tolerance: float = DEFAULT_PROFIT_TOLERANCE
) -> Metrics:
    """Full KPI snapshot. An empty record set yields Metrics.empty()."""
    if not records:
        return Metrics.empty()

    total_tpv = sum(r.tpv for r in records)
    total_net_revenue = sum(r.net_revenue for r in records)
    total_gross_profit = sum(r.gross_profit for r in records)
    total_direct_cost = sum(r.direct_cost for r in records)
    total_scheme_fees = sum(r.scheme_fees for r in records)
    total_mra_cost = sum(r.mra_cost for r in records)
    total_transactions = sum(r.transaction_count for r in records)

    # ゼロ除算は 0 として扱う
    blended_take_rate = total_net_revenue / total_tpv * 100 if total_tpv != 0 else 0.0
    blended_gpm = total_gross_profit / total_net_revenue * 100 if total_net_revenue != 0 else 0.0
    average_ticket_size = total_tpv / total_transactions if total_transactions != 0 else 0.0

    return Metrics(
        total_tpv=total_tpv,
        total_net_revenue=total_net_revenue,
        total_gross_profit=total_gross_profit,
        blended_take_rate=blended_take_rate,
        blended_gpm=blended_gpm,
        total_transactions=total_transactions,
        average_ticket_size=average_ticket_size,
        gross_profit_validation=validate_gross_profit(
            total_net_revenue,
            total_direct_cost,
            total_scheme_fees,
            total_mra_cost,
            total_gross_profit,
            tolerance,
        ),
        total_direct_cost=total_direct_cost,
        total_scheme_fees=total_scheme_fees,
        total_mra_cost=total_mra_cost,
        record_count=len(records),
    )


def monthly_aggregations(records: Sequence[CanonicalRecord]) -> list[MonthlyAggregation]:
    """TPV / net revenue / gross profit per YYYY-MM, ascending.

    Records whose period cannot be resolved are left out.
    """
    buckets: dict[str, list[float]] = {}
    for record in records:
        resolved = resolve_record_date(record)
        if resolved is None:
            continue
        totals = buckets.setdefault(month_key(resolved), [0.0, 0.0, 0.0])
        totals[0] += record.tpv
        totals[1] += record.net_revenue
        totals[2] += record.gross_profit

    return [
        MonthlyAggregation(month=key, tpv=tpv, net_revenue=net, gross_profit=gp)
        for key, (tpv, net, gp) in sorted(buckets.items())
    ]


def peak_month(records: Sequence[CanonicalRecord]) -> MonthlyAggregation | None:
    """Month with the highest TPV (earliest wins on ties)."""
    months = monthly_aggregations(records)
    if not months:
        return None
    best = months[0]
    for month in months[1:]:
        if month.tpv > best.tpv:
            best = month
    return best


def lowest_month(records: Sequence[CanonicalRecord]) -> MonthlyAggregation | None:
    """Month with the lowest TPV (earliest wins on ties)."""
    months = monthly_aggregations(records)
    if not months:
        return None
    worst = months[0]
    for month in months[1:]:
        if month.tpv < worst.tpv:
            worst = month
    return worst


def _entity_name(record: CanonicalRecord, scope: EntityScope) -> Any:
    if scope is EntityScope.MERCHANT:
        if record.source_type is not SourceType.MERCHANT:
            return None
        return record.company
    if scope is EntityScope.CHANNEL:
        if record.source_type is not SourceType.CHANNEL:
            return None
        return record.channel
    return record.company or record.channel


def top_entities(
    records: Sequence[CanonicalRecord],
    limit: int = DEFAULT_ENTITY_LIMIT,
    scope: EntityScope = EntityScope.COMBINED,
) -> list[EntityPerformance]:
    """Rank entities by summed TPV, descending, truncated to ``limit``.

    Records without an entity name for the given scope are skipped.
    """
    totals: dict[str, list[float]] = {}
    for record in records:
        name = _entity_name(record, scope)
        if not name:
            continue
        entry = totals.setdefault(str(name), [0.0, 0.0])
        entry[0] += record.tpv
        entry[1] += record.net_revenue

    ranked = sorted(totals.items(), key=lambda item: item[1][0], reverse=True)
    return [
        EntityPerformance(name=name, tpv=tpv, net_revenue=net)
        for name, (tpv, net) in ranked[: max(limit, 0)]
    ]


def _distribution_key(record: CanonicalRecord, by: str) -> Any:
    value = getattr(record, by)
    if value:
        return value
    for alias in _DISTRIBUTION_ALIASES[by]:
        value = record.additional_fields.get(alias)
        if value:
            return value
    return None


def tpv_distribution(
    records: Sequence[CanonicalRecord], by: Literal["currency", "country"] = "currency"
) -> list[DistributionEntry]:
    """Summed TPV per currency (or country), largest first.

    Keys are trimmed and uppercased; empty values and "unknown" are skipped.
    """
    if by not in _DISTRIBUTION_ALIASES:
        raise ValueError(f"unsupported distribution key: {by!r}")

    totals: dict[str, float] = {}
    for record in records:
        raw = _distribution_key(record, by)
        if raw is None:
            continue
        key = str(raw).strip()
        if not key or key.lower() == "unknown":
            continue
        key = key.upper()
        totals[key] = totals.get(key, 0.0) + record.tpv

    return [
        DistributionEntry(name=name, value=value)
        for name, value in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]


def date_range(records: Sequence[CanonicalRecord]) -> DateRange:
    """Earliest and latest resolvable record date."""
    resolved = [d for d in (resolve_record_date(r) for r in records) if d is not None]
    if not resolved:
        return DateRange()
    return DateRange(min=min(resolved), max=max(resolved))
