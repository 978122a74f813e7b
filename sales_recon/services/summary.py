from __future__ import annotations

from datetime import datetime

from ..models.metrics import Metrics
from .session import ReconSession

"""Summary line and text report rendering.

SUMMARY line format:
SUMMARY files={files} records={records} tpv={tpv} net_revenue={net}
gross_profit={gp} take_rate={rate}% gpm={gpm}% gp_check={ok|mismatch}

Money and percentages are always rendered with two decimals and no
thousands separator so the line stays machine-parsable.
"""

__all__ = [
    "format_amount",
    "render_summary_line",
    "render_report",
]


def format_amount(value: float) -> str:
    """Two-decimal rendering; never emits "-0.00"."""
    text = f"{value:.2f}"
    return "0.00" if text == "-0.00" else text


def _format_money(value: float) -> str:
    return f"{value:,.2f}"


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value is not None else "N/A"


def render_summary_line(metrics: Metrics, files: int) -> str:
    """Render the SUMMARY line for one processing run.

    Examples:
        >>> render_summary_line(Metrics.empty(), 0)
        'SUMMARY files=0 records=0 tpv=0.00 net_revenue=0.00 gross_profit=0.00 take_rate=0.00% gpm=0.00% gp_check=mismatch'
    """
    check = "ok" if metrics.gross_profit_validation.matches else "mismatch"
    return (
        f"SUMMARY files={files} "
        f"records={metrics.record_count} "
        f"tpv={format_amount(metrics.total_tpv)} "
        f"net_revenue={format_amount(metrics.total_net_revenue)} "
        f"gross_profit={format_amount(metrics.total_gross_profit)} "
        f"take_rate={format_amount(metrics.blended_take_rate)}% "
        f"gpm={format_amount(metrics.blended_gpm)}% "
        f"gp_check={check}"
    )


def render_report(session: ReconSession, limit: int | None = None) -> list[str]:
    """Human readable report lines for the session's current state."""
    metrics = session.metrics or Metrics.empty()
    validation = metrics.gross_profit_validation
    lines = [
        f"Period: {_format_date(session.date_range.min)} .. {_format_date(session.date_range.max)}",
        f"Total TPV: {_format_money(metrics.total_tpv)} USD",
        f"Net Revenue: {_format_money(metrics.total_net_revenue)} USD",
        f"Gross Profit: {_format_money(metrics.total_gross_profit)} USD",
        f"Blended Take Rate: {metrics.blended_take_rate:.2f}%",
        f"Blended GPM: {metrics.blended_gpm:.2f}%",
        f"Transactions: {metrics.total_transactions:,.0f}",
        f"Average Ticket Size: {_format_money(metrics.average_ticket_size)} USD",
        (
            f"Gross Profit Check: {'OK' if validation.matches else 'MISMATCH'} "
            f"(calculated {_format_money(validation.calculated)}, "
            f"from file {_format_money(validation.from_file)})"
        ),
    ]

    peak = session.peak_month()
    lowest = session.lowest_month()
    if peak is not None and lowest is not None:
        lines.append(f"Top Performing Month: {peak.month} TPV {_format_money(peak.tpv)}")
        lines.append(f"Lowest Performing Month: {lowest.month} TPV {_format_money(lowest.tpv)}")

    months = session.monthly_aggregations()
    if months:
        lines.append("Monthly:")
        for m in months:
            lines.append(
                f"  {m.month}  tpv={_format_money(m.tpv)}  net_revenue={_format_money(m.net_revenue)}"
                f"  gross_profit={_format_money(m.gross_profit)}"
            )

    entities = session.top_entities(limit)
    if entities:
        lines.append("Top Entities:")
        for rank, entity in enumerate(entities, start=1):
            lines.append(
                f"  {rank:>2}. {entity.name}  tpv={_format_money(entity.tpv)}"
                f"  net_revenue={_format_money(entity.net_revenue)}"
            )

    # 通貨別が空なら国別にフォールバック
    distribution = session.tpv_distribution("currency")
    label = "Currency"
    if not distribution:
        distribution = session.tpv_distribution("country")
        label = "Country"
    if distribution:
        lines.append(f"TPV by {label}:")
        for entry in distribution:
            lines.append(f"  {entry.name}  {_format_money(entry.value)}")

    return lines
