from __future__ import annotations

from collections.abc import Iterable

"""Header normalization: arbitrary export column names -> canonical fields.

Matching order for a trimmed, lowercased header:
1. exact match against COLUMN_SYNONYMS, or against a canonical field name
   (canonical names never take part in the fuzzy scan)
2. first entry (declaration order) where the header contains the key or the
   key contains the header
3. otherwise the trimmed original header is kept

The table order is part of the contract: fuzzy ties are resolved by it, so
entries must not be reordered.
"""

__all__ = [
    "COLUMN_SYNONYMS",
    "normalize_header",
    "normalize_headers",
]

COLUMN_SYNONYMS: tuple[tuple[str, str], ...] = (
    # TPV
    ("sum of billing", "tpv"),
    ("billing", "tpv"),
    ("total payment volume", "tpv"),
    ("tpv", "tpv"),
    # Net revenue
    ("sum of comm", "net_revenue"),
    ("commission", "net_revenue"),
    ("net revenue", "net_revenue"),
    ("revenue", "net_revenue"),
    # Direct cost
    ("sum of direct cost", "direct_cost"),
    ("direct cost", "direct_cost"),
    # Scheme fees (singular / plural)
    ("sum of scheme fee", "scheme_fees"),
    ("sum of scheme fees", "scheme_fees"),
    ("scheme fee", "scheme_fees"),
    ("scheme fees", "scheme_fees"),
    # MRA cost
    ("sum of mra cost", "mra_cost"),
    ("mra cost", "mra_cost"),
    # Gross profit
    ("sum of gross profit", "gross_profit"),
    ("gross profit", "gross_profit"),
    ("gp", "gross_profit"),
    # Transaction count
    ("no of transaction", "transaction_count"),
    ("number of transactions", "transaction_count"),
    ("transactions", "transaction_count"),
    # Descriptive fields
    ("month", "month"),
    ("date", "date"),
    ("company", "company"),
    ("channel", "channel"),
    ("currency", "currency"),
    ("entity reporting currency", "currency"),
    ("reporting currency", "currency"),
    ("country", "country"),
    ("merchant country", "country"),
)

_EXACT: dict[str, str] = {}
for _key, _field in COLUMN_SYNONYMS:
    _EXACT.setdefault(_key, _field)

# re-normalizing a canonical name is a no-op; exact match only
_CANONICAL_FIELDS = frozenset(field for _, field in COLUMN_SYNONYMS)


def normalize_header(header: str) -> str:
    normalized = str(header).strip().lower()
    if not normalized:
        # "" would be a substring of every key
        return str(header).strip()

    exact = _EXACT.get(normalized)
    if exact is not None:
        return exact
    if normalized in _CANONICAL_FIELDS:
        return normalized

    for key, canonical in COLUMN_SYNONYMS:
        if key in normalized or normalized in key:
            return canonical

    return str(header).strip()


def normalize_headers(headers: Iterable[str]) -> dict[str, str]:
    """Map each original header to its canonical field (or itself)."""
    return {header: normalize_header(header) for header in headers}
