from __future__ import annotations

import pytest

from sales_recon.services.normalizer import COLUMN_SYNONYMS, normalize_header, normalize_headers


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Sum of Billing", "tpv"),
        ("  SUM OF BILLING  ", "tpv"),
        ("Total Payment Volume", "tpv"),
        ("Sum of Comm", "net_revenue"),
        ("Net Revenue", "net_revenue"),
        ("Sum of Direct Cost", "direct_cost"),
        ("Sum of Scheme Fee", "scheme_fees"),
        ("Scheme Fees", "scheme_fees"),
        ("Sum of MRA Cost", "mra_cost"),
        ("Sum of Gross Profit", "gross_profit"),
        ("GP", "gross_profit"),
        ("No of Transaction", "transaction_count"),
        ("Entity Reporting Currency", "currency"),
        ("Merchant Country", "country"),
        ("Month", "month"),
    ],
)
def test_exact_matches(header: str, expected: str):
    assert normalize_header(header) == expected


def test_fuzzy_match_header_contains_key():
    # "billing" が最初にヒットする
    assert normalize_header("Billing Amount (Local)") == "tpv"
    assert normalize_header("Total Commission") == "net_revenue"


def test_fuzzy_match_key_contains_header():
    # "sum of billing" contains "sum of bill"
    assert normalize_header("Sum of Bill") == "tpv"


def test_fuzzy_tie_resolved_by_table_order():
    # contains both "billing" (tpv) and "revenue" (net_revenue); tpv entries come first
    assert normalize_header("Billing Revenue") == "tpv"


def test_unknown_header_kept_trimmed():
    assert normalize_header("  Merchant ID ") == "Merchant ID"
    assert normalize_header("Region") == "Region"


def test_empty_header_not_fuzzy_matched():
    assert normalize_header("") == ""
    assert normalize_header("   ") == ""


def test_canonical_names_are_fixed_points():
    for _, canonical in COLUMN_SYNONYMS:
        assert normalize_header(canonical) == canonical


def test_normalize_headers_mapping():
    mapping = normalize_headers(["Company", "Sum of Billing", "Remark"])
    assert mapping == {"Company": "company", "Sum of Billing": "tpv", "Remark": "Remark"}


def test_canonical_names_match_exactly_only():
    assert normalize_header("net_revenue") == "net_revenue"
    assert normalize_header(" Gross_Profit ") == "gross_profit"
    # "_" は canonical 名の部分文字列だが fuzzy 対象外
    assert normalize_header("_") == "_"
    assert normalize_header("net_revenue_usd") == "net_revenue_usd"
    assert all("_" not in key for key, _ in COLUMN_SYNONYMS)
