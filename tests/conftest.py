# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pandas as pd
import pytest

from sales_recon.logging.init import reset_logging
from sales_recon.services.currency import RateCache

SAMPLE_RATES = {"USD": 1.0, "MYR": 4.0, "IDR": 16000.0, "SGD": 1.25, "ZZZ": 0.0}


@pytest.fixture(autouse=True)
def _clean_logging():
    # CLI テストが propagate=False にするため毎回戻す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("SALES_RECON_RATES_URL", raising=False)
        monkeypatch.delenv("SALES_RECON_RATES_TIMEOUT", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
rates:
  url: https://rates.example.test/v6/latest/USD
  timeout_seconds: 5
  enabled: true
top_entities_limit: 5
max_workers: 2
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "recon.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def make_workbook(path: Path, sheets: dict[str, list[dict[str, object]]]) -> Path:
    """Write one DataFrame per sheet (header row + records)."""
    with pd.ExcelWriter(path) as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, index=False)
    return path


def write_csv(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture()
def rates_response():
    """Factory for a fake requests.Response carrying ``payload``."""
    def _make(payload: object, status_ok: bool = True) -> MagicMock:
        response = MagicMock()
        response.json.return_value = payload
        if not status_ok:
            import requests
            response.raise_for_status.side_effect = requests.HTTPError("503 Service Unavailable")
        return response
    return _make


@pytest.fixture()
def rate_cache(rates_response) -> RateCache:
    """RateCache whose HTTP session always answers with SAMPLE_RATES."""
    session = MagicMock()
    session.get.return_value = rates_response({"result": "success", "rates": dict(SAMPLE_RATES)})
    return RateCache("https://rates.example.test/v6/latest/USD", 5, session=session)


@pytest.fixture()
def xlsx_factory(temp_workdir: Path):
    def _make(name: str, sheets: dict[str, list[dict[str, object]]]) -> Path:
        return make_workbook(temp_workdir / "data" / name, sheets)
    return _make


@pytest.fixture()
def csv_factory(temp_workdir: Path):
    def _make(name: str, text: str) -> Path:
        return write_csv(temp_workdir / "data" / name, text)
    return _make
