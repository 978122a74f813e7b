from __future__ import annotations
import json

from sales_recon.models.error_record import FILE_LEVEL_SHEET, ErrorRecord


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="nov.csv",
        sheet=FILE_LEVEL_SHEET,
        row=-1,
        error_type="PARSE_FAILURE",
        message="CSV parsing errors: Too many fields",
    )
    data = json.loads(rec.to_json_line())
    assert data["file"] == "nov.csv"
    assert data["sheet"] == "<FILE_LEVEL>"
    assert data["row"] == -1
    assert data["error_type"] == "PARSE_FAILURE"
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == {"timestamp", "file", "sheet", "row", "error_type", "message"}


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("売上.xlsx", "Merchants", 3, "READ_ERROR", "読み込み失敗")
    line = rec.to_json_line()
    assert "売上.xlsx" in line
    assert json.loads(line)["message"] == "読み込み失敗"
