from __future__ import annotations

from pathlib import Path

import pytest

from sales_recon.cli import EXIT_FATAL, EXIT_SUCCESS, EXIT_VALIDATION_MISMATCH
from sales_recon.cli import main as cli_main
from sales_recon.services.currency import clear_cache

"""Exit code contract: 0 success, 1 fatal, 2 gross profit mismatch under --strict."""


@pytest.fixture(autouse=True)
def _fresh_rate_cache():
    clear_cache()
    yield
    clear_cache()


def test_exit_code_values():
    assert (EXIT_SUCCESS, EXIT_FATAL, EXIT_VALIDATION_MISMATCH) == (0, 1, 2)


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # 明示した設定ファイルが無い → exit 1
    code = cli_main(["--config", "config/not_there.yml"])
    captured = capsys.readouterr()
    assert code == EXIT_FATAL
    assert "ERROR config:" in captured.out


def test_exit_code_success(temp_workdir: Path, write_config, csv_factory, capsys):
    csv_factory("ok.csv", "Company,Sum of Comm,Sum of Direct Cost,Sum of Gross Profit\nAcme,100,30,70\n")
    code = cli_main(["--no-rates", "--strict"])
    assert code == EXIT_SUCCESS
    assert "gp_check=ok" in capsys.readouterr().out


def test_exit_code_fatal_on_parse_failure(temp_workdir: Path, write_config, csv_factory):
    csv_factory("bad.csv", "Company,TPV\nAcme,1,2,3\n")
    assert cli_main(["--no-rates"]) == EXIT_FATAL


def test_exit_code_mismatch_only_when_strict(temp_workdir: Path, write_config, csv_factory):
    csv_factory("gp.csv", "Company,Sum of Comm,Sum of Gross Profit\nAcme,100,60\n")
    assert cli_main(["--no-rates"]) == EXIT_SUCCESS
    assert cli_main(["--no-rates", "--strict"]) == EXIT_VALIDATION_MISMATCH
