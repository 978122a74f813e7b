from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..logging.init import log_summary, setup_logging
from ..models.config_models import ReconConfig
from ..parsing.reader import ParseFailure, parse_file
from ..services.currency import get_default_cache
from ..services.normalizer import normalize_headers
from ..services.session import ProcessingError, ReconSession, scan_input_files, split_supported
from ..services.summary import render_report, render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (override) and config
- Collect input files (explicit paths, directories, or source_directory)
- Run ReconSession.process_files(), print the report and the SUMMARY line
- Flush the JSON Lines error log when anything was recorded
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_VALIDATION_MISMATCH = 2

logger = logging.getLogger(__name__)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True: .env の値で既存環境変数を上書き (rate provider 設定を優先)。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Sales report reconciliation and KPI summary")
    p.add_argument("paths", nargs="*", type=Path, help="Input files or directories (default: source_directory)")
    p.add_argument("--config", type=Path, default=None, help="YAML config (default: config/recon.yml if present)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--no-rates", action="store_true", help="Skip exchange-rate fetch; keep source currencies")
    p.add_argument("--top", type=int, default=None, help="Number of entities in the ranking")
    p.add_argument("--strict", action="store_true", help="Exit 2 when the gross profit check fails")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet headers & first rows then exit")
    return p.parse_args(argv)


def _resolve_inputs(raw_paths: list[Path], cfg: ReconConfig) -> list[Path]:
    if not raw_paths:
        return scan_input_files(Path(cfg.source_directory))
    files: list[Path] = []
    for path in raw_paths:
        if path.is_dir():
            files.extend(scan_input_files(path))
        elif path.exists():
            files.append(path)
        else:
            raise ProcessingError(f"input not found: {path}")
    return files


def _inspect_data(paths: list[Path]) -> int:
    supported, skipped = split_supported(paths)
    for f in skipped:
        print(f"SKIP: {f.name} (unsupported type)")
    if not supported:
        print("inspect: no input files")
        return EXIT_SUCCESS
    for f in supported:
        print(f"FILE: {f.name}")
        try:
            parsed = parse_file(f)
        except ParseFailure as e:
            print(f"  read_error: {e}")
            continue
        for sheet in parsed.sheets:
            label = sheet.sheet_name or "<csv>"
            print(f"  SHEET: {label} source_type={sheet.source_type.value} rows={len(sheet)}")
            print(f"    mapping={normalize_headers(sheet.columns)}")
            # datetime 含む場合に備え isoformat で文字列化
            sample = [
                {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in r.items()}
                for r in sheet.rows[:3]
            ]
            print("    sample_rows=", sample)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    app_logger = setup_logging()

    # None のときのみシステム引数を読む (空リストはそのまま使う)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    if args.debug:
        for h in app_logger.handlers:
            h.setLevel(logging.DEBUG)
        app_logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.no_rates:
        cfg = replace(cfg, rates=replace(cfg.rates, enabled=False))

    try:
        paths = _resolve_inputs(args.paths, cfg)
    except ProcessingError as e:
        logger.error(f"{e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(paths)

    rate_cache = get_default_cache()
    rate_cache.configure(url=cfg.rates.url, timeout_seconds=cfg.rates.timeout_seconds)
    session = ReconSession(cfg, rate_cache=rate_cache)
    session.process_files(paths)

    error_log_path = session.error_log.flush()
    if error_log_path is not None:
        logger.info(f"error log written: {error_log_path}")

    if session.error is not None:
        logger.error(f"processing: {session.error}")
        return EXIT_FATAL

    for line in render_report(session, args.top):
        logger.info(line)

    metrics = session.metrics or session.calculate_metrics()
    files = session.last_result.total_files if session.last_result is not None else 0
    summary_line = render_summary_line(metrics, files)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(summary_line[len("SUMMARY "):])

    if args.strict and not metrics.gross_profit_validation.matches:
        logger.warning("gross profit check failed")
        return EXIT_VALIDATION_MISMATCH
    return EXIT_SUCCESS
