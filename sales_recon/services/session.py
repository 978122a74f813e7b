from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ReconConfig
from ..models.error_record import FILE_LEVEL_SHEET, ErrorRecord
from ..models.metrics import (
    DateRange,
    DistributionEntry,
    EntityPerformance,
    Metrics,
    MonthlyAggregation,
)
from ..models.parsed_file import FileType, ParsedFile
from ..models.processing_result import FileStat, ProcessingResult
from ..models.record import CanonicalRecord
from ..parsing.reader import ParseFailure, ReadError, detect_file_type, parse_file
from . import metrics as kpi
from .consolidator import consolidate
from .currency import ExchangeRates, RateCache, RateFetchError, get_default_cache
from .progress import ProgressTracker

"""Session orchestration for the reconciliation pipeline.

ReconSession owns the state the presentation layer reads: the canonical
record sequence, the KPI snapshot, the resolved date range and the last
error. process_files() is the single entry point:

1. drop unsupported files (logged, never fatal)
2. fetch exchange rates once per session (failure -> no conversion)
3. read every file (thread pool; all reads finish before step 4)
4. consolidate, derive the date range, recompute metrics
5. replace the previous run's state in one step

A parse failure aborts the whole run and only touches ``error``. Anything
else that goes wrong is wrapped in ProcessingError and reported the same way;
when several files fail, the one earliest in the input is reported.
"""

__all__ = [
    "ProcessingError",
    "ReconSession",
    "split_supported",
    "scan_input_files",
]

logger = logging.getLogger(__name__)

RATES_SOURCE = "<RATES>"


class ProcessingError(Exception):
    """Base exception for processing errors."""
    pass


def split_supported(paths: Iterable[Path | str]) -> tuple[list[Path], list[Path]]:
    """Partition paths into (supported, skipped) keeping input order."""
    supported: list[Path] = []
    skipped: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if detect_file_type(path) == FileType.UNKNOWN:
            skipped.append(path)
        else:
            supported.append(path)
    return supported, skipped


def scan_input_files(directory: Path) -> list[Path]:
    """Scan directory for .csv/.xlsx/.xls files (non-recursive, sorted by name).

    Raises:
        ProcessingError: directory doesn't exist or can't be read
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    try:
        files = [p for p in directory.iterdir() if p.is_file()]
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e
    supported, _ = split_supported(sorted(files, key=lambda p: p.name))
    return supported


def _timed_parse(path: Path) -> tuple[ParsedFile, float]:
    start = datetime.now(UTC)
    parsed = parse_file(path)
    return parsed, (datetime.now(UTC) - start).total_seconds()


class ReconSession:
    """Session-scoped pipeline state.

    The exchange-rate table survives reset(); only clear_rate_cache()
    forgets it.
    """

    def __init__(
        self,
        config: ReconConfig | None = None,
        *,
        rate_cache: RateCache | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config or ReconConfig()
        self.rate_cache = rate_cache if rate_cache is not None else get_default_cache()
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.exchange_rates: ExchangeRates | None = None
        self.is_loading = False
        self.error: str | None = None
        self.metrics: Metrics | None = None
        self.date_range = DateRange()
        self.last_result: ProcessingResult | None = None
        self._records: tuple[CanonicalRecord, ...] = ()

    @property
    def records(self) -> tuple[CanonicalRecord, ...]:
        return self._records

    # ------------------------------------------------------------------
    # processing
    # ------------------------------------------------------------------

    def process_files(self, paths: Iterable[Path | str]) -> None:
        """Run the pipeline over ``paths`` and replace the session state.

        Failures are reported through ``error``; nothing is raised.
        """
        self.is_loading = True
        self.error = None
        start_time = datetime.now(UTC)
        try:
            supported, skipped = split_supported(paths)
            for path in skipped:
                logger.info(f"skipping unsupported file: {path.name}")

            rates = self._load_rates() if supported else None
            parsed_files, file_stats = self._read_all(supported)
            records, new_range, new_metrics = self._build(parsed_files, rates)
        except ParseFailure as e:
            self.error = str(e)
            logger.error(f"processing aborted: {e}")
            return
        except ProcessingError as e:
            self.error = str(e)
            logger.exception(str(e))
            return
        finally:
            self.is_loading = False

        self._records = tuple(records)
        self.date_range = new_range
        self.metrics = new_metrics
        end_time = datetime.now(UTC)
        self.last_result = ProcessingResult(
            total_files=len(supported),
            skipped_files=len(skipped),
            total_records=len(records),
            rates_applied=bool(rates),
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - start_time).total_seconds(),
            file_stats=file_stats,
        )
        logger.info(
            f"processed files={len(supported)} skipped={len(skipped)} records={len(records)} "
            f"converted={'yes' if rates else 'no'}"
        )

    def _build(
        self, parsed_files: list[ParsedFile], rates: ExchangeRates | None
    ) -> tuple[list[CanonicalRecord], DateRange, Metrics]:
        """Consolidate and derive; any failure here becomes a ProcessingError."""
        try:
            records = consolidate(parsed_files, rates)
            new_range = kpi.date_range(records)
            new_metrics = kpi.calculate_metrics(records, self.config.profit_tolerance)
        except Exception as e:
            self.error_log.append(
                ErrorRecord.create("<SESSION>", FILE_LEVEL_SHEET, -1, "PROCESSING_ERROR", str(e))
            )
            raise ProcessingError(f"Failed to process files: {e}") from e
        return records, new_range, new_metrics

    def _load_rates(self) -> ExchangeRates | None:
        if not self.config.rates.enabled:
            return None
        if self.exchange_rates is not None:
            return self.exchange_rates
        try:
            rates = self.rate_cache.fetch_rates()
        except RateFetchError as e:
            # 換算なしで続行 (次回 process_files で再試行)
            logger.warning(f"Failed to fetch exchange rates, proceeding without conversion: {e}")
            self.error_log.append(
                ErrorRecord.create(RATES_SOURCE, FILE_LEVEL_SHEET, -1, "RATE_FETCH_FAILURE", str(e))
            )
            return None
        self.exchange_rates = rates
        return rates

    def _read_all(self, paths: list[Path]) -> tuple[list[ParsedFile], list[FileStat]]:
        """Read every file; returns results in input order once all are done.

        Every file is read even when one fails, so the reported failure is
        always the one with the lowest input index.

        Raises:
            ParseFailure: a file could not be read or parsed
            ProcessingError: a reader raised anything else
        """
        if not paths:
            return [], []

        results: list[ParsedFile | None] = [None] * len(paths)
        stats: list[FileStat | None] = [None] * len(paths)
        failures: dict[int, Exception] = {}
        workers = max(1, min(self.config.max_workers, len(paths)))

        with ProgressTracker(len(paths)) as progress, ThreadPoolExecutor(max_workers=workers) as pool:
            futures: dict[Future[tuple[ParsedFile, float]], int] = {
                pool.submit(_timed_parse, path): index for index, path in enumerate(paths)
            }
            for future in as_completed(futures):
                index = futures[future]
                path = paths[index]
                try:
                    parsed, elapsed = future.result()
                except Exception as e:
                    failures[index] = e
                    progress.finish_file(path)
                    continue
                results[index] = parsed
                stats[index] = FileStat(
                    file_name=path.name,
                    file_type=parsed.file_type.value,
                    sheet_count=len(parsed.sheets),
                    row_count=parsed.total_rows,
                    elapsed_seconds=elapsed,
                )
                progress.finish_file(path, parsed.total_rows)
                logger.debug(f"read {path.name}: sheets={len(parsed.sheets)} rows={parsed.total_rows}")

        if failures:
            # input order, not completion order
            for index in sorted(failures):
                e = failures[index]
                if isinstance(e, ReadError):
                    error_type = "READ_ERROR"
                elif isinstance(e, ParseFailure):
                    error_type = "PARSE_FAILURE"
                else:
                    error_type = "PROCESSING_ERROR"
                self.error_log.append(
                    ErrorRecord.create(paths[index].name, FILE_LEVEL_SHEET, -1, error_type, str(e))
                )
            first = min(failures)
            e = failures[first]
            if isinstance(e, ParseFailure):
                raise ParseFailure(f"{paths[first].name}: {e}") from e
            raise ProcessingError(f"Failed to process files: {paths[first].name}: {e}") from e

        return [r for r in results if r is not None], [s for s in stats if s is not None]

    # ------------------------------------------------------------------
    # derived views
    # ------------------------------------------------------------------

    def calculate_metrics(self) -> Metrics:
        """Recompute the KPI snapshot from the current records."""
        self.metrics = kpi.calculate_metrics(self._records, self.config.profit_tolerance)
        return self.metrics

    def monthly_aggregations(self) -> list[MonthlyAggregation]:
        return kpi.monthly_aggregations(self._records)

    def peak_month(self) -> MonthlyAggregation | None:
        return kpi.peak_month(self._records)

    def lowest_month(self) -> MonthlyAggregation | None:
        return kpi.lowest_month(self._records)

    def top_entities(self, limit: int | None = None) -> list[EntityPerformance]:
        return kpi.top_entities(self._records, self._limit(limit), kpi.EntityScope.COMBINED)

    def top_merchants(self, limit: int | None = None) -> list[EntityPerformance]:
        return kpi.top_entities(self._records, self._limit(limit), kpi.EntityScope.MERCHANT)

    def top_channels(self, limit: int | None = None) -> list[EntityPerformance]:
        return kpi.top_entities(self._records, self._limit(limit), kpi.EntityScope.CHANNEL)

    def tpv_distribution(self, by: Literal["currency", "country"] = "currency") -> list[DistributionEntry]:
        return kpi.tpv_distribution(self._records, by)

    def _limit(self, limit: int | None) -> int:
        return self.config.top_entities_limit if limit is None else limit

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear records, metrics, date range and error; keep exchange rates."""
        self._records = ()
        self.metrics = None
        self.date_range = DateRange()
        self.error = None
        self.last_result = None

    def clear_rate_cache(self) -> None:
        """Forget the session's and the process-wide exchange-rate table."""
        self.exchange_rates = None
        self.rate_cache.clear()
