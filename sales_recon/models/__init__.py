"""Domain models for the sales-report reconciliation pipeline.

Records, parser output, KPI snapshots, run results and configuration.
"""

from .config_models import RatesConfig, ReconConfig
from .error_record import ErrorRecord
from .metrics import (
    DateRange,
    DistributionEntry,
    EntityPerformance,
    Metrics,
    MonthlyAggregation,
    ProfitValidation,
)
from .parsed_file import FileType, ParsedFile, SheetRows
from .processing_result import FileStat, ProcessingResult
from .record import CanonicalRecord, SourceType

__all__ = [
    # Configuration models
    "RatesConfig",
    "ReconConfig",
    # Parsing / records
    "FileType",
    "ParsedFile",
    "SheetRows",
    "CanonicalRecord",
    "SourceType",
    # Derived views
    "DateRange",
    "DistributionEntry",
    "EntityPerformance",
    "Metrics",
    "MonthlyAggregation",
    "ProfitValidation",
    # Run bookkeeping
    "ErrorRecord",
    "FileStat",
    "ProcessingResult",
]
