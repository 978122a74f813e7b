from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the reconciliation pipeline.

Populated by sales_recon.config.loader; every field has a default so a run
without any config file behaves sensibly.
"""

DEFAULT_RATES_URL = "https://open.er-api.com/v6/latest/USD"
DEFAULT_RATES_TIMEOUT = 10.0


@dataclass(frozen=True)
class RatesConfig:
    """Exchange-rate provider settings.

    Environment variables (SALES_RECON_RATES_URL / SALES_RECON_RATES_TIMEOUT)
    take precedence over the YAML values.
    """
    url: str = DEFAULT_RATES_URL
    timeout_seconds: float = DEFAULT_RATES_TIMEOUT
    enabled: bool = True  # False -> amounts stay in their source currency


@dataclass(frozen=True)
class ReconConfig:
    """Root configuration object for a processing run."""
    source_directory: str = "./data"  # scanned when no paths are given
    rates: RatesConfig = field(default_factory=RatesConfig)
    top_entities_limit: int = 10
    max_workers: int = 4  # parallel file reads
    profit_tolerance: float = 0.01  # absolute tolerance for the GP cross-check
