from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import RatesConfig, ReconConfig

"""Config loader.

Responsibilities:
- Load YAML config (default config/recon.yml; optional)
- Validate against config_schema.json (additionalProperties: false)
- Apply defaults, then environment overrides for the rate provider
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/recon.yml")

ENV_RATES_URL = "SALES_RECON_RATES_URL"
ENV_RATES_TIMEOUT = "SALES_RECON_RATES_TIMEOUT"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing/unreadable, or data fails validation
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _env_rates_overrides(rates: RatesConfig) -> RatesConfig:
    url = os.getenv(ENV_RATES_URL) or rates.url
    timeout_raw = os.getenv(ENV_RATES_TIMEOUT)
    timeout = rates.timeout_seconds
    if timeout_raw:
        try:
            timeout = float(timeout_raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_RATES_TIMEOUT} must be a number: {timeout_raw!r}") from e
        if timeout <= 0:
            raise ConfigError(f"{ENV_RATES_TIMEOUT} must be positive: {timeout_raw!r}")
    return RatesConfig(url=url, timeout_seconds=timeout, enabled=rates.enabled)


def load_config(path: Path | None = None) -> ReconConfig:
    """Load configuration.

    path=None reads DEFAULT_CONFIG_PATH when it exists and falls back to
    defaults otherwise; an explicit path must exist.
    """
    explicit = path is not None
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not path.exists():
        if explicit:
            raise ConfigError(f"config file not found: {path}")
        data: dict[str, Any] = {}
    else:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    defaults = ReconConfig()
    rates_raw = data.get("rates", {})
    rates = RatesConfig(
        url=rates_raw.get("url", defaults.rates.url),
        timeout_seconds=float(rates_raw.get("timeout_seconds", defaults.rates.timeout_seconds)),
        enabled=rates_raw.get("enabled", defaults.rates.enabled),
    )
    return ReconConfig(
        source_directory=data.get("source_directory", defaults.source_directory),
        rates=_env_rates_overrides(rates),
        top_entities_limit=data.get("top_entities_limit", defaults.top_entities_limit),
        max_workers=data.get("max_workers", defaults.max_workers),
        profit_tolerance=float(data.get("profit_tolerance", defaults.profit_tolerance)),
    )
