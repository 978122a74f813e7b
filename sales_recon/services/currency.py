from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any

import requests

from ..models.config_models import DEFAULT_RATES_TIMEOUT, DEFAULT_RATES_URL

"""USD exchange-rate cache and conversion.

The rate table maps an uppercase currency code to units of that currency per
1 USD (MYR: 4.5 means 1 USD = 4.5 MYR), so local amounts convert to USD by
division.

RateCache owns the process-wide table. Lifecycle: empty -> fetching ->
populated; clear() goes back to empty. Callers arriving while a fetch is in
flight wait on the same Future and receive the same table or exception. A
failed fetch is never cached, so the next call tries again.
"""

__all__ = [
    "ExchangeRates",
    "RateFetchError",
    "RateCache",
    "convert_to_usd",
    "get_default_cache",
    "fetch_exchange_rates",
    "clear_cache",
]

logger = logging.getLogger(__name__)

ExchangeRates = dict[str, float]


class RateFetchError(Exception):
    """Raised when the rate provider cannot be reached or returns bad data."""


def _parse_rates_payload(data: Any) -> ExchangeRates:
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        raise RateFetchError("Invalid exchange rate data format")
    table: ExchangeRates = {}
    for code, rate in rates.items():
        if isinstance(rate, bool) or not isinstance(rate, (int, float)):
            continue
        table[str(code).strip().upper()] = float(rate)
    table["USD"] = 1.0
    return table


class RateCache:
    """Single-flight, memoized holder of the USD rate table."""

    def __init__(
        self,
        url: str = DEFAULT_RATES_URL,
        timeout_seconds: float = DEFAULT_RATES_TIMEOUT,
        *,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._lock = threading.Lock()
        self._rates: ExchangeRates | None = None
        self._pending: Future[ExchangeRates] | None = None

    @property
    def state(self) -> str:
        with self._lock:
            if self._rates is not None:
                return "populated"
            if self._pending is not None:
                return "fetching"
            return "empty"

    @property
    def cached(self) -> ExchangeRates | None:
        """The populated table, or None (never triggers a fetch)."""
        return self._rates

    def configure(self, *, url: str | None = None, timeout_seconds: float | None = None) -> None:
        """Change provider settings; a different URL invalidates the table."""
        if url is not None and url != self.url:
            self.url = url
            self.clear()
        if timeout_seconds is not None:
            self.timeout_seconds = timeout_seconds

    def _request(self) -> ExchangeRates:
        http = self._session if self._session is not None else requests
        try:
            response = http.get(self.url, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RateFetchError(f"Failed to fetch exchange rates: {e}") from e
        try:
            payload = response.json()
        except ValueError as e:
            raise RateFetchError("Invalid exchange rate data format") from e
        return _parse_rates_payload(payload)

    def fetch_rates(self) -> ExchangeRates:
        """Return the cached table, fetching it once if needed.

        Raises:
            RateFetchError: the fetch this call waited on (or started) failed
        """
        with self._lock:
            if self._rates is not None:
                return self._rates
            if self._pending is not None:
                future = self._pending
                owner = False
            else:
                future = Future()
                self._pending = future
                owner = True

        if not owner:
            return future.result()

        try:
            rates = self._request()
        except BaseException as e:
            with self._lock:
                if self._pending is future:
                    self._pending = None
            future.set_exception(e)
            raise

        with self._lock:
            # clear() during the fetch discards the result
            if self._pending is future:
                self._rates = rates
                self._pending = None
        future.set_result(rates)
        logger.debug(f"exchange rates loaded: {len(rates)} currencies")
        return rates

    def clear(self) -> None:
        """Drop the cached table (and forget any in-flight fetch)."""
        with self._lock:
            self._rates = None
            self._pending = None


def convert_to_usd(amount: float, currency_code: str | None, rates: ExchangeRates) -> float:
    """Convert a local-currency amount to USD.

    Missing code -> treated as USD. Unknown code or zero rate -> warning and
    the amount is returned unchanged.
    """
    if not currency_code:
        return amount

    code = str(currency_code).strip().upper()
    if code == "USD":
        return amount

    rate = rates.get(code)
    if not rate:
        logger.warning(f"Exchange rate not found for currency: {code}")
        return amount

    return amount / rate


_default_cache = RateCache()


def get_default_cache() -> RateCache:
    return _default_cache


def fetch_exchange_rates() -> ExchangeRates:
    return _default_cache.fetch_rates()


def clear_cache() -> None:
    _default_cache.clear()
