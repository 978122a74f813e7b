from __future__ import annotations

import logging
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from sales_recon.services import currency
from sales_recon.services.currency import (
    RateCache,
    RateFetchError,
    clear_cache,
    convert_to_usd,
    fetch_exchange_rates,
    get_default_cache,
)


URL = "https://rates.example.test/v6/latest/USD"
SAMPLE_RATES = {"USD": 1.0, "MYR": 4.0, "IDR": 16000.0, "SGD": 1.25, "ZZZ": 0.0}


def test_fetch_rates_normalizes_table(rate_cache: RateCache):
    assert rate_cache.state == "empty"
    rates = rate_cache.fetch_rates()
    assert rates["USD"] == 1.0
    assert rates["MYR"] == 4.0
    assert rate_cache.state == "populated"
    rate_cache._session.get.assert_called_once_with(URL, timeout=5)


def test_fetch_rates_memoized(rate_cache: RateCache):
    first = rate_cache.fetch_rates()
    second = rate_cache.fetch_rates()
    assert first is second
    assert rate_cache._session.get.call_count == 1


def test_payload_codes_uppercased_and_non_numeric_dropped(rates_response):
    session = MagicMock()
    session.get.return_value = rates_response({"rates": {"myr": 4.5, "XXX": "n/a", "FLAG": True}})
    rates = RateCache(URL, 5, session=session).fetch_rates()
    assert rates == {"MYR": 4.5, "USD": 1.0}


def test_concurrent_callers_share_one_fetch(rates_response):
    release = threading.Event()
    started = threading.Event()
    session = MagicMock()

    def slow_get(url, timeout):
        started.set()
        release.wait(timeout=5)
        return rates_response({"rates": dict(SAMPLE_RATES)})

    session.get.side_effect = slow_get
    cache = RateCache(URL, 5, session=session)
    results: list[dict[str, float]] = []

    def worker():
        results.append(cache.fetch_rates())

    threads = [threading.Thread(target=worker) for _ in range(5)]
    threads[0].start()
    assert started.wait(timeout=5)
    assert cache.state == "fetching"
    for t in threads[1:]:
        t.start()
    release.set()
    for t in threads:
        t.join(timeout=5)

    assert session.get.call_count == 1
    assert len(results) == 5
    assert all(r is results[0] for r in results)


def test_failed_fetch_is_not_cached(rates_response):
    session = MagicMock()
    session.get.side_effect = [
        requests.ConnectionError("connection refused"),
        rates_response({"rates": {"MYR": 4.0}}),
    ]
    cache = RateCache(URL, 5, session=session)
    with pytest.raises(RateFetchError, match="Failed to fetch exchange rates"):
        cache.fetch_rates()
    assert cache.state == "empty"
    # 次の呼び出しで再取得
    assert cache.fetch_rates()["MYR"] == 4.0
    assert session.get.call_count == 2


class _CountingFuture(currency.Future):
    """Future that signals each time a caller starts waiting on it."""

    waiting = threading.Semaphore(0)

    def result(self, timeout=None):
        _CountingFuture.waiting.release()
        return super().result(timeout)


def test_concurrent_callers_share_one_failed_fetch(monkeypatch, rates_response):
    release = threading.Event()
    started = threading.Event()
    session = MagicMock()

    def failing_get(url, timeout):
        started.set()
        release.wait(timeout=5)
        raise requests.ConnectionError("connection refused")

    session.get.side_effect = failing_get
    _CountingFuture.waiting = threading.Semaphore(0)
    monkeypatch.setattr(currency, "Future", _CountingFuture)
    cache = RateCache(URL, 5, session=session)
    errors: list[BaseException] = []

    def worker():
        try:
            cache.fetch_rates()
        except RateFetchError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    threads[0].start()
    assert started.wait(timeout=5)
    for t in threads[1:]:
        t.start()
    # 4 waiters are blocked on the in-flight fetch before it fails
    for _ in range(4):
        assert _CountingFuture.waiting.acquire(timeout=5)
    release.set()
    for t in threads:
        t.join(timeout=5)

    assert session.get.call_count == 1
    assert len(errors) == 5
    assert all(e is errors[0] for e in errors)
    assert cache.state == "empty"

    session.get.side_effect = None
    session.get.return_value = rates_response({"rates": {"MYR": 4.0}})
    assert cache.fetch_rates()["MYR"] == 4.0
    assert session.get.call_count == 2


def test_http_error_status(rates_response):
    session = MagicMock()
    session.get.return_value = rates_response({}, status_ok=False)
    with pytest.raises(RateFetchError):
        RateCache(URL, 5, session=session).fetch_rates()


@pytest.mark.parametrize("payload", [{"result": "error"}, {"rates": ["MYR", 4.0]}, ["rates"], None])
def test_malformed_payload(rates_response, payload):
    session = MagicMock()
    session.get.return_value = rates_response(payload)
    with pytest.raises(RateFetchError, match="Invalid exchange rate data format"):
        RateCache(URL, 5, session=session).fetch_rates()


def test_invalid_json_body():
    session = MagicMock()
    session.get.return_value.json.side_effect = ValueError("Expecting value")
    with pytest.raises(RateFetchError, match="Invalid exchange rate data format"):
        RateCache(URL, 5, session=session).fetch_rates()


def test_clear_forces_refetch(rate_cache: RateCache):
    rate_cache.fetch_rates()
    rate_cache.clear()
    assert rate_cache.state == "empty"
    assert rate_cache.cached is None
    rate_cache.fetch_rates()
    assert rate_cache._session.get.call_count == 2


def test_configure_new_url_invalidates(rate_cache: RateCache):
    rate_cache.fetch_rates()
    rate_cache.configure(url=URL, timeout_seconds=7)
    assert rate_cache.state == "populated"
    assert rate_cache.timeout_seconds == 7
    rate_cache.configure(url="https://other.example.test/latest")
    assert rate_cache.state == "empty"


def test_convert_usd_identity():
    assert convert_to_usd(123.45, "USD", SAMPLE_RATES) == 123.45
    assert convert_to_usd(123.45, " usd ", {}) == 123.45


def test_convert_missing_code_is_identity():
    assert convert_to_usd(50.0, None, SAMPLE_RATES) == 50.0
    assert convert_to_usd(50.0, "", SAMPLE_RATES) == 50.0


def test_convert_divides_by_rate():
    assert convert_to_usd(400.0, "MYR", SAMPLE_RATES) == pytest.approx(100.0)
    assert convert_to_usd(160000.0, " idr ", SAMPLE_RATES) == pytest.approx(10.0)


def test_convert_unknown_code_warns_and_keeps_amount(caplog):
    with caplog.at_level(logging.WARNING):
        assert convert_to_usd(75.0, "abc", SAMPLE_RATES) == 75.0
    assert "Exchange rate not found for currency: ABC" in caplog.text


def test_convert_zero_rate_keeps_amount(caplog):
    with caplog.at_level(logging.WARNING):
        assert convert_to_usd(10.0, "ZZZ", SAMPLE_RATES) == 10.0
    assert "ZZZ" in caplog.text


def test_interrupted_fetch_resets_state(rates_response):
    session = MagicMock()
    session.get.side_effect = [KeyboardInterrupt(), rates_response({"rates": {"MYR": 4.0}})]
    cache = RateCache(URL, 5, session=session)
    with pytest.raises(KeyboardInterrupt):
        cache.fetch_rates()
    # 次の呼び出しは待たずに再取得する
    assert cache.state == "empty"
    assert cache.fetch_rates()["MYR"] == 4.0
    assert session.get.call_count == 2


def test_module_level_fetch_uses_default_cache(rates_response):
    clear_cache()
    try:
        with patch("sales_recon.services.currency.requests.get") as get:
            get.return_value = rates_response({"rates": {"SGD": 1.25}})
            rates = fetch_exchange_rates()
            assert fetch_exchange_rates() is rates
        default = get_default_cache()
        get.assert_called_once_with(default.url, timeout=default.timeout_seconds)
        assert rates == {"SGD": 1.25, "USD": 1.0}
        assert default.state == "populated"
    finally:
        clear_cache()
    assert get_default_cache().state == "empty"
