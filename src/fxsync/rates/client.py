"""Open Exchange Rates API client with retry and mock support."""

import logging
import math
import time
from abc import ABC, abstractmethod
from datetime import date

import requests

from fxsync.errors import ProviderError
from fxsync.rates.schema import to_iso

logger = logging.getLogger(__name__)

OPEN_EXCHANGE_RATES_BASE_URL = "https://openexchangerates.org/api"
HISTORICAL_URL = OPEN_EXCHANGE_RATES_BASE_URL + "/historical/{date}.json"
CURRENCIES_URL = OPEN_EXCHANGE_RATES_BASE_URL + "/currencies.json"


class RateProvider(ABC):
    """Abstract interface for the remote source of daily USD-based rates."""

    @abstractmethod
    def rates_for_date(self, day: date | str) -> dict[str, float]:
        """Fetch every USD-based rate published for ``day``.

        Returns:
            Dict mapping currency code to units per 1 USD, e.g. {"EUR": 0.86}.
            Empty when the provider answers without usable rates.

        Raises:
            ProviderError: the provider could not be reached.
        """

    @abstractmethod
    def display_name_for_code(self, code: str) -> str | None:
        """Return the full display name for ``code``, or None if unknown."""


def _parse_rates(payload) -> dict[str, float]:
    rates = {}
    for code, value in payload.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning("Ignoring non-numeric rate for %s: %r", code, value)
            continue
        if not math.isfinite(value):
            logger.warning("Ignoring non-finite rate for %s: %r", code, value)
            continue
        rates[code] = float(value)
    return rates


class OpenExchangeRatesClient(RateProvider):
    """Real openexchangerates.org client with exponential backoff retry."""

    def __init__(
        self,
        app_id: str,
        max_retries: int = 3,
        base_delay: float = 1.0,
        timeout: float = 10.0,
    ):
        self._app_id = app_id
        self._max_retries = max(1, max_retries)
        self._base_delay = base_delay
        self._timeout = timeout
        self._names: dict[str, str] | None = None

    def _get(self, url: str, params: dict | None = None) -> requests.Response:
        for attempt in range(self._max_retries):
            try:
                resp = requests.get(url, params=params, timeout=self._timeout)
                if resp.status_code >= 500:
                    resp.raise_for_status()
                return resp
            except requests.RequestException as e:
                if attempt < self._max_retries - 1:
                    delay = self._base_delay * (2**attempt)
                    logger.warning(
                        "Attempt %d failed: %s. Retrying in %.1fs...",
                        attempt + 1,
                        e,
                        delay,
                    )
                    time.sleep(delay)
                else:
                    raise ProviderError(f"Request to {url} failed: {e}") from e

    @staticmethod
    def _json_body(resp: requests.Response, what: str) -> dict | None:
        text = resp.text or ""
        if not text.strip().startswith("{"):
            logger.error("API did not return JSON for %s: %.200s", what, text)
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.error("Malformed JSON for %s: %s", what, e)
            return None

    def rates_for_date(self, day: date | str) -> dict[str, float]:
        iso = to_iso(day)
        resp = self._get(HISTORICAL_URL.format(date=iso), params={"app_id": self._app_id})
        data = self._json_body(resp, iso)
        if data is None:
            return {}
        rates = data.get("rates")
        if not isinstance(rates, dict):
            logger.error("API error for %s: %s", iso, data.get("message", "unknown error"))
            return {}
        return _parse_rates(rates)

    def currency_names(self) -> dict[str, str]:
        """All code -> name pairs; fetched once per client after the first success."""
        if self._names is not None:
            return self._names
        resp = self._get(CURRENCIES_URL)
        data = self._json_body(resp, "currency names")
        if data is None:
            return {}
        self._names = {code: name for code, name in data.items() if isinstance(name, str)}
        return self._names

    def display_name_for_code(self, code: str) -> str | None:
        return self.currency_names().get(code)


class MockRateProvider(RateProvider):
    """Mock provider returning fixed rates and names, for offline runs and tests."""

    MOCK_RATES = {
        "USD": 1.0,
        "EUR": 0.86,
        "GBP": 0.73,
        "ILS": 3.21,
    }
    MOCK_NAMES = {
        "USD": "United States Dollar",
        "EUR": "Euro",
        "GBP": "British Pound Sterling",
        "ILS": "Israeli New Sheqel",
    }

    def __init__(self, rates: dict[str, float] | None = None, names: dict[str, str] | None = None):
        self._rates = dict(self.MOCK_RATES if rates is None else rates)
        self._names = dict(self.MOCK_NAMES if names is None else names)

    def rates_for_date(self, day: date | str) -> dict[str, float]:
        return dict(self._rates)

    def display_name_for_code(self, code: str) -> str | None:
        return self._names.get(code)
