"""Rate store, sync engine and remote rate provider."""

from fxsync.rates.client import MockRateProvider, OpenExchangeRatesClient, RateProvider
from fxsync.rates.periods import ChartPeriod
from fxsync.rates.store import KnownCodesCache, RateStore
from fxsync.rates.sync import RateSynchronizer, SyncFailure, SyncReport

__all__ = [
    "RateProvider",
    "OpenExchangeRatesClient",
    "MockRateProvider",
    "ChartPeriod",
    "KnownCodesCache",
    "RateStore",
    "RateSynchronizer",
    "SyncFailure",
    "SyncReport",
]
