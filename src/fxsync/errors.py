"""Exception hierarchy for the rate store, the sync engine and the rate provider."""


class FxSyncError(Exception):
    """Base exception for all fxsync errors."""

    def __init__(self, message="An unspecified fxsync error occurred."):
        self.message = message
        super().__init__(self.message)


class EmptyStoreError(FxSyncError):
    """Raised when the rate table holds no rows at all."""

    def __init__(self, message="No data found in the rate store."):
        super().__init__(message)


class UnknownCurrencyError(FxSyncError, ValueError):
    """Raised when a query or write references a currency code the store does not know."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unknown currency code: {code!r}")


class ProviderError(FxSyncError):
    """Raised when the remote rate provider cannot be reached or answers with an HTTP error."""


class StoreWriteError(FxSyncError):
    """Base for storage-layer write failures; recoverable at the granularity of one item."""


class SchemaMutationError(StoreWriteError):
    """Raised when a currency column cannot be added to the rate table."""


class CatalogWriteError(StoreWriteError):
    """Raised when a currency name cannot be written to the catalog."""


class UpsertError(StoreWriteError):
    """Raised when a single rate observation cannot be written."""


class NoDataError(FxSyncError):
    """Raised when a cross rate cannot be computed from the stored observations."""


class ZeroRateError(NoDataError, ZeroDivisionError):
    """Raised when the denominator of a cross rate is zero."""
