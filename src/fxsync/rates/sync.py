"""Day-by-day synchronization of the rate store with a remote rate provider."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable

from fxsync.errors import ProviderError, StoreWriteError, UnknownCurrencyError
from fxsync.rates.client import RateProvider
from fxsync.rates.store import RateStore

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]
StatusSink = Callable[[str], None]

STAGE_FETCH = "fetch"
STAGE_SCHEMA = "schema"
STAGE_CATALOG = "catalog"
STAGE_UPSERT = "upsert"


def display_name_or_code(provider: RateProvider, code: str) -> str:
    """Full name from the provider, falling back to the code itself."""
    try:
        name = provider.display_name_for_code(code)
    except ProviderError as e:
        logger.warning("API call failed for currency name %s: %s", code, e)
        return code
    if name is None or not name.strip():
        return code
    return name


@dataclass(frozen=True)
class SyncFailure:
    """One skipped unit of work: a whole date (fetch) or one currency on one date."""

    date: str
    stage: str
    message: str
    code: str | None = None


@dataclass
class SyncReport:
    aborted: bool = False
    first_date: str | None = None
    last_date: str | None = None
    total_days: int = 0
    days_processed: int = 0
    rates_written: int = 0
    new_currencies: list[str] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    def failures_for(self, stage: str) -> list[SyncFailure]:
        return [f for f in self.failures if f.stage == stage]


class RateSynchronizer:
    """Brings a RateStore up to date with today, one calendar day at a time.

    Runs sequentially on the caller's thread and keeps no state between
    runs. Callers must not start two runs against the same store at once.
    """

    def __init__(
        self,
        store: RateStore,
        provider: RateProvider,
        today: Callable[[], date] = date.today,
    ):
        self._store = store
        self._provider = provider
        self._today = today

    def sync_to_today(
        self,
        progress: ProgressSink | None = None,
        status: StatusSink | None = None,
    ) -> SyncReport:
        """Fetch and store every day after the store's latest date up to today.

        Failing to read the latest date aborts the run before any provider
        call. Every other failure is recorded in the report and logged, and
        only skips the date or (date, currency) it affects.
        """
        report = SyncReport()
        try:
            latest = date.fromisoformat(self._store.latest_date())
        except Exception as e:
            logger.error("Error fetching last date from DB: %s", e)
            report.aborted = True
            return report

        first_missing = latest + timedelta(days=1)
        today = self._today()
        report.total_days = max(1, (today + timedelta(days=1) - first_missing).days)
        if first_missing > today:
            logger.info("Rate store is up to date (latest %s)", latest.isoformat())
            return report
        report.first_date = first_missing.isoformat()
        report.last_date = today.isoformat()

        known_codes = self._load_known_codes()
        known_names = self._load_currency_names()

        day = first_missing
        while day <= today:
            iso = day.isoformat()
            if status is not None:
                status(f"Updating: {iso}")
            self._sync_day(iso, known_codes, known_names, report)
            report.days_processed += 1
            if progress is not None:
                progress(report.days_processed, report.total_days)
            day += timedelta(days=1)

        logger.info(
            "Sync finished: %d day(s), %d rate(s) written, %d new currencies, %d failure(s)",
            report.days_processed,
            report.rates_written,
            len(report.new_currencies),
            len(report.failures),
        )
        return report

    def _load_known_codes(self) -> set[str]:
        try:
            return set(self._store.list_known_codes())
        except Exception as e:
            logger.error("Failed to fetch currency codes: %s", e)
            return set()

    def _load_currency_names(self) -> dict[str, str]:
        try:
            return dict(self._store.list_currency_names())
        except Exception as e:
            logger.error("Failed to fetch currency names: %s", e)
            return {}

    def _sync_day(
        self,
        iso: str,
        known_codes: set[str],
        known_names: dict[str, str],
        report: SyncReport,
    ) -> None:
        try:
            rates = self._provider.rates_for_date(iso)
        except ProviderError as e:
            logger.error("Error fetching rates for %s: %s", iso, e)
            report.failures.append(SyncFailure(iso, STAGE_FETCH, str(e)))
            return

        written = 0
        for code, rate in rates.items():
            if code not in known_codes:
                try:
                    self._store.add_currency_column(code)
                except StoreWriteError as e:
                    logger.error("Failed to add currency column %s: %s", code, e)
                    report.failures.append(SyncFailure(iso, STAGE_SCHEMA, str(e), code))
                    continue
                known_codes.add(code)
                report.new_currencies.append(code)

            if code not in known_names:
                name = display_name_or_code(self._provider, code)
                try:
                    self._store.add_currency_name(code, name)
                    known_names[code] = name
                except StoreWriteError as e:
                    logger.error("Failed to add currency name %s: %s", code, e)
                    report.failures.append(SyncFailure(iso, STAGE_CATALOG, str(e), code))

            try:
                self._store.upsert_rate(code, iso, rate)
            except (StoreWriteError, UnknownCurrencyError, ValueError) as e:
                logger.error("Failed to upsert rate for %s on %s: %s", code, iso, e)
                report.failures.append(SyncFailure(iso, STAGE_UPSERT, str(e), code))
                continue
            written += 1

        report.rates_written += written
        logger.info("Stored %d of %d rates for %s", written, len(rates), iso)
