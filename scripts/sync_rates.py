"""CLI entry point for synchronizing the local rate store up to today.

Usage:
    python -m scripts.sync_rates --db-url sqlite:///data/exchange_rates.db [--mock] [--seed-date 1994-01-03]
"""

import argparse
import logging
import sys

from fxsync import create_service
from fxsync.config import Settings
from fxsync.errors import EmptyStoreError, FxSyncError
from fxsync.rates.client import MockRateProvider, OpenExchangeRatesClient, RateProvider
from fxsync.rates.store import RateStore
from fxsync.rates.sync import RateSynchronizer, display_name_or_code

logger = logging.getLogger(__name__)


def build_provider(args: argparse.Namespace, settings: Settings) -> RateProvider | None:
    if args.mock:
        return MockRateProvider()
    if not settings.app_id:
        logger.error("OPEN_EXCHANGE_RATES_APP_ID not set. Use --mock for testing.")
        return None
    return OpenExchangeRatesClient(
        settings.app_id,
        max_retries=settings.http_retries,
        timeout=settings.http_timeout,
    )


def seed_if_empty(store: RateStore, provider: RateProvider, seed_date: str) -> None:
    """Write one day of rates when the store has no rows yet."""
    try:
        latest = store.latest_date()
        logger.info("Store already holds data up to %s; not seeding.", latest)
        return
    except EmptyStoreError:
        pass
    rates = provider.rates_for_date(seed_date)
    names = {code: display_name_or_code(provider, code) for code in rates}
    store.seed(seed_date, rates, names)


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="Sync the local exchange-rate store up to today")
    parser.add_argument("--db-url", default=settings.db_url, help="Database URL")
    parser.add_argument("--mock", action="store_true", help="Use mock rate provider (for testing)")
    parser.add_argument(
        "--seed-date", help="Bootstrap an empty store with rates for this date (YYYY-MM-DD)"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    provider = build_provider(args, settings)
    if provider is None:
        return 1

    service = create_service(args.db_url, settings.pool_size)
    service.connect()
    try:
        store = RateStore(service)
        store.ensure_schema()
        if args.seed_date:
            try:
                seed_if_empty(store, provider, args.seed_date)
            except (FxSyncError, ValueError) as e:
                logger.error("Seeding failed: %s", e)
                return 1

        synchronizer = RateSynchronizer(store, provider)
        report = synchronizer.sync_to_today(
            progress=lambda done, total: logger.info("Progress: %d/%d days", done, total),
            status=logger.info,
        )
        if report.aborted:
            logger.error(
                "Sync aborted: the store is empty or unreadable. Use --seed-date to bootstrap."
            )
            return 1
        for failure in report.failures:
            logger.warning(
                "Skipped %s %s on %s: %s",
                failure.stage,
                failure.code or "(all currencies)",
                failure.date,
                failure.message,
            )
        logger.info("Done.")
        return 0
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
