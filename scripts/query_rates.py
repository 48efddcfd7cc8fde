"""CLI entry point for querying the local rate store.

The store is opened read-only: a missing database or missing tables is
reported as an error, never created.

Usage:
    python -m scripts.query_rates --db-url sqlite:///data/exchange_rates.db latest-date
    python -m scripts.query_rates rate EUR GBP
    python -m scripts.query_rates series EUR 2000-12-12 2001-01-30 --max-points 10
    python -m scripts.query_rates cross-series EUR GBP --period year
"""

import argparse
import logging
import sys
from pathlib import Path

from fxsync import MEMORY_PATH, create_service, sqlite_path
from fxsync.config import Settings
from fxsync.errors import FxSyncError
from fxsync.rates.periods import ChartPeriod
from fxsync.rates.store import RateStore


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query the local exchange-rate store")
    parser.add_argument("--db-url", default=settings.db_url, help="Database URL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("latest-date", help="Most recent date in the store")
    sub.add_parser("codes", help="All known currency codes")
    sub.add_parser("names", help="Currency code to full name catalog")

    valid = sub.add_parser("valid-range", help="First and last date with a valid rate")
    valid.add_argument("code")

    rate = sub.add_parser("rate", help="Latest cross rate FROM -> TO")
    rate.add_argument("from_code")
    rate.add_argument("to_code")

    series = sub.add_parser("series", help="Downsampled rate series for charting")
    series.add_argument("code")
    series.add_argument("start")
    series.add_argument("end")
    series.add_argument("--max-points", type=int, default=200)

    cross = sub.add_parser("cross-series", help="Cross rate FROM -> TO over a chart period")
    cross.add_argument("from_code")
    cross.add_argument("to_code")
    cross.add_argument(
        "--period", choices=[p.value for p in ChartPeriod], default=ChartPeriod.ALL.value
    )
    cross.add_argument("--max-points", type=int, default=200)
    return parser


def run(store: RateStore, args: argparse.Namespace) -> list[str]:
    """Execute one query and return the lines to print."""
    if args.command == "latest-date":
        return [store.latest_date()]
    if args.command == "codes":
        return store.list_known_codes()
    if args.command == "names":
        return [f"{code}\t{name}" for code, name in store.list_currency_names().items()]
    if args.command == "valid-range":
        first = store.first_valid_date(args.code)
        last = store.last_valid_date(args.code)
        return [f"{first or '-'}\t{last or '-'}"]
    if args.command == "rate":
        return [f"{store.latest_rate(args.from_code, args.to_code):.6f}"]
    if args.command == "series":
        points = store.downsample(args.code, args.start, args.end, args.max_points)
        return [f"{day}\t{value}" for day, value in points.items()]
    if args.command == "cross-series":
        points = store.cross_rate_series(
            args.from_code, args.to_code, args.period, args.max_points
        )
        return [f"{day}\t{value:.6f}" for day, value in points.items()]
    raise ValueError(f"Unknown command: {args.command}")


def missing_sqlite_file(db_url: str) -> str | None:
    """Path of a SQLite database that does not exist yet, else None."""
    if not db_url.startswith("sqlite"):
        return None
    path = sqlite_path(db_url)
    if path == MEMORY_PATH or Path(path).exists():
        return None
    return path


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    missing = missing_sqlite_file(args.db_url)
    if missing is not None:
        print(f"error: database {missing} does not exist; run sync_rates first", file=sys.stderr)
        return 1

    service = create_service(args.db_url, settings.pool_size)
    service.connect()
    try:
        store = RateStore(service)
        if not store.has_schema():
            print("error: rate tables are missing; run sync_rates first", file=sys.stderr)
            return 1
        try:
            lines = run(store, args)
        except (FxSyncError, ValueError) as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        for line in lines:
            print(line)
        return 0
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
