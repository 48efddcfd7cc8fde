"""Wide-table rate store: one row per date, one column per currency code."""

import logging
import math
import threading
from datetime import date
from typing import Callable

from fxsync.errors import (
    CatalogWriteError,
    EmptyStoreError,
    NoDataError,
    SchemaMutationError,
    UnknownCurrencyError,
    UpsertError,
    ZeroRateError,
)
from fxsync.rates.periods import ChartPeriod, window_start
from fxsync.rates.schema import (
    CURRENCY_NAMES_COLUMNS,
    CURRENCY_NAMES_TABLE,
    DATE_TEXT_COLUMN,
    ISO_DATE_COLUMN,
    RATE_COLUMN_TYPE,
    RATES_DDL,
    RATES_TABLE,
    RESERVED_COLUMNS,
    display_date,
    is_valid_code,
    is_valid_rate,
    to_iso,
)
from fxsync.service import DatabaseService, quote_identifier

logger = logging.getLogger(__name__)


class KnownCodesCache:
    """Set of currency codes derived from the rate table's columns.

    Built lazily on first use, rebuilt by refresh() and dropped by
    invalidate() after every schema mutation.
    """

    def __init__(self, loader: Callable[[], list[str]]):
        self._loader = loader
        self._codes: frozenset[str] | None = None
        self._lock = threading.Lock()

    def get(self) -> frozenset[str]:
        with self._lock:
            if self._codes is None:
                self._codes = frozenset(self._loader())
            return self._codes

    def refresh(self) -> list[str]:
        with self._lock:
            codes = sorted(self._loader())
            self._codes = frozenset(codes)
        return codes

    def invalidate(self) -> None:
        with self._lock:
            self._codes = None


class RateStore:
    """Validated access to the exchange-rate table and the currency-name catalog.

    Every stored rate is units of currency per 1 USD. Each public method runs
    in its own transaction; no transaction spans several calls.
    """

    def __init__(self, service: DatabaseService):
        self._service = service
        self._p = service.placeholder
        self._codes = KnownCodesCache(self._load_codes)

    def ensure_schema(self) -> None:
        """Create the rate table and the catalog if they don't exist."""
        self._service.execute_ddl(RATES_DDL)
        self._codes.invalidate()

    def has_schema(self) -> bool:
        """True when both tables exist; read-only callers check this instead of creating them."""
        return all(
            self._service.table_columns(table) for table in (RATES_TABLE, CURRENCY_NAMES_TABLE)
        )

    # -- known codes -------------------------------------------------------

    def _load_codes(self) -> list[str]:
        return [
            column
            for column in self._service.table_columns(RATES_TABLE)
            if column.lower() not in RESERVED_COLUMNS
        ]

    def _validate_code(self, code: str) -> None:
        if not is_valid_code(code):
            raise UnknownCurrencyError(code)
        if code in self._codes.get():
            return
        # Another writer may have added the column since the cache was built
        if code not in self._codes.refresh():
            raise UnknownCurrencyError(code)

    def list_known_codes(self) -> list[str]:
        """Refresh the cache from the current schema and return the sorted codes."""
        return self._codes.refresh()

    def list_currency_names(self) -> dict[str, str]:
        with self._service.transaction():
            rows = self._service.execute(f"SELECT code, full_name FROM {CURRENCY_NAMES_TABLE}")
        return {row["code"]: row["full_name"] for row in rows}

    # -- queries -----------------------------------------------------------

    def latest_date(self) -> str:
        with self._service.transaction():
            rows = self._service.execute(
                f"SELECT {ISO_DATE_COLUMN} FROM {RATES_TABLE} "
                f"ORDER BY {ISO_DATE_COLUMN} DESC LIMIT 1"
            )
        if not rows:
            raise EmptyStoreError()
        return rows[0][ISO_DATE_COLUMN]

    def _edge_valid_date(self, code: str, order: str) -> str | None:
        self._validate_code(code)
        col = quote_identifier(code)
        with self._service.transaction():
            rows = self._service.execute(
                f"SELECT {ISO_DATE_COLUMN} FROM {RATES_TABLE} "
                f"WHERE {col} IS NOT NULL AND {col} NOT IN (-1, 0) "
                f"ORDER BY {ISO_DATE_COLUMN} {order} LIMIT 1"
            )
        return rows[0][ISO_DATE_COLUMN] if rows else None

    def first_valid_date(self, code: str) -> str | None:
        """Earliest date holding a real observation for ``code``."""
        return self._edge_valid_date(code, "ASC")

    def last_valid_date(self, code: str) -> str | None:
        """Latest date holding a real observation for ``code``."""
        return self._edge_valid_date(code, "DESC")

    def get_rate(self, code: str, day: date | str) -> float | None:
        """Raw stored value for (code, day); None when the row or value is absent."""
        self._validate_code(code)
        with self._service.transaction():
            rows = self._service.execute(
                f"SELECT {quote_identifier(code)} AS value FROM {RATES_TABLE} "
                f"WHERE {ISO_DATE_COLUMN} = {self._p}",
                (to_iso(day),),
            )
        if not rows or rows[0]["value"] is None:
            return None
        return float(rows[0]["value"])

    def latest_rate(self, from_code: str, to_code: str) -> float:
        """Cross rate from ``from_code`` to ``to_code`` on the most recent date.

        Computed as rate(to) / rate(from) from the newest row. Identical codes
        short-circuit to 1.0.
        """
        self._validate_code(from_code)
        self._validate_code(to_code)
        if from_code == to_code:
            return 1.0

        with self._service.transaction():
            rows = self._service.execute(
                f"SELECT {ISO_DATE_COLUMN}, {quote_identifier(from_code)} AS from_rate, "
                f"{quote_identifier(to_code)} AS to_rate FROM {RATES_TABLE} "
                f"ORDER BY {ISO_DATE_COLUMN} DESC LIMIT 1"
            )
        if not rows:
            raise NoDataError("No data found for the specified currencies.")

        row = rows[0]
        from_rate, to_rate = row["from_rate"], row["to_rate"]
        if from_rate is not None and float(from_rate) == 0:
            raise ZeroRateError(f"Rate for {from_code} on {row[ISO_DATE_COLUMN]} is zero.")
        for code, value in ((from_code, from_rate), (to_code, to_rate)):
            if not is_valid_rate(value):
                raise NoDataError(f"No valid rate for {code} on {row[ISO_DATE_COLUMN]}.")
        return float(to_rate) / float(from_rate)

    def downsample(
        self,
        code: str,
        start: date | str,
        end: date | str,
        max_points: int,
    ) -> dict[str, float]:
        """Return a fixed-stride sample of ``code`` between start and end (inclusive).

        With N rows in range the stride is ceil(N / max_points), floored at 1.
        Rows are picked by ordinal position (0, stride, 2*stride, ...) before
        invalid values are dropped, so the sampling grid doesn't depend on the
        currency. The result is ascending by date and never exceeds
        max_points + 1 entries.
        """
        self._validate_code(code)
        if max_points < 1:
            raise ValueError(f"max_points must be >= 1, got {max_points}")
        start_iso, end_iso = to_iso(start), to_iso(end)
        where = f"WHERE {ISO_DATE_COLUMN} >= {self._p} AND {ISO_DATE_COLUMN} <= {self._p}"

        with self._service.transaction():
            count = self._service.execute(
                f"SELECT COUNT(*) AS cnt FROM {RATES_TABLE} {where}", (start_iso, end_iso)
            )[0]["cnt"]
            if count == 0:
                return {}
            rows = self._service.execute(
                f"SELECT {ISO_DATE_COLUMN}, {quote_identifier(code)} AS value "
                f"FROM {RATES_TABLE} {where} ORDER BY {ISO_DATE_COLUMN} ASC",
                (start_iso, end_iso),
            )

        stride = max(1, math.ceil(count / max_points))
        return {
            row[ISO_DATE_COLUMN]: float(row["value"])
            for row in rows[::stride]
            if is_valid_rate(row["value"])
        }

    def cross_rate_series(
        self,
        from_code: str,
        to_code: str,
        period: ChartPeriod | str = ChartPeriod.ALL,
        max_points: int = 200,
    ) -> dict[str, float]:
        """History of the from -> to cross rate for charting.

        The range is where both currencies have valid observations, cut to the
        trailing ``period``. Both currencies are downsampled over the same range,
        so they share a sampling grid; dates valid for both give rate(to) / rate(from).
        """
        self._validate_code(from_code)
        self._validate_code(to_code)
        period = ChartPeriod(period)
        bounds = [
            self.first_valid_date(from_code),
            self.last_valid_date(from_code),
            self.first_valid_date(to_code),
            self.last_valid_date(to_code),
        ]
        if None in bounds:
            raise NoDataError("No valid data found for one or both currencies.")
        overlap_start = max(bounds[0], bounds[2])
        overlap_end = min(bounds[1], bounds[3])
        if overlap_start > overlap_end:
            raise NoDataError(f"No overlapping dates for {from_code} and {to_code}.")

        start = window_start(
            date.fromisoformat(overlap_start), date.fromisoformat(overlap_end), period
        )
        from_rates = self.downsample(from_code, start, overlap_end, max_points)
        to_rates = self.downsample(to_code, start, overlap_end, max_points)
        return {
            day: to_rates[day] / from_value
            for day, from_value in from_rates.items()
            if day in to_rates
        }

    # -- writes ------------------------------------------------------------

    def add_currency_column(self, code: str) -> bool:
        """Add a rate column for ``code``; returns False if it already existed."""
        try:
            known = self._codes.refresh()
        except Exception as e:
            raise SchemaMutationError(f"Could not read columns of {RATES_TABLE}: {e}") from e
        if code in known:
            logger.info("Currency %s already exists.", code)
            return False
        if not is_valid_code(code):
            raise SchemaMutationError(f"Currency code cannot be used as a column: {code!r}")
        # SQLite column names are case-insensitive, PostgreSQL quoted ones are not
        clash = [existing for existing in known if existing.lower() == code.lower()]
        if clash:
            raise SchemaMutationError(
                f"Currency code {code!r} differs only in case from existing column {clash[0]!r}"
            )

        try:
            added = self._service.add_column(RATES_TABLE, code, RATE_COLUMN_TYPE)
        except Exception as e:
            raise SchemaMutationError(f"Failed to add currency column {code}: {e}") from e
        finally:
            self._codes.invalidate()

        if added:
            logger.info("Added new currency column: %s", code)
        else:
            logger.info("Currency %s already exists.", code)
        return added

    def add_currency_name(self, code: str, full_name: str) -> None:
        """Record the display name for ``code``; the first name written wins."""
        try:
            with self._service.transaction():
                self._service.upsert(
                    CURRENCY_NAMES_TABLE,
                    CURRENCY_NAMES_COLUMNS,
                    [(code, full_name)],
                    ["code"],
                    update_columns=[],
                )
        except Exception as e:
            raise CatalogWriteError(f"Failed to add currency name {code}: {e}") from e
        logger.info("Added currency name: %s (%s)", code, full_name)

    def upsert_rate(self, code: str, day: date | str, value: float) -> None:
        """Set ``code``'s rate for ``day``, creating the date row if needed.

        Row creation and the value update share one transaction, so a failure
        never leaves a half-written row behind.
        """
        try:
            self._validate_code(code)
        except UnknownCurrencyError:
            raise
        except Exception as e:
            raise UpsertError(f"Could not validate currency {code}: {e}") from e
        iso = to_iso(day)
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Rate for {code} on {iso} is not a finite number: {value}")
        try:
            with self._service.transaction():
                self._service.upsert(
                    RATES_TABLE,
                    [ISO_DATE_COLUMN, DATE_TEXT_COLUMN],
                    [(iso, display_date(iso))],
                    [ISO_DATE_COLUMN],
                    update_columns=[],
                )
                self._service.execute(
                    f"UPDATE {RATES_TABLE} SET {quote_identifier(code)} = {self._p} "
                    f"WHERE {ISO_DATE_COLUMN} = {self._p}",
                    (value, iso),
                )
        except Exception as e:
            raise UpsertError(f"Failed to upsert rate for {code} on {iso}: {e}") from e
        logger.debug("Upserted rate for %s on %s: %s", code, iso, value)

    def seed(
        self,
        day: date | str,
        rates: dict[str, float],
        names: dict[str, str] | None = None,
    ) -> int:
        """Bootstrap an empty store with one day of rates so that sync has a start date.

        Returns the number of rates written.
        """
        names = names or {}
        written = 0
        for code, rate in rates.items():
            self.add_currency_column(code)
            self.add_currency_name(code, names.get(code) or code)
            self.upsert_rate(code, day, rate)
            written += 1
        logger.info("Seeded %d rates for %s", written, to_iso(day))
        return written
