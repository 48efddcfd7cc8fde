"""Exchange-rate table and currency catalog schema."""

import re
from datetime import date, datetime

RATES_TABLE = "exchange_rates"
ISO_DATE_COLUMN = "iso_date"
DATE_TEXT_COLUMN = "date_text"
RESERVED_COLUMNS = frozenset({ISO_DATE_COLUMN, DATE_TEXT_COLUMN})
RATE_COLUMN_TYPE = "DOUBLE PRECISION"

CURRENCY_NAMES_TABLE = "currency_names"
CURRENCY_NAMES_COLUMNS = ["code", "full_name"]

RATES_DDL = f"""
CREATE TABLE IF NOT EXISTS {RATES_TABLE} (
    {ISO_DATE_COLUMN}   VARCHAR(10) PRIMARY KEY,
    {DATE_TEXT_COLUMN}  VARCHAR(16) NOT NULL
);
CREATE TABLE IF NOT EXISTS {CURRENCY_NAMES_TABLE} (
    code        VARCHAR(16)  PRIMARY KEY,
    full_name   VARCHAR(255) NOT NULL
);
"""

# -1 and 0 are storable but never count as an observation
SENTINEL_VALUES = (-1.0, 0.0)

# Codes become column names, so only plain identifiers are accepted
CURRENCY_CODE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,15}$")

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def is_valid_code(code) -> bool:
    return isinstance(code, str) and CURRENCY_CODE_PATTERN.match(code) is not None


def is_valid_rate(value) -> bool:
    """True when a stored value is a real observation (not NULL, -1 or 0)."""
    return value is not None and float(value) not in SENTINEL_VALUES


def to_iso(value: date | str) -> str:
    """Normalize a date or ISO string to YYYY-MM-DD, rejecting malformed input."""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(value).isoformat()


def display_date(iso_date: str) -> str:
    """Convert YYYY-MM-DD to the display form, e.g. 1994-01-03 -> Jan-03-1994."""
    d = date.fromisoformat(iso_date)
    return f"{_MONTHS[d.month - 1]}-{d.day:02d}-{d.year:04d}"
