"""Chart windows for rate-history series."""

from datetime import date
from enum import Enum

from dateutil.relativedelta import relativedelta


class ChartPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    FIVE_YEARS = "five_years"
    ALL = "all"


# relativedelta clamps the day: 31 March minus a month is the end of February
_LOOKBACK = {
    ChartPeriod.DAY: relativedelta(days=1),
    ChartPeriod.WEEK: relativedelta(weeks=1),
    ChartPeriod.MONTH: relativedelta(months=1),
    ChartPeriod.YEAR: relativedelta(years=1),
    ChartPeriod.FIVE_YEARS: relativedelta(years=5),
}


def window_start(first: date, last: date, period: ChartPeriod | str) -> date:
    """Start of ``period`` ending at ``last``, never earlier than ``first``."""
    period = ChartPeriod(period)
    if period is ChartPeriod.ALL:
        return first
    return max(last - _LOOKBACK[period], first)
