"""
Returns calculation utilities.
Pure functions over monthly percentage-return series and holding positions.

Every function degrades to a zero/neutral value on empty or short input
instead of raising; presentation code relies on that.
"""

import numpy as np
from datetime import date
from typing import List, Optional, Sequence, Tuple, Union

from analysis.models import HoldingRecord, MonthlyReturn


# Months at or above this return count towards consistency
CONSISTENCY_THRESHOLD = 1.5

PERIOD_MONTHS = {
    '3M': 3,
    '6M': 6,
    '1Y': 12,
    '2Y': 24,
    '3Y': 36,
    '5Y': 60,
}

DEFAULT_PERIOD_MONTHS = 12

ReturnSeries = Sequence[Union[MonthlyReturn, float]]


def period_to_months(period: Union[str, int]) -> int:
    """
    Map a lookback period label ('3M' ... '5Y') to a month count.

    Integers and digit strings (e.g. '24' from the command line) pass
    through as month counts; unknown labels fall back to 12 months.
    """
    if isinstance(period, int):
        return period
    if isinstance(period, str) and period.strip().isdecimal():
        return int(period)
    return PERIOD_MONTHS.get(period, DEFAULT_PERIOD_MONTHS)


def as_returns(monthly_returns: ReturnSeries) -> List[float]:
    """Flatten MonthlyReturn entries (or plain numbers) to floats."""
    return [
        m.return_pct if isinstance(m, MonthlyReturn) else float(m)
        for m in monthly_returns
    ]


def period_window(monthly_returns: ReturnSeries, period_months: int) -> List[float]:
    """
    Take the trailing period_months returns.

    Fewer are returned when the series is shorter. A non-positive period
    yields an empty window.

    Example:
        period_window([1, 2, 3, 4], 3) -> [2.0, 3.0, 4.0]
        period_window([1, 2], 12) -> [1.0, 2.0]
    """
    if period_months <= 0:
        return []
    return as_returns(monthly_returns)[-period_months:]


def compound_growth(returns: Sequence[float]) -> float:
    """
    Compound percentage returns multiplicatively.

    Formula: Π(1 + r_i / 100)
    """
    if len(returns) == 0:
        return 1.0
    factors = 1 + np.asarray(returns, dtype=float) / 100
    return float(np.prod(factors))


def cagr(monthly_returns: ReturnSeries, period_months: int) -> float:
    """
    Annualized compound growth over the trailing window, in percent.

    Formula: (Π(1 + r_i/100))^(12/n) - 1

    Args:
        monthly_returns: Monthly returns in percent, chronological
        period_months: Lookback window in months

    Returns:
        CAGR in percent (0 when the window is empty, -100 when the
        compounded value is wiped out)
    """
    window = period_window(monthly_returns, period_months)
    n = len(window)
    if n == 0:
        return 0.0

    total_return = compound_growth(window)
    if total_return <= 0:
        return -100.0

    annualized = total_return ** (12 / n) - 1
    return annualized * 100


def average_monthly_return(monthly_returns: ReturnSeries, period_months: int) -> float:
    """
    Arithmetic mean of the trailing window, in percent.

    Not the same as CAGR / 12: the arithmetic mean is never below the
    geometric one once returns vary.
    """
    window = period_window(monthly_returns, period_months)
    if not window:
        return 0.0
    return sum(window) / len(window)


def consistency_counts(
    monthly_returns: ReturnSeries,
    period_months: int,
    threshold: float = CONSISTENCY_THRESHOLD
) -> Tuple[int, int]:
    """Months with return >= threshold, and months in the window."""
    window = period_window(monthly_returns, period_months)
    above = sum(1 for r in window if r >= threshold)
    return above, len(window)


def consistency(monthly_returns: ReturnSeries, period_months: int) -> str:
    """
    Consistency over the window formatted as "k / n".

    Example:
        consistency([2, -1, 1.5], 12) -> "2 / 3"
        consistency([], 12) -> "0 / 0"
    """
    above, total = consistency_counts(monthly_returns, period_months)
    return f"{above} / {total}"


def current_return(holding: Optional[HoldingRecord]) -> float:
    """
    Unrealized return of a position in percent.

    Computed from market value and invested amount when the invested
    amount is positive, else the stored profit/loss percent.
    """
    if holding is None:
        return 0.0

    invested = holding.investment_amount
    if invested is not None and invested > 0:
        return ((holding.market_value or 0) - invested) / invested * 100

    return holding.profit_loss_till_date_percent or 0.0


def months_between(start: date, end: date) -> int:
    """Calendar months from start to end, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def holding_months(holding: Optional[HoldingRecord], reference_date: Optional[date] = None) -> int:
    """
    Length of the holding period in months.

    Uses the years/months fields when both are present, otherwise the
    months elapsed since as_on_date.
    """
    if holding is None:
        return 0

    if holding.holding_period_years is not None and holding.holding_period_months is not None:
        return (holding.holding_period_years or 0) * 12 + (holding.holding_period_months or 0)

    if holding.as_on_date is not None:
        if reference_date is None:
            reference_date = date.today()
        return months_between(holding.as_on_date, reference_date)

    return 0


def investment_monthly_return(
    holding: Optional[HoldingRecord],
    reference_date: Optional[date] = None
) -> float:
    """
    Monthly return implied by a position's total return over its holding period.

    Formula: ((1 + R/100)^(1/N) - 1) * 100 for total return R over N months

    Returns:
        Monthly return in percent (0 with no holding, no period or no return)
    """
    if holding is None:
        return 0.0

    months = holding_months(holding, reference_date)
    if months == 0:
        return 0.0

    total = current_return(holding)
    if total == 0:
        return 0.0

    growth = 1 + total / 100
    if growth <= 0:
        return -100.0
    return (growth ** (1 / months) - 1) * 100
