"""
Guardrails for the analysis engine - month ordering and data quality checks.
Issues are reported as warnings; nothing here blocks a computation.
"""

import logging
import math
import warnings
from datetime import date
from typing import Iterable, List

from analysis.models import MonthlyReturn, StockPerformanceRecord

logger = logging.getLogger(__name__)


MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

# Unparseable labels sort before every real month
EPOCH = date(1970, 1, 1)


class DataQualityWarning(UserWarning):
    """Raised when data quality issues should be noted but don't block execution."""
    pass


def parse_month_label(label: str) -> date:
    """
    Parse a 'MMM-yy' month label to the first day of that month.

    Example:
        parse_month_label('Mar-24') -> date(2024, 3, 1)
        parse_month_label('garbage') -> date(1970, 1, 1)
    """
    parts = str(label).split('-')
    if len(parts) != 2 or parts[0] not in MONTH_NAMES:
        logger.warning(f"Unparseable month label: {label!r}")
        return EPOCH

    try:
        return date(2000 + int(parts[1]), MONTH_NAMES.index(parts[0]) + 1, 1)
    except (ValueError, OverflowError):
        logger.warning(f"Unparseable month label: {label!r}")
        return EPOCH


def sort_monthly_returns(monthly_returns: Iterable[MonthlyReturn]) -> List[MonthlyReturn]:
    """Chronological copy of a monthly series (stable for equal months)."""
    return sorted(monthly_returns, key=lambda m: parse_month_label(m.month))


def collect_months(records: Iterable[StockPerformanceRecord]) -> List[str]:
    """
    Union of month labels across records, oldest first.

    Labels keep first-seen order when they parse to the same date.
    """
    seen = {}
    for record in records:
        for m in record.monthly_returns:
            seen.setdefault(m.month, None)
    return sorted(seen, key=parse_month_label)


def check_series_quality(record: StockPerformanceRecord, period_months: int) -> List[str]:
    """
    Inspect one stock's monthly series for issues that skew derived metrics.

    Args:
        record: Stock performance record
        period_months: Lookback window the caller is about to use

    Returns:
        List of issue descriptions (empty when the series looks clean)
    """
    issues = []
    labels = [m.month for m in record.monthly_returns]

    duplicates = sorted({label for label in labels if labels.count(label) > 1})
    if duplicates:
        issues.append(f"duplicate months: {', '.join(duplicates)}")

    non_finite = [m.month for m in record.monthly_returns if not math.isfinite(m.return_pct)]
    if non_finite:
        issues.append(f"non-finite returns: {', '.join(non_finite)}")

    if len(labels) < period_months:
        issues.append(f"only {len(labels)} months of data for a {period_months}-month window")

    for issue in issues:
        warnings.warn(f"{record.stock_name} ({record.isin}): {issue}", DataQualityWarning)

    return issues
