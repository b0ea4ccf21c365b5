"""
Range buckets for dropdown filters.
Boundary comparisons are literal: change-percent buckets are half-open
[lo, hi) on the absolute value, days-until buckets are closed.
"""

from typing import Any, Callable, Iterable, List

from analysis.models import HoldingRecord


CHANGE_PERCENT_BUCKETS = ('all', '0-1', '1-2', '2-5', '5-10', '10+')
DAYS_UNTIL_BUCKETS = ('all', '1-5', '6-10', '11-15', '15-30', '30+')
HOLDING_PERIOD_CATEGORIES = (
    'lessThan6M',
    '6Mto1Year',
    '1YearTo1_5Year',
    '1_5YearTo2Year',
    '2YearTo3Year',
    '3YearTo5Year',
    'moreThan5Years',
)


class BucketError(Exception):
    """Raised when an unknown bucket name is requested."""
    pass


def in_change_bucket(change_percent: float, bucket: str) -> bool:
    """
    Whether |change_percent| falls in a change bucket.

    Example:
        in_change_bucket(2.0, '2-5') -> True
        in_change_bucket(2.0, '1-2') -> False
        in_change_bucket(-0.5, '0-1') -> True
    """
    value = abs(change_percent)

    if bucket == 'all':
        return True
    elif bucket == '0-1':
        return value >= 0 and value < 1
    elif bucket == '1-2':
        return value >= 1 and value < 2
    elif bucket == '2-5':
        return value >= 2 and value < 5
    elif bucket == '5-10':
        return value >= 5 and value < 10
    elif bucket == '10+':
        return value >= 10
    raise BucketError(f"Unknown change-percent bucket: {bucket}")


def in_days_until_bucket(days_until: int, bucket: str) -> bool:
    """
    Whether a days-until count falls in a bucket.

    15 belongs to both '11-15' and '15-30'.
    """
    if bucket == 'all':
        return True
    elif bucket == '1-5':
        return days_until >= 1 and days_until <= 5
    elif bucket == '6-10':
        return days_until >= 6 and days_until <= 10
    elif bucket == '11-15':
        return days_until >= 11 and days_until <= 15
    elif bucket == '15-30':
        return days_until >= 15 and days_until <= 30
    elif bucket == '30+':
        return days_until > 30
    raise BucketError(f"Unknown days-until bucket: {bucket}")


def filter_by_change_percent(
    items: Iterable[Any],
    bucket: str,
    value_of: Callable[[Any], float] = lambda item: item['changePercent']
) -> List[Any]:
    if bucket not in CHANGE_PERCENT_BUCKETS:
        raise BucketError(f"Unknown change-percent bucket: {bucket}")
    return [item for item in items if in_change_bucket(value_of(item), bucket)]


def filter_by_days_until(
    items: Iterable[Any],
    bucket: str,
    value_of: Callable[[Any], int] = lambda item: item['daysUntil']
) -> List[Any]:
    if bucket not in DAYS_UNTIL_BUCKETS:
        raise BucketError(f"Unknown days-until bucket: {bucket}")
    return [item for item in items if in_days_until_bucket(value_of(item), bucket)]


def holding_total_months(holding: HoldingRecord) -> int:
    """Holding period in months from the years/months fields (missing counts as 0)."""
    return (holding.holding_period_years or 0) * 12 + (holding.holding_period_months or 0)


def holding_period_category(holding: HoldingRecord) -> str:
    """
    Holding-period dropdown category for a holding.

    Example:
        6 months -> '6Mto1Year'; 18 months -> '1_5YearTo2Year'
    """
    months = holding_total_months(holding)

    if months < 6:
        return 'lessThan6M'
    elif months < 12:
        return '6Mto1Year'
    elif months < 18:
        return '1YearTo1_5Year'
    elif months < 24:
        return '1_5YearTo2Year'
    elif months < 36:
        return '2YearTo3Year'
    elif months < 60:
        return '3YearTo5Year'
    return 'moreThan5Years'
