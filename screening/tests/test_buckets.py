"""
Tests for range buckets.
Boundary values sit in exactly the bucket the literal comparisons allow.
"""

import pytest

from analysis.models import HoldingRecord
from screening.buckets import (
    BucketError,
    filter_by_change_percent,
    filter_by_days_until,
    holding_period_category,
    in_change_bucket,
    in_days_until_bucket,
)


class TestChangeBuckets:
    """Tests for change-percent buckets."""

    def test_boundary_goes_to_upper_bucket(self):
        """Test 2.0 falls in '2-5', not '1-2'."""
        assert in_change_bucket(2.0, '2-5') is True
        assert in_change_bucket(2.0, '1-2') is False

    def test_absolute_value(self):
        """Test negative changes bucket by magnitude."""
        assert in_change_bucket(-0.5, '0-1') is True
        assert in_change_bucket(-12, '10+') is True

    def test_all(self):
        """Test 'all' matches everything."""
        assert in_change_bucket(1e6, 'all') is True

    def test_filter(self):
        """Test filtering a list of dicts."""
        items = [{'changePercent': v} for v in (0.4, 1.0, 2.0, -4.99, 5.0, 11)]
        assert filter_by_change_percent(items, '2-5') == [{'changePercent': 2.0}, {'changePercent': -4.99}]

    def test_custom_value_getter(self):
        """Test a custom accessor."""
        assert filter_by_change_percent([7, 3], '5-10', value_of=lambda v: v) == [7]

    def test_unknown_bucket(self):
        """Test unknown buckets raise BucketError."""
        with pytest.raises(BucketError, match='Unknown change-percent bucket'):
            filter_by_change_percent([], '3-4')
        with pytest.raises(BucketError):
            in_change_bucket(1, '3-4')


class TestDaysUntilBuckets:
    """Tests for days-until buckets."""

    def test_fifteen_in_two_buckets(self):
        """Test day 15 belongs to both '11-15' and '15-30'."""
        assert in_days_until_bucket(15, '11-15') is True
        assert in_days_until_bucket(15, '15-30') is True

    def test_closed_ranges(self):
        """Test both ends of a range are included."""
        assert in_days_until_bucket(1, '1-5') is True
        assert in_days_until_bucket(5, '1-5') is True
        assert in_days_until_bucket(0, '1-5') is False

    def test_thirty_plus_is_strict(self):
        """Test 30 is not '30+'."""
        assert in_days_until_bucket(30, '30+') is False
        assert in_days_until_bucket(31, '30+') is True

    def test_filter(self):
        """Test filtering on the default daysUntil key."""
        items = [{'daysUntil': d} for d in (3, 8, 15, 40)]
        assert [i['daysUntil'] for i in filter_by_days_until(items, '15-30')] == [15]
        assert len(filter_by_days_until(items, 'all')) == 4

    def test_unknown_bucket(self):
        """Test unknown buckets raise BucketError."""
        with pytest.raises(BucketError, match='Unknown days-until bucket'):
            filter_by_days_until([], '31-60')


class TestHoldingPeriodCategory:
    """Tests for holding-period categories."""

    @pytest.mark.parametrize('years,months,expected', [
        (0, 5, 'lessThan6M'),
        (0, 6, '6Mto1Year'),
        (1, 0, '1YearTo1_5Year'),
        (1, 6, '1_5YearTo2Year'),
        (2, 0, '2YearTo3Year'),
        (3, 0, '3YearTo5Year'),
        (4, 11, '3YearTo5Year'),
        (5, 0, 'moreThan5Years'),
    ])
    def test_categories(self, years, months, expected):
        """Test lower bounds are inclusive."""
        holding = HoldingRecord(stock_name='A', holding_period_years=years, holding_period_months=months)
        assert holding_period_category(holding) == expected

    def test_missing_fields_count_as_zero(self):
        """Test a holding without period fields is under 6 months."""
        assert holding_period_category(HoldingRecord(stock_name='A')) == 'lessThan6M'
