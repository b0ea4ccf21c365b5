"""
Tests for streak counters and rebuilt performance-record aggregates.
"""

import math

import pytest

from analysis.calculations.streaks import (
    above_threshold_count,
    build_performance_record,
    streak_stats,
    volume_trend_percent,
)
from analysis.models import MonthlyReturn


class TestStreakStats:
    """Tests for winning/losing run counters."""

    def test_mixed_series(self):
        """Test longest runs and the run in progress."""
        stats = streak_stats([1, 2, -1, -2, -3, 4])
        assert stats == {
            'positive_streak': 2,
            'negative_streak': 3,
            'current_streak': 1,
            'is_positive_streak': True,
        }

    def test_zero_extends_losing_run(self):
        """Test a flat month counts as a losing month."""
        stats = streak_stats([1, 0, 0])
        assert stats['negative_streak'] == 2
        assert stats['current_streak'] == 2
        assert stats['is_positive_streak'] is False

    def test_final_run_is_folded_in(self):
        """Test the run in progress counts towards the maximum."""
        stats = streak_stats([1, -1, 2, 3, 4])
        assert stats['positive_streak'] == 3

    def test_empty_series(self):
        """Test no data leaves everything at zero."""
        assert streak_stats([]) == {
            'positive_streak': 0,
            'negative_streak': 0,
            'current_streak': 0,
            'is_positive_streak': True,
        }


class TestAggregates:
    """Tests for record aggregates."""

    def test_above_threshold_is_strict(self):
        """Test exactly 1.5 does not count."""
        assert above_threshold_count([1.5, 1.51, 3, -2]) == 2

    def test_volume_trend_percent(self):
        """Test percent change against the 3-year average."""
        assert volume_trend_percent(100000, 120000) == pytest.approx(20.0)
        assert volume_trend_percent(0, 5000) == 0.0

    def test_build_record(self):
        """Test every derived field on a small series."""
        months = [MonthlyReturn(f"{m}-24", r) for m, r in zip(['Jan', 'Feb', 'Mar', 'Apr'], [2, -1, 3, 0])]
        record = build_performance_record('INE1', 'Stock', months)

        assert record.average_return == pytest.approx(1.0)
        # deviations 1, -2, 2, -1 -> variance 10 / 4
        assert record.volatility == pytest.approx(math.sqrt(2.5))
        assert record.above_threshold_count == 2
        assert record.consistency_index == pytest.approx(50.0)
        assert record.positive_streak == 1
        assert record.negative_streak == 1
        assert record.current_streak == 1
        assert record.is_positive_streak is False

    def test_build_record_empty(self):
        """Test an empty series gives all-zero aggregates."""
        record = build_performance_record('INE1', 'Stock', [])
        assert record.monthly_returns == []
        assert record.average_return == 0.0
        assert record.volatility == 0.0
        assert record.consistency_index == 0.0
        assert record.current_streak == 0
