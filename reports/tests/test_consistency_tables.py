"""
Tests for the consistency tables.
Expected rows are hand-computed from the stock-analytics and holdings fixtures.
"""

import json
import math
from pathlib import Path

import pytest

from analysis.models import HoldingRecord, MonthlyReturn, StockPerformanceRecord
from ingestion.payloads import parse_holdings, parse_stock_performance
from reports.consistency_tables import (
    alert_table,
    consistency_calendar,
    find_holding,
    frequent_performers,
    frequent_underperformers,
    month_over_month,
    monthly_tracker,
    portfolio_health,
    rank_month,
    sector_consistency,
)


def load_fixture(filename: str):
    """Load a JSON fixture from tests/fixtures."""
    fixture_path = Path(__file__).parent.parent.parent / 'tests/fixtures' / filename
    with open(fixture_path, 'r') as f:
        return json.load(f)


@pytest.fixture
def records():
    return parse_stock_performance(load_fixture('stock_performance.json'))


@pytest.fixture
def holdings():
    return parse_holdings(load_fixture('holdings.json'))


def _record(name, months, **kwargs):
    return StockPerformanceRecord(
        isin=f"INE{name}",
        stock_name=name,
        monthly_returns=[MonthlyReturn(m, r) for m, r in months],
        **kwargs
    )


class TestMonthRanking:
    """Tests for per-month ranking helpers."""

    def test_missing_month_counts_as_zero(self, records):
        """Test a stock without the month ranks with a 0 return."""
        ranked = rank_month(records, 'Jan-24')
        assert [(row['stock'], row['return']) for row in ranked] == [
            ('Alpha Industries', 2.0), ('Dec.Gold Mines', 0.0), ('Beta Pharma', -1.0),
        ]

    def test_find_holding_exact_name_only(self, records, holdings):
        """Test the table lookup does not normalize names."""
        assert find_holding(records[0], holdings).stock_name == 'Alpha Industries'
        assert find_holding(records[2], holdings) is None


class TestMonthlyTracker:
    """Tests for the per-month tracker."""

    def test_latest_month_first(self, records, holdings):
        """Test rows run from the latest month back."""
        rows = monthly_tracker(records, holdings)
        assert len(rows) == 12
        assert rows[0]['month'] == 'Dec-24'
        assert rows[-1]['month'] == 'Jan-24'

    def test_latest_row(self, records, holdings):
        """Test count, value share and performer lists for Dec-24."""
        row = monthly_tracker(records, holdings)[0]
        assert row['count'] == 2
        # Dec.Gold Mines has no exact-name holding, so only Alpha's value counts
        assert row['portfolio_percent'] == pytest.approx(60.0)
        assert row['top_performers'] == ['Dec.Gold Mines', 'Alpha Industries']
        assert row['underperformers'] == ['Beta Pharma']

    def test_missing_month_is_underperformer(self, records, holdings):
        """Test a stock absent in a month can still be among the bottom three."""
        row = monthly_tracker(records, holdings)[-1]
        assert row['underperformers'] == ['Dec.Gold Mines', 'Beta Pharma']

    def test_no_holdings(self, records):
        """Test a zero portfolio value gives a 0 share."""
        assert monthly_tracker(records, [])[0]['portfolio_percent'] == 0.0


class TestFrequentPerformers:
    """Tests for top/bottom frequency counts."""

    def test_performers(self, records):
        """Test stocks ordered by how often they topped a month."""
        assert frequent_performers(records) == ['Alpha Industries', 'Dec.Gold Mines']

    def test_underperformers(self, records):
        """Test stocks ordered by how often they trailed a month."""
        assert frequent_underperformers(records) == ['Beta Pharma', 'Dec.Gold Mines', 'Alpha Industries']

    def test_empty(self):
        """Test no records gives no names."""
        assert frequent_performers([]) == []


class TestMonthOverMonth:
    """Tests for the latest-month comparison."""

    def test_rows(self, records):
        """Test change, streak and volume trend per stock."""
        rows = {row['stock']: row for row in month_over_month(records)}

        beta = rows['Beta Pharma']
        assert beta['month'] == 'Dec-24'
        assert beta['previous_return'] == -2.0
        assert beta['current_return'] == -3.0
        assert beta['change'] == -1.0
        assert beta['streak'] == -8
        assert beta['volume_trend'] == 'Decreasing'
        assert beta['volume_change'] == -15.0

        assert rows['Alpha Industries']['volume_trend'] == 'Increasing'

    def test_short_history_holds(self, records):
        """Test a 3-month history gets a neutral Hold."""
        dec = next(row for row in month_over_month(records) if row['stock'] == 'Dec.Gold Mines')
        assert dec['signal'] == 'Hold'
        assert dec['score'] == 50
        assert dec['volume_trend'] is None

    def test_single_month(self):
        """Test one month of data has nothing to compare."""
        assert month_over_month([_record('A', [('Jan-24', 1)])]) == []

    def test_out_of_range_label_does_not_raise(self):
        """Test a month label with an impossible year is treated as the oldest month."""
        rows = month_over_month([_record('A', [('Jan-24', 1), ('Feb-8000', 2)])])
        assert rows[0]['month'] == 'Jan-24'
        assert rows[0]['previous_return'] == 2.0


class TestSectorConsistency:
    """Tests for sector grouping."""

    def test_sector_rows(self, records, holdings):
        """Test grouping, percentages and ordering."""
        rows = sector_consistency(records, holdings)
        assert [row['sector'] for row in rows] == ['Industrials', 'Unknown', 'Healthcare']

        industrials = rows[0]
        assert industrials['positive_count'] == 1
        assert industrials['stock_count'] == 1
        assert industrials['avg_return'] == pytest.approx(1.75)
        assert industrials['above_threshold_percent'] == 100.0
        assert industrials['trend'] == 'Rising'

        assert rows[2]['trend'] == 'Declining'

    def test_shared_sector(self):
        """Test stocks with the same sector are averaged together."""
        records = [
            _record('A', [], average_return=2.0),
            _record('B', [], average_return=1.0),
        ]
        holdings = [
            HoldingRecord(stock_name='A', isin='INEA', sector_name='Banks'),
            HoldingRecord(stock_name='B', isin='INEB', sector_name='Banks'),
        ]
        [row] = sector_consistency(records, holdings)
        assert row['stock_count'] == 2
        assert row['avg_return'] == pytest.approx(1.5)
        assert row['above_threshold_percent'] == 50.0
        assert row['trend'] == 'Flat'

    def test_rounded_ties_keep_first_seen_order(self):
        """Test sectors whose percents round to the same value keep input order."""
        records, holdings = [], []
        # Banks: 3 of 13 above (23.08%); Energy: 7 of 30 above (23.33%)
        for sector, above, total in (('Banks', 3, 13), ('Energy', 7, 30)):
            for i in range(total):
                name = f"{sector}{i}"
                records.append(_record(name, [], average_return=2.0 if i < above else 0.5))
                holdings.append(HoldingRecord(stock_name=name, isin=f"INE{name}", sector_name=sector))

        rows = sector_consistency(records, holdings)
        assert [row['sector'] for row in rows] == ['Banks', 'Energy']
        assert rows[0]['above_threshold_percent'] < rows[1]['above_threshold_percent']

    def test_half_percent_rounds_up(self):
        """Test 12.5% rounds up to 13, not to even, and outranks a 12% sector."""
        records, holdings = [], []
        # Low: 5 of 41 above (12.2%, rounds to 12); Eighth: 1 of 8 above (12.5%, rounds to 13)
        for sector, above, total in (('Low', 5, 41), ('Eighth', 1, 8)):
            for i in range(total):
                name = f"{sector}{i}"
                records.append(_record(name, [], average_return=2.0 if i < above else 0.5))
                holdings.append(HoldingRecord(stock_name=name, isin=f"INE{name}", sector_name=sector))

        rows = sector_consistency(records, holdings)
        assert [row['sector'] for row in rows] == ['Eighth', 'Low']


class TestCalendar:
    """Tests for the stock-by-month grid."""

    def test_grid(self, records):
        """Test rows, columns and missing months."""
        calendar = consistency_calendar(records)
        assert calendar.shape == (3, 12)
        assert list(calendar.columns)[:2] == ['Jan-24', 'Feb-24']
        assert calendar.index.name == 'stock'
        assert calendar.loc['Alpha Industries', 'Apr-24'] == -1.0
        assert calendar.loc['Dec.Gold Mines', 'Dec-24'] == 5.0
        assert math.isnan(calendar.loc['Dec.Gold Mines', 'Jan-24'])

    def test_duplicate_month_keeps_last(self):
        """Test a repeated month label shows its last value."""
        calendar = consistency_calendar([_record('A', [('Jan-24', 1), ('Jan-24', 4)])])
        assert calendar.loc['A', 'Jan-24'] == 4.0

    def test_empty(self):
        """Test no records gives an empty grid."""
        assert consistency_calendar([]).empty


class TestAlerts:
    """Tests for the alert table."""

    def test_fixture_alerts(self, records):
        """Test alert rows in input order, Normal rows excluded."""
        rows = alert_table(records)
        assert [(row['stock'], row['alert_type'], row['reason']) for row in rows] == [
            ('Alpha Industries', 'Consistent', '8 consecutive >1.5%'),
            ('Beta Pharma', 'Underperforming', '8 months <1.5%'),
            ('Dec.Gold Mines', 'Consistent', '3 consecutive >1.5%'),
        ]
        assert rows[0]['returns'] == [2.0, 2.0, 2.0]
        assert rows[0]['volumes'] == [110000.0, 125000.0, 130000.0]
        assert rows[1]['volumes'] == []

    def test_zero_return_skips_stock(self):
        """Test a zero return leaves fewer than 3 months and no alert."""
        record = _record('A', [('Jan-24', 2), ('Feb-24', 0), ('Mar-24', 2)], negative_streak=7)
        assert alert_table([record]) == []

    def test_needs_three_months(self):
        """Test fewer than 3 months overall gives no alerts."""
        record = _record('A', [('Jan-24', 2), ('Feb-24', 2)], negative_streak=7)
        assert alert_table([record]) == []


class TestPortfolioHealth:
    """Tests for the health snapshot."""

    def test_fixture_health(self, records):
        """Test the snapshot of the fixture portfolio."""
        health = portfolio_health(records)
        assert health['positive_percent'] == pytest.approx(200 / 3)
        assert health['avg_monthly_return'] == pytest.approx(1.57)
        assert health['avg_consistency_3m'] == pytest.approx((2.7501 + 3.0) / 3)
        assert health['long_negative_streaks'] == 1

    def test_empty(self):
        """Test no records gives zeros."""
        assert portfolio_health([]) == {
            'positive_percent': 0.0,
            'avg_monthly_return': 0.0,
            'avg_consistency_3m': 0.0,
            'long_negative_streaks': 0,
        }
