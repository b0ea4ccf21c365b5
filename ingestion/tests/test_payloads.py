"""
Tests for analytics payload loaders.
"""

import json
import tempfile
from pathlib import Path

import pytest

from ingestion.payloads import (
    PayloadError,
    load_json,
    parse_holdings,
    parse_signals,
    parse_stock_performance,
    parse_transactions,
)


FIXTURES = Path(__file__).parent.parent.parent / 'tests/fixtures'


def load_fixture(filename: str):
    """Load a JSON fixture from tests/fixtures."""
    return load_json(FIXTURES / filename)


class TestLoadJson:
    """Tests for reading payload files."""

    def test_missing_file(self):
        """Test a missing file raises PayloadError."""
        with pytest.raises(PayloadError, match='not found'):
            load_json('/nonexistent/payload.json')

    def test_invalid_json(self):
        """Test malformed JSON raises PayloadError."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
            f.write('{"stockPerformance": [')
            path = f.name

        try:
            with pytest.raises(PayloadError, match='Failed to read payload'):
                load_json(path)
        finally:
            Path(path).unlink()


class TestParsers:
    """Tests for payload parsing."""

    def test_stock_performance_fixture(self):
        """Test the stock-analytics fixture parses every record."""
        records = parse_stock_performance(load_fixture('stock_performance.json'))
        assert [r.stock_name for r in records] == ['Alpha Industries', 'Beta Pharma', 'Dec.Gold Mines']
        assert len(records[0].monthly_returns) == 12
        assert records[1].volume_trend.percent_change == -15

    def test_holdings_fixture(self):
        """Test the holdings fixture parses every holding."""
        holdings = parse_holdings(load_fixture('holdings.json'))
        assert len(holdings) == 4
        assert holdings[2].isin is None

    def test_transactions_fixture(self):
        """Test transactions parse with upper-cased sides."""
        transactions = parse_transactions(load_fixture('transactions.json'))
        assert [t.buy_sell for t in transactions] == ['SELL', 'BUY', 'BUY', 'BUY']

    def test_accepts_bare_list_and_data_wrapper(self):
        """Test the three accepted document shapes."""
        row = {'stockName': 'Alpha', 'marketValue': 1}
        assert len(parse_holdings([row])) == 1
        assert len(parse_holdings({'holdings': [row]})) == 1
        assert len(parse_holdings({'data': {'holdings': [row]}})) == 1

    def test_missing_key(self):
        """Test a document without the expected list raises."""
        with pytest.raises(PayloadError, match="missing 'holdings'"):
            parse_holdings({'rows': []})

    def test_not_a_list(self):
        """Test a non-list section raises."""
        with pytest.raises(PayloadError, match='must be a list'):
            parse_holdings({'holdings': {'stockName': 'Alpha'}})

    def test_bad_rows_skipped(self, caplog):
        """Test malformed rows are skipped with a warning."""
        rows = [
            {'stockName': 'Alpha', 'marketValue': 1},
            'not an object',
            {'marketValue': 2},
            {'stockName': 'Beta', 'marketValue': 'lots'},
        ]
        holdings = parse_holdings(rows)
        assert [h.stock_name for h in holdings] == ['Alpha']
        assert 'Skipping holding row 1: not an object' in caplog.text
        assert 'Skipping holding row 2' in caplog.text
        assert 'Skipping holding row 3' in caplog.text

    def test_non_object_months_skipped(self, caplog):
        """Test non-object monthly entries are dropped and the stock is kept."""
        payload = {'stockPerformance': [{
            'isin': 'INE1',
            'stockName': 'Alpha',
            'monthlyReturns': [5, {'month': 'Jan-24', 'return': 2}],
            'monthlyVolumes': ['high', {'month': 'Jan-24', 'avgVolume': 1000}],
        }]}
        [record] = parse_stock_performance(payload)
        assert [m.month for m in record.monthly_returns] == ['Jan-24']
        assert [v.avg_volume for v in record.monthly_volumes] == [1000.0]
        assert 'Skipping monthlyReturns entry for Alpha' in caplog.text
        assert 'Skipping monthlyVolumes entry for Alpha' in caplog.text

    def test_malformed_nested_fields_skip_row(self, caplog):
        """Test a non-object volumeTrend or non-list series skips only that stock."""
        rows = [
            {'stockName': 'Alpha', 'volumeTrend': 3},
            {'stockName': 'Beta', 'monthlyReturns': 7},
            {'stockName': 'Gamma', 'currentStreak': 'inf'},
            {'stockName': 'Delta', 'monthlyReturns': [{'month': 'Jan-24', 'return': 1}]},
        ]
        records = parse_stock_performance(rows)
        assert [r.stock_name for r in records] == ['Delta']
        assert 'volumeTrend must be an object' in caplog.text
        assert 'monthlyReturns must be a list' in caplog.text
        assert 'currentStreak must be a finite number' in caplog.text

    def test_bad_sparkline_skips_signal(self):
        """Test a non-list sparkline skips the signal row."""
        signals = parse_signals({'volumeSpikes': [
            {'stockName': 'Spike', 'close': 50, 'sparkline': 4},
            {'stockName': 'Calm', 'close': 50, 'sparkline': [1, 2]},
        ]})
        assert [s.stock_name for s in signals['volumeSpikes']] == ['Calm']


class TestSignals:
    """Tests for stock-research payloads."""

    def test_fixture_categories(self):
        """Test categories are read from 'data' and filters are ignored."""
        signals = parse_signals(load_fixture('stock_research.json'))
        assert list(signals) == ['volumeSpikes', 'deepPullbacks', 'fiveDayClimbers']
        assert len(signals['volumeSpikes']) == 5
        assert signals['volumeSpikes'][4].sector == 'Unknown'
        assert signals['fiveDayClimbers'][0].is_strictly_ascending is True

    def test_top_level_categories(self):
        """Test a document without 'data' uses its own lists."""
        payload = {'capitulated': [{'stockName': 'Down', 'close': 12}], 'success': True}
        signals = parse_signals(payload)
        assert list(signals) == ['capitulated']

    def test_not_an_object(self):
        """Test a list document raises."""
        with pytest.raises(PayloadError):
            parse_signals([])

    def test_bad_data_section(self):
        """Test a non-object 'data' raises."""
        with pytest.raises(PayloadError, match="'data' must be an object"):
            parse_signals({'data': []})

    def test_round_trip_through_file(self):
        """Test a payload written to disk loads back the same."""
        payload = {'holdings': [{'stockName': 'Alpha', 'marketValue': 5}]}
        with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
            json.dump(payload, f)
            path = f.name

        try:
            assert parse_holdings(load_json(path))[0].market_value == 5.0
        finally:
            Path(path).unlink()


class TestRecompute:
    """Tests for rebuilding aggregates from monthly returns."""

    def test_recompute_aggregates(self):
        """Test recomputed fields match the series, not the payload."""
        payload = {'stockPerformance': [{
            'isin': 'INE1',
            'stockName': 'Alpha',
            'monthlyReturns': [{'month': 'Jan-24', 'return': 2}, {'month': 'Feb-24', 'return': -1}],
            'averageReturn': 99,
            'currentStreak': 7,
            'isPositiveStreak': True,
        }]}
        [record] = parse_stock_performance(payload, recompute=True)
        assert record.average_return == pytest.approx(0.5)
        assert record.consistency_index == pytest.approx(50.0)
        assert record.current_streak == 1
        assert record.is_positive_streak is False

    def test_fixture_matches_recomputed_streaks(self):
        """Test fixture streaks agree with the recomputed ones."""
        given = parse_stock_performance(load_fixture('stock_performance.json'))
        rebuilt = parse_stock_performance(load_fixture('stock_performance.json'), recompute=True)
        for a, b in zip(given, rebuilt):
            assert (a.positive_streak, a.negative_streak, a.current_streak, a.is_positive_streak) == \
                (b.positive_streak, b.negative_streak, b.current_streak, b.is_positive_streak)
