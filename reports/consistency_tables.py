"""
Consistency tables over a portfolio's monthly performance records.
Monthly tracker, frequent performers, month-over-month signals, sector
consistency, calendar, alerts and a portfolio health snapshot.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from analysis.guardrails import collect_months
from analysis.models import HoldingRecord, StockPerformanceRecord
from analysis.signals import signal_for_record
from reports.labelers import classify_alert, classify_sector_trend, classify_volume_trend

logger = logging.getLogger(__name__)


THRESHOLD = 1.5
TOP_N = 3
FREQUENCY_WINDOW_MONTHS = 12
LONG_NEGATIVE_STREAK = 6


def find_holding(
    record: StockPerformanceRecord,
    holdings: Sequence[HoldingRecord]
) -> Optional[HoldingRecord]:
    """First holding with the record's ISIN, or with exactly the same stock name."""
    for h in holdings:
        if (h.isin and h.isin == record.isin) or h.stock_name == record.stock_name:
            return h
    return None


def rank_month(records: Sequence[StockPerformanceRecord], month: str) -> List[Dict[str, Any]]:
    """
    Stocks ordered by their return in month, best first.

    A missing month counts as 0. Equal returns keep input order.
    """
    rows = [
        {'stock': r.stock_name, 'return': r.return_for_month(month) or 0.0}
        for r in records
    ]
    return sorted(rows, key=lambda row: row['return'], reverse=True)


def month_top_performers(ranked: List[Dict[str, Any]]) -> List[str]:
    """Names among the first 3 ranked with return above the threshold."""
    return [row['stock'] for row in ranked[:TOP_N] if row['return'] > THRESHOLD]


def month_underperformers(ranked: List[Dict[str, Any]]) -> List[str]:
    """Names among the last 3 ranked with return below the threshold."""
    return [row['stock'] for row in ranked[-TOP_N:] if row['return'] < THRESHOLD]


def _most_frequent(counts: Dict[str, int], limit: int = TOP_N) -> List[str]:
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [name for name, _ in ordered[:limit]]


def frequent_performers(records: Sequence[StockPerformanceRecord]) -> List[str]:
    """
    The 3 stocks most often among a month's top performers.

    Counted over the last 12 months of the union of months (or all of them
    when fewer). Ties keep first-seen order.
    """
    counts: Dict[str, int] = {}
    for month in collect_months(records)[-FREQUENCY_WINDOW_MONTHS:]:
        for name in month_top_performers(rank_month(records, month)):
            counts[name] = counts.get(name, 0) + 1
    return _most_frequent(counts)


def frequent_underperformers(records: Sequence[StockPerformanceRecord]) -> List[str]:
    """The 3 stocks most often among a month's underperformers (last 12 months)."""
    counts: Dict[str, int] = {}
    for month in collect_months(records)[-FREQUENCY_WINDOW_MONTHS:]:
        for name in month_underperformers(rank_month(records, month)):
            counts[name] = counts.get(name, 0) + 1
    return _most_frequent(counts)


def monthly_tracker(
    records: Sequence[StockPerformanceRecord],
    holdings: Sequence[HoldingRecord]
) -> List[Dict[str, Any]]:
    """
    Per-month consistency rows, latest month first.

    Each row has the count of stocks above the threshold, the share of
    portfolio market value they hold, and that month's top performers and
    underperformers.
    """
    total_value = sum(h.market_value or 0 for h in holdings)
    rows = []

    for month in reversed(collect_months(records)):
        above = [
            r for r in records
            if r.return_for_month(month) is not None and r.return_for_month(month) > THRESHOLD
        ]
        value_above = 0.0
        for r in above:
            holding = find_holding(r, holdings)
            if holding is not None:
                value_above += holding.market_value or 0

        ranked = rank_month(records, month)
        rows.append({
            'month': month,
            'count': len(above),
            'portfolio_percent': value_above / total_value * 100 if total_value > 0 else 0.0,
            'top_performers': month_top_performers(ranked),
            'underperformers': month_underperformers(ranked),
        })

    return rows


def month_over_month(records: Sequence[StockPerformanceRecord]) -> List[Dict[str, Any]]:
    """
    Latest month against the one before it, with a trading signal per stock.

    Returns an empty list with fewer than 2 months of data.
    """
    months = collect_months(records)
    if len(months) < 2:
        return []

    current_month, previous_month = months[-1], months[-2]
    rows = []

    for r in records:
        current = r.return_for_month(current_month) or 0.0
        previous = r.return_for_month(previous_month) or 0.0
        signal = signal_for_record(r, current, previous)
        trend = r.volume_trend

        rows.append({
            'stock': r.stock_name,
            'isin': r.isin,
            'month': current_month,
            'previous_return': previous,
            'current_return': current,
            'change': current - previous,
            'streak': r.signed_streak,
            'volume_trend': classify_volume_trend(trend.percent_change if trend else None),
            'volume_change': trend.percent_change if trend else None,
            'signal': signal['signal'],
            'score': signal['score'],
        })

    logger.info(f"Month-over-month comparison for {current_month}: {len(rows)} stocks")
    return rows


def sector_consistency(
    records: Sequence[StockPerformanceRecord],
    holdings: Sequence[HoldingRecord]
) -> List[Dict[str, Any]]:
    """
    Consistency of average returns grouped by the holding's sector.

    Sorted by the percent of stocks averaging above the threshold, rounded
    to a whole number (halves up), highest first; equal rounded values keep
    first-seen order. Stocks without a holding or sector fall under 'Unknown'.
    """
    sectors: Dict[str, List[StockPerformanceRecord]] = {}
    for r in records:
        holding = find_holding(r, holdings)
        sector = (holding.sector_name if holding else None) or 'Unknown'
        sectors.setdefault(sector, []).append(r)

    rows = []
    for sector, stocks in sectors.items():
        n = len(stocks)
        positive = sum(1 for s in stocks if s.average_return > 0)
        above = sum(1 for s in stocks if s.average_return > THRESHOLD)
        above_pct = above / n * 100

        rows.append({
            'sector': sector,
            'positive_count': positive,
            'stock_count': n,
            'avg_return': sum(s.average_return for s in stocks) / n,
            'above_threshold_percent': above_pct,
            'trend': classify_sector_trend(above_pct),
        })

    return sorted(rows, key=lambda row: -math.floor(row['above_threshold_percent'] + 0.5))


def consistency_calendar(records: Sequence[StockPerformanceRecord]) -> pd.DataFrame:
    """
    Stock-by-month grid of returns.

    Rows are stock names in input order, columns the union of months
    oldest first. Missing months are NaN; a repeated month label keeps its
    last value.
    """
    months = collect_months(records)
    rows = [{m.month: m.return_pct for m in r.monthly_returns} for r in records]
    calendar = pd.DataFrame(
        rows,
        index=pd.Index([r.stock_name for r in records], name='stock'),
        columns=months,
        dtype=float,
    )
    return calendar


def alert_table(records: Sequence[StockPerformanceRecord]) -> List[Dict[str, Any]]:
    """
    Stocks whose last three months trigger an alert.

    Needs at least 3 months overall. A month with a missing or zero return
    is dropped, and stocks left with fewer than 3 returns are skipped.
    'Normal' rows are not included.
    """
    months = collect_months(records)
    if len(months) < 3:
        return []

    last_3 = months[-3:]
    rows = []

    for r in records:
        returns = [r.return_for_month(m) for m in last_3]
        returns = [ret for ret in returns if ret]
        if len(returns) < 3:
            continue

        volumes = [r.volume_for_month(m) for m in last_3]
        volumes = [v for v in volumes if v]

        alert = classify_alert(r, returns)
        if alert['alert_type'] == 'Normal':
            continue

        rows.append({
            'stock': r.stock_name,
            'returns': returns,
            'volumes': volumes,
            **alert,
        })

    return rows


def portfolio_health(records: Sequence[StockPerformanceRecord]) -> Dict[str, Any]:
    """
    Snapshot of the portfolio's current consistency.

    Returns:
        Dictionary with positive_percent, avg_monthly_return,
        avg_consistency_3m (consistencyIndex scaled to a 3-month count) and
        long_negative_streaks (stocks with 6+ month losing streaks)
    """
    n = len(records)
    if n == 0:
        return {
            'positive_percent': 0.0,
            'avg_monthly_return': 0.0,
            'avg_consistency_3m': 0.0,
            'long_negative_streaks': 0,
        }

    return {
        'positive_percent': sum(1 for r in records if r.average_return > 0) / n * 100,
        'avg_monthly_return': sum(r.average_return for r in records) / n,
        'avg_consistency_3m': sum(r.consistency_index / 100 * 3 for r in records) / n,
        'long_negative_streaks': sum(1 for r in records if r.negative_streak >= LONG_NEGATIVE_STREAK),
    }
