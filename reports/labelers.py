"""
Classification labelers for leaderboard and consistency tables.
Deterministic threshold ladders: conditions are checked in order, first match wins.
"""

from typing import Any, Dict, List, Optional, Sequence

from analysis.calculations.returns import ReturnSeries, as_returns, period_window
from analysis.models import StockPerformanceRecord


INSUFFICIENT_DATA = 'Insufficient Data'
NO_DATA = 'No Data'


def classify_trend(monthly_returns: ReturnSeries, period_months: int) -> str:
    """
    Classify momentum by comparing the last 3 months with the lookback window.

    Thresholds (avg_recent = mean of last 3, avg_period = window mean):
    - Strong Uptrend: avg_recent > avg_period + 1 and avg_recent > 2
    - Improving: avg_recent > avg_period + 0.5
    - Stable: |avg_recent - avg_period| < 0.5
    - Sideways: |avg_recent| < 1
    - Recovering: avg_recent > avg_period - 1 and avg_recent > 0
    - Weakening: avg_recent < avg_period - 1 and avg_recent < 0
    - Downtrend: avg_recent < -1
    - Falling: anything else

    Args:
        monthly_returns: Full chronological series (not just the window)
        period_months: Lookback window in months

    Returns:
        Trend label, or 'Insufficient Data' with fewer than 3 months
    """
    returns = as_returns(monthly_returns)
    if len(returns) < 3:
        return INSUFFICIENT_DATA

    window = period_window(returns, period_months)
    if not window:
        return INSUFFICIENT_DATA

    recent = returns[-3:]
    avg_recent = sum(recent) / len(recent)
    avg_period = sum(window) / len(window)

    if avg_recent > avg_period + 1 and avg_recent > 2:
        return 'Strong Uptrend'
    elif avg_recent > avg_period + 0.5:
        return 'Improving'
    elif abs(avg_recent - avg_period) < 0.5:
        return 'Stable'
    elif abs(avg_recent) < 1:
        return 'Sideways'
    elif avg_recent > avg_period - 1 and avg_recent > 0:
        return 'Recovering'
    elif avg_recent < avg_period - 1 and avg_recent < 0:
        return 'Weakening'
    elif avg_recent < -1:
        return 'Downtrend'
    else:
        return 'Falling'


def consistency_percent(consistency: str) -> float:
    """
    Percent of consistent months from a "k / n" string.

    Unparseable strings and n == 0 give 0.
    """
    try:
        above, total = (float(part) for part in consistency.split(' / '))
    except (AttributeError, ValueError):
        return 0.0
    return above / total * 100 if total > 0 else 0.0


def classify_status(cagr: float, consistency: str) -> str:
    """
    Leaderboard status badge from CAGR and consistency.

    Thresholds:
    - Best Performer: CAGR > 40% and consistency >= 70%
    - Positive: CAGR > 20% and consistency >= 50%
    - Moderate: CAGR > 10% and consistency >= 40%
    - Volatile: CAGR > 0% and consistency < 40%
    - Neutral: CAGR > -5%
    - Weak: CAGR > -15%
    - Poor: CAGR > -30%
    - Worst Performer: otherwise
    """
    pct = consistency_percent(consistency)

    if cagr > 40 and pct >= 70:
        return 'Best Performer'
    elif cagr > 20 and pct >= 50:
        return 'Positive'
    elif cagr > 10 and pct >= 40:
        return 'Moderate'
    elif cagr > 0 and pct < 40:
        return 'Volatile'
    elif cagr > -5:
        return 'Neutral'
    elif cagr > -15:
        return 'Weak'
    elif cagr > -30:
        return 'Poor'
    else:
        return 'Worst Performer'


def classify_alert(record: StockPerformanceRecord, recent_returns: Sequence[float]) -> Dict[str, str]:
    """
    Alert for a stock from its streak counters and last three monthly returns.

    Args:
        record: Stock performance record (streak counters are read)
        recent_returns: Up to the last 3 monthly returns, oldest first

    Returns:
        Dictionary with alert_type, reason and action. alert_type is
        'Normal' when no rule fires.
    """
    latest = recent_returns[-1] if recent_returns else None

    if record.negative_streak >= 6:
        return {
            'alert_type': 'Underperforming',
            'reason': f"{record.negative_streak} months <1.5%",
            'action': 'Review / Exit',
        }

    if record.positive_streak >= 3 and latest is not None and latest > 1.5:
        return {
            'alert_type': 'Consistent',
            'reason': f"{record.positive_streak} consecutive >1.5%",
            'action': 'Continue Holding',
        }

    if len(recent_returns) >= 3:
        mid = recent_returns[-2]
        if latest < mid - 0.5 and latest < 1.5:
            return {
                'alert_type': 'Watch',
                'reason': 'Slight dip in momentum',
                'action': 'Hold & Monitor',
            }

    return {'alert_type': 'Normal', 'reason': '', 'action': 'Hold'}


def classify_sector_trend(above_threshold_pct: float) -> str:
    """Rising at >= 75% of stocks above threshold, Flat at >= 50%, else Declining."""
    if above_threshold_pct >= 75:
        return 'Rising'
    elif above_threshold_pct >= 50:
        return 'Flat'
    return 'Declining'


def classify_volume_trend(percent_change: Optional[float]) -> Optional[str]:
    if percent_change is None:
        return None
    if percent_change > 0:
        return 'Increasing'
    elif percent_change < 0:
        return 'Decreasing'
    return 'Stable'


def count_labels(labels: List[str]) -> Dict[str, Any]:
    """Frequency of each label, most common first (ties keep first-seen order)."""
    counts: Dict[str, int] = {}
    for label in labels:
        counts[label] = counts.get(label, 0) + 1
    return dict(sorted(counts.items(), key=lambda item: item[1], reverse=True))
