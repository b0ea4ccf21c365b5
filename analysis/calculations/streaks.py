"""
Streak and aggregate calculations for monthly performance series.
Rebuilds the precomputed fields of a StockPerformanceRecord from raw returns.
"""

from typing import Dict, List, Optional, Sequence, Union

from analysis.calculations.returns import as_returns
from analysis.calculations.volatility import population_std
from analysis.models import MonthlyReturn, MonthlyVolume, StockPerformanceRecord, VolumeTrend


# Strictly above this counts towards the consistency index
ABOVE_THRESHOLD = 1.5


def streak_stats(returns: Sequence[float]) -> Dict[str, Union[int, bool]]:
    """
    Longest winning/losing runs and the run in progress.

    A month with return > 0 extends a winning run; anything else (including
    exactly 0) extends a losing run. The walk starts as an empty winning run.

    Example:
        [1, 2, -1, -2, -3, 4] ->
        positive_streak=2, negative_streak=3, current_streak=1, is_positive_streak=True
    """
    positive_streak = 0
    negative_streak = 0
    current_streak = 0
    is_positive_streak = True

    for r in returns:
        if r > 0:
            if is_positive_streak:
                current_streak += 1
            else:
                negative_streak = max(negative_streak, current_streak)
                current_streak = 1
                is_positive_streak = True
        else:
            if not is_positive_streak:
                current_streak += 1
            else:
                positive_streak = max(positive_streak, current_streak)
                current_streak = 1
                is_positive_streak = False

    if is_positive_streak:
        positive_streak = max(positive_streak, current_streak)
    else:
        negative_streak = max(negative_streak, current_streak)

    return {
        'positive_streak': positive_streak,
        'negative_streak': negative_streak,
        'current_streak': current_streak,
        'is_positive_streak': is_positive_streak,
    }


def above_threshold_count(returns: Sequence[float], threshold: float = ABOVE_THRESHOLD) -> int:
    return sum(1 for r in returns if r > threshold)


def volume_trend_percent(avg_3year_volume: float, avg_recent_volume: float) -> float:
    """Percent change of recent average volume versus the 3-year average."""
    if avg_3year_volume > 0:
        return (avg_recent_volume - avg_3year_volume) / avg_3year_volume * 100
    return 0.0


def build_performance_record(
    isin: str,
    stock_name: str,
    monthly_returns: List[MonthlyReturn],
    monthly_volumes: Optional[List[MonthlyVolume]] = None,
    volume_trend: Optional[VolumeTrend] = None
) -> StockPerformanceRecord:
    """
    Build a StockPerformanceRecord with all aggregate fields derived.

    Args:
        isin: Stock ISIN
        stock_name: Display name
        monthly_returns: Chronological monthly returns
        monthly_volumes: Optional monthly average volumes
        volume_trend: Optional precomputed volume trend

    Returns:
        Record with average, volatility, consistency index and streaks;
        all aggregates are zero when there are no returns
    """
    returns = as_returns(monthly_returns)
    n = len(returns)

    if n == 0:
        return StockPerformanceRecord(
            isin=isin,
            stock_name=stock_name,
            monthly_volumes=list(monthly_volumes or []),
            volume_trend=volume_trend,
        )

    above = above_threshold_count(returns)
    streaks = streak_stats(returns)

    return StockPerformanceRecord(
        isin=isin,
        stock_name=stock_name,
        monthly_returns=list(monthly_returns),
        monthly_volumes=list(monthly_volumes or []),
        average_return=sum(returns) / n,
        volatility=population_std(returns),
        consistency_index=above / n * 100,
        positive_streak=streaks['positive_streak'],
        negative_streak=streaks['negative_streak'],
        above_threshold_count=above,
        current_streak=streaks['current_streak'],
        is_positive_streak=streaks['is_positive_streak'],
        volume_trend=volume_trend,
    )
