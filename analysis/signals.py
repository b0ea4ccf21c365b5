"""
Heuristic buy/hold/exit signal for a stock's monthly return history.

A scored rule engine, not a calibrated model: a neutral score of 50 is
adjusted by independent rule groups (the first matching rule in each group
applies), then an ordered label ladder maps the score and a few guard
conditions to a signal. The first satisfied label wins.
"""

import logging
import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from analysis.guardrails import sort_monthly_returns
from analysis.models import StockPerformanceRecord

logger = logging.getLogger(__name__)


SIGNAL_LOOKBACK_MONTHS = 36
MIN_SIGNAL_HISTORY = 6
NEUTRAL_SCORE = 50
ABOVE_THRESHOLD = 1.5


class Signal(str, Enum):
    """Trading signal labels, strongest buy first."""
    STRONG_BUY = 'Strong Buy'
    CONTINUE_HOLD = 'Continue Hold'
    HOLD = 'Hold'
    MONITOR = 'Monitor'
    CONSIDER_EXIT = 'Consider Exit'
    EXIT = 'Exit'
    POTENTIAL_BUY = 'Potential Buy'


@dataclass(frozen=True)
class SignalContext:
    """Statistics of the lookback window that the rules read."""
    observations: int
    current_return: float
    previous_return: float
    change: float
    streak: int
    mean: float
    variance: float
    std_dev: float
    p25: float
    p50: float
    p75: float
    z_score: float
    avg_3m: float
    avg_6m: float
    avg_12m: float
    momentum_3m: float
    momentum_6m: float
    sharpe_ratio: float
    positive_ratio: float
    above_threshold_ratio: float
    mean_reversion_probability: float
    is_uptrend: bool
    is_downtrend: bool
    is_high_volatility: bool


Rule = Tuple[str, Callable[[SignalContext], bool], int]

# Each group contributes at most one adjustment
SCORE_RULES: List[Tuple[str, List[Rule]]] = [
    ('current_performance', [
        ('strong_positive', lambda c: c.current_return > 3, 15),
        ('good_positive', lambda c: c.current_return > 1.5, 10),
        ('slight_positive', lambda c: c.current_return > 0, 5),
        ('strong_negative', lambda c: c.current_return < -3, -20),
        ('bad_negative', lambda c: c.current_return < -1.5, -15),
        ('slight_negative', lambda c: c.current_return < 0, -5),
    ]),
    ('momentum', [
        ('strong_upward', lambda c: c.momentum_3m > 1 and c.momentum_6m > 0.5, 15),
        ('positive', lambda c: c.momentum_3m > 0.5 and c.momentum_6m > 0, 10),
        ('strong_downward', lambda c: c.momentum_3m < -1 and c.momentum_6m < -0.5, -15),
        ('negative', lambda c: c.momentum_3m < -0.5 and c.momentum_6m < 0, -10),
    ]),
    ('consistency', [
        ('highly_consistent', lambda c: c.above_threshold_ratio > 0.6 and c.positive_ratio > 0.7, 15),
        ('good_consistency', lambda c: c.above_threshold_ratio > 0.4 and c.positive_ratio > 0.6, 10),
        ('poor_consistency', lambda c: c.above_threshold_ratio < 0.2 and c.positive_ratio < 0.4, -15),
    ]),
    ('mean_reversion', [
        ('overextended', lambda c: c.z_score > 2 and c.mean_reversion_probability > 0.7, -10),
        ('oversold_bounce', lambda c: c.z_score < -2 and c.mean_reversion_probability > 0.7, 10),
        ('near_mean', lambda c: abs(c.z_score) < 0.5, 5),
    ]),
    ('streak', [
        ('strong_positive_streak', lambda c: c.streak >= 3 and c.current_return > 1.5, 8),
        ('extended_negative_streak', lambda c: c.streak <= -4 and c.current_return < 1.5, -12),
        ('bad_streak', lambda c: c.streak <= -3, -8),
    ]),
    ('risk_adjusted', [
        ('high_sharpe', lambda c: c.sharpe_ratio > 1.5 and c.current_return > 0, 5),
        ('low_sharpe', lambda c: c.sharpe_ratio < 0.5 and c.current_return < 0, -5),
    ]),
]

LABEL_RULES: List[Tuple[Callable[[SignalContext, int], bool], Signal]] = [
    (lambda c, s: s >= 75 and c.current_return > 1.5 and c.is_uptrend and not c.is_high_volatility,
     Signal.STRONG_BUY),
    (lambda c, s: s >= 60 and c.current_return > 1.5 and c.momentum_3m > 0, Signal.CONTINUE_HOLD),
    (lambda c, s: s >= 55 and c.current_return > 0, Signal.HOLD),
    (lambda c, s: s >= 45 and c.current_return > -1.5, Signal.MONITOR),
    (lambda c, s: s < 45 and c.streak <= -4, Signal.CONSIDER_EXIT),
    (lambda c, s: s < 35 or (c.current_return < -3 and c.streak <= -3), Signal.EXIT),
    (lambda c, s: c.z_score < -2 and c.mean_reversion_probability > 0.7 and c.above_threshold_ratio > 0.3,
     Signal.POTENTIAL_BUY),
]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _ratio(numerator: float, denominator: float) -> float:
    """Division that yields ±inf / nan for a zero denominator."""
    if denominator == 0:
        if numerator == 0:
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def build_context(
    history: Sequence[float],
    current_return: float,
    previous_return: float = 0.0,
    streak: int = 0
) -> Optional[SignalContext]:
    """
    Compute window statistics for the signal rules.

    Args:
        history: Chronological monthly returns in percent
        current_return: Latest month's return
        previous_return: Prior month's return
        streak: Current streak, negative for a losing streak

    Returns:
        SignalContext, or None with fewer than 6 observations
    """
    window = list(history)[-SIGNAL_LOOKBACK_MONTHS:]
    n = len(window)
    if n < MIN_SIGNAL_HISTORY:
        return None

    mean = _mean(window)
    variance = sum((r - mean) ** 2 for r in window) / n
    std_dev = math.sqrt(variance)

    # Nearest-rank percentiles on the sorted window
    ordered = sorted(window)
    p25 = ordered[int(n * 0.25)]
    p50 = ordered[int(n * 0.50)]
    p75 = ordered[int(n * 0.75)]

    z_score = (current_return - mean) / std_dev if std_dev > 0 else 0.0

    last_3 = window[-3:]
    avg_3m = _mean(last_3)
    avg_6m = _mean(window[-6:])
    avg_12m = _mean(window[-12:])
    momentum_3m = avg_3m - avg_6m
    momentum_6m = avg_6m - avg_12m

    if current_return > mean + std_dev or current_return < mean - std_dev:
        if current_return > mean:
            mean_reversion_probability = _ratio(p75 - current_return, p75 - mean)
        else:
            mean_reversion_probability = _ratio(current_return - p25, mean - p25)
    else:
        mean_reversion_probability = 1.0

    recent_variance = sum((r - avg_3m) ** 2 for r in last_3) / len(last_3)

    return SignalContext(
        observations=n,
        current_return=current_return,
        previous_return=previous_return,
        change=current_return - previous_return,
        streak=streak,
        mean=mean,
        variance=variance,
        std_dev=std_dev,
        p25=p25,
        p50=p50,
        p75=p75,
        z_score=z_score,
        avg_3m=avg_3m,
        avg_6m=avg_6m,
        avg_12m=avg_12m,
        momentum_3m=momentum_3m,
        momentum_6m=momentum_6m,
        sharpe_ratio=mean / std_dev if std_dev > 0 else 0.0,
        positive_ratio=sum(1 for r in window if r > 0) / n,
        above_threshold_ratio=sum(1 for r in window if r > ABOVE_THRESHOLD) / n,
        mean_reversion_probability=mean_reversion_probability,
        is_uptrend=momentum_3m > 0 and momentum_6m > 0 and current_return > avg_3m,
        is_downtrend=momentum_3m < 0 and momentum_6m < 0 and current_return < avg_3m,
        is_high_volatility=recent_variance > variance * 1.5,
    )


def score_context(context: SignalContext) -> Tuple[int, List[str]]:
    """
    Apply the score rules to a context.

    Returns:
        Tuple of (final score, names of the rules that fired as 'group.rule')
    """
    score = NEUTRAL_SCORE
    fired = []

    for group, rules in SCORE_RULES:
        for name, predicate, delta in rules:
            if predicate(context):
                score += delta
                fired.append(f"{group}.{name}")
                logger.debug(f"Signal rule {group}.{name}: {delta:+d} -> {score}")
                break

    return score, fired


def classify_score(context: SignalContext, score: int) -> Signal:
    for predicate, signal in LABEL_RULES:
        if predicate(context, score):
            return signal
    return Signal.HOLD


def generate_signal(
    history: Sequence[float],
    current_return: float,
    previous_return: float = 0.0,
    current_streak: int = 0,
    is_positive_streak: bool = True
) -> Dict[str, Any]:
    """
    Classify a stock's latest month into a trading signal.

    Args:
        history: Chronological monthly returns (the last 36 are used)
        current_return: Latest month's return in percent
        previous_return: Prior month's return in percent
        current_streak: Length of the streak in progress
        is_positive_streak: Whether that streak is a winning one

    Returns:
        Dictionary with signal, score, fired rules and the context used.
        Fewer than 6 observations yield a neutral Hold.
    """
    streak = current_streak if is_positive_streak else -current_streak
    context = build_context(history, current_return, previous_return, streak)

    if context is None:
        return {
            'signal': Signal.HOLD.value,
            'score': NEUTRAL_SCORE,
            'rules': [],
            'insufficient_data': True,
            'context': None,
        }

    score, fired = score_context(context)
    signal = classify_score(context, score)

    return {
        'signal': signal.value,
        'score': score,
        'rules': fired,
        'insufficient_data': False,
        'context': asdict(context),
    }


def signal_for_record(
    record: StockPerformanceRecord,
    current_return: float,
    previous_return: float = 0.0
) -> Dict[str, Any]:
    """Signal for a performance record, ordering its history chronologically first."""
    history = [m.return_pct for m in sort_monthly_returns(record.monthly_returns)]
    return generate_signal(
        history,
        current_return,
        previous_return,
        current_streak=record.current_streak,
        is_positive_streak=record.is_positive_streak,
    )
