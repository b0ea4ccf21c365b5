"""
Record types consumed and produced by the derived-metrics engine.
Mirror the analytics API JSON contracts (camelCase keys) as plain dataclasses.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RecordError(ValueError):
    """Raised when a payload record cannot be parsed."""
    pass


def _to_float(value: Any, name: str, default: Optional[float] = 0.0) -> Optional[float]:
    """Coerce a JSON number to float, treating missing values as default."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise RecordError(f"{name} must be numeric, got bool")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise RecordError(f"{name} must be numeric, got {value!r}")


def _to_int(value: Any, name: str, default: Optional[int] = 0) -> Optional[int]:
    number = _to_float(value, name, None)
    if number is None:
        return default
    try:
        return int(number)
    except (ValueError, OverflowError):
        raise RecordError(f"{name} must be a finite number, got {value!r}")


def _as_list(value: Any, name: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise RecordError(f"{name} must be a list, got {type(value).__name__}")
    return value


def parse_date(value: Any) -> Optional[date]:
    """
    Parse an ISO string, datetime or date into a date.

    Returns None for missing values; raises RecordError when unparseable.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, OverflowError) as e:
        raise RecordError(f"Invalid date: {value!r} ({e})")


@dataclass(frozen=True)
class MonthlyReturn:
    """One month's percentage return (month label like 'Jan-24')."""
    month: str
    return_pct: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MonthlyReturn':
        if not isinstance(data, dict):
            raise RecordError(f"Monthly return must be an object, got {data!r}")
        if 'month' not in data:
            raise RecordError("Monthly return missing 'month'")
        return cls(month=str(data['month']), return_pct=_to_float(data.get('return'), 'return'))

    def to_dict(self) -> Dict[str, Any]:
        return {'month': self.month, 'return': self.return_pct}


@dataclass(frozen=True)
class MonthlyVolume:
    month: str
    avg_volume: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MonthlyVolume':
        if not isinstance(data, dict):
            raise RecordError(f"Monthly volume must be an object, got {data!r}")
        return cls(month=str(data.get('month', '')), avg_volume=_to_float(data.get('avgVolume'), 'avgVolume'))


@dataclass(frozen=True)
class VolumeTrend:
    avg_3year_volume: float
    avg_recent_volume: float
    percent_change: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VolumeTrend':
        if not isinstance(data, dict):
            raise RecordError(f"volumeTrend must be an object, got {data!r}")
        return cls(
            avg_3year_volume=_to_float(data.get('avg3YearVolume'), 'avg3YearVolume'),
            avg_recent_volume=_to_float(data.get('avgRecentVolume'), 'avgRecentVolume'),
            percent_change=_to_float(data.get('percentChange'), 'percentChange'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'avg3YearVolume': self.avg_3year_volume,
            'avgRecentVolume': self.avg_recent_volume,
            'percentChange': self.percent_change,
        }


def _parse_series(data: Dict[str, Any], key: str, parse: Callable[[Any], T]) -> List[T]:
    """Parse a per-month list, skipping malformed entries with a warning."""
    parsed = []
    for row in _as_list(data.get(key), key):
        try:
            parsed.append(parse(row))
        except RecordError as e:
            logger.warning(f"Skipping {key} entry for {data['stockName']}: {e}")
    return parsed


@dataclass
class StockPerformanceRecord:
    """
    Per-stock monthly performance as delivered by the stock-analytics API.

    monthly_returns is ordered by calendar month; the aggregate fields are
    computed upstream over the whole series.
    """
    isin: str
    stock_name: str
    monthly_returns: List[MonthlyReturn] = field(default_factory=list)
    monthly_volumes: List[MonthlyVolume] = field(default_factory=list)
    average_return: float = 0.0
    volatility: float = 0.0
    consistency_index: float = 0.0
    positive_streak: int = 0
    negative_streak: int = 0
    above_threshold_count: int = 0
    current_streak: int = 0
    is_positive_streak: bool = False
    volume_trend: Optional[VolumeTrend] = None

    @property
    def returns(self) -> List[float]:
        """Monthly returns as plain floats, in series order."""
        return [m.return_pct for m in self.monthly_returns]

    @property
    def signed_streak(self) -> int:
        """Current streak length, negative when the streak is a losing one."""
        return self.current_streak if self.is_positive_streak else -self.current_streak

    def return_for_month(self, month: str) -> Optional[float]:
        """Return of the first entry labelled month, or None."""
        for m in self.monthly_returns:
            if m.month == month:
                return m.return_pct
        return None

    def volume_for_month(self, month: str) -> Optional[float]:
        for v in self.monthly_volumes:
            if v.month == month:
                return v.avg_volume
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StockPerformanceRecord':
        if not data.get('stockName'):
            raise RecordError("Performance record missing 'stockName'")

        # One bad month should not discard the whole stock
        monthly_returns = _parse_series(data, 'monthlyReturns', MonthlyReturn.from_dict)
        monthly_volumes = _parse_series(data, 'monthlyVolumes', MonthlyVolume.from_dict)
        volume_trend = data.get('volumeTrend')

        return cls(
            isin=str(data.get('isin') or ''),
            stock_name=str(data['stockName']),
            monthly_returns=monthly_returns,
            monthly_volumes=monthly_volumes,
            average_return=_to_float(data.get('averageReturn'), 'averageReturn'),
            volatility=_to_float(data.get('volatility'), 'volatility'),
            consistency_index=_to_float(data.get('consistencyIndex'), 'consistencyIndex'),
            positive_streak=_to_int(data.get('positiveStreak'), 'positiveStreak'),
            negative_streak=_to_int(data.get('negativeStreak'), 'negativeStreak'),
            above_threshold_count=_to_int(data.get('aboveThresholdCount'), 'aboveThresholdCount'),
            current_streak=_to_int(data.get('currentStreak'), 'currentStreak'),
            is_positive_streak=bool(data.get('isPositiveStreak', False)),
            volume_trend=VolumeTrend.from_dict(volume_trend) if volume_trend else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isin': self.isin,
            'stockName': self.stock_name,
            'monthlyReturns': [m.to_dict() for m in self.monthly_returns],
            'monthlyVolumes': [{'month': v.month, 'avgVolume': v.avg_volume} for v in self.monthly_volumes],
            'averageReturn': self.average_return,
            'volatility': self.volatility,
            'consistencyIndex': self.consistency_index,
            'positiveStreak': self.positive_streak,
            'negativeStreak': self.negative_streak,
            'aboveThresholdCount': self.above_threshold_count,
            'currentStreak': self.current_streak,
            'isPositiveStreak': self.is_positive_streak,
            'volumeTrend': self.volume_trend.to_dict() if self.volume_trend else None,
        }


@dataclass
class HoldingRecord:
    """
    A current portfolio position.

    Optional numeric fields stay None when the source omitted them; the
    current-return fallback chain depends on telling absent from zero.
    """
    stock_name: str
    isin: Optional[str] = None
    market_value: float = 0.0
    investment_amount: Optional[float] = None
    profit_loss_till_date_percent: Optional[float] = None
    profit_loss_till_date: float = 0.0
    holding_period_years: Optional[int] = None
    holding_period_months: Optional[int] = None
    as_on_date: Optional[date] = None
    sector_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HoldingRecord':
        if not data.get('stockName'):
            raise RecordError("Holding missing 'stockName'")
        return cls(
            stock_name=str(data['stockName']),
            isin=str(data['isin']) if data.get('isin') else None,
            market_value=_to_float(data.get('marketValue'), 'marketValue'),
            investment_amount=_to_float(data.get('investmentAmount'), 'investmentAmount', None),
            profit_loss_till_date_percent=_to_float(
                data.get('profitLossTillDatePercent'), 'profitLossTillDatePercent', None
            ),
            profit_loss_till_date=_to_float(data.get('profitLossTillDate'), 'profitLossTillDate'),
            holding_period_years=_to_int(data.get('holdingPeriodYears'), 'holdingPeriodYears', None),
            holding_period_months=_to_int(data.get('holdingPeriodMonths'), 'holdingPeriodMonths', None),
            as_on_date=parse_date(data.get('asOnDate')),
            sector_name=data.get('sectorName'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stockName': self.stock_name,
            'isin': self.isin,
            'marketValue': self.market_value,
            'investmentAmount': self.investment_amount,
            'profitLossTillDatePercent': self.profit_loss_till_date_percent,
            'profitLossTillDate': self.profit_loss_till_date,
            'holdingPeriodYears': self.holding_period_years,
            'holdingPeriodMonths': self.holding_period_months,
            'asOnDate': self.as_on_date.isoformat() if self.as_on_date else None,
            'sectorName': self.sector_name,
        }


@dataclass(frozen=True)
class Transaction:
    transaction_date: date
    buy_sell: str
    isin: Optional[str] = None
    stock_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        transaction_date = parse_date(data.get('transactionDate'))
        if transaction_date is None:
            raise RecordError("Transaction missing 'transactionDate'")
        return cls(
            transaction_date=transaction_date,
            buy_sell=str(data.get('buySell', '')).upper(),
            isin=data.get('isin') or None,
            stock_name=data.get('stockName') or None,
        )


@dataclass
class SignalRecord:
    """One stock surfaced by the stock-research screen."""
    isin: str
    stock_name: str
    close: float
    symbol: str = ''
    sector: str = 'Unknown'
    percent_from_52w_high: float = 0.0
    return_5d: float = 0.0
    vol_spike: float = 0.0
    vol_15d_avg_ratio: float = 1.0
    up_days: int = 0
    down_days: int = 0
    score: float = 0.0
    strategy_hint: str = ''
    abs_price_move: float = 0.0
    avg_vol_15: float = 0.0
    avg_vol_30: float = 0.0
    range_20d: float = 100.0
    bo20_score: float = 0.0
    is_strictly_ascending: bool = False
    is_strictly_descending: bool = False
    rsi: Optional[float] = None
    sparkline: List[float] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignalRecord':
        if not data.get('stockName'):
            raise RecordError("Signal missing 'stockName'")
        close = _to_float(data.get('close'), 'close')
        return cls(
            isin=str(data.get('isin') or ''),
            stock_name=str(data['stockName']),
            close=close,
            symbol=str(data.get('symbol') or ''),
            sector=str(data.get('sector') or 'Unknown'),
            percent_from_52w_high=_to_float(data.get('percentFrom52WHigh'), 'percentFrom52WHigh'),
            return_5d=_to_float(data.get('return5D'), 'return5D'),
            vol_spike=_to_float(data.get('volSpike'), 'volSpike'),
            vol_15d_avg_ratio=_to_float(data.get('vol15DAvgRatio'), 'vol15DAvgRatio', 1.0),
            up_days=_to_int(data.get('upDays'), 'upDays'),
            down_days=_to_int(data.get('downDays'), 'downDays'),
            score=_to_float(data.get('score'), 'score'),
            strategy_hint=str(data.get('strategyHint') or ''),
            abs_price_move=_to_float(data.get('absPriceMove'), 'absPriceMove'),
            avg_vol_15=_to_float(data.get('avgVol15'), 'avgVol15'),
            avg_vol_30=_to_float(data.get('avgVol30'), 'avgVol30'),
            range_20d=_to_float(data.get('range20D'), 'range20D', 100.0),
            bo20_score=_to_float(data.get('bo20Score'), 'bo20Score'),
            is_strictly_ascending=bool(data.get('isStrictlyAscending', False)),
            is_strictly_descending=bool(data.get('isStrictlyDescending', False)),
            rsi=_to_float(data.get('rsi'), 'rsi', None),
            sparkline=[_to_float(v, 'sparkline') for v in _as_list(data.get('sparkline'), 'sparkline')],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isin': self.isin,
            'stockName': self.stock_name,
            'symbol': self.symbol,
            'sector': self.sector,
            'close': self.close,
            'percentFrom52WHigh': self.percent_from_52w_high,
            'return5D': self.return_5d,
            'volSpike': self.vol_spike,
            'upDays': self.up_days,
            'downDays': self.down_days,
            'score': self.score,
            'strategyHint': self.strategy_hint,
        }


@dataclass
class LeaderboardEntry:
    """One ranked leaderboard row for the selected lookback period."""
    stock_name: str
    isin: str
    cagr: float
    avg_monthly_return: float
    actual_monthly_return_from_investment: float
    current_return: float
    consistency: str
    volatility: float
    sharpe: float
    status: str
    trend: str
    holding_period: str
    weightage: float
    holding: Optional[HoldingRecord] = None
    has_performance: bool = True
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'stockName': self.stock_name,
            'isin': self.isin,
            'cagr': self.cagr,
            'avgMonthlyReturn': self.avg_monthly_return,
            'actualMonthlyReturnFromInvestment': self.actual_monthly_return_from_investment,
            'currentReturn': self.current_return,
            'consistency': self.consistency,
            'volatility': self.volatility,
            'sharpe': self.sharpe,
            'status': self.status,
            'trend': self.trend,
            'holdingPeriod': self.holding_period,
            'weightage': self.weightage,
            'hasPerformance': self.has_performance,
        }
