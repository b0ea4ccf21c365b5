"""
Leaderboard assembly - joins performance records with portfolio holdings.
Computes period statistics per stock, adds placeholder rows for holdings with
no performance data, deduplicates by ISIN and ranks by CAGR.
"""

import logging
import re
from datetime import date
from functools import cmp_to_key
from typing import Dict, Generic, Iterable, List, Optional, Sequence, TypeVar, Union

from analysis.calculations.returns import (
    average_monthly_return,
    cagr,
    consistency,
    current_return,
    investment_monthly_return,
    months_between,
    period_to_months,
)
from analysis.calculations.volatility import sharpe_ratio, volatility
from analysis.models import HoldingRecord, LeaderboardEntry, StockPerformanceRecord, Transaction
from reports.formatters import format_holding_period, format_months
from reports.labelers import NO_DATA, classify_status, classify_trend

logger = logging.getLogger(__name__)

T = TypeVar('T')

_NAME_NOISE = re.compile(r'[.\s]')


def normalize_name(name: Optional[str]) -> str:
    """
    Matching key for a stock name: trimmed, lowercased, dots and whitespace removed.

    Example:
        normalize_name(' Dec.Gold Mines ') -> 'decgoldmines'
    """
    if not name:
        return ''
    return _NAME_NOISE.sub('', name.strip().lower())


class RecordMatcher(Generic[T]):
    """
    Two-stage lookup over records carrying isin and stock_name.

    Exact ISIN first, then normalized stock name. The first record seen for a
    key wins. No partial or fuzzy matching.
    """

    def __init__(self, records: Iterable[T]):
        self._by_isin: Dict[str, T] = {}
        self._by_name: Dict[str, T] = {}
        for record in records:
            isin = getattr(record, 'isin', None)
            if isin:
                self._by_isin.setdefault(isin, record)
            name_key = normalize_name(getattr(record, 'stock_name', None))
            if name_key:
                self._by_name.setdefault(name_key, record)

    def match(self, isin: Optional[str], stock_name: Optional[str]) -> Optional[T]:
        if isin and isin in self._by_isin:
            return self._by_isin[isin]
        name_key = normalize_name(stock_name)
        if name_key:
            return self._by_name.get(name_key)
        return None

    def __contains__(self, record) -> bool:
        return self.match(getattr(record, 'isin', None), getattr(record, 'stock_name', None)) is not None


def first_buy_date(holding: HoldingRecord, transactions: Sequence[Transaction]) -> Optional[date]:
    """
    Earliest BUY transaction date for a holding.

    A transaction matches by ISIN when both sides carry one, otherwise by
    exact stock name.
    """
    buys = []
    for t in transactions:
        if holding.isin and t.isin:
            matched = t.isin == holding.isin
        elif t.stock_name and holding.stock_name:
            matched = t.stock_name == holding.stock_name
        else:
            matched = False
        if matched and t.buy_sell == 'BUY':
            buys.append(t.transaction_date)
    return min(buys) if buys else None


def holding_period_label(
    holding: Optional[HoldingRecord],
    transactions: Sequence[Transaction] = (),
    reference_date: Optional[date] = None
) -> str:
    """
    Holding period display string for a leaderboard row.

    Source order: years/months fields, then asOnDate, then the first BUY
    transaction. Returns "-" when the period is zero or unknown.
    """
    if holding is None:
        return "-"

    if reference_date is None:
        reference_date = date.today()

    if holding.holding_period_years is not None and holding.holding_period_months is not None:
        return format_holding_period(holding.holding_period_years, holding.holding_period_months)

    if holding.as_on_date is not None:
        return format_months(months_between(holding.as_on_date, reference_date))

    start = first_buy_date(holding, transactions)
    if start is not None:
        return format_months(months_between(start, reference_date))

    return "-"


def portfolio_value(holdings: Sequence[HoldingRecord]) -> float:
    return sum(h.market_value or 0 for h in holdings)


def weightage(holding: Optional[HoldingRecord], total_value: float) -> float:
    """Share of portfolio market value in percent (0 without a holding or total)."""
    if holding is None or total_value <= 0:
        return 0.0
    return (holding.market_value or 0) / total_value * 100


def build_entry(
    record: StockPerformanceRecord,
    holding: Optional[HoldingRecord],
    period_months: int,
    total_value: float,
    transactions: Sequence[Transaction] = (),
    reference_date: Optional[date] = None
) -> LeaderboardEntry:
    """Leaderboard row for a stock with performance data."""
    series = record.monthly_returns
    growth = cagr(series, period_months)
    consistency_str = consistency(series, period_months)
    vol = volatility(series, period_months)

    return LeaderboardEntry(
        stock_name=record.stock_name,
        isin=record.isin,
        cagr=growth,
        avg_monthly_return=average_monthly_return(series, period_months),
        actual_monthly_return_from_investment=investment_monthly_return(holding, reference_date),
        current_return=current_return(holding),
        consistency=consistency_str,
        volatility=vol,
        sharpe=sharpe_ratio(series, vol, period_months),
        status=classify_status(growth, consistency_str),
        trend=classify_trend(series, period_months),
        holding_period=holding_period_label(holding, transactions, reference_date),
        weightage=weightage(holding, total_value),
        holding=holding,
    )


def placeholder_entry(
    holding: HoldingRecord,
    total_value: float,
    transactions: Sequence[Transaction] = (),
    reference_date: Optional[date] = None
) -> LeaderboardEntry:
    """Zero-valued row for a holding without performance data."""
    return LeaderboardEntry(
        stock_name=holding.stock_name,
        isin=holding.isin or '',
        cagr=0.0,
        avg_monthly_return=0.0,
        actual_monthly_return_from_investment=0.0,
        current_return=current_return(holding),
        consistency='N/A',
        volatility=0.0,
        sharpe=0.0,
        status=NO_DATA,
        trend=NO_DATA,
        holding_period=holding_period_label(holding, transactions, reference_date),
        weightage=weightage(holding, total_value),
        holding=holding,
        has_performance=False,
    )


def compare_entries(a: LeaderboardEntry, b: LeaderboardEntry) -> float:
    """
    Ranking order: CAGR descending, rows with CAGR exactly 0 last.

    Two zero-CAGR rows order by current return descending.
    """
    if a.cagr == 0 and b.cagr == 0:
        return b.current_return - a.current_return
    if a.cagr == 0:
        return 1
    if b.cagr == 0:
        return -1
    return b.cagr - a.cagr


def deduplicate(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """
    Keep the first entry per ISIN.

    Entries without an ISIN or without a holding are dropped; a missing
    holding is logged.
    """
    seen = set()
    kept = []
    for entry in entries:
        if not entry.isin or entry.holding is None:
            if entry.holding is None:
                logger.warning(
                    f"Stock excluded from leaderboard (no matching holding): "
                    f"{entry.stock_name} (ISIN: {entry.isin})"
                )
            continue
        if entry.isin in seen:
            continue
        seen.add(entry.isin)
        kept.append(entry)
    return kept


def rank_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Sort with compare_entries (stable) and assign 1-based ranks."""
    ranked = sorted(entries, key=cmp_to_key(compare_entries))
    for index, entry in enumerate(ranked):
        entry.rank = index + 1
    return ranked


def assemble_leaderboard(
    performance: Sequence[StockPerformanceRecord],
    holdings: Sequence[HoldingRecord],
    period: Union[str, int] = '1Y',
    transactions: Optional[Sequence[Transaction]] = None,
    as_of: Optional[date] = None
) -> List[LeaderboardEntry]:
    """
    Build the ranked leaderboard for a lookback period.

    Args:
        performance: Stock performance records from the analytics payload
        holdings: Current portfolio holdings
        period: Period label ('3M' ... '5Y') or month count
        transactions: Optional transactions for the holding-period fallback
        as_of: Reference date for holding periods (default: today)

    Returns:
        Ranked entries; every ISIN appears at most once and every row has a
        matching holding
    """
    period_months = period_to_months(period)
    transactions = list(transactions or [])
    total_value = portfolio_value(holdings)

    holding_matcher = RecordMatcher(holdings)
    entries = [
        build_entry(
            record,
            holding_matcher.match(record.isin, record.stock_name),
            period_months,
            total_value,
            transactions,
            as_of,
        )
        for record in performance
    ]

    performance_matcher = RecordMatcher(performance)
    for holding in holdings:
        if holding not in performance_matcher:
            entries.append(placeholder_entry(holding, total_value, transactions, as_of))

    # Holdings whose ISIN is still absent get a row too
    present = {entry.isin for entry in entries if entry.isin}
    for holding in holdings:
        if holding.isin and holding.isin not in present:
            entries.append(placeholder_entry(holding, total_value, transactions, as_of))
            present.add(holding.isin)

    leaderboard = rank_entries(deduplicate(entries))

    logger.info(
        f"Assembled leaderboard: {len(leaderboard)} entries from {len(performance)} "
        f"performance records and {len(holdings)} holdings (period {period_months}M)"
    )
    return leaderboard
