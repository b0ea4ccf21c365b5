"""
Holdings table - filter by sector, stock and holding period, sort by column, paginate.
Table state is an immutable value; filter changes send the table back to page 1.
"""

from dataclasses import dataclass, replace
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from analysis.models import HoldingRecord
from screening.buckets import HOLDING_PERIOD_CATEGORIES, BucketError, holding_period_category
from screening.pagination import DEFAULT_PAGE_SIZE, clamp_page, page_window, paginate, total_pages


ALL = 'all'


def filter_holdings(
    holdings: Sequence[HoldingRecord],
    sector: str = ALL,
    stock: str = ALL,
    holding_period: str = ALL
) -> List[HoldingRecord]:
    """
    Holdings matching every selected filter ('all' matches everything).

    Raises:
        BucketError: If holding_period is not a known category
    """
    if holding_period != ALL and holding_period not in HOLDING_PERIOD_CATEGORIES:
        raise BucketError(f"Unknown holding-period category: {holding_period}")

    return [
        h for h in holdings
        if (sector == ALL or h.sector_name == sector)
        and (stock == ALL or h.stock_name == stock)
        and (holding_period == ALL or holding_period_category(h) == holding_period)
    ]


def _compare_values(a: Any, b: Any) -> int:
    # Missing or mixed-type values compare as equal
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        return 0
    return 0


def sort_holdings(
    holdings: Sequence[HoldingRecord],
    key: Optional[str],
    direction: str = 'asc'
) -> List[HoldingRecord]:
    """
    Stable sort by a camelCase column (e.g., 'marketValue').

    No key keeps the input order.
    """
    if key is None:
        return list(holdings)

    sign = 1 if direction == 'asc' else -1

    def compare(a: HoldingRecord, b: HoldingRecord) -> int:
        return sign * _compare_values(a.to_dict().get(key), b.to_dict().get(key))

    return sorted(holdings, key=cmp_to_key(compare))


@dataclass(frozen=True)
class HoldingsTableState:
    sector: str = ALL
    stock: str = ALL
    holding_period: str = ALL
    sort_key: Optional[str] = None
    sort_direction: str = 'asc'
    page: int = 1

    @property
    def has_active_filters(self) -> bool:
        return self.sector != ALL or self.stock != ALL or self.holding_period != ALL

    def with_filters(self, **changes) -> 'HoldingsTableState':
        """Change sector / stock / holding_period and return to page 1."""
        return replace(self, page=1, **changes)

    def clear_filters(self) -> 'HoldingsTableState':
        return replace(self, sector=ALL, stock=ALL, holding_period=ALL, page=1)

    def toggle_sort(self, key: str) -> 'HoldingsTableState':
        """Sort ascending by key, or descending when already ascending by key."""
        if self.sort_key == key and self.sort_direction == 'asc':
            return replace(self, sort_key=key, sort_direction='desc')
        return replace(self, sort_key=key, sort_direction='asc')

    def go_to(self, page: int) -> 'HoldingsTableState':
        return replace(self, page=page)


def filter_options(holdings: Sequence[HoldingRecord]) -> Dict[str, Dict[str, int]]:
    """Dropdown options with holding counts: sectors, stocks and holding periods."""
    sectors: Dict[str, int] = {}
    stocks: Dict[str, int] = {}
    for h in holdings:
        if h.sector_name:
            sectors[h.sector_name] = sectors.get(h.sector_name, 0) + 1
        stocks[h.stock_name] = stocks.get(h.stock_name, 0) + 1

    periods = {category: 0 for category in HOLDING_PERIOD_CATEGORIES}
    for h in holdings:
        periods[holding_period_category(h)] += 1

    return {
        'sectors': dict(sorted(sectors.items())),
        'stocks': dict(sorted(stocks.items())),
        'holding_periods': periods,
    }


def holdings_table_page(
    holdings: Sequence[HoldingRecord],
    state: HoldingsTableState,
    page_size: int = DEFAULT_PAGE_SIZE
) -> Dict[str, Any]:
    """
    Render one page of the holdings table.

    Returns:
        Dictionary with rows, page (reset to 1 when out of range),
        total_pages, total and the page links to display
    """
    filtered = filter_holdings(holdings, state.sector, state.stock, state.holding_period)
    ordered = sort_holdings(filtered, state.sort_key, state.sort_direction)

    pages = total_pages(len(ordered), page_size)
    page = clamp_page(state.page, pages)

    return {
        'rows': paginate(ordered, page, page_size),
        'page': page,
        'total_pages': pages,
        'total': len(ordered),
        'page_links': page_window(page, pages),
    }
