"""
Signal-category filters for the stock-research screens.

Each category has a frozen criteria dataclass with a matches() predicate.
Filter state is split into DraftFilters (pending edits) and AppliedFilters
(the criteria last applied, plus each category's page); every transition
returns new values instead of mutating.
"""

import logging
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from analysis.models import SignalRecord
from screening.config import load_filter_defaults
from screening.pagination import DEFAULT_PAGE_SIZE, clamp_page, paginate, total_pages

logger = logging.getLogger(__name__)


SIGNAL_RESULT_LIMIT = 6

# Lower score ranks first in these categories
ASCENDING_CATEGORIES = ('deepPullbacks',)


class FilterError(Exception):
    """Raised when a filter category or field does not exist."""
    pass


def snake_to_camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def camel_to_snake(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


@dataclass(frozen=True)
class VolumeSpikeCriteria:
    min_vol_spike: float = 30
    min_price_move: float = 0.5
    min_price: float = 30

    def matches(self, s: SignalRecord) -> bool:
        return (
            s.vol_spike > self.min_vol_spike
            and s.abs_price_move > self.min_price_move
            and s.close > self.min_price
        )


@dataclass(frozen=True)
class DeepPullbackCriteria:
    max_from_high: float = -50
    min_vol: float = 5000
    min_price: float = 30

    def matches(self, s: SignalRecord) -> bool:
        return (
            s.percent_from_52w_high <= self.max_from_high
            and (s.avg_vol_30 > self.min_vol or s.avg_vol_15 > self.min_vol)
            and s.close > self.min_price
        )


@dataclass(frozen=True)
class CapitulatedCriteria:
    max_from_high: float = -90
    min_vol_spike: float = 0
    min_price: float = 10

    def matches(self, s: SignalRecord) -> bool:
        return (
            s.percent_from_52w_high <= self.max_from_high
            and s.vol_spike > self.min_vol_spike
            and s.close > self.min_price
        )


@dataclass(frozen=True)
class FiveDayDeclinerCriteria:
    min_down_days: float = 3
    max_return: float = -1.5
    min_price: float = 30

    def matches(self, s: SignalRecord) -> bool:
        return (
            (s.is_strictly_descending or s.down_days >= self.min_down_days)
            and s.return_5d < self.max_return
            and s.close > self.min_price
        )


@dataclass(frozen=True)
class FiveDayClimberCriteria:
    min_up_days: float = 3
    min_return: float = 1.5
    min_price: float = 30

    def matches(self, s: SignalRecord) -> bool:
        return (
            (s.is_strictly_ascending or s.up_days >= self.min_up_days)
            and s.return_5d > self.min_return
            and s.close > self.min_price
        )


@dataclass(frozen=True)
class TightRangeBreakoutCriteria:
    max_range: float = 15
    min_bo_score: float = 0
    min_vol_spike: float = 50
    min_price: float = 30

    def matches(self, s: SignalRecord) -> bool:
        return (
            s.range_20d < self.max_range
            and s.bo20_score > self.min_bo_score
            and s.vol_spike > self.min_vol_spike
            and s.close > self.min_price
        )


Criteria = Union[
    VolumeSpikeCriteria,
    DeepPullbackCriteria,
    CapitulatedCriteria,
    FiveDayDeclinerCriteria,
    FiveDayClimberCriteria,
    TightRangeBreakoutCriteria,
]

CRITERIA_TYPES = {
    'volumeSpikes': VolumeSpikeCriteria,
    'deepPullbacks': DeepPullbackCriteria,
    'capitulated': CapitulatedCriteria,
    'fiveDayDecliners': FiveDayDeclinerCriteria,
    'fiveDayClimbers': FiveDayClimberCriteria,
    'tightRangeBreakouts': TightRangeBreakoutCriteria,
}

CATEGORIES = tuple(CRITERIA_TYPES)


def _criteria_type(category: str):
    if category not in CRITERIA_TYPES:
        raise FilterError(f"Unknown signal category: {category}")
    return CRITERIA_TYPES[category]


def criteria_from_dict(category: str, values: Dict[str, Any]) -> Criteria:
    """
    Build criteria from camelCase payload fields.

    Missing fields take the dataclass defaults.
    """
    criteria_type = _criteria_type(category)
    known = {f.name for f in fields(criteria_type)}
    kwargs = {}
    for key, value in values.items():
        name = camel_to_snake(key)
        if name not in known:
            raise FilterError(f"Unknown field {key} for category {category}")
        kwargs[name] = float(value)
    return criteria_type(**kwargs)


def criteria_to_dict(criteria: Criteria) -> Dict[str, float]:
    return {snake_to_camel(f.name): getattr(criteria, f.name) for f in fields(criteria)}


def default_criteria(defaults: Optional[Dict[str, Dict[str, float]]] = None) -> Dict[str, Criteria]:
    """Criteria for every category from a defaults mapping (default: loaded config)."""
    if defaults is None:
        defaults = load_filter_defaults()
    return {
        category: criteria_from_dict(category, defaults.get(category, {}))
        for category in CATEGORIES
    }


@dataclass(frozen=True)
class DraftFilters:
    """Criteria being edited, not yet applied."""
    criteria: Dict[str, Criteria]

    def get(self, category: str) -> Criteria:
        _criteria_type(category)
        return self.criteria[category]


@dataclass(frozen=True)
class AppliedFilters:
    """Criteria last applied, with the current page of each category."""
    criteria: Dict[str, Criteria]
    pages: Dict[str, int] = field(default_factory=dict)

    def get(self, category: str) -> Criteria:
        _criteria_type(category)
        return self.criteria[category]

    def page(self, category: str) -> int:
        return self.pages.get(category, 1)


def initial_filters(
    defaults: Optional[Dict[str, Dict[str, float]]] = None
) -> Tuple[DraftFilters, AppliedFilters]:
    """Draft and applied filters both at the defaults, every category on page 1."""
    criteria = default_criteria(defaults)
    return (
        DraftFilters(criteria=dict(criteria)),
        AppliedFilters(criteria=dict(criteria), pages={category: 1 for category in CATEGORIES}),
    )


def _parse_value(value: Union[str, float, int]) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if text == '':
        return None
    try:
        return float(text)
    except ValueError:
        return None


def edit_draft(
    draft: DraftFilters,
    category: str,
    field_name: str,
    value: Union[str, float, int]
) -> DraftFilters:
    """
    Set one draft field.

    Args:
        draft: Current draft filters
        category: Signal category (e.g., 'volumeSpikes')
        field_name: camelCase or snake_case field name
        value: New value; strings are parsed, and an empty or non-numeric
            string keeps the previous value

    Returns:
        New DraftFilters

    Raises:
        FilterError: If the category or field does not exist
    """
    current = draft.get(category)
    name = camel_to_snake(field_name)
    if name not in {f.name for f in fields(current)}:
        raise FilterError(f"Unknown field {field_name} for category {category}")

    number = _parse_value(value)
    if number is None:
        logger.debug(f"Ignoring invalid value {value!r} for {category}.{field_name}")
        return draft

    criteria = dict(draft.criteria)
    criteria[category] = replace(current, **{name: number})
    return DraftFilters(criteria=criteria)


def apply_filters(
    draft: DraftFilters,
    applied: AppliedFilters,
    category: Optional[str] = None
) -> AppliedFilters:
    """
    Promote draft criteria to applied.

    Only category is applied when given, else all of them. Each applied
    category goes back to page 1.
    """
    categories = [category] if category is not None else list(CATEGORIES)
    criteria = dict(applied.criteria)
    pages = dict(applied.pages)
    for name in categories:
        criteria[name] = draft.get(name)
        pages[name] = 1
    return AppliedFilters(criteria=criteria, pages=pages)


def reset_filters(
    draft: DraftFilters,
    applied: AppliedFilters,
    category: str,
    defaults: Optional[Dict[str, Dict[str, float]]] = None
) -> Tuple[DraftFilters, AppliedFilters]:
    """Return one category's draft and applied criteria to the defaults, on page 1."""
    _criteria_type(category)
    reset = default_criteria(defaults)[category]

    draft_criteria = dict(draft.criteria)
    draft_criteria[category] = reset
    applied_criteria = dict(applied.criteria)
    applied_criteria[category] = reset
    pages = dict(applied.pages)
    pages[category] = 1

    return DraftFilters(criteria=draft_criteria), AppliedFilters(criteria=applied_criteria, pages=pages)


def set_page(applied: AppliedFilters, category: str, page: int) -> AppliedFilters:
    _criteria_type(category)
    pages = dict(applied.pages)
    pages[category] = page
    return AppliedFilters(criteria=dict(applied.criteria), pages=pages)


def has_pending_edits(draft: DraftFilters, applied: AppliedFilters, category: str) -> bool:
    """Whether the draft for category differs from what is applied."""
    return draft.get(category) != applied.get(category)


def matches_criteria(signal: SignalRecord, criteria: Criteria) -> bool:
    return criteria.matches(signal)


def filter_signals(
    signals: Iterable[SignalRecord],
    category: str,
    criteria: Criteria
) -> List[SignalRecord]:
    """Signals that satisfy a category's criteria, in input order."""
    _criteria_type(category)
    signals = list(signals)
    kept = [s for s in signals if criteria.matches(s)]
    logger.info(f"Filtered {len(kept)} of {len(signals)} signals for category {category}")
    return kept


def rank_signals(
    signals: Sequence[SignalRecord],
    category: str,
    limit: int = SIGNAL_RESULT_LIMIT
) -> List[SignalRecord]:
    """
    Top signals by score.

    Highest score first, except categories in ASCENDING_CATEGORIES where
    the lowest score (most oversold) ranks first. Ties keep input order.
    """
    descending = category not in ASCENDING_CATEGORIES
    ordered = sorted(signals, key=lambda s: s.score or 0, reverse=descending)
    return ordered[:limit]


def screen(
    signals: Sequence[SignalRecord],
    category: str,
    applied: AppliedFilters,
    limit: int = SIGNAL_RESULT_LIMIT,
    page_size: int = DEFAULT_PAGE_SIZE
) -> Dict[str, Any]:
    """
    Filter, rank and paginate one category's signals under the applied criteria.

    Returns:
        Dictionary with category, criteria (camelCase), results for the
        current page, page, total_pages and total (ranked count)
    """
    criteria = applied.get(category)
    ranked = rank_signals(filter_signals(signals, category, criteria), category, limit)

    pages = total_pages(len(ranked), page_size)
    page = clamp_page(applied.page(category), pages)

    return {
        'category': category,
        'criteria': criteria_to_dict(criteria),
        'results': paginate(ranked, page, page_size),
        'page': page,
        'total_pages': pages,
        'total': len(ranked),
    }
