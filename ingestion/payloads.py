"""
Loaders for analytics API payloads saved as JSON.
Turn stock-analytics, holdings, transactions and stock-research documents into records.
Malformed rows are skipped with a warning; a malformed document raises.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, TypeVar, Union

from analysis.calculations.streaks import build_performance_record
from analysis.models import (
    HoldingRecord,
    RecordError,
    SignalRecord,
    StockPerformanceRecord,
    Transaction,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class PayloadError(Exception):
    """Raised when a payload document has the wrong structure."""
    pass


def load_json(path: Union[str, Path]) -> Any:
    """
    Read a JSON document from disk.

    Raises:
        PayloadError: If the file is missing or not valid JSON
    """
    payload_file = Path(path)
    if not payload_file.exists():
        raise PayloadError(f"Payload file not found: {path}")

    try:
        with open(payload_file, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PayloadError(f"Failed to read payload {path}: {e}")


def _unwrap(payload: Any, key: str) -> List[Dict[str, Any]]:
    """Accept either a bare list or {key: [...]}, optionally under 'data'."""
    if isinstance(payload, dict):
        if key in payload:
            payload = payload[key]
        elif isinstance(payload.get('data'), dict) and key in payload['data']:
            payload = payload['data'][key]
        else:
            raise PayloadError(f"Payload missing '{key}'")

    if not isinstance(payload, list):
        raise PayloadError(f"'{key}' must be a list, got {type(payload).__name__}")
    return payload


def _parse_rows(rows: List[Any], parse: Callable[[Dict[str, Any]], T], kind: str) -> List[T]:
    records = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning(f"Skipping {kind} row {index}: not an object")
            continue
        try:
            records.append(parse(row))
        except RecordError as e:
            logger.warning(f"Skipping {kind} row {index}: {e}")
    logger.info(f"Parsed {len(records)} of {len(rows)} {kind} rows")
    return records


def parse_stock_performance(payload: Any, recompute: bool = False) -> List[StockPerformanceRecord]:
    """
    Records from a stock-analytics payload ({'stockPerformance': [...]} or a list).

    Args:
        payload: Parsed JSON document
        recompute: Rebuild average, volatility, consistency index and
            streaks from each record's monthly returns instead of trusting
            the payload's precomputed values

    Returns:
        List of StockPerformanceRecord
    """
    records = _parse_rows(
        _unwrap(payload, 'stockPerformance'), StockPerformanceRecord.from_dict, 'stock performance'
    )
    if recompute:
        records = [
            build_performance_record(
                r.isin, r.stock_name, r.monthly_returns, r.monthly_volumes, r.volume_trend
            )
            for r in records
        ]
    return records


def parse_holdings(payload: Any) -> List[HoldingRecord]:
    """Holdings from {'holdings': [...]} or a list."""
    return _parse_rows(_unwrap(payload, 'holdings'), HoldingRecord.from_dict, 'holding')


def parse_transactions(payload: Any) -> List[Transaction]:
    """Transactions from {'transactions': [...]} or a list."""
    return _parse_rows(_unwrap(payload, 'transactions'), Transaction.from_dict, 'transaction')


def parse_signals(payload: Any) -> Dict[str, List[SignalRecord]]:
    """
    Signals per category from a stock-research payload.

    Args:
        payload: {'data': {category: [...]}} or {category: [...]}

    Returns:
        Dictionary of category -> SignalRecord list

    Raises:
        PayloadError: If the document is not a mapping of lists
    """
    if not isinstance(payload, dict):
        raise PayloadError(f"Stock-research payload must be an object, got {type(payload).__name__}")

    data = payload.get('data', payload)
    if not isinstance(data, dict):
        raise PayloadError("Stock-research 'data' must be an object")

    signals = {}
    for category, rows in data.items():
        if not isinstance(rows, list):
            # filters / metadata sections ride along in the same object
            continue
        signals[category] = _parse_rows(rows, SignalRecord.from_dict, f"{category} signal")
    return signals
