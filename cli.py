#!/usr/bin/env python3
"""
Main CLI for the portfolio analytics engine.
Usage: python cli.py {leaderboard,signals,tables,holdings,screen} ...
"""

import argparse
import json
import logging
import os
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from analysis.calculations.returns import period_to_months
from analysis.guardrails import DataQualityWarning, check_series_quality
from analysis.leaderboard import assemble_leaderboard
from analysis.models import RecordError, parse_date
from ingestion.payloads import (
    PayloadError,
    load_json,
    parse_holdings,
    parse_signals,
    parse_stock_performance,
    parse_transactions,
)
from reports.consistency_tables import (
    alert_table,
    consistency_calendar,
    frequent_performers,
    frequent_underperformers,
    month_over_month,
    monthly_tracker,
    portfolio_health,
    sector_consistency,
)
from reports.formatters import (
    format_holding_period,
    format_indian_number,
    format_percent,
    format_price,
    format_return_trend,
    format_volume,
)
from reports.labelers import count_labels
from screening.buckets import BucketError, holding_period_category
from screening.config import ConfigError, load_config
from screening.filters import (
    FilterError,
    apply_filters,
    edit_draft,
    has_pending_edits,
    initial_filters,
    reset_filters,
    screen,
    set_page,
)
from screening.holdings import ALL, HoldingsTableState, filter_options, holdings_table_page
from screening.pagination import PaginationError

load_dotenv()

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Derived metrics over portfolio analytics payloads',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py leaderboard performance.json holdings.json --period 3Y
  python cli.py signals performance.json
  python cli.py tables performance.json holdings.json --recompute
  python cli.py holdings holdings.json --sector Metals --sort marketValue --desc
  python cli.py screen research.json --category volumeSpikes --set minVolSpike=100
        """
    )
    parser.add_argument('--log-level',
                       default=os.getenv('LOG_LEVEL', 'WARNING'),
                       help='Logging level (default: LOG_LEVEL env var or WARNING)')

    subparsers = parser.add_subparsers(dest='command', required=True)

    leaderboard = subparsers.add_parser('leaderboard', help='Ranked performance leaderboard')
    leaderboard.add_argument('performance', help='Stock-analytics payload (JSON)')
    leaderboard.add_argument('holdings', help='Holdings payload (JSON)')
    leaderboard.add_argument('--period', default='1Y',
                            help='Lookback period: 3M, 6M, 1Y, 2Y, 3Y, 5Y or a month count (default: 1Y)')
    leaderboard.add_argument('--transactions', help='Transactions payload (JSON)')
    leaderboard.add_argument('--as-of', help='Reference date for holding periods (YYYY-MM-DD)')
    leaderboard.add_argument('--recompute', action='store_true',
                            help='Rebuild aggregates from monthly returns')
    leaderboard.add_argument('--json', action='store_true', help='Emit JSON')

    signals = subparsers.add_parser('signals', help='Month-over-month comparison with signals')
    signals.add_argument('performance', help='Stock-analytics payload (JSON)')
    signals.add_argument('--recompute', action='store_true',
                        help='Rebuild aggregates from monthly returns')
    signals.add_argument('--json', action='store_true', help='Emit JSON')

    tables = subparsers.add_parser('tables', help='Consistency tracker, alerts and portfolio health')
    tables.add_argument('performance', help='Stock-analytics payload (JSON)')
    tables.add_argument('holdings', help='Holdings payload (JSON)')
    tables.add_argument('--recompute', action='store_true',
                       help='Rebuild aggregates from monthly returns')
    tables.add_argument('--json', action='store_true', help='Emit JSON')

    holdings_cmd = subparsers.add_parser('holdings', help='Filtered, sorted holdings table')
    holdings_cmd.add_argument('holdings', help='Holdings payload (JSON)')
    holdings_cmd.add_argument('--sector', default=ALL, help='Sector name (default: all)')
    holdings_cmd.add_argument('--stock', default=ALL, help='Stock name (default: all)')
    holdings_cmd.add_argument('--holding-period', default=ALL,
                              help='Holding-period category, e.g. 6Mto1Year (default: all)')
    holdings_cmd.add_argument('--sort', help='Column to sort by (e.g., marketValue)')
    holdings_cmd.add_argument('--desc', action='store_true', help='Sort descending')
    holdings_cmd.add_argument('--page', type=int, default=1, help='Page to show (default: 1)')
    holdings_cmd.add_argument('--page-size', type=int, default=10, help='Rows per page (default: 10)')
    holdings_cmd.add_argument('--json', action='store_true', help='Emit JSON')

    screen_cmd = subparsers.add_parser('screen', help='Filter stock-research signals')
    screen_cmd.add_argument('research', help='Stock-research payload (JSON)')
    screen_cmd.add_argument('--category', required=True, help='Signal category (e.g., volumeSpikes)')
    screen_cmd.add_argument('--set', dest='overrides', action='append', default=[],
                            metavar='FIELD=VALUE', help='Override a filter field (repeatable)')
    screen_cmd.add_argument('--reset', action='store_true',
                            help='Start from the default criteria for the category')
    screen_cmd.add_argument('--page', type=int, default=1, help='Page to show (default: 1)')
    screen_cmd.add_argument('--config', help='Filter defaults YAML (default: FILTER_DEFAULTS_PATH)')
    screen_cmd.add_argument('--json', action='store_true', help='Emit JSON')

    return parser


def _print_table(rows: List[Dict[str, Any]], empty_message: str) -> None:
    if not rows:
        print(empty_message)
        return
    print(pd.DataFrame(rows).to_string(index=False))


def _load_performance(args):
    return parse_stock_performance(load_json(args.performance), recompute=args.recompute)


def run_leaderboard(args) -> None:
    performance = _load_performance(args)
    holdings = parse_holdings(load_json(args.holdings))
    transactions = parse_transactions(load_json(args.transactions)) if args.transactions else None
    as_of = parse_date(args.as_of) if args.as_of else None

    period_months = period_to_months(args.period)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', DataQualityWarning)
        for record in performance:
            for issue in check_series_quality(record, period_months):
                logger.warning(f"{record.stock_name}: {issue}")

    entries = assemble_leaderboard(performance, holdings, args.period, transactions, as_of)

    if args.json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    _print_table([
        {
            'Rank': e.rank,
            'Stock': e.stock_name,
            'CAGR': format_percent(e.cagr),
            'Avg/M': format_percent(e.avg_monthly_return),
            'Return': format_percent(e.current_return),
            'Consistency': e.consistency,
            'Vol': f"{e.volatility:.2f}",
            'Sharpe': f"{e.sharpe:.2f}",
            'Status': e.status,
            'Trend': e.trend,
            'Held': e.holding_period,
            'Weight': f"{e.weightage:.2f}%",
        }
        for e in entries
    ], "No holdings to rank")


def run_signals(args) -> None:
    performance = _load_performance(args)
    rows = month_over_month(performance)

    if args.json:
        print(json.dumps(rows, indent=2))
        return

    if rows:
        counts = count_labels([r['signal'] for r in rows])
        print(', '.join(f"{label}: {count}" for label, count in counts.items()))

    _print_table([
        {
            'Stock': r['stock'],
            'Prev': format_percent(r['previous_return']),
            'Current': format_percent(r['current_return']),
            'Change': format_percent(r['change']),
            'Streak': r['streak'],
            'Volume': r['volume_trend'] or '-',
            'Signal': r['signal'],
            'Score': r['score'],
        }
        for r in rows
    ], "Need at least 2 months of data for a comparison")


def run_tables(args) -> None:
    performance = _load_performance(args)
    holdings = parse_holdings(load_json(args.holdings))

    tracker = monthly_tracker(performance, holdings)
    sectors = sector_consistency(performance, holdings)
    alerts = alert_table(performance)
    health = portfolio_health(performance)
    top = frequent_performers(performance)
    bottom = frequent_underperformers(performance)
    calendar = consistency_calendar(performance)

    if args.json:
        print(json.dumps({
            'monthly_tracker': tracker,
            'frequent_performers': top,
            'frequent_underperformers': bottom,
            'sector_consistency': sectors,
            'alerts': alerts,
            'portfolio_health': health,
            'calendar': calendar.astype(object).where(calendar.notna(), None).to_dict(orient='index'),
        }, indent=2))
        return

    print("Monthly consistency")
    _print_table([
        {
            'Month': r['month'],
            'Above 1.5%': r['count'],
            'Portfolio %': f"{r['portfolio_percent']:.1f}",
            'Top': ', '.join(r['top_performers']) or '-',
            'Under': ', '.join(r['underperformers']) or '-',
        }
        for r in tracker
    ], "No monthly data")
    print()
    print(f"Most frequent top performers: {', '.join(top) or '-'}")
    print(f"Most frequent underperformers: {', '.join(bottom) or '-'}")
    print()
    print("Sector consistency")
    _print_table([
        {
            'Sector': r['sector'],
            'Positive': f"{r['positive_count']}/{r['stock_count']}",
            'Avg return': format_percent(r['avg_return']),
            'Above 1.5%': f"{r['above_threshold_percent']:.0f}%",
            'Trend': r['trend'],
        }
        for r in sectors
    ], "No sectors")
    print()
    print("Consistency calendar")
    if calendar.empty:
        print("No monthly data")
    else:
        print(calendar.to_string(na_rep='-', float_format=lambda v: f"{v:.1f}"))
    print()
    print("Alerts")
    _print_table([
        {
            'Stock': r['stock'],
            'Alert': r['alert_type'],
            'Reason': r['reason'],
            'Last 3M': format_return_trend(r['returns']),
            'Volume': ' → '.join(format_volume(v) for v in r['volumes']) or '-',
            'Action': r['action'],
        }
        for r in alerts
    ], "No alerts")
    print()
    print("Portfolio health")
    print(f"  Positive stocks:      {health['positive_percent']:.1f}%")
    print(f"  Avg monthly return:   {format_percent(health['avg_monthly_return'])}")
    print(f"  Avg consistency (3M): {health['avg_consistency_3m']:.1f}")
    print(f"  6+ month losers:      {health['long_negative_streaks']}")


def run_holdings(args) -> None:
    holdings = parse_holdings(load_json(args.holdings))

    state = HoldingsTableState(page=args.page).with_filters(
        sector=args.sector, stock=args.stock, holding_period=args.holding_period
    ).go_to(args.page)
    if args.sort:
        state = state.toggle_sort(args.sort)
        if args.desc:
            state = state.toggle_sort(args.sort)

    page = holdings_table_page(holdings, state, page_size=args.page_size)
    options = filter_options(holdings)

    if args.json:
        print(json.dumps({
            **page,
            'rows': [h.to_dict() for h in page['rows']],
            'options': options,
        }, indent=2))
        return

    _print_table([
        {
            'Stock': h.stock_name,
            'Sector': h.sector_name or '-',
            'Invested': format_indian_number(h.investment_amount),
            'Value': format_indian_number(h.market_value),
            'P/L %': format_percent(h.profit_loss_till_date_percent),
            'Held': format_holding_period(h.holding_period_years, h.holding_period_months),
            'Period': holding_period_category(h),
        }
        for h in page['rows']
    ], "No holdings match the filters")

    links = ' '.join(str(link) for link in page['page_links'])
    print(f"Page {page['page']} of {max(page['total_pages'], 1)} ({page['total']} holdings)  [{links}]")
    if state.has_active_filters:
        print(f"Sectors: {', '.join(f'{name} ({count})' for name, count in options['sectors'].items())}")


def _parse_override(text: str):
    if '=' not in text:
        raise FilterError(f"Override must look like FIELD=VALUE, got {text!r}")
    name, value = text.split('=', 1)
    return name.strip(), value


def run_screen(args) -> None:
    config = load_config(args.config)
    signals = parse_signals(load_json(args.research))

    draft, applied = initial_filters(config['filters'])
    if args.reset:
        draft, applied = reset_filters(draft, applied, args.category, config['filters'])
    for override in args.overrides:
        name, value = _parse_override(override)
        draft = edit_draft(draft, args.category, name, value)
    if has_pending_edits(draft, applied, args.category):
        logger.info(f"Applying edited {args.category} criteria")
    applied = apply_filters(draft, applied, args.category)
    applied = set_page(applied, args.category, args.page)

    result = screen(
        signals.get(args.category, []),
        args.category,
        applied,
        limit=config['settings']['result_limit'],
        page_size=config['settings']['page_size'],
    )

    if args.json:
        print(json.dumps({**result, 'results': [s.to_dict() for s in result['results']]}, indent=2))
        return

    criteria = ', '.join(f"{k}={v:g}" for k, v in result['criteria'].items())
    print(f"{args.category} ({criteria})")
    _print_table([
        {
            'Stock': s.stock_name,
            'Sector': s.sector,
            'Close': format_price(s.close),
            'From 52W high': format_percent(s.percent_from_52w_high),
            '5D': format_percent(s.return_5d),
            'Vol spike': f"{s.vol_spike:.0f}%",
            'Score': f"{s.score:.3f}",
            'Hint': s.strategy_hint,
        }
        for s in result['results']
    ], "No signals match the filters")
    print(f"Page {result['page']} of {max(result['total_pages'], 1)} ({result['total']} signals)")


COMMANDS = {
    'leaderboard': run_leaderboard,
    'signals': run_signals,
    'tables': run_tables,
    'holdings': run_holdings,
    'screen': run_screen,
}


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        COMMANDS[args.command](args)
    except (PayloadError, ConfigError, FilterError, RecordError, BucketError, PaginationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
