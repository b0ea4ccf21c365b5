"""
Analysis Engine Module

Derives portfolio metrics from monthly performance records:
- Period CAGR, average return, consistency and volatility
- Sharpe ratio and streak counters
- Ranked leaderboard joined with holdings
- Rule-based trading signals
"""

__version__ = "0.0.1"
