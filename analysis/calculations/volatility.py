"""
Volatility calculation utilities.
Pure functions for window volatility and the Sharpe ratio of monthly returns.
"""

import numpy as np
import math
from typing import Sequence

from analysis.calculations.returns import ReturnSeries, cagr, period_window


# Annual risk-free rate in percent (Indian government bonds)
RISK_FREE_RATE = 7.5

MONTHS_PER_YEAR = 12


def population_std(values: Sequence[float]) -> float:
    """
    Population standard deviation (ddof=0).

    Returns 0 for an empty sequence.
    """
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=0))


def volatility(monthly_returns: ReturnSeries, period_months: int) -> float:
    """
    Volatility of the trailing window of monthly returns.

    Formula: σ = sqrt(Σ(r_i - mean)² / n), not annualized

    Args:
        monthly_returns: Monthly returns in percent, chronological
        period_months: Lookback window in months

    Returns:
        Monthly volatility in percent points (0 for an empty window)
    """
    window = period_window(monthly_returns, period_months)
    return population_std(window)


def annualize_volatility(monthly_volatility: float) -> float:
    """Scale a monthly volatility to annual: σ × √12."""
    return monthly_volatility * math.sqrt(MONTHS_PER_YEAR)


def sharpe_ratio(
    monthly_returns: ReturnSeries,
    monthly_volatility: float,
    period_months: int,
    risk_free_rate: float = RISK_FREE_RATE
) -> float:
    """
    Sharpe ratio of the trailing window.

    Formula: (CAGR% - risk_free_rate) / (σ_monthly × √12)

    Args:
        monthly_returns: Monthly returns in percent, chronological
        monthly_volatility: Window volatility from volatility()
        period_months: Lookback window in months
        risk_free_rate: Annual risk-free rate in percent

    Returns:
        Sharpe ratio, 0 when volatility is zero or there is no data
    """
    if monthly_volatility == 0 or len(monthly_returns) == 0:
        return 0.0

    if not period_window(monthly_returns, period_months):
        return 0.0

    annualized_return = cagr(monthly_returns, period_months)
    annualized_vol = annualize_volatility(monthly_volatility)
    if annualized_vol == 0:
        return 0.0

    return (annualized_return - risk_free_rate) / annualized_vol
