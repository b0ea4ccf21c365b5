"""
Display formatters for leaderboard and consistency tables.
Deterministic string formatting for percentages, Indian number scales and periods.
"""

from typing import Optional, Sequence


class FormatterError(Exception):
    """Raised when formatter input validation fails."""
    pass


def _check_numeric(value, name: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise FormatterError(f"{name} must be numeric, got {type(value)}")


def format_percent(value: Optional[float], decimal_places: int = 2, suffix: bool = True) -> str:
    """
    Format a percent value with an explicit sign.

    Args:
        value: Percent value (2.5 = 2.5%)
        decimal_places: Number of decimal places (default: 2)
        suffix: Append '%' (default: True)

    Returns:
        Formatted string (e.g., "+2.50%", "-1.2")
    """
    if value is None:
        return "-"

    _check_numeric(value, "Percentage value")

    sign = "+" if value >= 0 else ""
    text = f"{sign}{value:.{decimal_places}f}"
    return f"{text}%" if suffix else text


def format_indian_number(value: Optional[float]) -> str:
    """
    Format an amount using crore / lakh / thousand scales.

    Example:
        format_indian_number(25000000) -> "2.50Cr"
        format_indian_number(150000) -> "1.50L"
        format_indian_number(999) -> "999.00"
    """
    if value is None:
        return "-"

    _check_numeric(value, "Amount")

    if value >= 1e7:
        return f"{value / 1e7:.2f}Cr"
    elif value >= 1e5:
        return f"{value / 1e5:.2f}L"
    elif value >= 1e3:
        return f"{value / 1e3:.2f}K"
    return f"{value:.2f}"


def format_volume(volume: Optional[float]) -> str:
    """Traded volume on the same scales with one decimal; zero shows as '-'."""
    if volume is None or volume == 0:
        return "-"

    _check_numeric(volume, "Volume")

    if volume >= 1e7:
        return f"{volume / 1e7:.1f}Cr"
    elif volume >= 1e5:
        return f"{volume / 1e5:.1f}L"
    elif volume >= 1e3:
        return f"{volume / 1e3:.1f}K"
    return f"{volume:.0f}"


def format_price(price: float) -> str:
    _check_numeric(price, "Price")
    return f"₹{price:.2f}"


def format_holding_period(years: Optional[int], months: Optional[int]) -> str:
    """
    Format a holding period as "{years}Y {months}M".

    Example:
        format_holding_period(1, 2) -> "1Y 2M"
        format_holding_period(0, 0) -> "-"
    """
    years = years or 0
    months = months or 0
    if years == 0 and months == 0:
        return "-"
    return f"{years}Y {months}M"


def format_months(total_months: int) -> str:
    """Format a month count as a holding period (e.g., 14 -> "1Y 2M")."""
    years, months = divmod(total_months, 12)
    return format_holding_period(years, months)


def format_return_trend(returns: Sequence[float]) -> str:
    """Join returns as a left-to-right trend (e.g., "1.2 → -0.5 → 2.0")."""
    return " → ".join(f"{r:.1f}" for r in returns)
