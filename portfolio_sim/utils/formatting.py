"""
Display formatting for money, percentages and large counts.

Used by the CLI summary. Percent inputs are FRACTIONS (0.1234 -> "12.34%").
"""


def format_currency(value: float, decimals: int = 2) -> str:
    """
    Format a dollar amount with thousands separators.

    >>> format_currency(1234.5)
    '$1,234.50'
    >>> format_currency(-50)
    '-$50.00'
    """
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.{decimals}f}"


def format_percent(value: float, decimals: int = 2) -> str:
    """
    Format a fraction as a percentage.

    >>> format_percent(0.1234)
    '12.34%'
    """
    return f"{value * 100:.{decimals}f}%"


def format_large_number(value: float) -> str:
    """
    Abbreviate with K/M/B suffixes (one decimal); small values print as integers.

    >>> format_large_number(1_500_000)
    '1.5M'
    >>> format_large_number(999)
    '999'
    """
    magnitude = abs(value)
    if magnitude >= 1e9:
        return f"{value / 1e9:.1f}B"
    if magnitude >= 1e6:
        return f"{value / 1e6:.1f}M"
    if magnitude >= 1e3:
        return f"{value / 1e3:.1f}K"
    return f"{value:.0f}"
