"""
Display formatting for costs and percentage changes.
"""

from ..analysis.models import PERCENTAGE_NOT_APPLICABLE

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "INR": "₹",
}

SUB_CENT_PRECISION = 6
DEFAULT_PRECISION = 2


def currency_precision(amount: float) -> int:
    """Sub-cent amounts get six fraction digits so they don't show as 0.00."""
    if amount != 0 and abs(amount) < 0.01:
        return SUB_CENT_PRECISION
    return DEFAULT_PRECISION


def _format_amount(amount: float, currency: str, precision: int) -> str:
    currency = (currency or "USD").upper()
    sign = "-" if amount < 0 and round(abs(amount), precision) != 0 else ""
    digits = f"{abs(amount):,.{precision}f}"

    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{sign}{symbol}{digits}"
    return f"{sign}{digits} {currency}"


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format a cost for display.

    Args:
        amount: Amount to format
        currency: ISO currency code

    Returns:
        e.g. "$1,234.50", "-$0.004000" or "12.00 CHF"
    """
    return _format_amount(amount, currency, currency_precision(amount))


def format_table_currency(amount: float, currency: str = "USD") -> str:
    """Full-precision variant used for table columns."""
    return _format_amount(amount, currency, SUB_CENT_PRECISION)


def format_percentage(percentage: float) -> str:
    """
    Format a percentage change.

    The not-applicable marker renders as "N/A" and tiny non-zero changes as
    "<0.1%" so they are not mistaken for no change.
    """
    if percentage == PERCENTAGE_NOT_APPLICABLE:
        return "N/A"
    if percentage != 0 and abs(percentage) < 0.1:
        return "<0.1%"

    sign = "+" if percentage > 0 else ""
    return f"{sign}{percentage:.1f}%"


def change_direction(percentage: float) -> str:
    """Classify a change for colouring: increase, decrease, none or not_applicable."""
    if percentage == PERCENTAGE_NOT_APPLICABLE:
        return "not_applicable"
    if percentage > 0:
        return "increase"
    if percentage < 0:
        return "decrease"
    return "none"
