"""
Formatting and parsing helpers for prices.

Amounts are always Decimal internally; rounding happens only here, when a
value is turned into text for a message or a response.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CURRENCY_SYMBOLS = {
    'INR': '₹',
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'AED': 'AED ',
}

# First number in strings like "₹9,500-14,600 per qtls" or "Total: ₹950.00 for 10kg"
PRICE_LABEL_PATTERN = re.compile(r"(\d+(?:,\d+)*(?:\.\d+)?)")

CENT = Decimal('0.01')


def to_decimal(value: Union[int, float, Decimal, str, None]) -> Optional[Decimal]:
    """
    Coerce a stored number into Decimal.

    Floats go through str() so 95.1 stays 95.1 and not its binary expansion.
    Returns None for empty or non-numeric values.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def parse_price_label(label: Optional[str]) -> Optional[Decimal]:
    """
    Extract the first numeric amount from a display-price string.

    Examples:
        parse_price_label("₹9,500-14,600 per qtls") -> Decimal("9500")
        parse_price_label("Total: ₹950.00 for 10kg") -> Decimal("950.00")
        parse_price_label("Price on request") -> None
    """
    if not label or not isinstance(label, str):
        return None
    match = PRICE_LABEL_PATTERN.search(label)
    if not match:
        return None
    return to_decimal(match.group(1).replace(',', ''))


def currency_symbol(code: str) -> str:
    return CURRENCY_SYMBOLS.get(code.upper(), f"{code.upper()} ")


def money(value: Union[Decimal, int, float, None], currency: str = 'INR') -> str:
    """
    Format an amount with its currency symbol and two decimals.

    money(Decimal("1037.98")) -> "₹1,037.98"
    money(Decimal("11.7981"), "USD") -> "$11.80"
    """
    amount = to_decimal(value)
    if amount is None:
        return 'Price on request'
    rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{currency_symbol(currency)}{rounded:,.2f}"


def round_money(value: Decimal) -> Decimal:
    """Round to cents for display and snapshots shown to customers."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
