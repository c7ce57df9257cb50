# storefront/utils/money.py
"""
All amounts are integers in the currency's minor unit (paise for INR).
Decimal is only used for the intermediate percentage maths.
"""
from decimal import Decimal, ROUND_DOWN, InvalidOperation

Minor = int

_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€"}


def D(x) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def percent_of(amount: Minor, percent) -> Minor:
    # rounded down to the minor unit so a discount never overshoots
    return int((D(amount) * D(percent) / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_DOWN))


def parse_minor(value, field: str = "amount") -> Minor:
    """Accept ints or integral strings; reject floats with fractions and negatives."""
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer amount in minor units")
    try:
        d = D(value)
    except (InvalidOperation, ValueError):
        raise ValueError(f"{field} must be an integer amount in minor units") from None
    if d != d.to_integral_value() or d < 0:
        raise ValueError(f"{field} must be a non-negative integer amount in minor units")
    return int(d)


def format_money(amount: Minor, currency: str = "INR") -> str:
    symbol = _SYMBOLS.get(currency, currency + " ")
    return f"{symbol}{Decimal(amount) / Decimal(100):,.2f}"
