"""Integer arithmetic utilities for minor-currency-unit money.

All prices, amounts and fees inside the core are int (cents). Decimal appears
only when parsing shopper input at the HTTP boundary.
"""

from decimal import Decimal, InvalidOperation

_HUNDRED = Decimal(100)


def cents_to_display(cents: int, symbol: str = "€") -> str:
    """Convert cents to display string: 3750 -> '€37.50', -1200 -> '-€12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-{symbol}{abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"{symbol}{cents // 100:,}.{cents % 100:02d}"


def decimal_to_cents(value: Decimal | str) -> int:
    """Convert a decimal amount with at most 2 places to cents.

    Raises ValueError on more than two decimal places or a non-finite value.
    """
    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    scaled = amount * _HUNDRED
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {value} has more than 2 decimal places")
    return int(scaled)


def apply_bps_half_up(amount: int, bps: int) -> int:
    """amount x bps / 10000, rounded half-up to the cent.

    Integer form of round-half-up: (a x b + 5000) // 10000 for non-negative a.
    """
    if amount == 0 or bps == 0:
        return 0
    return (amount * bps + 5000) // 10000
