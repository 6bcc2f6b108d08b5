"""Integer arithmetic for whole-unit amounts.

Balances and ledger amounts are ints. Percentages come from configuration
as floats (2.5 means 2.5%), so they are converted through their decimal
string before multiplying; the result is floored so the platform never
pays out a fraction it doesn't have.
"""

from decimal import Decimal, ROUND_FLOOR


def percent_of(amount: int, percent: float) -> int:
    """floor(amount × percent / 100): 100000 at 2% -> 2000, 999 at 8% -> 79."""
    if amount == 0 or percent == 0:
        return 0
    value = Decimal(amount) * Decimal(str(percent)) / Decimal(100)
    return int(value.to_integral_value(rounding=ROUND_FLOOR))
