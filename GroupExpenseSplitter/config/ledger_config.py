"""
Ledger Configuration

Tolerances and the currency minor-unit table used by the settlement
engine. These values are passed explicitly into the calculation
functions; nothing here is read implicitly at call time.

Settings:
    DEFAULT_CURRENCY: Currency assumed when a group does not declare one.
    DEFAULT_MINOR_UNITS: Decimal digits for currencies missing from the table.
    CURRENCY_MINOR_UNITS: Currency code -> number of decimal digits.
    BALANCE_EPSILON: Balances with a smaller magnitude are treated as zero.
    SPLIT_TOLERANCE: Allowed gap between custom shares and the expense total.
    LEDGER_TOLERANCE: Allowed gap from zero for the sum of all balances.
"""

import os
from decimal import Decimal


DEFAULT_CURRENCY = os.getenv("LEDGER_DEFAULT_CURRENCY", "USD")

DEFAULT_MINOR_UNITS = 2

CURRENCY_MINOR_UNITS = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "INR": 2,
    "AUD": 2,
    "CAD": 2,
    "CHF": 2,
    "CNY": 2,
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "ISK": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "TND": 3,
}

BALANCE_EPSILON = Decimal("0.005")
SPLIT_TOLERANCE = Decimal("0.01")
LEDGER_TOLERANCE = Decimal("0.01")


def get_minor_units(currency=None) -> int:
    """Return the number of decimal digits used for a currency code."""
    if not currency:
        return DEFAULT_MINOR_UNITS
    return CURRENCY_MINOR_UNITS.get(currency.upper(), DEFAULT_MINOR_UNITS)
