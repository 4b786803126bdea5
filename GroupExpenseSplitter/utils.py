"""
Utilities Module

This module provides money helpers and transparency reports for the group
expense splitter application.

Features:
    - Fixed-point conversion between display decimals and integer minor units
    - Per-member breakdown of how a balance was reached
    - Amount formatting with the currency code
    - Identifier generation for stored records

Data Model:
    Input - expenses: list of dicts with:
        - expense_id: string
        - description: string (optional)
        - amount: number
        - paid_by: string (member_id)
        - category: string
        - split_type: string (equal, percentage, custom)
        - date: string (YYYY-MM-DD)

    Input - shares: list of dicts with:
        - expense_id: string
        - member_id: string
        - amount: number
        - status: string (pending, settled)

    Input - balances: dict from aggregate_balances() keyed by member_id.

Functions:
    to_decimal: Convert a number or numeric string to Decimal.
    to_minor_units: Convert a display amount to integer minor units.
    from_minor_units: Convert integer minor units back to a Decimal amount.
    round_amount: Round a display amount to the currency's minor unit.
    explain_member_share: Get detailed breakdown for one member.
    explain_all_members: Get detailed breakdown for every member.
    format_currency: Format amount with its currency code.
    validate_amount: Validate if input is a valid monetary amount.
    generate_id: Generate a unique identifier for records.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from config.ledger_config import get_minor_units
from errors import InvalidAmount


def to_decimal(value) -> Decimal:
    """
    Convert a number or numeric string to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Raises:
        InvalidAmount: If the value is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(f"amount must be a number, got: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmount(f"amount must be a number, got: {value!r}")
    if not result.is_finite():
        raise InvalidAmount(f"amount must be a finite number, got: {value!r}")
    return result


def _quantum(currency=None) -> Decimal:
    """Smallest representable amount for a currency, e.g. Decimal("0.01")."""
    return Decimal(1).scaleb(-get_minor_units(currency))


def to_minor_units(value, currency=None) -> int:
    """
    Convert a display amount to integer minor units (cents for USD).

    Rounds half-up to the currency's minor unit first.

    Args:
        value: Amount in major units (int, float, str or Decimal).
        currency: ISO currency code; defaults to two decimal digits.

    Returns:
        int: Amount in minor units.
    """
    digits = get_minor_units(currency)
    amount = to_decimal(value).quantize(_quantum(currency), rounding=ROUND_HALF_UP)
    return int(amount.scaleb(digits))


def from_minor_units(units: int, currency=None) -> Decimal:
    """Convert integer minor units back to a Decimal in major units."""
    return Decimal(units).scaleb(-get_minor_units(currency)).quantize(_quantum(currency))


def round_amount(value, currency=None) -> Decimal:
    """Round an amount half-up to the currency's minor unit."""
    return to_decimal(value).quantize(_quantum(currency), rounding=ROUND_HALF_UP)


def explain_member_share(
    member_id: str,
    expenses: list[dict],
    shares: list[dict],
    balances: dict,
    currency=None
) -> dict:
    """
    Generate detailed explanation of how a member's balance was reached.

    For each expense the member holds a share of:
        - Shows expense details (id, description, category, date, amount)
        - Shows the split rule and who paid
        - Shows the member's share and whether it is already settled

    Args:
        member_id: ID of the member to explain.
        expenses: List of expense dicts.
        shares: List of share dicts.
        balances: Output from aggregate_balances().
        currency: Group currency used for rounding.

    Returns:
        dict: Explanation containing:
            - member_id: string
            - expense_contributions: list of dicts with expense breakdown
            - total_paid: Decimal (sum of expenses this member fronted)
            - total_share: Decimal (sum of this member's shares)
            - net_balance: Decimal (from balances)
    """
    expense_map = {e["expense_id"]: e for e in expenses}

    contributions = []
    total_share = 0
    for share in shares:
        if share["member_id"] != member_id:
            continue
        expense = expense_map.get(share["expense_id"])
        if expense is None:
            continue

        share_units = to_minor_units(share["amount"], currency)
        total_share += share_units
        contributions.append({
            "expense_id": expense["expense_id"],
            "description": expense.get("description", ""),
            "category": expense.get("category", "other"),
            "date": expense.get("date"),
            "split_type": expense.get("split_type", "equal"),
            "paid_by": expense.get("paid_by"),
            "total_expense_amount": round_amount(expense["amount"], currency),
            "member_share": from_minor_units(share_units, currency),
            "percentage": share.get("percentage"),
            "status": share.get("status", "pending")
        })

    total_paid = sum(
        to_minor_units(e["amount"], currency)
        for e in expenses
        if e.get("paid_by") == member_id
    )

    # Stable order for display: by date, then expense id
    contributions.sort(key=lambda c: (c["date"] or "", c["expense_id"]))

    return {
        "member_id": member_id,
        "expense_contributions": contributions,
        "total_paid": from_minor_units(total_paid, currency),
        "total_share": from_minor_units(total_share, currency),
        "net_balance": balances.get(member_id, from_minor_units(0, currency))
    }


def explain_all_members(
    members: list[dict],
    expenses: list[dict],
    shares: list[dict],
    balances: dict,
    currency=None
) -> list[dict]:
    """
    Generate detailed explanations for all members.

    Includes every member in the directory, even those with no shares,
    ordered by member_id.
    """
    explanations = [
        explain_member_share(m["member_id"], expenses, shares, balances, currency)
        for m in members
    ]
    explanations.sort(key=lambda x: x["member_id"])
    return explanations


def format_currency(amount, currency=None) -> str:
    """
    Format a monetary amount with its currency code.

    Args:
        amount: The amount to format.
        currency: ISO currency code (default: two decimals, no code).

    Returns:
        str: Formatted string like "USD 1,234.56".
    """
    digits = get_minor_units(currency)
    text = f"{round_amount(amount, currency):,.{digits}f}"
    return f"{currency.upper()} {text}" if currency else text


def validate_amount(value) -> bool:
    """
    Validate if the input is a valid monetary amount.

    Args:
        value: Value to validate.

    Returns:
        bool: True if valid positive number.
    """
    try:
        return to_decimal(value) > 0
    except InvalidAmount:
        return False


def generate_id(prefix: str = "ID", number: int = 1) -> str:
    """
    Generate a formatted identifier.

    Args:
        prefix: Prefix for the ID (e.g., "M", "E", "S").
        number: Numeric value to format.

    Returns:
        str: Formatted ID like "M001", "E042".
    """
    return f"{prefix}{number:03d}"
