"""
Summary Module

Builds the group summary read model consumed by the API and report views.

Pure composition: aggregate_balances() -> plan_settlements() plus the
category rollup, with display names joined in from the member directory.

Output - GroupSummary (dict):
    - total_expenses: float
    - currency: string
    - member_balances: list of {member_id, display_name, balance}
    - category_breakdown: list of {category, amount, percentage}
    - settlements_needed: list of {payer_id, payer_name, receiver_id,
      receiver_name, amount}
"""

from analytics import category_rollup
from config.ledger_config import DEFAULT_CURRENCY
from ledger import aggregate_balances
from settlement import apply_settlements, plan_settlements


def _group_currency(expenses: list[dict], currency=None) -> str:
    """
    Resolve the group currency and check every expense uses it.

    Raises:
        ValueError: If an expense is recorded in another currency.
    """
    if currency is None:
        currency = next(
            (e["currency"] for e in expenses if e.get("currency")),
            DEFAULT_CURRENCY
        )
    for expense in expenses:
        expense_currency = expense.get("currency")
        if expense_currency and expense_currency.upper() != currency.upper():
            raise ValueError(
                f"expense {expense.get('expense_id')} is in {expense_currency}, "
                f"group currency is {currency}"
            )
    return currency.upper()


def build_summary(
    expenses: list[dict],
    shares: list[dict],
    members: list[dict],
    currency=None,
    completed_settlements=None
) -> dict:
    """
    Build the summary of a group's expenses, balances and settlements.

    Args:
        expenses: Expense dicts (expense_id, amount, paid_by, category,
            optional currency).
        shares: Share dicts (expense_id, member_id, amount, status).
        members: Member directory dicts (member_id, display_name).
        currency: Group currency; taken from the expenses when omitted.
        completed_settlements: Recorded payments already made
            (payer_id, receiver_id, amount); they reduce the balances
            before new settlements are planned.

    Returns:
        dict: GroupSummary, see module docstring.

    Raises:
        ValueError: If an expense uses a different currency.
        UnbalancedLedger: If the shares do not cover their expenses.
    """
    currency = _group_currency(expenses, currency)
    names = {m["member_id"]: m.get("display_name") or m["member_id"] for m in members}

    paid_by = {e["expense_id"]: e["paid_by"] for e in expenses}
    amounts = {e["expense_id"]: e["amount"] for e in expenses}

    balances = aggregate_balances(shares, paid_by, amounts, members=members, currency=currency)
    if completed_settlements:
        balances = apply_settlements(balances, completed_settlements, currency)

    settlements = plan_settlements(balances, currency=currency)
    total, breakdown = category_rollup(expenses, currency)

    # Directory order first, then ids only seen in expenses, sorted
    directory_ids = [m["member_id"] for m in members]
    extra_ids = sorted(set(balances) - set(directory_ids))

    return {
        "total_expenses": float(total),
        "currency": currency,
        "member_balances": [
            {
                "member_id": member_id,
                "display_name": names.get(member_id, member_id),
                "balance": float(balances[member_id])
            }
            for member_id in directory_ids + extra_ids
            if member_id in balances
        ],
        "category_breakdown": [
            {
                "category": entry["category"],
                "amount": float(entry["amount"]),
                "percentage": float(entry["percentage"])
            }
            for entry in breakdown
        ],
        "settlements_needed": [
            {
                "payer_id": s["payer_id"],
                "payer_name": names.get(s["payer_id"], s["payer_id"]),
                "receiver_id": s["receiver_id"],
                "receiver_name": names.get(s["receiver_id"], s["receiver_id"]),
                "amount": float(s["amount"])
            }
            for s in settlements
        ]
    }
