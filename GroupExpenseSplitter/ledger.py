"""
Ledger Module

This module folds a group's expense shares into per-member net balances.

Features:
    - Payer is credited with the amount they fronted
    - Each share owner is debited with their share
    - Settled shares count as already repaid
    - Integer minor-unit arithmetic, so the result sums to exactly zero
    - Near-zero residues are clamped to zero

Data Model:
    Input - shares (list of dicts):
        - expense_id: string
        - member_id: string
        - amount: number (positive magnitude owed toward the expense)
        - status: string (pending, settled), optional

    Input - paid_by (dict): expense_id -> member_id
    Input - expense_amount (dict): expense_id -> amount

    Output - balances (dict keyed by member_id):
        - Decimal, positive = the group owes this member,
          negative = this member owes the group

Functions:
    aggregate_balances: Fold expense shares into net balances.
    balance_total: Sum a balance mapping.
"""

import logging
from collections import defaultdict
from decimal import Decimal

from config.ledger_config import BALANCE_EPSILON
from utils import from_minor_units, to_decimal, to_minor_units


logger = logging.getLogger(__name__)


def balance_total(balances: dict) -> Decimal:
    """Sum a member_id -> balance mapping as a Decimal."""
    return sum((to_decimal(b) for b in balances.values()), Decimal("0"))


def aggregate_balances(
    shares: list[dict],
    paid_by: dict,
    expense_amount: dict,
    members=None,
    currency=None,
    epsilon=BALANCE_EPSILON
) -> dict:
    """
    Fold a group's expense shares into per-member net balances.

    For each expense:
        1. The payer's balance increases by the full expense amount
        2. Each pending share owner's balance decreases by their share
        3. A settled share has already been paid back, so neither the
           owner is debited nor the payer credited for that part

    When an expense's shares miss its amount by at most one minor unit
    (legacy float data), the payer is credited with the share total
    instead so the balances still sum to exactly zero. Larger gaps are
    kept as-is and logged; plan_settlements() rejects such ledgers.

    Args:
        shares: List of share dicts (expense_id, member_id, amount, status).
        paid_by: Mapping expense_id -> member_id of the payer.
        expense_amount: Mapping expense_id -> expense amount.
        members: Optional iterable of member_ids (or member dicts) that
            should appear in the result even with no activity.
        currency: Group currency; selects the minor unit.
        epsilon: Balances with a smaller magnitude are returned as zero.

    Returns:
        dict: member_id -> Decimal balance, keys in first-seen order
            (members first, then payers and share owners).

    Notes:
        - Shares whose expense has no payer are ignored (logged)
        - Does NOT read from or write to Firestore
    """
    balances = {}

    # Every known member starts at zero
    for member in members or []:
        member_id = member["member_id"] if isinstance(member, dict) else member
        balances.setdefault(member_id, 0)

    shares_by_expense = defaultdict(list)
    for share in shares:
        shares_by_expense[share["expense_id"]].append(share)

    for expense_id in shares_by_expense:
        if expense_id not in paid_by or expense_id not in expense_amount:
            logger.warning("Ignoring shares of unknown expense %s", expense_id)

    for expense_id, payer_id in paid_by.items():
        if expense_id not in expense_amount:
            logger.warning("Expense %s has a payer but no amount; skipped", expense_id)
            continue

        amount_units = to_minor_units(expense_amount[expense_id], currency)
        expense_shares = shares_by_expense.get(expense_id, [])
        share_units = [to_minor_units(s["amount"], currency) for s in expense_shares]

        drift = amount_units - sum(share_units)
        if expense_shares and abs(drift) <= 1:
            if drift:
                logger.debug("Expense %s: %d minor unit drift absorbed by payer", expense_id, drift)
            credit = sum(share_units)
        else:
            if drift:
                logger.warning(
                    "Expense %s: shares miss the amount by %d minor units",
                    expense_id, drift
                )
            credit = amount_units

        for share, units in zip(expense_shares, share_units):
            if share.get("status") == "settled":
                # Repaid already: cancel both sides of this share
                credit -= units
                balances.setdefault(share["member_id"], 0)
                continue
            balances[share["member_id"]] = balances.get(share["member_id"], 0) - units

        balances[payer_id] = balances.get(payer_id, 0) + credit

    # Clamp residues below epsilon and convert back to display decimals
    result = {}
    for member_id, units in balances.items():
        amount = from_minor_units(units, currency)
        if abs(amount) < epsilon:
            amount = from_minor_units(0, currency)
        result[member_id] = amount

    return result
