"""
Settlement Module

This module handles the settlement calculations for the group expense
splitter application.

Features:
    - Convert net balances into settlement transactions
    - Minimize number of transactions using greedy algorithm
    - Deterministic tie-breaks (same input, same plan)
    - Handle rounding safely with integer minor units
    - Apply recorded settlements back onto balances

Data Model:
    Input - balances (dict keyed by member_id):
        - number (positive = owed money, negative = owes money)

    Output - list of settlement transactions:
        - payer_id: string (debtor who pays)
        - receiver_id: string (creditor who receives)
        - amount: Decimal (rounded to the currency's minor unit)

Functions:
    plan_settlements: Convert balances into minimal settlement transactions.
    apply_settlements: Apply settlement transactions to a copy of balances.
"""

import heapq
import logging
from decimal import Decimal

from config.ledger_config import BALANCE_EPSILON, LEDGER_TOLERANCE
from errors import UnbalancedLedger
from utils import from_minor_units, to_decimal, to_minor_units


logger = logging.getLogger(__name__)


def _fold_residue(settlements: list, side: int, member_id: str, units: int) -> None:
    """Add a residue to the last settlement where member_id is on the given side (0 payer, 1 receiver)."""
    for settlement in reversed(settlements):
        if settlement[side] == member_id:
            logger.debug("Folding %d minor unit residue of %s into a settlement", units, member_id)
            settlement[2] += units
            return
    logger.debug("Leaving %d minor unit residue of %s unplanned", units, member_id)


def plan_settlements(balances: dict, currency=None, tolerance=None, epsilon=BALANCE_EPSILON) -> list[dict]:
    """
    Convert net balances into minimal settlement transactions.

    Uses a greedy algorithm:
        1. Separate members into debtors (balance < -epsilon) and creditors
           (balance > epsilon); near-zero balances are left out
        2. Order both by magnitude, largest first, ties by member_id
        3. Match the largest debtor with the largest creditor:
           - Settle the minimum of their remaining balances
           - Put back whoever still has something left
           - Repeat until one side is empty
        4. A leftover minor unit (rounding residue) is folded into the
           last settlement paid or received by the member holding it;
           when that member has no settlement the residue is left alone

    Not guaranteed to be globally optimal, but every step clears at least
    one member, so a balanced ledger needs at most
    (debtors + creditors - 1) transactions.

    Args:
        balances: Dictionary keyed by member_id with signed balances.
        currency: Group currency; selects the minor unit.
        tolerance: Largest allowed |sum(balances)| (default LEDGER_TOLERANCE).
        epsilon: Balances with a smaller magnitude are treated as zero.

    Returns:
        list[dict]: Settlement transactions, each containing:
            - payer_id: string (debtor who pays)
            - receiver_id: string (creditor who receives)
            - amount: Decimal

    Raises:
        UnbalancedLedger: If the balances do not sum to zero within tolerance.

    Notes:
        - Does NOT modify input balances
        - Does NOT write to Firestore
    """
    if tolerance is None:
        tolerance = LEDGER_TOLERANCE

    imbalance = sum((to_decimal(b) for b in balances.values()), Decimal("0"))
    if abs(imbalance) > tolerance:
        raise UnbalancedLedger(
            f"balances sum to {imbalance}, expected 0 (tolerance {tolerance})",
            imbalance=imbalance
        )

    # Heaps of (-magnitude, member_id): the largest magnitude pops first,
    # and equal magnitudes pop in ascending member_id order
    debtors = []
    creditors = []
    for member_id, balance in balances.items():
        amount = to_decimal(balance)
        if abs(amount) < epsilon:
            continue
        units = to_minor_units(amount, currency)
        if units < 0:
            debtors.append((units, member_id))
        elif units > 0:
            creditors.append((-units, member_id))

    heapq.heapify(debtors)
    heapq.heapify(creditors)

    settlements = []
    while debtors and creditors:
        debt, debtor_id = heapq.heappop(debtors)
        credit, creditor_id = heapq.heappop(creditors)
        debt, credit = -debt, -credit

        transfer = min(debt, credit)
        settlements.append([debtor_id, creditor_id, transfer])

        if debt > transfer:
            heapq.heappush(debtors, (-(debt - transfer), debtor_id))
        if credit > transfer:
            heapq.heappush(creditors, (-(credit - transfer), creditor_id))

    # A leftover party can only absorb its residue through a settlement it
    # already takes part in; otherwise the residue stays unplanned
    for units, debtor_id in debtors:
        _fold_residue(settlements, 0, debtor_id, -units)
    for units, creditor_id in creditors:
        _fold_residue(settlements, 1, creditor_id, -units)

    logger.debug("Planned %d settlements for %d balances", len(settlements), len(balances))

    return [
        {
            "payer_id": payer_id,
            "receiver_id": receiver_id,
            "amount": from_minor_units(units, currency)
        }
        for payer_id, receiver_id, units in settlements
    ]


def apply_settlements(balances: dict, settlements: list[dict], currency=None) -> dict:
    """
    Apply settlement transactions to a copy of balances.

    The payer's balance rises by the amount (their debt shrinks) and the
    receiver's balance falls by it (they are owed less).

    Args:
        balances: Dictionary keyed by member_id with signed balances.
        settlements: Transactions with payer_id, receiver_id, amount.
        currency: Group currency; selects the minor unit.

    Returns:
        dict: New member_id -> Decimal mapping; the input is not modified.
    """
    units = {member_id: to_minor_units(b, currency) for member_id, b in balances.items()}
    for s in settlements:
        amount = to_minor_units(s["amount"], currency)
        units[s["payer_id"]] = units.get(s["payer_id"], 0) + amount
        units[s["receiver_id"]] = units.get(s["receiver_id"], 0) - amount
    return {member_id: from_minor_units(u, currency) for member_id, u in units.items()}
