"""
Splitter Module

This module handles the expense splitting logic for the group expense
splitter application.

Features:
    - Equal splitting among participants
    - Percentage splitting with rounding-drift correction
    - Custom (explicit amount) splitting with tolerance check
    - Shares always add up exactly to the expense amount

Data Model:
    Input - participants (list):
        - member_id strings, or
        - dicts with member_id and, per rule, percentage or amount

    Output - shares (list of dicts, in participant order):
        - member_id: string
        - amount: Decimal (rounded to the currency's minor unit)
        - percentage: Decimal or None

Functions:
    compute_shares: Split an expense amount among participants.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from config.ledger_config import SPLIT_TOLERANCE
from errors import InvalidAmount, InvalidParticipants, SplitMismatch
from utils import from_minor_units, to_decimal, to_minor_units


logger = logging.getLogger(__name__)

SPLIT_RULES = ("equal", "percentage", "custom")

HUNDRED = Decimal("100")


def _normalize_participants(participants) -> list[dict]:
    """
    Turn the participants argument into a list of dicts keyed by member_id.

    Raises:
        InvalidParticipants: If the list is empty, an entry has no
            member_id, or a member appears twice.
    """
    if not participants:
        raise InvalidParticipants("participants must be a non-empty list")

    normalized = []
    seen = set()
    for entry in participants:
        if isinstance(entry, str):
            entry = {"member_id": entry}
        member_id = entry.get("member_id") if isinstance(entry, dict) else None
        if not isinstance(member_id, str) or not member_id.strip():
            raise InvalidParticipants(f"participant has no member_id: {entry!r}")
        if member_id in seen:
            raise InvalidParticipants(f"participant '{member_id}' appears more than once")
        seen.add(member_id)
        normalized.append(entry)

    return normalized


def _distribute_remainder(units: list[int], remainder: int, eligible=None) -> list[int]:
    """
    Spread a remainder of minor units one at a time in list order.

    A positive remainder adds one unit to each of the first N entries; a
    negative remainder takes one unit from each of the first N entries that
    can spare it. The list order is the participant order, so the result is
    deterministic for identical inputs.
    """
    units = list(units)
    step = 1 if remainder > 0 else -1
    index = 0
    while remainder != 0:
        position = index % len(units)
        index += 1
        if step < 0 and units[position] <= 0:
            continue
        if eligible is not None and not eligible[position]:
            continue
        units[position] += step
        remainder -= step
    return units


def _split_equal(total_units: int, participants: list[dict]) -> list[tuple]:
    count = len(participants)
    base, remainder = divmod(total_units, count)
    units = _distribute_remainder([base] * count, remainder)
    return [(p["member_id"], u, None) for p, u in zip(participants, units)]


def _split_percentage(total_units: int, participants: list[dict]) -> list[tuple]:
    percentages = []
    for p in participants:
        if p.get("percentage") is None:
            raise SplitMismatch(f"participant '{p['member_id']}' has no percentage")
        pct = to_decimal(p["percentage"])
        if pct < 0:
            raise InvalidAmount(f"percentage must not be negative, got: {pct}")
        percentages.append(pct)

    pct_total = sum(percentages, Decimal("0"))
    if abs(pct_total - HUNDRED) > SPLIT_TOLERANCE:
        raise SplitMismatch(
            f"percentages must add up to 100, got: {pct_total}",
            expected=HUNDRED,
            actual=pct_total
        )

    # Round each share half-up in minor units, then correct the drift
    units = [
        int((Decimal(total_units) * pct / HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        for pct in percentages
    ]
    drift = total_units - sum(units)
    if drift:
        logger.debug("Percentage split drift of %d minor units corrected", drift)
        # Zero-percent participants never absorb drift
        units = _distribute_remainder(units, drift, eligible=[pct > 0 for pct in percentages])

    return [
        (p["member_id"], u, pct)
        for p, u, pct in zip(participants, units, percentages)
    ]


def _split_custom(total_units: int, participants: list[dict], currency) -> list[tuple]:
    units = []
    for p in participants:
        if p.get("amount") is None:
            raise SplitMismatch(f"participant '{p['member_id']}' has no amount")
        amount = to_decimal(p["amount"])
        if amount < 0:
            raise InvalidAmount(f"share amount must not be negative, got: {amount}")
        units.append(to_minor_units(amount, currency))

    expected = from_minor_units(total_units, currency)
    actual = from_minor_units(sum(units), currency)
    if abs(actual - expected) > SPLIT_TOLERANCE:
        raise SplitMismatch(
            f"custom shares add up to {actual}, expected {expected}",
            expected=expected,
            actual=actual
        )

    drift = total_units - sum(units)
    if drift:
        logger.debug("Custom split drift of %d minor units absorbed", drift)
        # Participants with an explicit zero never absorb drift
        eligible = [u > 0 for u in units]
        units = _distribute_remainder(units, drift, eligible=eligible if any(eligible) else None)

    return [(p["member_id"], u, None) for p, u in zip(participants, units)]


def compute_shares(amount, split_rule: str, participants, currency=None) -> list[dict]:
    """
    Split an expense amount among participants.

    Rules:
        equal: amount / count, the leftover minor units go one each to
            the first participants in the order given
            (100.00 over 3 -> 33.34, 33.33, 33.33).
        percentage: amount x percentage / 100, rounded half-up; rounding
            drift is corrected one minor unit at a time in order.
            Percentages must add up to 100.
        custom: explicit amounts, which must add up to the expense amount
            within SPLIT_TOLERANCE.

    Args:
        amount: Expense amount (must be > 0).
        split_rule: One of "equal", "percentage", "custom".
        participants: List of member_id strings or dicts with member_id
            plus percentage / amount as the rule needs.
        currency: Group currency; selects the minor unit (default 2 digits).

    Returns:
        list[dict]: One share per participant, in participant order:
            - member_id: string
            - amount: Decimal
            - percentage: Decimal or None

    Raises:
        InvalidAmount: If amount <= 0 or a share input is negative.
        InvalidParticipants: If participants is empty or repeats a member.
        SplitMismatch: If percentage/custom shares do not add up.
        ValueError: If split_rule is unknown.

    Notes:
        - Pure function: no Firestore access, no mutation of inputs
        - Sum of returned amounts equals the rounded expense amount exactly
    """
    if split_rule not in SPLIT_RULES:
        raise ValueError(f"split_rule must be one of {SPLIT_RULES}, got: {split_rule}")

    if to_decimal(amount) <= 0:
        raise InvalidAmount(f"amount must be a positive number, got: {amount}")

    total_units = to_minor_units(amount, currency)
    if total_units <= 0:
        raise InvalidAmount(f"amount rounds to zero in {currency or 'the default currency'}: {amount}")

    entries = _normalize_participants(participants)

    if split_rule == "equal":
        split = _split_equal(total_units, entries)
    elif split_rule == "percentage":
        split = _split_percentage(total_units, entries)
    else:
        split = _split_custom(total_units, entries, currency)

    return [
        {
            "member_id": member_id,
            "amount": from_minor_units(units, currency),
            "percentage": pct
        }
        for member_id, units, pct in split
    ]
