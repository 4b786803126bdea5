import random
from decimal import Decimal

import pytest

from config.ledger_config import BALANCE_EPSILON
from errors import UnbalancedLedger
from settlement import apply_settlements, plan_settlements


def _triples(settlements):
    return [(s["payer_id"], s["receiver_id"], s["amount"]) for s in settlements]


def _random_balances(rng, count):
    """Random balanced ledger in whole cents."""
    cents = [rng.randint(-50000, 50000) for _ in range(count - 1)]
    cents.append(-sum(cents))
    return {f"M{i:02d}": Decimal(c) / 100 for i, c in enumerate(cents)}


def test_simple_triangle_debt():
    settlements = plan_settlements({"A": 50, "B": -30, "C": -20})

    assert _triples(settlements) == [
        ("B", "A", Decimal("30.00")),
        ("C", "A", Decimal("20.00")),
    ]


def test_all_settled():
    assert plan_settlements({"A": 0, "B": 0}) == []


def test_empty_balances():
    assert plan_settlements({}) == []


def test_single_debtor_pays_every_creditor():
    settlements = plan_settlements({"A": -60, "B": 25, "C": 35})

    assert _triples(settlements) == [
        ("A", "C", Decimal("35.00")),
        ("A", "B", Decimal("25.00")),
    ]


def test_largest_debtor_and_creditor_are_matched_first():
    settlements = plan_settlements({"A": 70, "B": 30, "C": -60, "D": -40})

    assert _triples(settlements) == [
        ("C", "A", Decimal("60.00")),
        ("D", "B", Decimal("30.00")),
        ("D", "A", Decimal("10.00")),
    ]


def test_ties_break_by_member_id():
    settlements = plan_settlements({"Y": 10, "X": 10, "B": -10, "A": -10})

    assert _triples(settlements) == [
        ("A", "X", Decimal("10.00")),
        ("B", "Y", Decimal("10.00")),
    ]


def test_near_zero_balances_are_excluded():
    settlements = plan_settlements({"A": 25, "B": -25, "C": Decimal("0.004"), "D": Decimal("-0.004")})

    assert _triples(settlements) == [("B", "A", Decimal("25.00"))]


def test_unbalanced_ledger_is_rejected():
    with pytest.raises(UnbalancedLedger) as exc:
        plan_settlements({"A": 50, "B": -20})

    assert exc.value.imbalance == Decimal("30")


def test_custom_tolerance():
    assert plan_settlements({"A": 50, "B": -49}, tolerance=Decimal("1"))
    with pytest.raises(UnbalancedLedger):
        plan_settlements({"A": 50, "B": -49}, tolerance=Decimal("0.5"))


def test_residual_cent_goes_to_final_settlement():
    # Legacy float balances off by one cent
    settlements = plan_settlements({"A": 33.34, "B": -16.67, "C": -16.66})

    assert _triples(settlements) == [
        ("B", "A", Decimal("16.67")),
        ("C", "A", Decimal("16.67")),
    ]


def test_residual_cent_of_untouched_creditor_stays_unplanned():
    balances = {"A": Decimal("5.00"), "B": Decimal("0.01"), "C": Decimal("-5.00")}

    settlements = plan_settlements(balances)

    assert _triples(settlements) == [("C", "A", Decimal("5.00"))]
    after = apply_settlements(balances, settlements)
    assert [m for m, b in after.items() if b] == ["B"]


def test_residual_cent_of_untouched_debtor_stays_unplanned():
    balances = {"A": Decimal("5.00"), "B": Decimal("-5.00"), "C": Decimal("-0.01")}

    settlements = plan_settlements(balances)

    assert _triples(settlements) == [("B", "A", Decimal("5.00"))]
    after = apply_settlements(balances, settlements)
    assert [m for m, b in after.items() if b] == ["C"]


def test_residual_cent_goes_to_debtors_own_settlement():
    settlements = plan_settlements({"A": Decimal("10.00"), "B": Decimal("-10.01")})

    assert _triples(settlements) == [("B", "A", Decimal("10.01"))]


def test_input_is_not_modified():
    balances = {"A": 50, "B": -30, "C": -20}

    plan_settlements(balances)

    assert balances == {"A": 50, "B": -30, "C": -20}


def test_apply_settlements_moves_both_sides():
    after = apply_settlements(
        {"A": 50, "B": -30, "C": -20},
        [{"payer_id": "B", "receiver_id": "A", "amount": 30}]
    )

    assert after == {"A": Decimal("20.00"), "B": Decimal("0.00"), "C": Decimal("-20.00")}


@pytest.mark.parametrize("seed", range(25))
def test_settling_the_plan_clears_every_balance(seed):
    rng = random.Random(seed)
    balances = _random_balances(rng, rng.randint(2, 12))

    settlements = plan_settlements(balances)
    after = apply_settlements(balances, settlements)

    assert all(abs(b) < BALANCE_EPSILON for b in after.values())
    assert all(s["amount"] > 0 for s in settlements)
    assert all(s["payer_id"] != s["receiver_id"] for s in settlements)

    nonzero = [b for b in balances.values() if abs(b) >= BALANCE_EPSILON]
    assert len(settlements) <= max(len(nonzero) - 1, 0)


@pytest.mark.parametrize("seed", range(5))
def test_plan_is_deterministic_for_any_key_order(seed):
    rng = random.Random(seed)
    balances = _random_balances(rng, 8)
    items = list(balances.items())
    rng.shuffle(items)

    assert plan_settlements(balances) == plan_settlements(dict(items))


def test_yen_balances_have_no_decimals():
    settlements = plan_settlements({"A": 1000, "B": -667, "C": -333}, currency="JPY")

    assert _triples(settlements) == [
        ("B", "A", Decimal("667")),
        ("C", "A", Decimal("333")),
    ]
