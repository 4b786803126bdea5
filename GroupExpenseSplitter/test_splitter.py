from decimal import Decimal

import pytest

from errors import InvalidAmount, InvalidParticipants, SplitMismatch
from splitter import compute_shares


def _amounts(shares):
    return [s["amount"] for s in shares]


def test_equal_split_first_participant_absorbs_extra_cent():
    shares = compute_shares(100, "equal", ["A", "B", "C"])

    assert [s["member_id"] for s in shares] == ["A", "B", "C"]
    assert _amounts(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    assert sum(_amounts(shares)) == Decimal("100.00")


def test_equal_split_remainder_follows_given_order():
    shares = compute_shares("10.00", "equal", ["C", "A", "B"])

    assert _amounts(shares) == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]
    assert shares[0]["member_id"] == "C"


def test_equal_split_two_leftover_cents():
    shares = compute_shares("0.05", "equal", ["A", "B", "C"])

    assert _amounts(shares) == [Decimal("0.02"), Decimal("0.02"), Decimal("0.01")]


def test_equal_split_single_participant_gets_everything():
    shares = compute_shares(42.5, "equal", ["A"])

    assert _amounts(shares) == [Decimal("42.50")]
    assert shares[0]["percentage"] is None


@pytest.mark.parametrize("amount,count", [
    ("100.00", 3), ("0.01", 2), ("999.99", 7), ("12.34", 5), ("1000000.01", 9)
])
def test_equal_split_sums_exactly(amount, count):
    participants = [f"M{i}" for i in range(count)]
    shares = compute_shares(amount, "equal", participants)

    assert sum(_amounts(shares)) == Decimal(amount)
    assert max(_amounts(shares)) - min(_amounts(shares)) <= Decimal("0.01")


def test_equal_split_uses_currency_minor_unit():
    shares = compute_shares(1000, "equal", ["A", "B", "C"], currency="JPY")

    assert _amounts(shares) == [Decimal("334"), Decimal("333"), Decimal("333")]

    shares = compute_shares("1.000", "equal", ["A", "B", "C"], currency="KWD")
    assert _amounts(shares) == [Decimal("0.334"), Decimal("0.333"), Decimal("0.333")]


def test_percentage_split():
    shares = compute_shares(200, "percentage", [
        {"member_id": "A", "percentage": 50},
        {"member_id": "B", "percentage": 30},
        {"member_id": "C", "percentage": 20},
    ])

    assert _amounts(shares) == [Decimal("100.00"), Decimal("60.00"), Decimal("40.00")]
    assert [s["percentage"] for s in shares] == [Decimal("50"), Decimal("30"), Decimal("20")]


def test_percentage_split_corrects_rounding_drift():
    # 100 / 3 each rounds to 33.33; the missing cent goes to the first member
    third = "33.3333"
    shares = compute_shares(100, "percentage", [
        {"member_id": "A", "percentage": third},
        {"member_id": "B", "percentage": third},
        {"member_id": "C", "percentage": "33.3334"},
    ])

    assert sum(_amounts(shares)) == Decimal("100.00")
    assert _amounts(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]


def test_percentage_split_drift_down_skips_zero_percent():
    # 0.05 at 50/50 rounds half-up to 0.03 + 0.03 = 0.06; one cent comes back off
    shares = compute_shares("0.05", "percentage", [
        {"member_id": "Z", "percentage": 0},
        {"member_id": "A", "percentage": 50},
        {"member_id": "B", "percentage": 50},
    ])

    assert _amounts(shares) == [Decimal("0.00"), Decimal("0.02"), Decimal("0.03")]
    assert sum(_amounts(shares)) == Decimal("0.05")


def test_percentage_split_must_total_100():
    with pytest.raises(SplitMismatch) as exc:
        compute_shares(100, "percentage", [
            {"member_id": "A", "percentage": 60},
            {"member_id": "B", "percentage": 30},
        ])

    assert exc.value.actual == Decimal("90")


def test_percentage_split_requires_percentage():
    with pytest.raises(SplitMismatch):
        compute_shares(100, "percentage", ["A", "B"])


def test_negative_percentage_is_invalid():
    with pytest.raises(InvalidAmount):
        compute_shares(100, "percentage", [
            {"member_id": "A", "percentage": 120},
            {"member_id": "B", "percentage": -20},
        ])


def test_custom_split():
    shares = compute_shares(100, "custom", [
        {"member_id": "A", "amount": 70},
        {"member_id": "B", "amount": "30.00"},
    ])

    assert _amounts(shares) == [Decimal("70.00"), Decimal("30.00")]


def test_custom_split_mismatch():
    with pytest.raises(SplitMismatch) as exc:
        compute_shares(100, "custom", [
            {"member_id": "A", "amount": 40},
            {"member_id": "B", "amount": 40},
        ])

    assert exc.value.expected == Decimal("100.00")
    assert exc.value.actual == Decimal("80.00")


def test_custom_split_within_tolerance_is_made_exact():
    shares = compute_shares(100, "custom", [
        {"member_id": "A", "amount": "33.33"},
        {"member_id": "B", "amount": "33.33"},
        {"member_id": "C", "amount": "33.33"},
    ])

    assert _amounts(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]


def test_custom_split_zero_share_never_absorbs_drift():
    shares = compute_shares(100, "custom", [
        {"member_id": "A", "amount": 0},
        {"member_id": "B", "amount": "99.99"},
    ])

    assert _amounts(shares) == [Decimal("0.00"), Decimal("100.00")]


def test_custom_split_requires_amounts():
    with pytest.raises(SplitMismatch):
        compute_shares(100, "custom", ["A"])


@pytest.mark.parametrize("amount", [0, -5, "-0.01", "abc", None, float("nan")])
def test_invalid_amount(amount):
    with pytest.raises(InvalidAmount):
        compute_shares(amount, "equal", ["A"])


def test_amount_rounding_to_zero_is_invalid():
    with pytest.raises(InvalidAmount):
        compute_shares("0.004", "equal", ["A"])


def test_empty_participants():
    with pytest.raises(InvalidParticipants):
        compute_shares(100, "equal", [])


def test_duplicate_participants():
    with pytest.raises(InvalidParticipants):
        compute_shares(100, "equal", ["A", "B", "A"])


def test_unknown_split_rule():
    with pytest.raises(ValueError, match="split_rule"):
        compute_shares(100, "shares", ["A"])


def test_ledger_errors_are_value_errors():
    with pytest.raises(ValueError):
        compute_shares(100, "equal", [])
