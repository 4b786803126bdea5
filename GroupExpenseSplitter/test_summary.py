import pytest

from errors import UnbalancedLedger
from splitter import compute_shares
from summary import build_summary


MEMBERS = [
    {"member_id": "u1", "display_name": "Asha", "status": "active"},
    {"member_id": "u2", "display_name": "Ben", "status": "active"},
    {"member_id": "u3", "display_name": "Chen", "status": "inactive"},
]


def _expense(expense_id, amount, paid_by, category, currency="USD"):
    return {
        "expense_id": expense_id,
        "amount": amount,
        "paid_by": paid_by,
        "category": category,
        "currency": currency,
    }


def _shares(expense_id, amount, rule, participants):
    return [
        {"expense_id": expense_id, "member_id": s["member_id"], "amount": float(s["amount"]), "status": "pending"}
        for s in compute_shares(amount, rule, participants)
    ]


@pytest.fixture
def trip():
    expenses = [
        _expense("E001", 90.0, "u1", "accommodation"),
        _expense("E002", 30.0, "u2", "food"),
    ]
    shares = (
        _shares("E001", 90.0, "equal", ["u1", "u2", "u3"])
        + _shares("E002", 30.0, "equal", ["u1", "u2", "u3"])
    )
    return expenses, shares


def test_summary_shape(trip):
    expenses, shares = trip

    summary = build_summary(expenses, shares, MEMBERS)

    assert summary["total_expenses"] == 120.0
    assert summary["currency"] == "USD"
    assert summary["member_balances"] == [
        {"member_id": "u1", "display_name": "Asha", "balance": 50.0},
        {"member_id": "u2", "display_name": "Ben", "balance": -10.0},
        {"member_id": "u3", "display_name": "Chen", "balance": -40.0},
    ]
    assert summary["category_breakdown"] == [
        {"category": "accommodation", "amount": 90.0, "percentage": 75.0},
        {"category": "food", "amount": 30.0, "percentage": 25.0},
    ]
    assert summary["settlements_needed"] == [
        {"payer_id": "u3", "payer_name": "Chen", "receiver_id": "u1", "receiver_name": "Asha", "amount": 40.0},
        {"payer_id": "u2", "payer_name": "Ben", "receiver_id": "u1", "receiver_name": "Asha", "amount": 10.0},
    ]


def test_summary_is_idempotent(trip):
    expenses, shares = trip

    assert build_summary(expenses, shares, MEMBERS) == build_summary(expenses, shares, MEMBERS)


def test_empty_group_has_zero_percentages():
    summary = build_summary([], [], MEMBERS)

    assert summary["total_expenses"] == 0.0
    assert summary["category_breakdown"] == []
    assert summary["settlements_needed"] == []
    assert [b["balance"] for b in summary["member_balances"]] == [0.0, 0.0, 0.0]


def test_unknown_member_falls_back_to_id():
    expenses = [_expense("E001", 20, "ghost", "food")]
    shares = _shares("E001", 20, "equal", ["u1", "ghost"])

    summary = build_summary(expenses, shares, MEMBERS)

    assert summary["member_balances"][-1] == {"member_id": "ghost", "display_name": "ghost", "balance": 10.0}
    assert summary["settlements_needed"] == [
        {"payer_id": "u1", "payer_name": "Asha", "receiver_id": "ghost", "receiver_name": "ghost", "amount": 10.0}
    ]


def test_completed_settlements_reduce_balances(trip):
    expenses, shares = trip
    paid = [{"payer_id": "u3", "receiver_id": "u1", "amount": 40.0, "status": "completed"}]

    summary = build_summary(expenses, shares, MEMBERS, completed_settlements=paid)

    assert summary["settlements_needed"] == [
        {"payer_id": "u2", "payer_name": "Ben", "receiver_id": "u1", "receiver_name": "Asha", "amount": 10.0}
    ]
    balances = {b["member_id"]: b["balance"] for b in summary["member_balances"]}
    assert balances == {"u1": 10.0, "u2": -10.0, "u3": 0.0}


def test_mixed_currencies_are_rejected():
    expenses = [_expense("E001", 10, "u1", "food"), _expense("E002", 10, "u2", "food", currency="EUR")]

    with pytest.raises(ValueError, match="currency"):
        build_summary(expenses, [], MEMBERS)


def test_group_currency_overrides_default():
    expenses = [_expense("E001", 1000, "u1", "food", currency="JPY")]
    shares = _shares("E001", 1000, "equal", ["u1", "u2"])

    summary = build_summary(expenses, shares, MEMBERS, currency="JPY")

    assert summary["currency"] == "JPY"
    assert summary["settlements_needed"][0]["amount"] == 500.0


def test_missing_shares_make_an_unbalanced_ledger():
    expenses = [_expense("E001", 100, "u1", "food")]
    shares = [{"expense_id": "E001", "member_id": "u2", "amount": 50.0}]

    with pytest.raises(UnbalancedLedger):
        build_summary(expenses, shares, MEMBERS)


def test_category_percentages_round_to_two_places():
    expenses = [
        _expense("E001", 10, "u1", "food"),
        _expense("E002", 10, "u1", "transport"),
        _expense("E003", 10, "u1", "shopping"),
    ]
    shares = []
    for e in expenses:
        shares += _shares(e["expense_id"], 10, "equal", ["u1", "u2"])

    summary = build_summary(expenses, shares, MEMBERS)

    assert [c["category"] for c in summary["category_breakdown"]] == ["food", "shopping", "transport"]
    assert [c["percentage"] for c in summary["category_breakdown"]] == [33.33, 33.33, 33.33]
