from decimal import Decimal

from analytics import category_rollup, generate_analytics


MEMBERS = [
    {"member_id": "u1", "display_name": "Asha"},
    {"member_id": "u2", "display_name": "Ben"},
    {"member_id": "u3"},
]


def _expense(amount, paid_by, category, date):
    return {"amount": amount, "paid_by": paid_by, "category": category, "date": date}


def test_category_rollup_zero_total():
    total, breakdown = category_rollup([])

    assert total == Decimal("0")
    assert breakdown == []


def test_category_rollup_zero_amount_category():
    total, breakdown = category_rollup([{"amount": 0, "category": "other"}])

    assert total == Decimal("0")
    assert breakdown == [{"category": "other", "amount": Decimal("0.00"), "percentage": Decimal("0.00")}]


def test_category_rollup_merges_categories():
    total, breakdown = category_rollup([
        {"amount": "12.50", "category": "food"},
        {"amount": "7.50", "category": "food"},
        {"amount": 5, "category": "transport"},
        {"amount": 5, "category": None},
    ])

    assert total == Decimal("30.00")
    assert breakdown == [
        {"category": "food", "amount": Decimal("20.00"), "percentage": Decimal("66.67")},
        {"category": "other", "amount": Decimal("5.00"), "percentage": Decimal("16.67")},
        {"category": "transport", "amount": Decimal("5.00"), "percentage": Decimal("16.67")},
    ]


def test_generate_analytics():
    expenses = [
        _expense(100, "u1", "accommodation", "2024-05-02"),
        _expense(40, "u2", "food", "2024-05-03"),
        _expense(60, "u3", "food", "2024-06-10"),
    ]

    result = generate_analytics(MEMBERS, expenses)
    analytics = result["analytics"]

    assert analytics["monthly_spending"] == {"2024-05": Decimal("140.00"), "2024-06": Decimal("60.00")}
    assert analytics["highest_spending_month"] == {"month": "2024-05", "amount": Decimal("140.00")}
    assert analytics["payer_totals"] == {
        "u1": Decimal("100.00"), "u2": Decimal("40.00"), "u3": Decimal("60.00")
    }
    assert [c["category"] for c in analytics["category_breakdown"]] == ["accommodation", "food"]


def test_warnings_for_dominant_payer_and_category():
    expenses = [
        _expense(90, "u1", "accommodation", "2024-05-02"),
        _expense(10, "u2", "food", "2024-05-02"),
    ]

    warnings = generate_analytics(MEMBERS, expenses, currency="EUR")["warnings"]

    assert warnings == [
        "Warning: Asha paid 90.00% of total expenses (EUR 90.00 of EUR 100.00)",
        "Warning: 'accommodation' accounts for 90.00% of total spend (EUR 90.00 of EUR 100.00)",
    ]


def test_warning_for_expensive_month():
    expenses = [_expense(10, f"u{i % 3 + 1}", "food", f"2024-0{i + 1}-01") for i in range(4)]
    expenses.append(_expense(200, "u3", "activities", "2024-05-01"))
    # Keep every payer and category under their thresholds
    expenses.append(_expense(200, "u2", "food", "2024-06-01"))
    expenses.append(_expense(190, "u1", "shopping", "2024-06-15"))

    warnings = generate_analytics(MEMBERS, expenses)["warnings"]

    assert warnings == [
        "Warning: Spending in 2024-06 (390.00) exceeds 2x average monthly spend (105.00)"
    ]


def test_no_expenses_no_warnings():
    result = generate_analytics(MEMBERS, [])

    assert result["warnings"] == []
    assert result["analytics"]["highest_spending_month"] == {"month": None, "amount": Decimal("0.00")}
