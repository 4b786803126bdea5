"""
Analytics Module

This module provides analytics and reporting features for the group
expense splitter application.

Features:
    - Category-wise expense breakdown with share of total
    - Monthly spending analysis
    - Highest spending month identification
    - Per-member payer totals
    - Smart warnings for spending imbalances

Data Model:
    Input - members: list of dicts with:
        - member_id: string
        - display_name: string (optional)

    Input - expenses: list of dicts with:
        - paid_by: string
        - amount: number
        - category: string
        - date: string (YYYY-MM-DD)

    Output - dict containing:
        - analytics: dict with category_breakdown, monthly_spending, etc.
        - warnings: list of warning strings

Functions:
    category_rollup: Sum expense amounts per category with percentages.
    generate_analytics: Generate analytics and warnings from expense data.
"""

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP

from utils import format_currency, from_minor_units, to_minor_units


def _percentage(part: int, total: int) -> Decimal:
    """Percentage of part in total, 2 decimals; 0 when the total is 0."""
    if total == 0:
        return Decimal("0.00")
    return (Decimal(part) * 100 / Decimal(total)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def category_rollup(expenses: list[dict], currency=None) -> tuple:
    """
    Sum expense amounts grouped by category tag.

    Args:
        expenses: List of expense dicts with amount and category.
        currency: Group currency; selects the minor unit.

    Returns:
        tuple: (total, breakdown) where total is a Decimal and breakdown is
            a list of dicts with category, amount (Decimal) and percentage
            (Decimal), largest amount first, ties by category name.

    Notes:
        - Percentage of a zero total is 0, never a division error
    """
    category_totals = defaultdict(int)
    for expense in expenses:
        category_totals[expense.get("category") or "other"] += to_minor_units(expense["amount"], currency)

    total = sum(category_totals.values())
    ordered = sorted(category_totals.items(), key=lambda item: (-item[1], item[0]))

    breakdown = [
        {
            "category": category,
            "amount": from_minor_units(units, currency),
            "percentage": _percentage(units, total)
        }
        for category, units in ordered
    ]
    return from_minor_units(total, currency), breakdown


def generate_analytics(members: list[dict], expenses: list[dict], currency=None) -> dict:
    """
    Generate analytics and smart warnings from expense data.

    Analytics computed:
        - category_breakdown: Amount and share of total per category
        - monthly_spending: Total amount spent per month (YYYY-MM)
        - highest_spending_month: Month and amount of maximum spend
        - payer_totals: Total amount paid by each member

    Warnings generated (rule-based):
        - If one member paid > 40% of total group cost
        - If one category > 50% of total spend
        - If a month's spend > 2x average monthly spend

    Args:
        members: List of member dicts with member_id (display_name optional).
        expenses: List of expense dicts with paid_by, amount, category, date.
        currency: Group currency; selects the minor unit.

    Returns:
        dict: Contains two keys:
            - analytics: dict with category_breakdown, monthly_spending,
                         highest_spending_month, payer_totals
            - warnings: list of warning strings
    """
    names = {m["member_id"]: m.get("display_name") or m["member_id"] for m in members}

    monthly_totals = defaultdict(int)   # YYYY-MM -> minor units
    payer_totals = defaultdict(int)     # member_id -> minor units

    for expense in expenses:
        units = to_minor_units(expense["amount"], currency)
        month = (expense.get("date") or "")[:7] or "unknown"
        monthly_totals[month] += units
        payer_totals[expense["paid_by"]] += units

    total, category_breakdown = category_rollup(expenses, currency)
    total_units = to_minor_units(total, currency)

    highest_spending_month = {"month": None, "amount": from_minor_units(0, currency)}
    if monthly_totals:
        max_month = max(sorted(monthly_totals), key=monthly_totals.get)
        highest_spending_month = {
            "month": max_month,
            "amount": from_minor_units(monthly_totals[max_month], currency)
        }

    analytics = {
        "category_breakdown": category_breakdown,
        "monthly_spending": {
            month: from_minor_units(units, currency)
            for month, units in sorted(monthly_totals.items())
        },
        "highest_spending_month": highest_spending_month,
        "payer_totals": {
            member_id: from_minor_units(units, currency)
            for member_id, units in sorted(payer_totals.items())
        }
    }

    warnings = []
    total_text = format_currency(total, currency)

    # Rule 1: If one member paid > 40% of total group cost
    for member_id, units in sorted(payer_totals.items()):
        percentage = _percentage(units, total_units)
        if percentage > 40:
            warnings.append(
                f"Warning: {names.get(member_id, member_id)} paid {percentage}% of total expenses "
                f"({format_currency(from_minor_units(units, currency), currency)} of {total_text})"
            )

    # Rule 2: If one category > 50% of total spend
    for entry in category_breakdown:
        if entry["percentage"] > 50:
            warnings.append(
                f"Warning: '{entry['category']}' accounts for {entry['percentage']}% of total spend "
                f"({format_currency(entry['amount'], currency)} of {total_text})"
            )

    # Rule 3: If a month's spend > 2x average monthly spend
    if len(monthly_totals) > 1:
        avg_monthly = Decimal(total_units) / len(monthly_totals)
        for month, units in sorted(monthly_totals.items()):
            if units > avg_monthly * 2:
                avg_amount = from_minor_units(int(avg_monthly.to_integral_value(rounding=ROUND_HALF_UP)), currency)
                warnings.append(
                    f"Warning: Spending in {month} ({format_currency(from_minor_units(units, currency), currency)}) "
                    f"exceeds 2x average monthly spend ({format_currency(avg_amount, currency)})"
                )

    return {
        "analytics": analytics,
        "warnings": warnings
    }
