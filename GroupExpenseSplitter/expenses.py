"""
Expenses Module

This module handles all expense-related operations for the group expense
splitter application.

Features:
    - Add/edit/delete expenses
    - Split each expense into per-member shares (equal, percentage, custom)
    - Categorize expenses
    - Mark individual shares as settled

Data Model:
    Expense stored at: groups/{group_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - group_id: string
        - description: string
        - amount: float (must be > 0)
        - currency: string (the group currency)
        - paid_by: string (member_id who paid)
        - category: string (food, transport, accommodation, ...)
        - split_type: string (equal, percentage, custom)
        - date: string (YYYY-MM-DD)

    ExpenseShare stored at: groups/{group_id}/shares/{share_id}
    Fields:
        - share_id: string ({expense_id}-{member_id})
        - expense_id: string
        - member_id: string
        - amount: float (what this member owes toward the expense)
        - percentage: float or None
        - status: string (pending, settled)
        - settled_at: string or None

Functions:
    add_expense: Split and add a new expense to a group.
    list_expenses: Get all expenses for a group.
    get_expense: Get one expense by ID.
    list_shares: Get the shares of a group, optionally for one expense.
    delete_expense: Delete an expense and its shares.
    update_expense: Edit an expense and recompute its shares.
    mark_share_settled: Mark one share as paid back.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from config.firebase_config import get_db
from errors import InvalidAmount
from groups import get_group
from members import list_active_members
from splitter import SPLIT_RULES, compute_shares
from utils import generate_id, validate_amount


# Valid expense categories
VALID_CATEGORIES = {"food", "transport", "accommodation", "activities", "shopping", "entertainment", "other"}


class Expense:
    """
    Represents a single shared expense in a group.

    Attributes:
        expense_id (str): Unique identifier in E### format.
        group_id (str): Owning group.
        description (str): What the money was spent on.
        amount (float): Amount of the expense (must be > 0).
        currency (str): Currency code, equal to the group currency.
        paid_by (str): Member ID of who paid.
        category (str): One of VALID_CATEGORIES.
        split_type (str): One of equal, percentage, custom.
        date (str): Date of expense (YYYY-MM-DD).
    """

    def __init__(
        self,
        expense_id: str,
        group_id: str,
        description: str,
        amount: float,
        currency: str,
        paid_by: str,
        category: str,
        split_type: str,
        date: str,
        created_at: Optional[str] = None
    ):
        self.expense_id = expense_id
        self.group_id = group_id
        self.description = description
        self.amount = amount
        self.currency = currency
        self.paid_by = paid_by
        self.category = category
        self.split_type = split_type
        self.date = date
        self.created_at = created_at

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "group_id": self.group_id,
            "description": self.description,
            "amount": self.amount,
            "currency": self.currency,
            "paid_by": self.paid_by,
            "category": self.category,
            "split_type": self.split_type,
            "date": self.date,
            "created_at": self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            group_id=data.get("group_id"),
            description=data.get("description", ""),
            amount=data.get("amount"),
            currency=data.get("currency"),
            paid_by=data.get("paid_by"),
            category=data.get("category", "other"),
            split_type=data.get("split_type", "equal"),
            date=data.get("date"),
            created_at=data.get("created_at")
        )

    def __repr__(self) -> str:
        return f"Expense(id='{self.expense_id}', paid_by='{self.paid_by}', amount={self.amount}, category='{self.category}')"


class ExpenseShare:
    """
    One member's share of an expense.

    Attributes:
        share_id (str): {expense_id}-{member_id}.
        expense_id (str): The expense this share belongs to.
        member_id (str): The member who owes the share.
        amount (float): Positive amount owed toward the expense.
        percentage (float | None): Percentage for percentage splits.
        status (str): "pending" or "settled".
        settled_at (str | None): ISO timestamp set when settled.
    """

    def __init__(
        self,
        share_id: str,
        expense_id: str,
        member_id: str,
        amount: float,
        percentage: Optional[float] = None,
        status: str = "pending",
        settled_at: Optional[str] = None
    ):
        self.share_id = share_id
        self.expense_id = expense_id
        self.member_id = member_id
        self.amount = amount
        self.percentage = percentage
        self.status = status
        self.settled_at = settled_at

    def to_dict(self) -> dict:
        """Convert share to dictionary for Firestore storage."""
        return {
            "share_id": self.share_id,
            "expense_id": self.expense_id,
            "member_id": self.member_id,
            "amount": self.amount,
            "percentage": self.percentage,
            "status": self.status,
            "settled_at": self.settled_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExpenseShare":
        """Create an ExpenseShare instance from a dictionary."""
        return cls(
            share_id=data.get("share_id"),
            expense_id=data.get("expense_id"),
            member_id=data.get("member_id"),
            amount=data.get("amount"),
            percentage=data.get("percentage"),
            status=data.get("status", "pending"),
            settled_at=data.get("settled_at")
        )

    def __repr__(self) -> str:
        return f"ExpenseShare(expense='{self.expense_id}', member='{self.member_id}', amount={self.amount}, status='{self.status}')"


def _group_ref(db, group_id: str):
    return db.collection("groups").document(group_id)


def _generate_next_expense_id(group_id: str) -> str:
    """
    Generate the next sequential expense ID for a group.

    Format: E001, E002, E003, ...

    IDs not matching E### (legacy data) are ignored; starts from E001.
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    max_num = 0
    pattern = re.compile(r'^E(\d+)$')
    for doc in _group_ref(db, group_id).collection("expenses").stream():
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return generate_id("E", max_num + 1)


def _validate_date(date_str: str, field_name: str) -> bool:
    """
    Validate date string format (YYYY-MM-DD).

    Raises:
        ValueError: If date format is invalid.
    """
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be in YYYY-MM-DD format, got: {date_str}")


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _participant_id(entry) -> Optional[str]:
    return entry if isinstance(entry, str) else (entry or {}).get("member_id")


def _validate_active_members(group_id: str, paid_by: str, participants) -> None:
    """
    Check the payer and every participant against the active member directory.

    Raises:
        ValueError: If any of them is unknown or inactive.
    """
    active_ids = {m.member_id for m in list_active_members(group_id)}
    if paid_by not in active_ids:
        raise ValueError(f"paid_by '{paid_by}' is not an active member of group {group_id}")
    for entry in participants or []:
        member_id = _participant_id(entry)
        if member_id not in active_ids:
            raise ValueError(f"participant '{member_id}' is not an active member of group {group_id}")


def _share_records(expense_id: str, shares: list[dict]) -> list[ExpenseShare]:
    """Turn compute_shares() output into pending ExpenseShare records."""
    return [
        ExpenseShare(
            share_id=f"{expense_id}-{s['member_id']}",
            expense_id=expense_id,
            member_id=s["member_id"],
            amount=float(s["amount"]),
            percentage=float(s["percentage"]) if s["percentage"] is not None else None
        )
        for s in shares
    ]


def _participants_from_shares(split_type: str, shares: list[ExpenseShare]) -> list:
    """Rebuild the participants argument of compute_shares() from stored shares."""
    if split_type == "percentage":
        return [{"member_id": s.member_id, "percentage": s.percentage} for s in shares]
    if split_type == "custom":
        return [{"member_id": s.member_id, "amount": s.amount} for s in shares]
    return [s.member_id for s in shares]


def add_expense(
    group_id: str,
    description: str,
    amount: float,
    paid_by: str,
    category: str,
    participants: list,
    split_type: Optional[str] = None,
    date: Optional[str] = None
) -> tuple:
    """
    Split and add a new expense to a group.

    The shares are computed before anything is written, so an invalid
    split (SplitMismatch, InvalidParticipants, InvalidAmount) never
    leaves a partial expense behind.

    Args:
        group_id: The ID of the group.
        description: What the money was spent on.
        amount: Amount of the expense (must be > 0).
        paid_by: Member ID of who paid.
        category: Category of expense (see VALID_CATEGORIES).
        participants: Member IDs, or dicts with member_id plus percentage
            or amount for percentage / custom splits.
        split_type: equal, percentage or custom; defaults to the group's
            default_split_method.
        date: Date of the expense (YYYY-MM-DD); defaults to today (UTC).

    Returns:
        tuple: (Expense, list[ExpenseShare]) as stored.

    Raises:
        ValueError: If input validation fails (including the ledger errors).
        RuntimeError: If Firestore is not available.

    Notes:
        - Payer does NOT have to be a participant
        - Participants must be active members of the group
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(paid_by, "paid_by")
    description = (description or "").strip()
    if not validate_amount(amount):
        raise InvalidAmount(f"amount must be a positive number, got: {amount}")

    if date is None:
        date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    _validate_date(date, "date")

    if category not in VALID_CATEGORIES:
        raise ValueError(f"category must be one of {sorted(VALID_CATEGORIES)}, got: {category}")

    group = get_group(group_id)
    split_type = split_type or group.default_split_method
    if split_type not in SPLIT_RULES:
        raise ValueError(f"split_type must be one of {SPLIT_RULES}, got: {split_type}")

    _validate_active_members(group_id, paid_by, participants)

    shares = compute_shares(amount, split_type, participants, currency=group.currency)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    expense = Expense(
        expense_id=_generate_next_expense_id(group_id),
        group_id=group_id,
        description=description,
        amount=float(sum(s["amount"] for s in shares)),
        currency=group.currency,
        paid_by=paid_by,
        category=category,
        split_type=split_type,
        date=date,
        created_at=datetime.now(timezone.utc).isoformat()
    )
    stored_shares = _share_records(expense.expense_id, shares)

    # Expense and shares land together or not at all
    group_ref = _group_ref(db, group_id)
    batch = db.batch()
    batch.set(group_ref.collection("expenses").document(expense.expense_id), expense.to_dict())
    for share in stored_shares:
        batch.set(group_ref.collection("shares").document(share.share_id), share.to_dict())
    batch.commit()

    return expense, stored_shares


def list_expenses(group_id: str) -> list[Expense]:
    """
    Get all expenses for a group, newest date first.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = _group_ref(db, group_id).collection("expenses").stream()
    expenses = [Expense.from_dict(doc.to_dict()) for doc in docs]
    expenses.sort(key=lambda e: (e.date or "", e.expense_id), reverse=True)
    return expenses


def get_expense(group_id: str, expense_id: str) -> Expense:
    """
    Get one expense by ID.

    Raises:
        ValueError: If input validation fails or the expense is not found.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc = _group_ref(db, group_id).collection("expenses").document(expense_id).get()
    if not doc.exists:
        raise ValueError(f"Expense {expense_id} not found in group {group_id}")
    return Expense.from_dict(doc.to_dict())


def list_shares(group_id: str, expense_id: Optional[str] = None) -> list[ExpenseShare]:
    """
    Get the shares of a group, optionally only those of one expense.

    Shares are fetched for the whole group and filtered in memory.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = _group_ref(db, group_id).collection("shares").stream()
    shares = [ExpenseShare.from_dict(doc.to_dict()) for doc in docs]
    if expense_id is not None:
        shares = [s for s in shares if s.expense_id == expense_id]
    shares.sort(key=lambda s: s.share_id)
    return shares


def delete_expense(group_id: str, expense_id: str) -> int:
    """
    Delete an expense and all of its shares.

    Returns:
        int: Number of share documents deleted.

    Raises:
        ValueError: If input validation fails or the expense is not found.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    group_ref = _group_ref(db, group_id)
    doc_ref = group_ref.collection("expenses").document(expense_id)
    if not doc_ref.get().exists:
        raise ValueError(f"Expense {expense_id} not found in group {group_id}")

    shares = list_shares(group_id, expense_id)
    batch = db.batch()
    for share in shares:
        batch.delete(group_ref.collection("shares").document(share.share_id))
    batch.delete(doc_ref)
    batch.commit()

    return len(shares)


def update_expense(
    group_id: str,
    expense_id: str,
    description: Optional[str] = None,
    amount: Optional[float] = None,
    paid_by: Optional[str] = None,
    category: Optional[str] = None,
    participants: Optional[list] = None,
    split_type: Optional[str] = None,
    date: Optional[str] = None
) -> tuple:
    """
    Edit a stored expense and recompute its shares.

    Fields left as None keep their stored value. When participants is
    omitted the current share holders are split again under the (possibly
    new) amount and split type. The shares are recomputed through
    compute_shares() before anything is written.

    Returns:
        tuple: (Expense, list[ExpenseShare]) as stored.

    Raises:
        ValueError: If input validation fails, the expense is not found, or
            the new split is invalid (including the ledger errors).
        RuntimeError: If Firestore is not available.

    Notes:
        - A share keeps its settled status only if its amount is unchanged
        - Only a new payer or new participants are checked against the
          active members; existing holders may have left the group since
    """
    expense = get_expense(group_id, expense_id)

    if amount is not None and not validate_amount(amount):
        raise InvalidAmount(f"amount must be a positive number, got: {amount}")
    if category is not None and category not in VALID_CATEGORIES:
        raise ValueError(f"category must be one of {sorted(VALID_CATEGORIES)}, got: {category}")
    if split_type is not None and split_type not in SPLIT_RULES:
        raise ValueError(f"split_type must be one of {SPLIT_RULES}, got: {split_type}")
    if date is not None:
        _validate_date(date, "date")
    if paid_by is not None:
        _validate_non_empty_string(paid_by, "paid_by")

    if paid_by is not None or participants is not None:
        active_ids = {m.member_id for m in list_active_members(group_id)}
        if paid_by is not None and paid_by not in active_ids:
            raise ValueError(f"paid_by '{paid_by}' is not an active member of group {group_id}")
        for entry in participants or []:
            member_id = _participant_id(entry)
            if member_id not in active_ids:
                raise ValueError(f"participant '{member_id}' is not an active member of group {group_id}")

    old_shares = list_shares(group_id, expense_id)
    new_split_type = split_type or expense.split_type
    if participants is None:
        participants = _participants_from_shares(new_split_type, old_shares)

    shares = compute_shares(
        amount if amount is not None else expense.amount,
        new_split_type,
        participants,
        currency=expense.currency
    )

    if description is not None:
        expense.description = description.strip()
    if paid_by is not None:
        expense.paid_by = paid_by
    if category is not None:
        expense.category = category
    if date is not None:
        expense.date = date
    expense.split_type = new_split_type
    expense.amount = float(sum(s["amount"] for s in shares))

    stored_shares = _share_records(expense_id, shares)
    previous = {s.member_id: s for s in old_shares}
    for share in stored_shares:
        old = previous.get(share.member_id)
        if old is not None and old.status == "settled" and old.amount == share.amount:
            share.status = old.status
            share.settled_at = old.settled_at

    db = get_db()
    group_ref = _group_ref(db, group_id)
    kept_ids = {s.share_id for s in stored_shares}
    batch = db.batch()
    for old in old_shares:
        if old.share_id not in kept_ids:
            batch.delete(group_ref.collection("shares").document(old.share_id))
    for share in stored_shares:
        batch.set(group_ref.collection("shares").document(share.share_id), share.to_dict())
    batch.set(group_ref.collection("expenses").document(expense_id), expense.to_dict())
    batch.commit()

    return expense, stored_shares


def mark_share_settled(group_id: str, share_id: str) -> ExpenseShare:
    """
    Mark one share as paid back to the payer.

    Raises:
        ValueError: If input validation fails or the share is not found.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(share_id, "share_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc_ref = _group_ref(db, group_id).collection("shares").document(share_id)
    doc = doc_ref.get()
    if not doc.exists:
        raise ValueError(f"Share {share_id} not found in group {group_id}")

    settled_at = datetime.now(timezone.utc).isoformat()
    doc_ref.update({"status": "settled", "settled_at": settled_at})

    data = doc.to_dict()
    data.update({"status": "settled", "settled_at": settled_at})
    return ExpenseShare.from_dict(data)
