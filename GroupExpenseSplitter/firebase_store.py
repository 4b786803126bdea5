"""
Firebase Store Module

This module handles saving computed results and settlement records to
Firebase Firestore for the group expense splitter application.

Features:
    - Save the latest group summary
    - Record planned settlements as pending payments
    - Mark recorded settlements as completed
    - Summary saves are idempotent (safe to overwrite)

Firestore Structure:
    groups/{group_id}/results/summary
        - total_expenses: float
        - currency: string
        - member_balances: list
        - category_breakdown: list
        - settlements_needed: list
        - updated_at: timestamp

    groups/{group_id}/settlements/{settlement_id}
        - settlement_id: string (S001, S002, ...)
        - group_id: string
        - payer_id: string
        - receiver_id: string
        - amount: float
        - status: string (pending, completed)
        - created_at: timestamp
        - settled_at: timestamp or None

Functions:
    save_summary: Save a group summary to Firestore.
    load_summary: Load the last saved group summary.
    record_settlements: Replace pending settlement records with a new plan.
    list_settlements: Get recorded settlements, optionally by status.
    mark_settlement_complete: Mark a recorded settlement as paid.
    load_group_snapshot: Read group, members, expenses and shares together.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from config.firebase_config import get_db
from expenses import list_expenses, list_shares
from groups import get_group
from members import list_members
from utils import generate_id


logger = logging.getLogger(__name__)

SETTLEMENT_STATUSES = ("pending", "completed")


def _get_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        str: ISO formatted timestamp.
    """
    return datetime.now(timezone.utc).isoformat()


def _validate_group_id(group_id: str) -> None:
    """
    Validate that group_id is a non-empty string.

    Raises:
        ValueError: If group_id is invalid.
    """
    if not isinstance(group_id, str) or not group_id.strip():
        raise ValueError("group_id must be a non-empty string")


def _settlements_ref(db, group_id: str):
    return db.collection("groups").document(group_id).collection("settlements")


def save_summary(group_id: str, summary: dict) -> dict:
    """
    Save a group summary to Firestore.

    Stored at groups/{group_id}/results/summary, overwriting the previous
    summary.

    Args:
        group_id: The ID of the group.
        summary: Output of build_summary().

    Returns:
        dict: The stored document (summary plus updated_at).

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_group_id(group_id)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc_data = dict(summary)
    doc_data["updated_at"] = _get_timestamp()

    db.collection("groups").document(group_id) \
      .collection("results").document("summary").set(doc_data)

    return doc_data


def load_summary(group_id: str) -> Optional[dict]:
    """
    Load the last saved group summary, or None if none was saved.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_group_id(group_id)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc = db.collection("groups").document(group_id) \
            .collection("results").document("summary").get()
    return doc.to_dict() if doc.exists else None


def list_settlements(group_id: str, status: Optional[str] = None) -> list[dict]:
    """
    Get recorded settlements, ordered by settlement_id.

    Args:
        group_id: The ID of the group.
        status: Optional filter, "pending" or "completed".

    Raises:
        ValueError: If group_id or status is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_group_id(group_id)
    if status is not None and status not in SETTLEMENT_STATUSES:
        raise ValueError(f"status must be one of {SETTLEMENT_STATUSES}, got: {status}")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    records = [doc.to_dict() for doc in _settlements_ref(db, group_id).stream()]
    if status is not None:
        records = [r for r in records if r.get("status") == status]
    records.sort(key=lambda r: r.get("settlement_id") or "")
    return records


def record_settlements(group_id: str, settlements: list) -> list[dict]:
    """
    Record a settlement plan as pending payments.

    Pending records from an earlier plan are replaced; completed records
    are kept, and new IDs continue after the highest existing S### ID.

    Args:
        group_id: The ID of the group.
        settlements: Planned settlements containing:
            - payer_id: string (debtor)
            - receiver_id: string (creditor)
            - amount: number

    Returns:
        list[dict]: The stored settlement records.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_group_id(group_id)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    settlements_ref = _settlements_ref(db, group_id)

    max_num = 0
    pending_ids = []
    pattern = re.compile(r'^S(\d+)$')
    for doc in settlements_ref.stream():
        data = doc.to_dict()
        if data.get("status") == "pending":
            pending_ids.append(doc.id)
            continue
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    # The old pending plan is swapped for the new one in a single batch
    batch = db.batch()
    timestamp = _get_timestamp()
    records = []
    for index, settlement in enumerate(settlements, start=max_num + 1):
        settlement_id = generate_id("S", index)
        record = {
            "settlement_id": settlement_id,
            "group_id": group_id,
            "payer_id": settlement["payer_id"],
            "receiver_id": settlement["receiver_id"],
            "amount": float(settlement["amount"]),
            "status": "pending",
            "created_at": timestamp,
            "settled_at": None
        }
        batch.set(settlements_ref.document(settlement_id), record)
        records.append(record)

    new_ids = {r["settlement_id"] for r in records}
    for settlement_id in pending_ids:
        if settlement_id not in new_ids:
            batch.delete(settlements_ref.document(settlement_id))
    batch.commit()

    logger.info("Recorded %d pending settlements for group %s", len(records), group_id)
    return records


def mark_settlement_complete(group_id: str, settlement_id: str) -> dict:
    """
    Mark a recorded settlement as completed.

    Raises:
        ValueError: If the settlement is not found or already completed.
        RuntimeError: If Firestore is not available.
    """
    _validate_group_id(group_id)
    if not isinstance(settlement_id, str) or not settlement_id.strip():
        raise ValueError("settlement_id must be a non-empty string")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc_ref = _settlements_ref(db, group_id).document(settlement_id)
    doc = doc_ref.get()
    if not doc.exists:
        raise ValueError(f"Settlement {settlement_id} not found in group {group_id}")

    record = doc.to_dict()
    if record.get("status") == "completed":
        raise ValueError(f"Settlement {settlement_id} is already completed")

    settled_at = _get_timestamp()
    doc_ref.update({"status": "completed", "settled_at": settled_at})

    record.update({"status": "completed", "settled_at": settled_at})
    return record


def load_group_snapshot(group_id: str) -> dict:
    """
    Read everything build_summary() needs for one group.

    Members include inactive ones, since their historical shares still
    count toward balances.

    Returns:
        dict: group, members, expenses, shares and completed_settlements,
            all as plain dicts.

    Raises:
        ValueError: If the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    group = get_group(group_id)
    return {
        "group": group.to_dict(),
        "members": [m.to_dict() for m in list_members(group_id)],
        "expenses": [e.to_dict() for e in list_expenses(group_id)],
        "shares": [s.to_dict() for s in list_shares(group_id)],
        "completed_settlements": list_settlements(group_id, status="completed")
    }
