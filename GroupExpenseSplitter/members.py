"""
Members Module

This module handles all member-related operations for the group expense
splitter application.

Features:
    - Add members to a group
    - Soft-remove members (status flag, never deleted)
    - Retrieve the member directory
    - Retrieve only active members

Data Model:
    Member stored at: groups/{group_id}/members/{member_id}
    Fields:
        - member_id: string (user ID, or M001, M002, ... when generated)
        - display_name: string
        - email: string or None
        - status: string (active, inactive)
        - joined_at: string (ISO timestamp)

Functions:
    add_member: Add a new member to a group.
    deactivate_member: Mark a member inactive (soft delete).
    list_members: Get all members of a group.
    list_active_members: Get the active members of a group.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from config.firebase_config import get_db
from utils import generate_id


class Member:
    """
    Represents a member of a group.

    Attributes:
        member_id (str): Unique identifier for the member.
        display_name (str): Name shown in summaries.
        email (str | None): Contact email.
        status (str): "active", or "inactive" once removed.
        joined_at (str | None): ISO timestamp of when the member was added.
    """

    def __init__(
        self,
        member_id: str,
        display_name: str,
        email: Optional[str] = None,
        status: str = "active",
        joined_at: Optional[str] = None
    ):
        self.member_id = member_id
        self.display_name = display_name
        self.email = email
        self.status = status
        self.joined_at = joined_at

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        """Convert member to dictionary for Firestore storage."""
        return {
            "member_id": self.member_id,
            "display_name": self.display_name,
            "email": self.email,
            "status": self.status,
            "joined_at": self.joined_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        """Create a Member instance from a dictionary."""
        return cls(
            member_id=data.get("member_id"),
            display_name=data.get("display_name"),
            email=data.get("email"),
            status=data.get("status", "active"),
            joined_at=data.get("joined_at")
        )

    def __repr__(self) -> str:
        return f"Member(id='{self.member_id}', name='{self.display_name}', status='{self.status}')"


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _members_ref(db, group_id: str):
    return db.collection("groups").document(group_id).collection("members")


def _generate_next_member_id(group_id: str) -> str:
    """
    Generate the next sequential member ID for a group.

    Format: M001, M002, M003, ...

    Logic:
        1. Fetch all existing member document IDs for the group
        2. Extract numeric suffix from IDs matching M### format
        3. Generate the next ID after the highest one (M001 if none)

    IDs that do not follow the M### format (user IDs from the auth
    provider) are ignored.
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    max_num = 0
    pattern = re.compile(r'^M(\d+)$')
    for doc in _members_ref(db, group_id).stream():
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return generate_id("M", max_num + 1)


def add_member(
    group_id: str,
    display_name: str,
    member_id: Optional[str] = None,
    email: Optional[str] = None
) -> Member:
    """
    Add a new member to a group.

    Args:
        group_id: The ID of the group.
        display_name: Name of the member.
        member_id: Existing user ID; generated (M###) when omitted.
        email: Optional contact email.

    Returns:
        Member: The created member object.

    Raises:
        ValueError: If input validation fails or the member already exists.
        RuntimeError: If Firestore is not available.

    Notes:
        - Re-adding an inactive member reactivates the existing record
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(display_name, "display_name")
    if member_id is not None:
        _validate_non_empty_string(member_id, "member_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    if member_id is None:
        member_id = _generate_next_member_id(group_id)
    else:
        member_id = member_id.strip()
        existing = _members_ref(db, group_id).document(member_id).get()
        if existing.exists:
            data = existing.to_dict()
            if data.get("status") == "active":
                raise ValueError(f"Member {member_id} already belongs to group {group_id}")
            _members_ref(db, group_id).document(member_id).update({"status": "active"})
            data["status"] = "active"
            return Member.from_dict(data)

    member = Member(
        member_id=member_id,
        display_name=display_name.strip(),
        email=email.strip() if email else None,
        joined_at=datetime.now(timezone.utc).isoformat()
    )

    _members_ref(db, group_id).document(member.member_id).set(member.to_dict())
    return member


def deactivate_member(group_id: str, member_id: str) -> Member:
    """
    Remove a member from a group by marking them inactive.

    The document is NOT deleted: historical shares still reference the
    member and their balance keeps showing in summaries.

    Raises:
        ValueError: If input validation fails or member not found.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(member_id, "member_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc_ref = _members_ref(db, group_id).document(member_id)
    doc = doc_ref.get()
    if not doc.exists:
        raise ValueError(f"Member {member_id} not found in group {group_id}")

    doc_ref.update({"status": "inactive"})

    data = doc.to_dict()
    data["status"] = "inactive"
    return Member.from_dict(data)


def list_members(group_id: str) -> list[Member]:
    """
    Get all members of a group, active and inactive, ordered by joined_at.

    Raises:
        ValueError: If group_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    members = [Member.from_dict(doc.to_dict()) for doc in _members_ref(db, group_id).stream()]
    members.sort(key=lambda m: (m.joined_at or "", m.member_id))
    return members


def list_active_members(group_id: str) -> list[Member]:
    """Get the active members of a group (filtered in memory)."""
    return [m for m in list_members(group_id) if m.is_active]
