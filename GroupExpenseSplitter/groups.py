"""
Groups Module

This module handles group records for the group expense splitter
application.

Data Model:
    Group stored at: groups/{group_id}
    Fields:
        - group_id: string (group_ + 8 hex chars)
        - name: string
        - currency: string (ISO code, every expense must use it)
        - default_split_method: string (equal, percentage, custom)
        - created_at: string (ISO timestamp)
        - updated_at: string (ISO timestamp)

Functions:
    create_group: Create a new group.
    get_group: Get a group by ID.
    list_groups: Get all groups.
    update_group: Rename a group or change its default split method.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from config.firebase_config import get_db
from config.ledger_config import DEFAULT_CURRENCY
from splitter import SPLIT_RULES


class Group:
    """
    Represents an expense-sharing group.

    Attributes:
        group_id (str): Unique identifier.
        name (str): Display name of the group.
        currency (str): Currency all expenses are recorded in.
        default_split_method (str): Split rule preselected for new expenses.
    """

    def __init__(
        self,
        group_id: str,
        name: str,
        currency: str = DEFAULT_CURRENCY,
        default_split_method: str = "equal",
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None
    ):
        self.group_id = group_id
        self.name = name
        self.currency = currency
        self.default_split_method = default_split_method
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self) -> dict:
        """Convert group to dictionary for Firestore storage."""
        return {
            "group_id": self.group_id,
            "name": self.name,
            "currency": self.currency,
            "default_split_method": self.default_split_method,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Group":
        """Create a Group instance from a dictionary."""
        return cls(
            group_id=data.get("group_id"),
            name=data.get("name"),
            currency=data.get("currency", DEFAULT_CURRENCY),
            default_split_method=data.get("default_split_method", "equal"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at")
        )

    def __repr__(self) -> str:
        return f"Group(id='{self.group_id}', name='{self.name}', currency='{self.currency}')"


def _generate_group_id() -> str:
    """Generate a unique group ID of the form group_{short_uuid}."""
    return f"group_{uuid.uuid4().hex[:8]}"


def create_group(
    name: str,
    currency: str = DEFAULT_CURRENCY,
    default_split_method: str = "equal"
) -> Group:
    """
    Create a new group.

    Args:
        name: Group name.
        currency: ISO currency code (3 letters).
        default_split_method: One of equal, percentage, custom.

    Returns:
        Group: The created group.

    Raises:
        ValueError: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    if not isinstance(name, str) or not name.strip():
        raise ValueError("name must be a non-empty string")
    if not isinstance(currency, str) or len(currency.strip()) != 3 or not currency.strip().isalpha():
        raise ValueError(f"currency must be a 3-letter ISO code, got: {currency}")
    if default_split_method not in SPLIT_RULES:
        raise ValueError(f"default_split_method must be one of {SPLIT_RULES}, got: {default_split_method}")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    now = datetime.now(timezone.utc).isoformat()
    group = Group(
        group_id=_generate_group_id(),
        name=name.strip(),
        currency=currency.strip().upper(),
        default_split_method=default_split_method,
        created_at=now,
        updated_at=now
    )

    db.collection("groups").document(group.group_id).set(group.to_dict())
    return group


def get_group(group_id: str) -> Group:
    """
    Get a group by ID.

    Raises:
        ValueError: If group_id is invalid or the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    if not isinstance(group_id, str) or not group_id.strip():
        raise ValueError("group_id must be a non-empty string")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc = db.collection("groups").document(group_id).get()
    if not doc.exists:
        raise ValueError(f"Group {group_id} not found")
    return Group.from_dict(doc.to_dict())


def list_groups() -> list[Group]:
    """
    Get all groups, newest first.

    Raises:
        RuntimeError: If Firestore is not available.
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    groups = [Group.from_dict(doc.to_dict()) for doc in db.collection("groups").stream()]
    groups.sort(key=lambda g: (g.created_at or "", g.group_id), reverse=True)
    return groups


def update_group(
    group_id: str,
    name: Optional[str] = None,
    default_split_method: Optional[str] = None
) -> Group:
    """
    Rename a group or change its default split method.

    The currency is fixed once the group exists, since stored expenses are
    recorded in it.

    Raises:
        ValueError: If input validation fails or the group does not exist.
        RuntimeError: If Firestore is not available.
    """
    group = get_group(group_id)

    if name is not None:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("name must be a non-empty string")
        group.name = name.strip()
    if default_split_method is not None:
        if default_split_method not in SPLIT_RULES:
            raise ValueError(f"default_split_method must be one of {SPLIT_RULES}, got: {default_split_method}")
        group.default_split_method = default_split_method

    group.updated_at = datetime.now(timezone.utc).isoformat()
    get_db().collection("groups").document(group_id).update({
        "name": group.name,
        "default_split_method": group.default_split_method,
        "updated_at": group.updated_at
    })
    return group
