"""
GroupExpenseSplitter - FastAPI Web Backend

This module serves as the main entry point for the group expense splitting
API using FastAPI.

Features:
    - RESTful API for managing groups, members and expenses
    - Integration with Firebase Firestore backend
    - Expense splitting and settlement planning
    - Recording and completing settlements

Endpoints:
    POST   /groups                                        - Create a group
    GET    /groups                                        - List groups
    GET    /groups/{group_id}                             - Get a group
    PATCH  /groups/{group_id}                             - Rename a group or change its split default
    GET    /groups/{group_id}/members                     - List the member directory
    POST   /groups/{group_id}/members                     - Add a member
    DELETE /groups/{group_id}/members/{member_id}         - Deactivate a member
    POST   /groups/{group_id}/expenses                    - Split and add an expense
    GET    /groups/{group_id}/expenses                    - List expenses with shares
    DELETE /groups/{group_id}/expenses/{expense_id}       - Delete an expense
    PATCH  /groups/{group_id}/expenses/{expense_id}       - Edit an expense and re-split it
    POST   /splits/preview                                - Split without saving
    GET    /groups/{group_id}/summary                     - Build and save the summary
    GET    /groups/{group_id}/explanations                - Per-member breakdown
    POST   /groups/{group_id}/settlements                 - Record the settlement plan
    GET    /groups/{group_id}/settlements                 - List recorded settlements
    POST   /groups/{group_id}/settlements/{id}/complete   - Mark a settlement paid

Usage:
    uvicorn main:app --reload
"""

import logging
from typing import Literal, Optional, Union

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from errors import UnbalancedLedger
from expenses import (
    add_expense,
    delete_expense,
    get_expense,
    list_expenses,
    list_shares,
    update_expense,
    VALID_CATEGORIES
)
from firebase_store import (
    list_settlements,
    load_group_snapshot,
    mark_settlement_complete,
    record_settlements,
    save_summary
)
from groups import create_group, get_group, list_groups, update_group
from ledger import aggregate_balances
from members import add_member, deactivate_member, list_members
from settlement import apply_settlements
from splitter import compute_shares
from summary import build_summary
from utils import explain_all_members


logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

SplitType = Literal["equal", "percentage", "custom"]


class GroupCreate(BaseModel):
    """Request model for creating a new group."""
    name: str = Field(..., min_length=1, description="Group name")
    currency: str = Field("USD", pattern=r"^[A-Za-z]{3}$", description="ISO currency code")
    default_split_method: SplitType = Field("equal", description="Default split rule")


class GroupResponse(BaseModel):
    """Response model for group data."""
    group_id: str
    name: str
    currency: str
    default_split_method: str


class GroupUpdate(BaseModel):
    """Request model for editing a group; the currency cannot change."""
    name: Optional[str] = Field(None, min_length=1, description="New group name")
    default_split_method: Optional[SplitType] = Field(None, description="New default split rule")


class MemberCreate(BaseModel):
    """Request model for adding a member."""
    display_name: str = Field(..., min_length=1, description="Member name")
    member_id: Optional[str] = Field(None, description="Existing user ID")
    email: Optional[str] = Field(None, description="Contact email")


class MemberResponse(BaseModel):
    """Response model for member data."""
    member_id: str
    display_name: str
    email: Optional[str]
    status: str


class Participant(BaseModel):
    """One participant of a split."""
    member_id: str = Field(..., min_length=1)
    percentage: Optional[float] = Field(None, description="For percentage splits")
    amount: Optional[float] = Field(None, description="For custom splits")


class SplitRequest(BaseModel):
    """Request model for previewing a split."""
    amount: float = Field(..., description="Expense amount (must be > 0)")
    split_type: SplitType = "equal"
    participants: list[Union[str, Participant]]
    currency: Optional[str] = None


class ExpenseCreate(BaseModel):
    """Request model for adding an expense."""
    description: str = Field("", description="What the money was spent on")
    amount: float = Field(..., description="Expense amount (must be > 0)")
    paid_by: str = Field(..., min_length=1, description="Member ID of payer")
    category: str = Field(..., description="Expense category")
    split_type: Optional[SplitType] = Field(None, description="Defaults to the group setting")
    participants: list[Union[str, Participant]]
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Expense date (YYYY-MM-DD)")


class ExpenseUpdate(BaseModel):
    """Request model for editing an expense; omitted fields keep their value."""
    description: Optional[str] = None
    amount: Optional[float] = Field(None, description="New amount (must be > 0)")
    paid_by: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    split_type: Optional[SplitType] = None
    participants: Optional[list[Union[str, Participant]]] = None
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")


class ShareResponse(BaseModel):
    """Response model for one expense share."""
    share_id: Optional[str] = None
    member_id: str
    amount: float
    percentage: Optional[float] = None
    status: str = "pending"


class ExpenseResponse(BaseModel):
    """Response model for expense data with its shares."""
    expense_id: str
    description: str
    amount: float
    currency: str
    paid_by: str
    category: str
    split_type: str
    date: str
    shares: list[ShareResponse]


class SettlementRecord(BaseModel):
    """Response model for a recorded settlement."""
    settlement_id: str
    payer_id: str
    receiver_id: str
    amount: float
    status: str
    created_at: Optional[str] = None
    settled_at: Optional[str] = None


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Group Expense Splitter",
    description="Shared expense splitting and settlement planning API for groups and trips",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _participants_payload(participants: list) -> list:
    """Convert request participants into what compute_shares() expects."""
    return [
        p if isinstance(p, str) else p.model_dump(exclude_none=True)
        for p in participants
    ]


def _expense_response(expense, shares) -> ExpenseResponse:
    return ExpenseResponse(
        expense_id=expense.expense_id,
        description=expense.description,
        amount=expense.amount,
        currency=expense.currency,
        paid_by=expense.paid_by,
        category=expense.category,
        split_type=expense.split_type,
        date=expense.date,
        shares=[ShareResponse(**s.to_dict()) for s in shares]
    )


def _summary_for(group_id: str) -> tuple:
    """Build the summary of a stored group; returns (snapshot, summary)."""
    snapshot = load_group_snapshot(group_id)
    summary = build_summary(
        snapshot["expenses"],
        snapshot["shares"],
        snapshot["members"],
        currency=snapshot["group"]["currency"],
        completed_settlements=snapshot["completed_settlements"]
    )
    return snapshot, summary


# =============================================================================
# API Endpoints
# =============================================================================

@app.post("/groups", response_model=GroupResponse, status_code=201)
async def create_new_group(group_data: GroupCreate):
    """Create a new group."""
    try:
        group = create_group(
            name=group_data.name,
            currency=group_data.currency,
            default_split_method=group_data.default_split_method
        )
        return GroupResponse(
            group_id=group.group_id,
            name=group.name,
            currency=group.currency,
            default_split_method=group.default_split_method
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to create group")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/groups", response_model=list[GroupResponse])
async def list_all_groups():
    """List all groups, newest first."""
    try:
        return [GroupResponse(**g.to_dict()) for g in list_groups()]

    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to list groups")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/groups/{group_id}", response_model=GroupResponse)
async def get_group_details(group_id: str):
    """Get one group."""
    try:
        return GroupResponse(**get_group(group_id).to_dict())

    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to get group %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.patch("/groups/{group_id}", response_model=GroupResponse)
async def edit_group(group_id: str, group_data: GroupUpdate):
    """Rename a group or change its default split method."""
    try:
        get_group(group_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        group = update_group(
            group_id,
            name=group_data.name,
            default_split_method=group_data.default_split_method
        )
        return GroupResponse(**group.to_dict())

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to update group %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/groups/{group_id}/members", response_model=list[MemberResponse])
async def list_group_members(group_id: str):
    """List the member directory of a group, inactive members included."""
    try:
        get_group(group_id)
        return [MemberResponse(**m.to_dict()) for m in list_members(group_id)]

    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to list members of %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/groups/{group_id}/members", response_model=MemberResponse, status_code=201)
async def add_group_member(group_id: str, member_data: MemberCreate):
    """Add a member to a group."""
    try:
        member = add_member(
            group_id=group_id,
            display_name=member_data.display_name,
            member_id=member_data.member_id,
            email=member_data.email
        )
        return MemberResponse(**member.to_dict())

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to add member to %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/groups/{group_id}/members/{member_id}", response_model=MemberResponse)
async def remove_group_member(group_id: str, member_id: str):
    """
    Remove a member from a group.

    The member is only marked inactive; their past shares keep counting.
    """
    try:
        member = deactivate_member(group_id, member_id)
        return MemberResponse(**member.to_dict())

    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to remove member %s", member_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/groups/{group_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def add_group_expense(group_id: str, expense_data: ExpenseCreate):
    """
    Split and add an expense to a group.

    Request flow:
        1. Validate input using Pydantic model
        2. Validate category is valid
        3. Call add_expense() from expenses.py (splits, then stores)
        4. Return the stored expense with its shares
    """
    try:
        if expense_data.category not in VALID_CATEGORIES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid category. Must be one of: {sorted(VALID_CATEGORIES)}"
            )

        expense, shares = add_expense(
            group_id=group_id,
            description=expense_data.description,
            amount=expense_data.amount,
            paid_by=expense_data.paid_by,
            category=expense_data.category,
            participants=_participants_payload(expense_data.participants),
            split_type=expense_data.split_type,
            date=expense_data.date
        )
        return _expense_response(expense, shares)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to add expense to %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/groups/{group_id}/expenses", response_model=list[ExpenseResponse])
async def list_group_expenses(group_id: str):
    """List a group's expenses, newest first, each with its shares."""
    try:
        shares_by_expense = {}
        for share in list_shares(group_id):
            shares_by_expense.setdefault(share.expense_id, []).append(share)

        return [
            _expense_response(e, shares_by_expense.get(e.expense_id, []))
            for e in list_expenses(group_id)
        ]

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to list expenses of %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.delete("/groups/{group_id}/expenses/{expense_id}")
async def delete_group_expense(group_id: str, expense_id: str):
    """Delete an expense and its shares (administrative edit)."""
    try:
        deleted_shares = delete_expense(group_id, expense_id)
        return {"expense_id": expense_id, "deleted_shares": deleted_shares}

    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to delete expense %s", expense_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.patch("/groups/{group_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def edit_group_expense(group_id: str, expense_id: str, expense_data: ExpenseUpdate):
    """
    Edit an expense (administrative edit).

    The shares are split again with the new values before anything is
    stored; an invalid split leaves the expense unchanged.
    """
    try:
        get_expense(group_id, expense_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        if expense_data.category is not None and expense_data.category not in VALID_CATEGORIES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid category. Must be one of: {sorted(VALID_CATEGORIES)}"
            )

        participants = expense_data.participants
        expense, shares = update_expense(
            group_id,
            expense_id,
            description=expense_data.description,
            amount=expense_data.amount,
            paid_by=expense_data.paid_by,
            category=expense_data.category,
            participants=_participants_payload(participants) if participants is not None else None,
            split_type=expense_data.split_type,
            date=expense_data.date
        )
        return _expense_response(expense, shares)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Failed to update expense %s", expense_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/splits/preview", response_model=list[ShareResponse])
async def preview_split(split_data: SplitRequest):
    """Run the split calculator without saving anything."""
    try:
        shares = compute_shares(
            split_data.amount,
            split_data.split_type,
            _participants_payload(split_data.participants),
            currency=split_data.currency
        )
        return [
            ShareResponse(
                member_id=s["member_id"],
                amount=float(s["amount"]),
                percentage=float(s["percentage"]) if s["percentage"] is not None else None
            )
            for s in shares
        ]

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/groups/{group_id}/summary")
async def get_group_summary(group_id: str):
    """
    Build and persist the summary of a group.

    Request flow:
        1. Fetch group, members, expenses, shares and completed
           settlements from Firestore
        2. Aggregate balances, plan settlements, roll up categories
           (summary.py)
        3. Persist the summary (firebase_store.py)
        4. Return it
    """
    try:
        _, summary = _summary_for(group_id)
        save_summary(group_id, summary)
        return summary

    except UnbalancedLedger as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to build summary of %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/groups/{group_id}/explanations")
async def get_group_explanations(group_id: str):
    """Explain, per member, which shares make up their balance."""
    try:
        snapshot = load_group_snapshot(group_id)
        currency = snapshot["group"]["currency"]
        balances = aggregate_balances(
            snapshot["shares"],
            {e["expense_id"]: e["paid_by"] for e in snapshot["expenses"]},
            {e["expense_id"]: e["amount"] for e in snapshot["expenses"]},
            members=snapshot["members"],
            currency=currency
        )
        if snapshot["completed_settlements"]:
            balances = apply_settlements(balances, snapshot["completed_settlements"], currency)
        explanations = explain_all_members(
            snapshot["members"], snapshot["expenses"], snapshot["shares"], balances, currency
        )
        return [
            {
                **x,
                "total_paid": float(x["total_paid"]),
                "total_share": float(x["total_share"]),
                "net_balance": float(x["net_balance"]),
                "expense_contributions": [
                    {
                        **c,
                        "total_expense_amount": float(c["total_expense_amount"]),
                        "member_share": float(c["member_share"])
                    }
                    for c in x["expense_contributions"]
                ]
            }
            for x in explanations
        ]

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to explain balances of %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/groups/{group_id}/settlements", response_model=list[SettlementRecord], status_code=201)
async def record_group_settlements(group_id: str):
    """
    Record the current settlement plan as pending payments.

    Replaces pending records from an earlier plan; completed ones stay.
    """
    try:
        _, summary = _summary_for(group_id)
        records = record_settlements(group_id, summary["settlements_needed"])
        return [SettlementRecord(**r) for r in records]

    except UnbalancedLedger as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to record settlements of %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/groups/{group_id}/settlements", response_model=list[SettlementRecord])
async def list_group_settlements(group_id: str, status: Optional[str] = None):
    """List recorded settlements, optionally filtered by status."""
    try:
        return [SettlementRecord(**r) for r in list_settlements(group_id, status=status)]

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to list settlements of %s", group_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/groups/{group_id}/settlements/{settlement_id}/complete", response_model=SettlementRecord)
async def complete_group_settlement(group_id: str, settlement_id: str):
    """Mark a recorded settlement as paid."""
    try:
        record = mark_settlement_complete(group_id, settlement_id)
        return SettlementRecord(**record)

    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Failed to complete settlement %s", settlement_id)
        raise HTTPException(status_code=500, detail=str(e))


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Group Expense Splitter"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
