"""Expenses: create, list, update, soft delete, export."""
import csv
import io
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbill.database import get_db
from splitbill.models import ACTIVE, DELETED, ROLE_ADMIN, User, Group, GroupMember, Expense, ExpenseSplit, Category
from splitbill.schemas import ExpenseCreate, ExpenseUpdate, ExpenseResponse, MyExpenseResponse
from splitbill.auth import get_current_user
from splitbill.routers.groups import get_membership
from splitbill.services.categories import find_category
from splitbill.services.ledger import ExpenseRecord, validate_expense
from splitbill.services.ledger_store import get_active_group, list_members
from splitbill.services.money import to_float

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _share(exp: Expense):
    participants = exp.participant_ids
    return exp.amount / len(participants) if participants else 0


def _expense_response(exp: Expense) -> ExpenseResponse:
    return ExpenseResponse(
        id=exp.id,
        group_id=exp.group_id,
        payer_id=exp.paid_by,
        amount=to_float(exp.amount),
        description=exp.description,
        participant_ids=exp.participant_ids,
        share=to_float(_share(exp)),
        category=exp.category.name if exp.category else None,
        created_at=exp.created_at,
        updated_at=exp.updated_at,
    )


def _my_expense_response(exp: Expense, user: User) -> MyExpenseResponse:
    base = _expense_response(exp)
    mine = _share(exp) if user.id in exp.participant_ids else 0
    return MyExpenseResponse(**base.model_dump(), group_name=exp.group.name, your_share=to_float(mine))


def _resolve_category(db: Session, name: Optional[str]) -> Optional[Category]:
    if not name:
        return None
    category = find_category(db, name)
    if not category:
        raise HTTPException(status_code=400, detail=f"Unknown category: {name}")
    return category


def _locked_group_for_member(db: Session, group_id: int, user: User) -> Group:
    group = get_active_group(db, group_id, for_update=True)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    if user.id not in list_members(db, group_id):
        raise HTTPException(status_code=403, detail="Not a member of this group")
    return group


def _get_active_expense(db: Session, expense_id: int) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id, Expense.status == ACTIVE).first()
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


def _check_can_modify(db: Session, expense: Expense, user: User) -> None:
    """Only the payer or a group admin may change an expense."""
    membership = get_membership(db, expense.group_id, user)
    if expense.paid_by != user.id and membership.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Only the payer or a group admin can change this expense")


def _lock_expense_for_change(db: Session, expense_id: int, user: User) -> Expense:
    """Lock the expense's group, then load the expense and check the caller may change it."""
    group_id = db.query(Expense.group_id).filter(Expense.id == expense_id).scalar()
    if group_id is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    _locked_group_for_member(db, group_id, user)
    expense = _get_active_expense(db, expense_id)
    _check_can_modify(db, expense, user)
    return expense


def _filtered(q, category: Optional[str], search: Optional[str],
              start_date: Optional[datetime], end_date: Optional[datetime]):
    if search:
        q = q.filter(Expense.description.ilike(f"%{search}%"))
    if category:
        q = q.join(Category, Expense.category_id == Category.id).filter(Category.name == category)
    if start_date:
        q = q.filter(Expense.created_at >= start_date)
    if end_date:
        q = q.filter(Expense.created_at <= end_date)
    return q


@router.post("", response_model=ExpenseResponse)
def create_expense(
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _locked_group_for_member(db, data.group_id, current_user)
    record = ExpenseRecord(
        amount=data.amount,
        paid_by=data.payer_id,
        split_between=tuple(data.participant_ids),
    )
    validate_expense(record, list_members(db, data.group_id))
    category = _resolve_category(db, data.category)

    expense = Expense(
        group_id=data.group_id,
        paid_by=data.payer_id,
        amount=data.amount,
        description=data.description,
        category=category,
    )
    expense.splits = [ExpenseSplit(user_id=uid) for uid in data.participant_ids]
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info("User %s added expense %s (%s) to group %s", current_user.id, expense.id, expense.amount, expense.group_id)
    return _expense_response(expense)


@router.get("", response_model=list[ExpenseResponse])
def list_expenses(
    group_id: int,
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    paid_by: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    get_membership(db, group_id, current_user)
    q = db.query(Expense).filter(Expense.group_id == group_id, Expense.status == ACTIVE)
    q = _filtered(q, category, search, start_date, end_date)
    if paid_by is not None:
        q = q.filter(Expense.paid_by == paid_by)

    expenses = q.order_by(Expense.created_at.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
    return [_expense_response(e) for e in expenses]


@router.get("/export")
def export_expenses(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_membership(db, group_id, current_user).group
    expenses = (
        db.query(Expense)
        .filter(Expense.group_id == group_id, Expense.status == ACTIVE)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .all()
    )
    member_map = {m.id: m.name or m.email for m in group.members}

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Date", "Description", "Category", "Amount", "Paid By", "Share", "Participants"])
    for e in expenses:
        participants = ", ".join(member_map.get(uid, str(uid)) for uid in e.participant_ids)
        writer.writerow([
            e.created_at.strftime("%Y-%m-%d %H:%M") if e.created_at else "",
            e.description or "",
            e.category.name if e.category else "",
            f"{to_float(e.amount):.2f}",
            member_map.get(e.paid_by, str(e.paid_by)),
            f"{to_float(_share(e)):.2f}",
            participants,
        ])

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=expenses-group-{group_id}.csv"},
    )


def _my_group_ids(user: User):
    return (
        select(GroupMember.group_id)
        .join(Group, Group.id == GroupMember.group_id)
        .where(GroupMember.user_id == user.id, GroupMember.status == ACTIVE, Group.status == ACTIVE)
    )


@router.get("/mine/paid", response_model=list[MyExpenseResponse])
def list_paid_by_me(
    group_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = db.query(Expense).filter(
        Expense.paid_by == current_user.id,
        Expense.status == ACTIVE,
        Expense.group_id.in_(_my_group_ids(current_user)),
    )
    if group_id is not None:
        q = q.filter(Expense.group_id == group_id)
    q = _filtered(q, category, search, start_date, end_date)
    expenses = q.order_by(Expense.created_at.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
    return [_my_expense_response(e, current_user) for e in expenses]


@router.get("/mine/owed", response_model=list[MyExpenseResponse])
def list_owed_by_me(
    group_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = (
        db.query(Expense)
        .join(ExpenseSplit, ExpenseSplit.expense_id == Expense.id)
        .filter(
            ExpenseSplit.user_id == current_user.id,
            ExpenseSplit.status == ACTIVE,
            Expense.status == ACTIVE,
            Expense.group_id.in_(_my_group_ids(current_user)),
        )
    )
    if group_id is not None:
        q = q.filter(Expense.group_id == group_id)
    q = _filtered(q, category, search, start_date, end_date)
    expenses = q.order_by(Expense.created_at.desc(), Expense.id.desc()).offset(offset).limit(limit).all()
    return [_my_expense_response(e, current_user) for e in expenses]


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = _get_active_expense(db, expense_id)
    get_membership(db, expense.group_id, current_user)
    return _expense_response(expense)


@router.patch("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: int,
    data: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = _lock_expense_for_change(db, expense_id, current_user)
    if data.amount is None and data.description is None and data.category is None:
        raise HTTPException(status_code=400, detail="Nothing to update")

    if data.amount is not None:
        expense.amount = data.amount
    if data.description is not None:
        expense.description = data.description
    if data.category is not None:
        # An empty string clears the category.
        expense.category = _resolve_category(db, data.category)

    db.commit()
    db.refresh(expense)
    logger.info("User %s updated expense %s", current_user.id, expense.id)
    return _expense_response(expense)


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense = _lock_expense_for_change(db, expense_id, current_user)
    expense.status = DELETED
    for split in expense.splits:
        split.status = DELETED
    db.commit()
    logger.info("User %s deleted expense %s", current_user.id, expense_id)
