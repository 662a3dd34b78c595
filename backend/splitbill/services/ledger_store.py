"""Queries the settlement engine needs from the database.

Only active (not soft-deleted) rows are returned.
"""
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from splitbill.models import ACTIVE, Expense, Group, GroupMember
from splitbill.services.ledger import ExpenseRecord


def get_active_group(db: Session, group_id: int, for_update: bool = False) -> Optional[Group]:
    q = db.query(Group).filter(Group.id == group_id, Group.status == ACTIVE)
    if for_update:
        # Serializes writes to a group's expense set on backends that support row locks.
        q = q.with_for_update()
    return q.first()


def list_members(db: Session, group_id: int) -> list[int]:
    rows = (
        db.query(GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.status == ACTIVE)
        .order_by(GroupMember.user_id)
        .all()
    )
    return [r.user_id for r in rows]


def list_active_expenses(db: Session, group_id: int) -> list[ExpenseRecord]:
    expenses = (
        db.query(Expense)
        .options(selectinload(Expense.splits))
        .filter(Expense.group_id == group_id, Expense.status == ACTIVE)
        .order_by(Expense.id)
        .all()
    )
    return [to_record(e) for e in expenses]


def to_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        amount=Decimal(expense.amount),
        paid_by=expense.paid_by,
        split_between=tuple(expense.participant_ids),
    )


def member_has_expenses(db: Session, group_id: int, user_id: int) -> bool:
    """True if the member paid for or shares in an active expense of the group."""
    for record in list_active_expenses(db, group_id):
        if record.paid_by == user_id or user_id in record.split_between:
            return True
    return False
