"""Groups: create, list, get, update, delete, members, balances, stats."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from splitbill.database import get_db
from splitbill.models import ACTIVE, DELETED, ROLE_ADMIN, ROLE_MEMBER, User, Group, GroupMember, Expense
from splitbill.schemas import (
    GroupCreate, GroupUpdate, GroupResponse, GroupAddMember, GroupStats, MemberInfo, MemberRoleUpdate,
    GroupBalances, MemberBalance, DebtItem, GroupDashboard,
)
from splitbill.auth import get_current_user
from splitbill.services.ledger_store import get_active_group, member_has_expenses
from splitbill.services.money import to_float
from splitbill.services.settlement_service import summarize_group

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])

ROLES = (ROLE_ADMIN, ROLE_MEMBER)


def _member_info(membership: GroupMember) -> MemberInfo:
    u = membership.user
    return MemberInfo(id=u.id, name=u.name, email=u.email, role=membership.role)


def _stats(db: Session, group: Group) -> GroupStats:
    count, total = (
        db.query(func.count(Expense.id), func.coalesce(func.sum(Expense.amount), 0))
        .filter(Expense.group_id == group.id, Expense.status == ACTIVE)
        .one()
    )
    return GroupStats(
        total_members=len(group.active_memberships),
        total_expenses=count,
        total_amount=to_float(total),
    )


def _group_response(db: Session, group: Group, user: User) -> GroupResponse:
    memberships = group.active_memberships
    mine = next((m for m in memberships if m.user_id == user.id), None)
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        created_by=group.created_by,
        created_at=group.created_at,
        member_ids=[m.user_id for m in memberships],
        members=[_member_info(m) for m in memberships],
        your_role=mine.role if mine else None,
        stats=_stats(db, group),
    )


def get_membership(db: Session, group_id: int, user: User) -> GroupMember:
    """The caller's active membership of an active group, or 404/403."""
    group = get_active_group(db, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    membership = next((m for m in group.active_memberships if m.user_id == user.id), None)
    if not membership:
        raise HTTPException(status_code=403, detail="Not a member")
    return membership


def _require_admin(db: Session, group_id: int, user: User) -> GroupMember:
    membership = get_membership(db, group_id, user)
    if membership.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Only group admins can do this")
    return membership


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {', '.join(ROLES)}")


def _remove_membership(db: Session, group: Group, membership: GroupMember) -> None:
    if membership.role == ROLE_ADMIN:
        admins = [m for m in group.active_memberships if m.role == ROLE_ADMIN]
        if len(admins) == 1:
            raise HTTPException(status_code=400, detail="Cannot remove the only admin of the group")
    if member_has_expenses(db, group.id, membership.user_id):
        raise HTTPException(status_code=400, detail="Member has expenses in this group")
    membership.status = DELETED
    db.commit()
    logger.info("Removed user %s from group %s", membership.user_id, group.id)


@router.get("", response_model=list[GroupResponse])
def list_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    groups = (
        db.query(Group)
        .join(GroupMember)
        .filter(
            Group.status == ACTIVE,
            GroupMember.user_id == current_user.id,
            GroupMember.status == ACTIVE,
        )
        .order_by(Group.id)
        .all()
    )
    return [_group_response(db, g, current_user) for g in groups]


@router.post("", response_model=GroupResponse)
def create_group(
    data: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = Group(name=data.name, description=data.description, created_by=current_user.id)
    group.memberships = [GroupMember(user=current_user, role=ROLE_ADMIN)]
    if data.member_ids:
        others = db.query(User).filter(User.id.in_(data.member_ids), User.status == ACTIVE).all()
        for u in others:
            if u.id != current_user.id:
                group.memberships.append(GroupMember(user=u, role=ROLE_MEMBER))
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info("User %s created group %s", current_user.id, group.id)
    return _group_response(db, group, current_user)


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    membership = get_membership(db, group_id, current_user)
    return _group_response(db, membership.group, current_user)


@router.patch("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: int,
    data: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _require_admin(db, group_id, current_user).group
    if data.name is None and data.description is None:
        raise HTTPException(status_code=400, detail="Nothing to update")
    if data.name is not None:
        group.name = data.name
    if data.description is not None:
        group.description = data.description
    db.commit()
    db.refresh(group)
    return _group_response(db, group, current_user)


@router.delete("/{group_id}", status_code=204)
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _require_admin(db, group_id, current_user).group
    group.status = DELETED
    db.commit()
    logger.info("User %s deleted group %s", current_user.id, group_id)


@router.get("/{group_id}/members", response_model=list[MemberInfo])
def list_group_members(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_membership(db, group_id, current_user).group
    return [_member_info(m) for m in group.active_memberships]


@router.post("/{group_id}/members", response_model=GroupResponse)
def add_group_member(
    group_id: int,
    data: GroupAddMember,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _require_admin(db, group_id, current_user).group
    _check_role(data.role)
    user = db.query(User).filter(User.email == data.email, User.status == ACTIVE).first()
    if not user:
        raise HTTPException(status_code=404, detail="No user found with that email")
    existing = next((m for m in group.memberships if m.user_id == user.id), None)
    if existing and existing.status == ACTIVE:
        raise HTTPException(status_code=400, detail="User already in group")
    if existing:
        # A member who left keeps the same identity in the group.
        existing.status = ACTIVE
        existing.role = data.role
    else:
        group.memberships.append(GroupMember(user=user, role=data.role))
    db.commit()
    db.refresh(group)
    logger.info("User %s added user %s to group %s", current_user.id, user.id, group_id)
    return _group_response(db, group, current_user)


@router.patch("/{group_id}/members/{user_id}", response_model=MemberInfo)
def update_member_role(
    group_id: int,
    user_id: int,
    data: MemberRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _require_admin(db, group_id, current_user).group
    _check_role(data.role)
    membership = next((m for m in group.active_memberships if m.user_id == user_id), None)
    if not membership:
        raise HTTPException(status_code=404, detail="User not in this group")
    if membership.role == ROLE_ADMIN and data.role != ROLE_ADMIN:
        admins = [m for m in group.active_memberships if m.role == ROLE_ADMIN]
        if len(admins) == 1:
            raise HTTPException(status_code=400, detail="Group must keep at least one admin")
    membership.role = data.role
    db.commit()
    logger.info("User %s is now %s of group %s", user_id, data.role, group_id)
    return _member_info(membership)


@router.delete("/{group_id}/members/{user_id}", response_model=GroupResponse)
def remove_group_member(
    group_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = _require_admin(db, group_id, current_user).group
    membership = next((m for m in group.active_memberships if m.user_id == user_id), None)
    if not membership:
        raise HTTPException(status_code=404, detail="User not in this group")
    _remove_membership(db, group, membership)
    db.refresh(group)
    return _group_response(db, group, current_user)


@router.post("/{group_id}/leave", status_code=204)
def leave_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    membership = get_membership(db, group_id, current_user)
    _remove_membership(db, membership.group, membership)


@router.get("/{group_id}/balances", response_model=GroupBalances)
def get_balances(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_membership(db, group_id, current_user).group
    names = {u.id: u.name or u.email for u in group.members}
    summary = summarize_group(db, group_id)
    return GroupBalances(
        group_id=group_id,
        balances=[
            MemberBalance(user_id=uid, name=names.get(uid), balance=to_float(bal))
            for uid, bal in summary.balances.items()
        ],
        debts=[
            DebtItem(from_user_id=d.from_member, to_user_id=d.to_member, amount=to_float(d.amount))
            for d in summary.debts
        ],
        residual=to_float(summary.residual),
    )


@router.get("/{group_id}/stats", response_model=GroupDashboard)
def get_stats(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    group = get_membership(db, group_id, current_user).group
    expenses = (
        db.query(Expense)
        .filter(Expense.group_id == group_id, Expense.status == ACTIVE)
        .all()
    )
    cat_totals = {}
    member_paid = {m.id: 0 for m in group.members}
    for e in expenses:
        cat = e.category.name if e.category else "other"
        cat_totals[cat] = cat_totals.get(cat, 0) + e.amount
        member_paid[e.paid_by] = member_paid.get(e.paid_by, 0) + e.amount

    summary = summarize_group(db, group_id)
    names = {u.id: u.name or u.email for u in group.members}
    return GroupDashboard(
        group_id=group_id,
        total_expenses=to_float(sum((e.amount for e in expenses), 0)),
        expense_count=len(expenses),
        member_count=len(group.active_memberships),
        category_totals={cat: to_float(total) for cat, total in cat_totals.items()},
        member_spending=[
            {"user_id": uid, "name": names.get(uid, str(uid)), "paid": to_float(paid)}
            for uid, paid in member_paid.items()
        ],
        your_balance=to_float(summary.balances.get(current_user.id, 0)),
    )
