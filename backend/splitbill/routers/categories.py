"""Categories: defaults plus user-defined ones, and usage stats."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from splitbill.database import get_db
from splitbill.models import ACTIVE, User, Category, Expense
from splitbill.schemas import CategoryCreate, CategoryUpdate, CategoryResponse, CategoryUsage
from splitbill.auth import get_current_user
from splitbill.routers.groups import get_membership
from splitbill.services.categories import find_category
from splitbill.services.money import to_float

router = APIRouter(prefix="/categories", tags=["categories"])


def _get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _get_custom_category(db: Session, category_id: int) -> Category:
    category = _get_category(db, category_id)
    if category.is_default:
        raise HTTPException(status_code=400, detail="Default categories cannot be changed")
    return category


@router.get("", response_model=list[CategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    return db.query(Category).order_by(Category.name).all()


@router.get("/stats/usage", response_model=list[CategoryUsage])
def category_usage(
    group_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if group_id is not None:
        get_membership(db, group_id, current_user)
    q = (
        db.query(
            Category.id,
            Category.name,
            func.count(Expense.id),
            func.coalesce(func.sum(Expense.amount), 0),
        )
        .join(Expense, Expense.category_id == Category.id)
        .filter(Expense.status == ACTIVE)
    )
    if group_id is not None:
        q = q.filter(Expense.group_id == group_id)
    rows = q.group_by(Category.id, Category.name).all()
    usage = [
        CategoryUsage(
            category_id=cid,
            name=name,
            expense_count=count,
            total_amount=to_float(total),
            average_amount=to_float(total / count),
        )
        for cid, name, count, total in rows
    ]
    return sorted(usage, key=lambda u: (-u.total_amount, u.name))


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: int, db: Session = Depends(get_db)):
    return _get_category(db, category_id)


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if find_category(db, data.name):
        raise HTTPException(status_code=400, detail="A category with that name already exists")
    category = Category(name=data.name.strip().lower(), icon=data.icon, color=data.color, is_default=False)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@router.patch("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: int,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = _get_custom_category(db, category_id)
    if data.name is not None:
        other = find_category(db, data.name)
        if other and other.id != category.id:
            raise HTTPException(status_code=400, detail="A category with that name already exists")
        category.name = data.name.strip().lower()
    if data.icon is not None:
        category.icon = data.icon
    if data.color is not None:
        category.color = data.color
    db.commit()
    db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    category = _get_custom_category(db, category_id)
    in_use = db.query(Expense).filter(Expense.category_id == category.id, Expense.status == ACTIVE).first()
    if in_use:
        raise HTTPException(status_code=400, detail="Category is used by existing expenses")
    db.delete(category)
    db.commit()
