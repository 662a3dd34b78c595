"""Expense categories: built-in defaults and lookup by name."""
from typing import Optional

from sqlalchemy.orm import Session

from splitbill.models import Category

DEFAULT_CATEGORIES = [
    ("food", "utensils", "#ef4444"),
    ("transport", "car", "#3b82f6"),
    ("housing", "home", "#8b5cf6"),
    ("entertainment", "film", "#ec4899"),
    ("utilities", "bolt", "#f59e0b"),
    ("shopping", "shopping-bag", "#10b981"),
    ("health", "heart", "#14b8a6"),
    ("travel", "plane", "#6366f1"),
    ("education", "book", "#0ea5e9"),
    ("other", "tag", "#6b7280"),
]


def seed_default_categories(db: Session) -> int:
    """Insert missing default categories; returns how many were added."""
    existing = {name for (name,) in db.query(Category.name).all()}
    added = 0
    for name, icon, color in DEFAULT_CATEGORIES:
        if name not in existing:
            db.add(Category(name=name, icon=icon, color=color, is_default=True))
            added += 1
    if added:
        db.commit()
    return added


def find_category(db: Session, name: str) -> Optional[Category]:
    return db.query(Category).filter(Category.name == name.strip().lower()).first()
