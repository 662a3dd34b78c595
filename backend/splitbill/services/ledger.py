"""Plain records passed between the record store and the settlement engine."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from splitbill.errors import InvalidExpenseError


@dataclass(frozen=True)
class ExpenseRecord:
    """An active expense: `amount` paid by `paid_by`, split equally between
    the member ids in `split_between`."""

    amount: Decimal
    paid_by: int
    split_between: tuple[int, ...]


@dataclass(frozen=True)
class Debt:
    """`from_member` should pay `to_member` the given (unrounded) amount."""

    from_member: int
    to_member: int
    amount: Decimal


def validate_expense(record: ExpenseRecord, members: Iterable[int]) -> None:
    """Raise InvalidExpenseError unless `record` can be split inside the group."""
    member_set = set(members)
    if not record.split_between:
        raise InvalidExpenseError("At least one participant required")
    if len(set(record.split_between)) != len(record.split_between):
        raise InvalidExpenseError("Participants must not repeat")
    if record.amount <= 0:
        raise InvalidExpenseError("Amount must be positive")
    if record.paid_by not in member_set:
        raise InvalidExpenseError("Payer must be a group member")
    outsiders = [m for m in record.split_between if m not in member_set]
    if outsiders:
        raise InvalidExpenseError(f"All participants must be group members (not: {sorted(outsiders)})")
