"""Net balance per member from a group's active expenses."""
from decimal import Decimal
from fractions import Fraction
from typing import Iterable

from splitbill.services.ledger import ExpenseRecord, validate_expense


def _to_decimal(value: Fraction) -> Decimal:
    return Decimal(value.numerator) / Decimal(value.denominator)


def compute_balances(members: Iterable[int], expenses: Iterable[ExpenseRecord]) -> dict[int, Decimal]:
    """
    members: member ids of the group.
    expenses: active expenses of the group.
    Returns member_id -> net balance (positive = is owed money, negative = owes money).

    Shares are accumulated as exact fractions, so the result does not depend on
    the order of `expenses`. Nothing is rounded here.
    """
    members = list(members)
    totals: dict[int, Fraction] = {m: Fraction(0) for m in members}
    for e in expenses:
        validate_expense(e, totals)
        amount = Fraction(e.amount)
        share = amount / len(e.split_between)
        totals[e.paid_by] += amount
        for m in e.split_between:
            totals[m] -= share
    return {m: _to_decimal(total) for m, total in totals.items()}


def ledger_residual(balances: dict[int, Decimal]) -> Decimal:
    """Sum of all balances; zero for a consistent ledger."""
    return sum(balances.values(), Decimal(0))
