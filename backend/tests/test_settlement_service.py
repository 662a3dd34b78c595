import warnings
from decimal import Decimal

import pytest

from splitbill.errors import UnbalancedLedgerWarning
from splitbill.models import DELETED, User, Group, GroupMember, Expense, ExpenseSplit
from splitbill.services.ledger_store import list_active_expenses, list_members, member_has_expenses
from splitbill.services.settlement_service import check_balanced, summarize_group


@pytest.fixture
def trio(db_session):
    users = [User(email=f"u{i}@example.com", hashed_password="x", name=f"U{i}") for i in range(3)]
    db_session.add_all(users)
    db_session.flush()
    group = Group(name="Trip", created_by=users[0].id)
    group.memberships = [GroupMember(user=u) for u in users]
    db_session.add(group)
    db_session.commit()
    return group, [u.id for u in users]


def add_expense(db, group, paid_by, amount, split):
    e = Expense(group_id=group.id, paid_by=paid_by, amount=Decimal(amount))
    e.splits = [ExpenseSplit(user_id=uid) for uid in split]
    db.add(e)
    db.commit()
    return e


def test_store_returns_only_active_rows(db_session, trio):
    group, (a, b, c) = trio
    add_expense(db_session, group, a, "90", [a, b, c])
    gone = add_expense(db_session, group, b, "40", [a, b])
    gone.status = DELETED
    db_session.commit()

    records = list_active_expenses(db_session, group.id)
    assert len(records) == 1
    assert records[0].amount == Decimal("90")
    assert set(records[0].split_between) == {a, b, c}
    assert list_members(db_session, group.id) == sorted([a, b, c])


def test_removed_member_not_listed(db_session, trio):
    group, (a, b, c) = trio
    membership = next(m for m in group.memberships if m.user_id == c)
    membership.status = DELETED
    db_session.commit()
    assert c not in list_members(db_session, group.id)


def test_member_has_expenses(db_session, trio):
    group, (a, b, c) = trio
    add_expense(db_session, group, a, "20", [a, b])
    assert member_has_expenses(db_session, group.id, a)
    assert member_has_expenses(db_session, group.id, b)
    assert not member_has_expenses(db_session, group.id, c)


def test_summarize_group(db_session, trio):
    group, (a, b, c) = trio
    add_expense(db_session, group, a, "90", [a, b, c])
    with warnings.catch_warnings():
        warnings.simplefilter("error", UnbalancedLedgerWarning)
        summary = summarize_group(db_session, group.id)
    assert summary.balances == {a: Decimal(60), b: Decimal(-30), c: Decimal(-30)}
    assert {(x.from_member, x.to_member, x.amount) for x in summary.debts} == {
        (b, a, Decimal("30.00")),
        (c, a, Decimal("30.00")),
    }
    assert summary.residual == 0


def test_summarize_ignores_deleted_expenses(db_session, trio):
    group, (a, b, c) = trio
    e = add_expense(db_session, group, a, "90", [a, b, c])
    e.status = DELETED
    db_session.commit()
    summary = summarize_group(db_session, group.id)
    assert all(v == 0 for v in summary.balances.values())
    assert summary.debts == []


def test_unbalanced_ledger_warns_but_returns(caplog):
    with pytest.warns(UnbalancedLedgerWarning):
        residual = check_balanced(7, {1: Decimal(50), 2: Decimal(-20)})
    assert residual == Decimal(30)
    assert "Group 7 balances do not sum to zero" in caplog.text


def test_balanced_ledger_does_not_warn():
    with warnings.catch_warnings():
        warnings.simplefilter("error", UnbalancedLedgerWarning)
        assert check_balanced(1, {1: Decimal("0.005"), 2: Decimal(0)}) == Decimal("0.005")
