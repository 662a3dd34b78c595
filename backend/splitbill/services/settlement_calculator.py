"""Turn net balances into a short list of transfers (who owes whom)."""
from decimal import Decimal

from splitbill.config import SETTLEMENT_EPSILON
from splitbill.services.ledger import Debt


def compute_debts(balances: dict[int, Decimal], epsilon: Decimal = SETTLEMENT_EPSILON) -> list[Debt]:
    """
    balances: member_id -> net balance (positive = is owed money, negative = owes money).
    Returns transfers that bring every balance within `epsilon` of zero.
    Amounts are exact; round them only for display.

    Greedy: the largest creditor is matched with the largest debtor until one of
    them is settled. At most (members with a nonzero balance - 1) transfers, but
    not always the fewest possible.
    """
    creditors = []  # [member_id, amount still owed to them]
    debtors = []  # [member_id, amount they still owe]
    for uid, bal in balances.items():
        if bal > epsilon:
            creditors.append([uid, bal])
        elif bal < -epsilon:
            debtors.append([uid, -bal])
    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (-x[1], x[0]))

    out: list[Debt] = []
    i, j = 0, 0
    while i < len(creditors) and j < len(debtors):
        creditor, debtor = creditors[i], debtors[j]
        amount = min(creditor[1], debtor[1])
        if amount > epsilon:
            out.append(Debt(from_member=debtor[0], to_member=creditor[0], amount=amount))
        creditor[1] -= amount
        debtor[1] -= amount
        if creditor[1] <= epsilon:
            i += 1
        if debtor[1] <= epsilon:
            j += 1
    return out


def apply_debts(balances: dict[int, Decimal], debts: list[Debt]) -> dict[int, Decimal]:
    """Balances after every transfer in `debts` has been paid."""
    result = dict(balances)
    for d in debts:
        result[d.from_member] = result.get(d.from_member, Decimal(0)) + d.amount
        result[d.to_member] = result.get(d.to_member, Decimal(0)) - d.amount
    return result
