"""Balances and settle-up transfers for one group, recomputed on every call."""
import logging
import warnings
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from splitbill.config import SETTLEMENT_EPSILON
from splitbill.errors import UnbalancedLedgerWarning
from splitbill.services.balance_calculator import compute_balances, ledger_residual
from splitbill.services.ledger import Debt
from splitbill.services.ledger_store import list_active_expenses, list_members
from splitbill.services.settlement_calculator import compute_debts

logger = logging.getLogger(__name__)


@dataclass
class GroupSettlement:
    group_id: int
    balances: dict[int, Decimal]
    debts: list[Debt]
    residual: Decimal


def check_balanced(group_id: int, balances: dict[int, Decimal], epsilon: Decimal = SETTLEMENT_EPSILON) -> Decimal:
    """Warn (without failing) when the balances of a group do not sum to zero."""
    residual = ledger_residual(balances)
    if abs(residual) > epsilon:
        logger.warning("Group %s balances do not sum to zero (residual %s)", group_id, residual)
        warnings.warn(
            f"group {group_id} balances sum to {residual}, expected 0",
            UnbalancedLedgerWarning,
            stacklevel=2,
        )
    return residual


def summarize_group(db: Session, group_id: int) -> GroupSettlement:
    members = list_members(db, group_id)
    expenses = list_active_expenses(db, group_id)
    balances = compute_balances(members, expenses)
    residual = check_balanced(group_id, balances)
    debts = compute_debts(balances)
    return GroupSettlement(group_id=group_id, balances=balances, debts=debts, residual=residual)
