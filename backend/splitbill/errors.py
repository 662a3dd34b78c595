"""Errors raised by the settlement engine."""


class InvalidExpenseError(ValueError):
    """An expense that cannot be split: empty split set, non-member payer or
    participant, or a non-positive amount."""


class UnbalancedLedgerWarning(UserWarning):
    """Group balances do not sum to zero within epsilon (corrupt expense data)."""
