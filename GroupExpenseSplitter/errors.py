"""
Errors Module

Data-validation errors raised by the settlement engine.

All of them derive from ValueError so that callers which already map
ValueError to a client error (the API layer does) keep working. None of
them are transient; they are raised to the immediate caller and never
retried.

Classes:
    LedgerError: Base class for settlement-engine errors.
    InvalidAmount: Non-positive or non-numeric amount.
    InvalidParticipants: Empty (or duplicated) participant set for a split.
    SplitMismatch: Split shares do not add up to the expense total.
    UnbalancedLedger: Balances handed to the planner do not sum to zero.
"""


class LedgerError(ValueError):
    """Base class for settlement-engine errors."""


class InvalidAmount(LedgerError):
    """Raised when an expense amount is not a positive number."""


class InvalidParticipants(LedgerError):
    """Raised when a split has no participants or repeats a member."""


class SplitMismatch(LedgerError):
    """
    Raised when percentage or custom shares do not match the expense.

    Attributes:
        expected: The expense amount (or 100 for percentages).
        actual: What the supplied shares add up to.
    """

    def __init__(self, message: str, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class UnbalancedLedger(LedgerError):
    """
    Raised when balances do not sum to zero within tolerance.

    Attributes:
        imbalance: Sum of the balances that were supplied.
    """

    def __init__(self, message: str, imbalance=None):
        super().__init__(message)
        self.imbalance = imbalance
