"""
Error kinds raised by the auction core.

Every error is fatal to the requesting call only: the call is rolled back
with no partial mutation and nothing is retried automatically.
"""

from typing import Optional


class AuctionError(Exception):
    """Base class for all auction failures."""


class ValidationError(AuctionError, ValueError):
    """Malformed input: mismatched or empty lengths, bad types, unknown ids."""


class PhaseError(AuctionError):
    """Operation attempted outside the lot phase it requires."""

    def __init__(self, lot_id: int, expected, actual, operation: Optional[str] = None):
        self.lot_id = lot_id
        self.expected = expected
        self.actual = actual
        self.operation = operation
        action = f"{operation} requires" if operation else "requires"
        super().__init__(
            f"Lot {lot_id}: {action} phase {expected.name}, lot is {actual.name}"
        )


class ArithmeticOverflowError(AuctionError, ArithmeticError):
    """Checked uint256 arithmetic overflowed, underflowed or divided by zero."""


class AccessDeniedError(AuctionError, PermissionError):
    """Caller is not allowed to run an administrative operation."""


__all__ = [
    "AuctionError",
    "ValidationError",
    "PhaseError",
    "ArithmeticOverflowError",
    "AccessDeniedError",
]
