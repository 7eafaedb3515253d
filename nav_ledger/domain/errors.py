"""Exceptions raised by the ledger and the NAV engine.

Every error is raised before any state is written, so a failed call leaves
the ledger exactly as it was.
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger and NAV engine failures."""


class NotFoundError(LedgerError):
    """Unknown investor or share class reference."""


class AlreadyExistsError(LedgerError):
    """Investor is already onboarded."""


class InvalidArgumentError(LedgerError):
    """Out-of-range type, index, rate or amount."""


class InvalidTypeError(InvalidArgumentError):
    pass


class InvalidClassError(InvalidArgumentError):
    pass


class NonZeroBalanceError(LedgerError):
    """Investor still holds a balance and cannot be removed."""


class SharesOutstandingError(LedgerError):
    """Share class terms cannot change while shares are outstanding."""


class UnauthorizedError(LedgerError):
    """Caller fails the access predicate of the operation."""


class DivisionByZeroError(LedgerError, ZeroDivisionError):
    """NAV calculation requested with no shares outstanding."""
