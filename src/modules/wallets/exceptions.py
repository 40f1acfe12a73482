"""Wallet and ledger exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class WalletNotFound(Exception):
    """The owner has no wallet yet."""


class WalletAccessDenied(Exception):
    """The caller does not manage the merchant whose wallet was requested."""


class InsufficientBalance(Exception):
    """A debit would take the wallet balance below zero."""


class DuplicatePendingWithdrawal(Exception):
    """The wallet already has a withdrawal awaiting payout."""


class WithdrawalValidationError(Exception):
    """The withdrawal request breaks an amount or payout rule."""


class IdempotencyConflict(Exception):
    """An idempotency key was reused for a different posting."""
