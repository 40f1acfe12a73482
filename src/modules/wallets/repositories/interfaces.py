"""Wallet repository interface.

Defines the contract the ledger and withdrawal services depend on.
Balance changes are only valid while the wallet row is locked via
``get_for_update`` inside the caller's transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.wallets.models import Transaction, Wallet, Withdrawal


class IWalletRepository(ABC):
    """Repository contract for the Wallet aggregate."""

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Wallet]:
        """Retrieve a wallet by primary key."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Wallet]:
        """Retrieve and row-lock a wallet (``SELECT ... FOR UPDATE``)."""

    @abstractmethod
    def get_for_user(self, user_id: Any) -> Optional[Wallet]:
        """Retrieve the wallet owned by a user."""

    @abstractmethod
    def get_for_merchant(self, merchant_id: Any) -> Optional[Wallet]:
        """Retrieve the wallet owned by a merchant."""

    @abstractmethod
    def get_or_create_for_user(self, user_id: Any, currency: str) -> Wallet:
        """Upsert the wallet owned by a user."""

    @abstractmethod
    def apply_balance_delta(self, id: str, delta: Decimal) -> None:
        """Add *delta* (may be negative) to the stored balance."""

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    @abstractmethod
    def get_transaction_by_key(self, idempotency_key: str) -> Optional[Transaction]:
        """Retrieve the ledger entry recorded under an idempotency key."""

    @abstractmethod
    def create_transaction(self, data: Dict[str, Any]) -> Transaction:
        """Insert a ledger entry.  Raises ``IntegrityError`` on a duplicate key."""

    @abstractmethod
    def list_transactions(self, wallet_id: str) -> QuerySet:
        """Ledger entries of a wallet, newest first."""

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    @abstractmethod
    def has_open_withdrawal(self, wallet_id: str) -> bool:
        """``True`` if a withdrawal is still awaiting payout."""

    @abstractmethod
    def create_withdrawal(self, data: Dict[str, Any]) -> Withdrawal:
        """Insert a withdrawal.  Raises ``IntegrityError`` if one is already open."""

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    @abstractmethod
    def with_ledger_totals(self) -> QuerySet:
        """Every wallet annotated with ``ledger_credits`` and ``ledger_debits`` (completed entries only)."""
