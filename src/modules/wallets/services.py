"""Wallet service layer (Use Cases).

- ``LedgerService``: posts credits and debits.  Every posting locks the
  wallet row, writes exactly one ledger entry and moves the balance by the
  same amount in one transaction.  A posting that carries an
  ``idempotency_key`` is applied at most once; replays return the original
  entry, and a key reused for another wallet, type or amount raises
  ``IdempotencyConflict``.
- ``WithdrawalService``: payout requests against a wallet.
- ``ReconciliationService``: compares stored balances with the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Optional

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction

from modules.wallets.exceptions import (
    DuplicatePendingWithdrawal,
    IdempotencyConflict,
    InsufficientBalance,
    WalletAccessDenied,
    WalletNotFound,
    WithdrawalValidationError,
)
from modules.wallets.models import TransactionStatus, TransactionType, WithdrawalStatus

if TYPE_CHECKING:
    from modules.merchants.repository import MerchantDjangoRepository
    from modules.wallets.dtos import RequestWithdrawalDTO
    from modules.wallets.models import Transaction, Wallet, Withdrawal
    from modules.wallets.repositories.interfaces import IWalletRepository

logger = structlog.get_logger(__name__)

WITHDRAWAL_GATEWAY = "MTN_KENYA"


class LedgerService:
    """Application service for ledger postings.

    Receives an ``IWalletRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IWalletRepository) -> None:
        self._repo = repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def credit(
        self,
        wallet_id: str,
        amount: Decimal,
        description: str,
        idempotency_key: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Transaction:
        return self._post(
            wallet_id, TransactionType.CREDIT, amount, description, idempotency_key, order_id
        )

    @transaction.atomic
    def debit(
        self,
        wallet_id: str,
        amount: Decimal,
        description: str,
        idempotency_key: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Transaction:
        """Debit a wallet.

        Raises:
            WalletNotFound: the wallet does not exist.
            InsufficientBalance: the balance is lower than *amount*.
            IdempotencyConflict: *idempotency_key* belongs to a different posting.
        """
        return self._post(
            wallet_id, TransactionType.DEBIT, amount, description, idempotency_key, order_id
        )

    @transaction.atomic
    def credit_user(
        self,
        user_id: Any,
        amount: Decimal,
        description: str,
        idempotency_key: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Transaction:
        """Credit the wallet of *user_id*, creating the wallet on first use."""
        wallet = self._repo.get_or_create_for_user(user_id, settings.WALLET_DEFAULT_CURRENCY)
        return self.credit(wallet.id, amount, description, idempotency_key, order_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _post(
        self,
        wallet_id: str,
        kind: str,
        amount: Decimal,
        description: str,
        idempotency_key: Optional[str],
        order_id: Optional[str],
    ) -> Transaction:
        if amount <= 0:
            raise ValueError("Ledger amounts must be positive.")

        log = logger.bind(wallet_id=str(wallet_id), type=kind, amount=str(amount))

        wallet = self._repo.get_for_update(wallet_id)
        if wallet is None:
            raise WalletNotFound(f"Wallet {wallet_id} not found.")

        # Checked under the wallet lock: a concurrent posting with the same
        # key has either committed already or is waiting behind us.
        if idempotency_key:
            existing = self._repo.get_transaction_by_key(idempotency_key)
            if existing is not None:
                return self._replay(existing, wallet.id, kind, amount, log)

        if kind == TransactionType.DEBIT and wallet.balance < amount:
            log.warning("ledger.insufficient_balance", balance=str(wallet.balance))
            raise InsufficientBalance(
                f"Insufficient balance: requested {amount}, available {wallet.balance}."
            )

        try:
            with transaction.atomic():
                entry = self._repo.create_transaction(
                    {
                        "wallet_id": wallet.id,
                        "order_id": order_id,
                        "amount": amount,
                        "type": kind,
                        "status": TransactionStatus.COMPLETED,
                        "description": description,
                        "idempotency_key": idempotency_key,
                    }
                )
        except IntegrityError:
            # Same key committed by a posting on another wallet row.
            existing = (
                self._repo.get_transaction_by_key(idempotency_key) if idempotency_key else None
            )
            if existing is None:
                raise
            return self._replay(existing, wallet.id, kind, amount, log)

        delta = amount if kind == TransactionType.CREDIT else -amount
        self._repo.apply_balance_delta(wallet.id, delta)
        log.info("ledger.entry_posted", transaction_id=str(entry.id))
        return entry

    @staticmethod
    def _replay(existing: Transaction, wallet_id, kind: str, amount: Decimal, log) -> Transaction:
        """Return *existing* if it records the same posting, else raise."""
        if (str(existing.wallet_id), existing.type, existing.amount) != (str(wallet_id), kind, amount):
            log.error(
                "ledger.idempotency_conflict",
                idempotency_key=existing.idempotency_key,
                transaction_id=str(existing.id),
                stored_wallet_id=str(existing.wallet_id),
                stored_type=existing.type,
                stored_amount=str(existing.amount),
            )
            raise IdempotencyConflict(
                f"Idempotency key {existing.idempotency_key} was already used "
                "for a different posting."
            )
        log.info("ledger.idempotent_replay", idempotency_key=existing.idempotency_key)
        return existing


class WithdrawalService:
    """Application service for payout requests."""

    def __init__(
        self,
        wallet_repository: IWalletRepository,
        merchant_repository: MerchantDjangoRepository,
        ledger: Optional[LedgerService] = None,
    ) -> None:
        self._wallet_repo = wallet_repository
        self._merchant_repo = merchant_repository
        self._ledger = ledger or LedgerService(wallet_repository)

    @transaction.atomic
    def request_withdrawal(self, dto: RequestWithdrawalDTO) -> Withdrawal:
        """Reserve funds for a payout to a mobile-money number.

        The debit entry is posted immediately so the withdrawn amount can
        not be spent twice; the withdrawal starts in ``INITIALIZATION``.

        Raises:
            WithdrawalValidationError: amount below the minimum.
            WalletAccessDenied: caller does not manage ``dto.merchant_id``.
            WalletNotFound: the owner has no wallet.
            DuplicatePendingWithdrawal: a withdrawal is already open.
            InsufficientBalance: balance lower than the amount.
        """
        log = logger.bind(user_id=str(dto.user_id), amount=str(dto.amount))

        minimum = settings.MIN_WITHDRAWAL_AMOUNT
        if dto.amount < minimum:
            raise WithdrawalValidationError(f"Minimum withdrawal amount is {minimum}.")

        wallet = self._resolve_wallet(dto)
        locked = self._wallet_repo.get_for_update(wallet.id)

        if self._wallet_repo.has_open_withdrawal(locked.id):
            log.warning("withdrawal.duplicate_pending", wallet_id=str(locked.id))
            raise DuplicatePendingWithdrawal(
                "You already have a pending withdrawal. Please wait for it to complete."
            )

        if locked.balance < dto.amount:
            raise InsufficientBalance(
                f"Insufficient balance: requested {dto.amount}, available {locked.balance}."
            )

        entry = self._ledger.debit(
            locked.id,
            dto.amount,
            description=f"Withdrawal to {WITHDRAWAL_GATEWAY} {dto.phone_number}",
        )
        try:
            with transaction.atomic():
                withdrawal = self._wallet_repo.create_withdrawal(
                    {
                        "wallet_id": locked.id,
                        "transaction": entry,
                        "amount": dto.amount,
                        "phone_number": dto.phone_number,
                        "gateway": WITHDRAWAL_GATEWAY,
                        "status": WithdrawalStatus.INITIALIZATION,
                    }
                )
        except IntegrityError as exc:
            raise DuplicatePendingWithdrawal(
                "You already have a pending withdrawal. Please wait for it to complete."
            ) from exc

        log.info(
            "withdrawal.requested",
            wallet_id=str(locked.id),
            withdrawal_id=str(withdrawal.id),
            phone_number=dto.phone_number,
        )
        return withdrawal

    def _resolve_wallet(self, dto: RequestWithdrawalDTO) -> Wallet:
        if dto.merchant_id is not None:
            merchant = self._merchant_repo.get_managed(str(dto.merchant_id), dto.user_id)
            if merchant is None:
                raise WalletAccessDenied("You do not manage this merchant.")
            wallet = self._wallet_repo.get_for_merchant(merchant.id)
        else:
            wallet = self._wallet_repo.get_for_user(dto.user_id)
        if wallet is None:
            raise WalletNotFound("Wallet not found.")
        return wallet


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletDrift:
    wallet_id: str
    stored_balance: Decimal
    computed_balance: Decimal
    drift: Decimal


@dataclass
class ReconciliationReport:
    wallet_count: int = 0
    drift_items: List[WalletDrift] = field(default_factory=list)

    @property
    def drift_count(self) -> int:
        return len(self.drift_items)

    @property
    def ok(self) -> bool:
        return not self.drift_items

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "wallet_count": self.wallet_count,
            "drift_count": self.drift_count,
            "drift_items": [
                {
                    "wallet_id": item.wallet_id,
                    "stored_balance": str(item.stored_balance),
                    "computed_balance": str(item.computed_balance),
                    "drift": str(item.drift),
                }
                for item in self.drift_items
            ],
        }


class ReconciliationService:
    """Recomputes every wallet balance from its completed ledger entries."""

    def __init__(self, repository: IWalletRepository) -> None:
        self._repo = repository

    def find_drift(self, tolerance: Decimal = Decimal("0.00")) -> ReconciliationReport:
        report = ReconciliationReport()
        for wallet in self._repo.with_ledger_totals():
            report.wallet_count += 1
            computed = wallet.ledger_credits - wallet.ledger_debits
            drift = wallet.balance - computed
            if abs(drift) > tolerance:
                report.drift_items.append(
                    WalletDrift(
                        wallet_id=str(wallet.id),
                        stored_balance=wallet.balance,
                        computed_balance=computed,
                        drift=drift,
                    )
                )
        logger.info(
            "ledger.reconciled",
            wallet_count=report.wallet_count,
            drift_count=report.drift_count,
        )
        return report
