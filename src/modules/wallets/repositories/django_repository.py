"""Django ORM implementation of the Wallet repository."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import DecimalField, F, Q, QuerySet, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from modules.wallets.models import (
    OPEN_WITHDRAWAL_STATUSES,
    Transaction,
    TransactionStatus,
    TransactionType,
    Wallet,
    Withdrawal,
)
from modules.wallets.repositories.interfaces import IWalletRepository

logger = structlog.get_logger(__name__)

_MONEY = DecimalField(max_digits=14, decimal_places=2)


class WalletDjangoRepository(IWalletRepository):
    """Concrete Wallet repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Wallet]:
        try:
            return Wallet.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Wallet]:
        try:
            return Wallet.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_user(self, user_id: Any) -> Optional[Wallet]:
        return Wallet.objects.filter(user_id=user_id).first()

    def get_for_merchant(self, merchant_id: Any) -> Optional[Wallet]:
        try:
            return Wallet.objects.filter(merchant_id=merchant_id).first()
        except (ValueError, ValidationError):
            return None

    def get_or_create_for_user(self, user_id: Any, currency: str) -> Wallet:
        wallet, created = Wallet.objects.get_or_create(
            user_id=user_id,
            defaults={"currency": currency},
        )
        if created:
            logger.info("wallet.created", wallet_id=str(wallet.id), user_id=str(user_id))
        return wallet

    def apply_balance_delta(self, id: str, delta: Decimal) -> None:
        Wallet.objects.filter(id=id).update(
            balance=F("balance") + delta,
            updated_at=timezone.now(),
        )

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    def get_transaction_by_key(self, idempotency_key: str) -> Optional[Transaction]:
        return Transaction.objects.filter(idempotency_key=idempotency_key).first()

    def create_transaction(self, data: Dict[str, Any]) -> Transaction:
        return Transaction.objects.create(**data)

    def list_transactions(self, wallet_id: str) -> QuerySet:
        return Transaction.objects.filter(wallet_id=wallet_id).order_by("-created_at", "-id")

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    def has_open_withdrawal(self, wallet_id: str) -> bool:
        return Withdrawal.objects.filter(
            wallet_id=wallet_id,
            status__in=OPEN_WITHDRAWAL_STATUSES,
        ).exists()

    def create_withdrawal(self, data: Dict[str, Any]) -> Withdrawal:
        return Withdrawal.objects.create(**data)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def with_ledger_totals(self) -> QuerySet:
        zero = Value(Decimal("0.00"), output_field=_MONEY)
        completed = Q(transactions__status=TransactionStatus.COMPLETED)
        credits = Coalesce(
            Sum(
                "transactions__amount",
                filter=completed & Q(transactions__type=TransactionType.CREDIT),
            ),
            zero,
            output_field=_MONEY,
        )
        debits = Coalesce(
            Sum(
                "transactions__amount",
                filter=completed & Q(transactions__type=TransactionType.DEBIT),
            ),
            zero,
            output_field=_MONEY,
        )
        return Wallet.objects.annotate(
            ledger_credits=credits,
            ledger_debits=debits,
        ).order_by("created_at", "id")
