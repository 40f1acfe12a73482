"""Wallet, Transaction (ledger entry) and Withdrawal models.

Business rules implemented:
- A wallet belongs to exactly one owner: a user or a merchant.
- Wallet balance is never negative (database CHECK).
- Ledger entries are write-once; ``balance`` equals completed credits
  minus completed debits (see ``ReconciliationService``).
- ``Transaction.idempotency_key`` is UNIQUE: one logical event (e.g. the
  earnings of one order) can produce at most one ledger entry.
- At most one open (``INITIALIZATION``/``PENDING``) withdrawal per wallet,
  enforced by a partial UNIQUE constraint.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel

ZERO = Decimal("0.00")


class TransactionType(models.TextChoices):
    CREDIT = "credit", "Credit"
    DEBIT = "debit", "Debit"


class TransactionStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"


class WithdrawalStatus(models.TextChoices):
    INITIALIZATION = "INITIALIZATION", "Initialization"
    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    CANCELLED = "CANCELLED", "Cancelled"


OPEN_WITHDRAWAL_STATUSES = [WithdrawalStatus.INITIALIZATION, WithdrawalStatus.PENDING]


class Wallet(BaseModel):
    """Balance holder for a user (driver, customer) or a merchant.

    Created lazily on first credit.  ``balance`` is only ever changed by
    ``LedgerService`` in the same transaction that writes the ledger entry.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallet",
    )
    merchant = models.OneToOneField(
        "merchants.Merchant",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="wallet",
    )
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    currency = models.CharField(max_length=3, default="KES")

    class Meta:
        db_table = "wallets"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="wallets_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(user__isnull=False, merchant__isnull=True)
                    | models.Q(user__isnull=True, merchant__isnull=False)
                ),
                name="wallets_single_owner",
            ),
        ]

    def __str__(self) -> str:
        owner = f"user:{self.user_id}" if self.user_id else f"merchant:{self.merchant_id}"
        return f"Wallet {owner} {self.balance} {self.currency}"


class Transaction(BaseModel):
    """Immutable ledger entry."""

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="transactions",
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    type = models.CharField(max_length=10, choices=TransactionType.choices)
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.COMPLETED,
    )
    description = models.CharField(max_length=255, blank=True, default="")
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "wallet_transactions"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["wallet", "-created_at"],
                name="wallet_txn_wallet_created_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="wallet_transactions_amount_positive",
            ),
        ]

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == TransactionType.CREDIT else -self.amount

    def __str__(self) -> str:
        return f"{self.type} {self.amount} [{self.status}] wallet={self.wallet_id}"


class Withdrawal(BaseModel):
    """Payout request against a wallet.

    The debit ledger entry is written with the withdrawal, so the balance
    drops immediately; ``status`` tracks the external payout.
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="withdrawals",
    )
    transaction = models.OneToOneField(
        Transaction,
        on_delete=models.PROTECT,
        related_name="withdrawal",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    phone_number = models.CharField(max_length=20)
    gateway = models.CharField(max_length=50, default="MTN_KENYA")
    status = models.CharField(
        max_length=20,
        choices=WithdrawalStatus.choices,
        default=WithdrawalStatus.INITIALIZATION,
    )
    external_reference = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "withdrawals"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["wallet"],
                condition=models.Q(status__in=OPEN_WITHDRAWAL_STATUSES),
                name="withdrawals_one_open_per_wallet",
            ),
        ]

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_WITHDRAWAL_STATUSES

    def __str__(self) -> str:
        return f"Withdrawal {self.amount} -> {self.phone_number} [{self.status}]"
