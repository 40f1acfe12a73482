"""Wallet DRF serializers for API input/output."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.wallets.models import Transaction, Wallet, Withdrawal

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class RequestWithdrawalSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )
    phone_number = serializers.CharField(max_length=32)
    merchant_id = serializers.UUIDField(required=False, allow_null=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = ["id", "user_id", "merchant_id", "balance", "currency", "updated_at"]
        read_only_fields = fields


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            "id",
            "order_id",
            "amount",
            "type",
            "status",
            "description",
            "created_at",
        ]
        read_only_fields = fields


class WithdrawalSerializer(serializers.ModelSerializer):
    transaction_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Withdrawal
        fields = [
            "id",
            "wallet_id",
            "transaction_id",
            "amount",
            "phone_number",
            "gateway",
            "status",
            "created_at",
        ]
        read_only_fields = fields
