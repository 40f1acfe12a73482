"""Wallet URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.wallets.views import (
    WalletDetailView,
    WalletTransactionListView,
    WithdrawalCreateView,
)

urlpatterns = [
    path("wallet/", WalletDetailView.as_view(), name="wallet-detail"),
    path(
        "wallet/transactions/",
        WalletTransactionListView.as_view(),
        name="wallet-transactions",
    ),
    path(
        "wallet/withdrawals/",
        WithdrawalCreateView.as_view(),
        name="wallet-withdrawals",
    ),
]
