"""Wallet repositories package."""

from modules.wallets.repositories.django_repository import WalletDjangoRepository
from modules.wallets.repositories.interfaces import IWalletRepository

__all__ = ["IWalletRepository", "WalletDjangoRepository"]
