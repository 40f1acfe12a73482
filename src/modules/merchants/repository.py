"""Django ORM look-ups for merchants."""

from __future__ import annotations

from typing import Optional

from django.core.exceptions import ValidationError

from modules.merchants.models import Merchant


class MerchantDjangoRepository:
    def get_by_id(self, id: str) -> Optional[Merchant]:
        try:
            return Merchant.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_managed(self, merchant_id: str, user_id) -> Optional[Merchant]:
        """Return the merchant only if *user_id* is one of its managers."""
        try:
            return (
                Merchant.objects.filter(id=merchant_id, managers__pk=user_id)
                .distinct()
                .first()
            )
        except (ValueError, ValidationError):
            return None
