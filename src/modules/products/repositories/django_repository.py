"""Django ORM implementation of the Product repository.

Stock changes are single conditional ``UPDATE`` statements built from
``F()`` expressions, so the database evaluates the availability check and
the decrement atomically.  No read-then-write window exists.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import structlog

from django.core.exceptions import ValidationError
from django.db.models import F
from django.utils import timezone

from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a product by primary key.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return Product.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[str]) -> List[Product]:
        return list(Product.objects.select_related("merchant").filter(id__in=list(ids)))

    def reserve_stock(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id, stock_quantity__gte=quantity).update(
            stock_quantity=F("stock_quantity") - quantity,
            updated_at=timezone.now(),
        )
        if updated:
            logger.info("product.stock_reserved", product_id=str(id), quantity=quantity)
        return bool(updated)

    def release_stock(self, id: str, quantity: int) -> bool:
        updated = Product.objects.filter(id=id).update(
            stock_quantity=F("stock_quantity") + quantity,
            updated_at=timezone.now(),
        )
        if updated:
            logger.info("product.stock_released", product_id=str(id), quantity=quantity)
        return bool(updated)
