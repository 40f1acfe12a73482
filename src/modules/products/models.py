"""Product model with merchant ownership and stock control.

Business rules implemented:
- Price must be greater than zero.
- Stock quantity can never go negative (``PositiveIntegerField`` adds the
  database CHECK; reservations use a conditional UPDATE on top of it).
- Inactive products cannot be ordered (enforced at service layer).
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Product(BaseModel):
    """A merchant's sellable item and its on-hand stock."""

    merchant = models.ForeignKey(
        "merchants.Merchant",
        on_delete=models.PROTECT,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="products_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.name} ({self.stock_quantity} in stock)"
