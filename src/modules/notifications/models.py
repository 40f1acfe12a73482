"""Merchant inbox notifications."""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class NotificationKind(models.TextChoices):
    NEW_ORDER = "NEW_ORDER", "New order"


class MerchantNotification(BaseModel):
    """One inbox entry per (order, kind); re-delivery of a task is a no-op."""

    merchant = models.ForeignKey(
        "merchants.Merchant",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="merchant_notifications",
    )
    kind = models.CharField(max_length=32, choices=NotificationKind.choices)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default="")
    is_read = models.BooleanField(default=False)

    class Meta:
        db_table = "merchant_notifications"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "kind"],
                name="merchant_notifications_order_kind_uniq",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.kind} -> merchant {self.merchant_id}"
