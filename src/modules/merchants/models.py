"""Merchant (store) model.

Only the fields the order engine reads are modelled here: the pickup
location used for distance accumulation and the users allowed to drive
merchant-side order transitions.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class Merchant(BaseModel):
    name = models.CharField(max_length=255)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    managers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="managed_merchants",
        blank=True,
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "merchants"
        ordering = ["name"]

    def is_managed_by(self, user_id) -> bool:
        return self.managers.filter(pk=user_id).exists()

    def __str__(self) -> str:
        return self.name
