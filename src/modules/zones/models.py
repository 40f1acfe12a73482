"""Delivery zone model.

Zones are data, not code: each row carries its own GeoJSON polygon and
the delivery fee currently quoted to customers inside it.  Checkout
compares the fee it was shown against ``delivery_fee`` to reject stale
quotes.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from shared.domain.geo import Coordinates, point_in_polygon


class ZoneStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"


class DeliveryZone(BaseModel):
    name = models.CharField(max_length=255, unique=True)
    status = models.CharField(
        max_length=20,
        choices=ZoneStatus.choices,
        default=ZoneStatus.ACTIVE,
    )
    delivery_fee = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    # GeoJSON Polygon "coordinates": [[[lng, lat], ...]]
    polygon = models.JSONField(default=list)

    class Meta:
        db_table = "delivery_zones"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="delivery_zones_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(delivery_fee__gte=0),
                name="delivery_zones_fee_non_negative",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        ring = self.polygon[0] if self.polygon else []
        if len(ring) < 3:
            raise ValidationError({"polygon": "A zone needs at least three vertices."})

    @property
    def is_active(self) -> bool:
        return self.status == ZoneStatus.ACTIVE

    def contains(self, point: Coordinates) -> bool:
        return point_in_polygon(point, self.polygon)

    def __str__(self) -> str:
        return f"{self.name} ({self.status})"
