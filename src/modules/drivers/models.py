"""Driver profile: the approval state gating driver-side transitions."""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class DriverStatus(models.TextChoices):
    PENDING = "PENDING", "Pending review"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"
    SUSPENDED = "SUSPENDED", "Suspended"


class DriverProfile(BaseModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="driver_profile",
    )
    status = models.CharField(
        max_length=20,
        choices=DriverStatus.choices,
        default=DriverStatus.PENDING,
    )
    vehicle_type = models.CharField(max_length=50, blank=True, default="")

    class Meta:
        db_table = "driver_profiles"
        indexes = [
            models.Index(fields=["status"], name="driver_profiles_status_idx"),
        ]

    @property
    def is_approved(self) -> bool:
        return self.status == DriverStatus.APPROVED

    def __str__(self) -> str:
        return f"{self.user} ({self.status})"
