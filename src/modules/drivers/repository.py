"""Django ORM look-ups for driver profiles."""

from __future__ import annotations

from modules.drivers.models import DriverProfile, DriverStatus


class DriverDjangoRepository:
    def is_approved(self, user_id) -> bool:
        """``True`` if *user_id* has an approved driver profile."""
        return DriverProfile.objects.filter(
            user_id=user_id, status=DriverStatus.APPROVED
        ).exists()
