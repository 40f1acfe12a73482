"""Django ORM implementation of the delivery zone repository."""

from __future__ import annotations

from typing import Optional

from django.core.exceptions import ValidationError

from modules.zones.models import DeliveryZone, ZoneStatus
from modules.zones.repositories.interfaces import IDeliveryZoneRepository
from shared.domain.geo import Coordinates


class DeliveryZoneDjangoRepository(IDeliveryZoneRepository):
    def get_by_id(self, id: str) -> Optional[DeliveryZone]:
        try:
            return DeliveryZone.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def find_active_containing(self, point: Coordinates) -> Optional[DeliveryZone]:
        # Zone counts are small; polygons are tested in Python
        for zone in DeliveryZone.objects.filter(status=ZoneStatus.ACTIVE):
            if zone.contains(point):
                return zone
        return None
